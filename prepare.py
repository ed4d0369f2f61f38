#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# Read the tile images to be used for mosaicking from a directory tree.
#
# Each file is read into memory and opened with Pillow. Opening is "lazy":
# only the image header is parsed here, the pixel data is decoded later by
# the catalog workers. Files Pillow doesn't recognise as images are skipped.
#
# Exact duplicates are found by md5sum. Near duplicates (the same picture
# saved twice with different metadata or compression) can optionally be
# dropped using the imagehash dhash function: two images whose hash
# difference is below the threshold are treated as the same image and only
# the first one found is kept.


import hashlib
import io
import os
import sys

import imagehash
from PIL import Image
from PIL import UnidentifiedImageError


# Set to True to include debugging messages
PREPARE_DEBUG = False


# Calculate the md5sum for the file contents.
# Note that two images files may have the exact same image, but due to different
# metadata the files will have differing md5sum values.

def md5sum(data):
    hash_md5 = hashlib.md5()
    hash_md5.update(data)
    return hash_md5.hexdigest()


# List the files found in the directory (and sub directories) sorted by
# name so the tiles are always read in the same order. The names are
# absolute so they still open from any working directory.

def list_files(directory):
    names = []
    for root, dirs, files in os.walk(os.path.abspath(directory)):
        dirs.sort()
        for file in sorted(files):
            fullFile = os.path.join(root, file)
            if os.path.isfile(fullFile):
                names.append(fullFile)
    return names


# Open the image held in data. Returns None if it isn't an image Pillow can read.

def readImageData(fname, data):
    try:
        return Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError) as e:
        print("Error reading file: {} ({})".format(fname, e))
        return None


# Return the (path, image) pairs for every readable image in the directory.
# Duplicates by md5sum are always dropped, near duplicates only when
# hash_threshold is above zero.

def read_tiles(directory, hash_threshold=0):
    if not os.path.isdir(directory):
        raise NotADirectoryError("tiles directory not found: {}".format(directory))

    (total, md5Dup, hashDup, err) = (0, 0, 0, 0)
    md5s = dict()
    hashes = []
    images = []

    for fullFile in list_files(directory):
        total += 1
        try:
            with open(fullFile, "rb") as f:
                data = f.read()
        except OSError as e:
            err += 1
            print("Error reading file: {} ({})".format(fullFile, e))
            continue

        md5 = md5sum(data)
        if md5 in md5s:
            md5Dup += 1
            if PREPARE_DEBUG:
                print("Duplicate md5: {} with {}".format(fullFile, md5s[md5]))
            continue
        md5s[md5] = fullFile

        im = readImageData(fullFile, data)
        if im is None:
            err += 1
            continue

        if hash_threshold > 0:
            # hashing decodes the image, so a broken file shows up here
            try:
                hash = imagehash.dhash(im)
            except (OSError, ValueError, SyntaxError) as e:
                err += 1
                print("Error with image hash for file: {} ({})".format(fullFile, e))
                continue

            similar = None
            for (key, value) in hashes:
                if hash - value < hash_threshold:
                    similar = key
                    break
            if similar is not None:
                hashDup += 1
                if PREPARE_DEBUG:
                    print("Hash similar: {} and previous image {}".format(fullFile, similar))
                continue
            hashes.append((fullFile, hash))

        images.append((fullFile, im))

    print("Read dir {}: {} files, {} images, {} duplicates, {} errors.".format(directory, total, len(images), md5Dup + hashDup, err))
    sys.stdout.flush()

    return images
