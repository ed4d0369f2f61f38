#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# Create a mosaic of the input image by placing small images (tiles)
# that closely colour match the regions of the input image. This colour
# matching is done using the tile catalog created by catalog.py.
#
# There are three modes:
#
#   1:1    - each pixel of the input image is replaced by the tile whose
#            average colour is closest to the pixel colour.
#   4:1    - each 2x2 block of pixels is replaced by the tile whose four
#            quadrant colours are closest to the four pixels. The input
#            image must have an even width and height.
#   random - each pixel is replaced by a tile picked at random.
#
# The input image is traversed row by row from the top left, and a tile is
# pasted at the matching place in the output image, tile_size pixels square.
# Every tile image is opened and resized at most once per mosaic, see
# ResizeCache.
#
# Optionally the original colour is blended back over each placed tile
# (the tint). A tint opacity of 0 leaves the tiles as they are and 1
# covers them completely. In 4:1 mode each quadrant of the tile is tinted
# with the colour of its own pixel.
#
# Nothing is written until the whole mosaic has been built in memory.


import argparse
import math
import os
import random
import sys

import numpy as np
from PIL import Image

from catalog import CACHE_DIR, load_catalog
from colour import MONO, QUAD, Signature, quadrants
from errors import EmptyTileSetError, InputError, MosaicError, TileDecodeError, ValidationError
from tileset import KDTREE, LINEAR


# Set to True to include debugging messages
MOSAIC_DEBUG = False

ONE_TO_ONE = "1:1"
FOUR_TO_ONE = "4:1"
RANDOM = "random"
MODES = (ONE_TO_ONE, FOUR_TO_ONE, RANDOM)

# The default size in pixels of each tile in the output image.
TILE_SIZE = 16

DEFAULT_OUTPUT = "./output.png"

# Setting this to avoid the following runtime warning for large tiles and
# input images:
#       DecompressionBombWarning: Image size (... pixels) exceeds limit of ... pixels,
#       could be decompression bomb DOS attack.
Image.MAX_IMAGE_PIXELS = None


# Tile images opened and resized to tile_size, keyed by path. Each path is
# opened once, decodes counts how many times the opener was called. A cache
# belongs to one render.

class ResizeCache:
    def __init__(self, tile_size, opener=Image.open):
        self.tile_size = tile_size
        self.opener = opener
        self.images = dict()
        self.decodes = 0

    def __len__(self):
        return len(self.images)

    def get(self, path):
        tile = self.images.get(path)
        if tile is None:
            self.decodes += 1
            try:
                with self.opener(path) as im:
                    tile = im.convert("RGBA").resize((self.tile_size, self.tile_size), Image.Resampling.LANCZOS)
            except (OSError, ValueError, SyntaxError) as e:
                raise TileDecodeError(path, e)
            self.images[path] = tile
        return tile


# Check the mosaic options against the input image. Raises ValidationError.

def validate(source, tile_size, mode, tint_opacity):
    if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size < 1:
        raise ValidationError("tile size must be a positive whole number, not {!r}".format(tile_size))
    if isinstance(tint_opacity, bool) or not isinstance(tint_opacity, (int, float)) or not 0 <= tint_opacity <= 1:
        raise ValidationError("tint opacity must be between 0 and 1, not {!r}".format(tint_opacity))
    if mode not in MODES:
        raise ValidationError("unknown mode {!r}, use one of {}".format(mode, ", ".join(MODES)))
    if source is not None and mode == FOUR_TO_ONE:
        (width, height) = source.size
        if width % 2 != 0 or height % 2 != 0:
            raise ValidationError("4:1 mode needs an even width and height, the image is {}x{}".format(width, height))


# Check the tile set can be used for the mode.

def check_tile_set(tile_set, mode):
    if len(tile_set) == 0:
        raise EmptyTileSetError("no tiles to make the mosaic from")
    if mode == FOUR_TO_ONE and tile_set.shape != QUAD:
        raise ValidationError("4:1 mode needs a quad tile catalog, not {}".format(tile_set.shape))
    if mode == ONE_TO_ONE and tile_set.shape != MONO:
        raise ValidationError("1:1 mode needs a mono tile catalog, not {}".format(tile_set.shape))


# Open and decode the image to be mosaicked. Raises InputError.

def open_source(path):
    try:
        with Image.open(path) as im:
            return im.convert("RGBA")
    except (OSError, ValueError, SyntaxError) as e:
        raise InputError("can't read input image {}: {}".format(path, e))


# Blend the original colours over the tile placed at (left, top): the whole
# tile for a single colour, or one quadrant per colour. Odd tile sizes leave
# the last row and column of a 4:1 tile untinted.

def tint(output, colours, left, top, tile_size, alpha):
    if len(colours) == 1:
        rects = [(0, 0, tile_size, tile_size)]
    else:
        rects = quadrants(tile_size, tile_size)

    for (colour, rect) in zip(colours, rects):
        (l, t, w, h) = rect
        if w <= 0 or h <= 0:
            continue
        overlay = Image.new("RGBA", (w, h), tuple(colour[:3]) + (alpha,))
        output.alpha_composite(overlay, (left + l, top + t))


# Build the mosaic of source and return it as an RGBA image.
# rng is used for random mode, defaulting to the tile set's own generator.
# cache is the ResizeCache to use, a new one by default.

def render(source, tile_set, tile_size, mode=ONE_TO_ONE, tint_opacity=0.0, rng=None, cache=None):
    validate(source, tile_size, mode, tint_opacity)
    check_tile_set(tile_set, mode)

    if cache is None:
        cache = ResizeCache(tile_size)
    elif cache.tile_size != tile_size:
        raise ValidationError("resize cache is for tile size {}, not {}".format(cache.tile_size, tile_size))

    im = source.convert("RGBA")
    pixels = im.load()
    (width, height) = im.size
    step = 2 if mode == FOUR_TO_ONE else 1
    (XD, YD) = (width // step, height // step)
    alpha = int(255 * tint_opacity + 0.5)

    print("Need to place {} tiles ({}x{}, mode {})".format(XD*YD, XD, YD, mode))
    sys.stdout.flush()

    output = Image.new("RGBA", (XD * tile_size, YD * tile_size))

    # the nearest tile found for each colour seen so far
    matches = dict()

    for y in range(0, YD * step, step):
        for x in range(0, XD * step, step):
            if mode == FOUR_TO_ONE:
                colours = (pixels[x, y], pixels[x+1, y], pixels[x+1, y+1], pixels[x, y+1])
            else:
                colours = (pixels[x, y],)

            if mode == RANDOM:
                tile = tile_set.random_tile(rng)
            else:
                tile = matches.get(colours)
                if tile is None:
                    tile = tile_set.nearest_tile(Signature(colours))
                    matches[colours] = tile

            left = x // step * tile_size
            top = y // step * tile_size

            if MOSAIC_DEBUG:
                print("Tile at {} {} colours {} => {}".format(left, top, colours, tile.path))

            output.alpha_composite(cache.get(tile.path), (left, top))

            if alpha > 0:
                tint(output, colours, left, top, tile_size, alpha)

    print("Placed {} tiles using {} different tile images".format(XD*YD, len(cache)))
    sys.stdout.flush()

    return output


# Compare the generated image with the original pixel by pixel.
# The original is resized to be the same as the mosaic. Returns the average
# normalised distance, 0 when the images are the same.

def metric(original, mosaic):
    (mWidth, mHeight) = mosaic.size

    if MOSAIC_DEBUG:
        print("Original image size: {} {}".format(*original.size))
        print("Mosaic image size:   {} {}".format(mWidth, mHeight))

    oImage = np.asarray(original.convert("RGB").resize((mWidth, mHeight)), dtype=np.float64)
    mImage = np.asarray(mosaic.convert("RGB"), dtype=np.float64)

    # normalise the colour space metric
    factor = math.sqrt(3 * 256*256)

    dist = np.sqrt(((oImage - mImage) ** 2).sum(axis=2)) / factor
    return float(dist.mean())


# Save the mosaic, dropping the alpha channel for formats without one.

def save(output, outname):
    ext = os.path.splitext(outname)[1].lower()
    if ext in (".jpg", ".jpeg", ".bmp"):
        output = output.convert("RGB")
    output.save(outname)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Photomosaic generator")
    parser.add_argument("tiles_dir", metavar="DIR", help="directory containing tile images")
    parser.add_argument("image", metavar="IMG", help="input image")
    parser.add_argument("-s", "--tile-size", type=int, default=TILE_SIZE, help="the size of each tile in the output image")
    parser.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="output image path")
    parser.add_argument("-m", "--mode", default=ONE_TO_ONE, choices=MODES, help="pixels matched per tile, or random tiles")
    parser.add_argument("-t", "--tint", type=float, default=0.0, help="opacity 0-1 of the original colour blended over each tile")
    parser.add_argument("--linear", action="store_true", help="match tiles by comparing every tile instead of using a k-d tree")
    parser.add_argument("--no-cache", action="store_true", help="ignore and rebuild the saved tile catalog")
    parser.add_argument("--cache-dir", default=CACHE_DIR, help="directory for the saved tile catalogs")
    parser.add_argument("--seed", type=int, default=None, help="random seed for random mode")
    parser.add_argument("--hash-threshold", type=int, default=0, help="skip tiles this similar to an earlier tile (imagehash dhash difference), 0 keeps them all")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    quad = args.mode == FOUR_TO_ONE
    strategy = LINEAR if args.linear else KDTREE
    rng = random.Random(args.seed)

    try:
        validate(None, args.tile_size, args.mode, args.tint)

        print("opening file {}".format(args.image))
        source = open_source(args.image)
        print("input image size: {}".format(source.size))
        validate(source, args.tile_size, args.mode, args.tint)

        if not os.path.isdir(args.tiles_dir):
            raise InputError("tiles directory not found: {}".format(args.tiles_dir))
        tile_set = load_catalog(args.tiles_dir, quad=quad, cache_dir=args.cache_dir, refresh=args.no_cache,
                                strategy=strategy, hash_threshold=args.hash_threshold, rng=rng)
        if len(tile_set) == 0:
            raise EmptyTileSetError("no usable tiles found in {}".format(args.tiles_dir))

        output = render(source, tile_set, args.tile_size, args.mode, args.tint, rng=rng)
    except MosaicError as e:
        print("ERROR: {}".format(e))
        return 1

    try:
        save(output, args.output)
    except (OSError, ValueError) as e:
        print("ERROR: can't save {}: {}".format(args.output, e))
        return 1
    print("Saved {} ({}x{})".format(args.output, *output.size))

    percent = (1 - metric(source, output)) * 100.0
    print("metric percentage: {}".format(round(percent, 2)))
    sys.stdout.flush()

    return 0


if __name__ == '__main__':
    sys.exit(main())
