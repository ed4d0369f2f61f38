#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# Create the catalog - the Red/Green/Blue (RGB) colour summary of the
# tile images to be used for mosaicking.
#
# The colour summary of each tile is its signature (see colour.py): the
# average colour of the whole tile, or with quad set, the average colour of
# each of its four quadrants.
#
# Summarising a large tile collection is slow, so the tiles are split into
# batches of BATCH_SIZE images and each batch is summarised by a worker
# thread. The workers put (path, signature) results onto a shared queue and
# once every worker is done the queue is drained into a TileSet. A tile that
# fails to decode is reported and skipped, it never stops the other tiles.
#
# The catalog can be saved to a text file and read back so the tiles don't
# need to be summarised again for every mosaic. The first line of the file
# notes the signature shape and the number of tiles, then each line holds a
# tile file name, a tab and the signature channel values:
#
#   catalog mono 2
#   /home/me/tiles/red.png<TAB>250 3 1 255
#   /home/me/tiles/sky.png<TAB>80 140 230 255
#
# Catalog files are kept in CACHE_DIR, one per tiles directory and mode.


from concurrent.futures import ThreadPoolExecutor
import hashlib
import os
import queue
import sys

from colour import MONO, QUAD, Signature, signature_of
from errors import CacheCorruptionError, TileDecodeError
from prepare import read_tiles
from tileset import KDTREE, Tile, TileSet


# Set to True to include debugging messages
CATALOG_DEBUG = False

# The number of tiles summarised by each worker task.
BATCH_SIZE = 500

# The environment variable for the number of worker threads.
ENV_MOSAIC_WORKERS = "MOSAIC_WORKERS"

# The environment variable for the directory the catalog files are kept in.
ENV_MOSAIC_CACHE_DIR = "MOSAIC_CACHE_DIR"

WORKERS = max(1, int(os.getenv(ENV_MOSAIC_WORKERS) or os.cpu_count() or 1))

CACHE_DIR = os.getenv(ENV_MOSAIC_CACHE_DIR) or os.path.join(os.path.expanduser("~"), ".cache", "photomosaic")

CATALOG_HEADER = "catalog"


# Return the signature of one tile, or None if the tile is too small or too
# transparent to use. Raises TileDecodeError if the image data is broken.

def tile_signature(path, im, quad, skip_transparent):
    (width, height) = im.size
    minimum = 2 if quad else 1
    if width < minimum or height < minimum:
        if CATALOG_DEBUG:
            print("Skipping {}: size {}x{} is too small".format(path, width, height))
        return None

    try:
        return signature_of(im, quad, skip_transparent)
    except (OSError, ValueError, SyntaxError) as e:
        raise TileDecodeError(path, e)


# The worker task: summarise one batch of tiles and put every result onto
# the results queue, None for the tiles that can't be used.

def analyse_batch(batch, quad, skip_transparent, results):
    for (path, im) in batch:
        try:
            signature = tile_signature(path, im, quad, skip_transparent)
        except TileDecodeError as e:
            print("Error reading file: {} ({})".format(e.path, e.reason))
            signature = None
        results.put((path, signature))


# Summarise the (path, image) pairs into a TileSet.
#
# Only returns once every batch is done and every result has been taken off
# the queue. The tiles are ordered by path so the same images always give
# the same tile set, whatever order the workers finished in.

def analyse(images, quad=False, batch_size=BATCH_SIZE, workers=None, skip_transparent=True, strategy=KDTREE, rng=None):
    images = list(images)
    if batch_size < 1:
        raise ValueError("batch size must be at least 1, not {}".format(batch_size))
    if workers is None:
        workers = WORKERS

    results = queue.Queue()
    batches = [images[i:i + batch_size] for i in range(0, len(images), batch_size)]

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        futures = [pool.submit(analyse_batch, batch, quad, skip_transparent, results) for batch in batches]

    # surface anything unexpected that went wrong in a worker
    for future in futures:
        future.result()

    tiles = []
    for _ in range(len(images)):
        (path, signature) = results.get()
        if signature is not None:
            tiles.append(Tile(path, signature))
    tiles.sort(key=lambda tile: str(tile.path))

    print("Num files:      {}".format(len(images)))
    print("Num tiles:      {}".format(len(tiles)))
    print("Skipped:        {}".format(len(images) - len(tiles)))
    print("Mode:           {}".format(QUAD if quad else MONO))
    sys.stdout.flush()

    return TileSet(tiles, strategy=strategy, rng=rng)


# Write the tile set out in the catalog text format. The values follow the
# last tab on a line, so only a newline can't be part of a file name.

def serialize(tile_set):
    lines = ["{} {} {}".format(CATALOG_HEADER, tile_set.shape or MONO, len(tile_set))]
    for tile in tile_set:
        name = str(tile.path)
        if "\n" in name:
            raise ValueError("can't catalog the file name {!r}".format(name))
        values = [str(v) for c in tile.signature.colours for v in c]
        lines.append("{}\t{}".format(name, " ".join(values)))
    return ("\n".join(lines) + "\n").encode("utf-8")


# Read back a tile set written by serialize(). Raises CacheCorruptionError
# if the data isn't a complete catalog.

def deserialize(data, strategy=KDTREE, rng=None):
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CacheCorruptionError("catalog is not text: {}".format(e))

    # split on "\n" only, file names can hold the other line breaks
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    if not lines:
        raise CacheCorruptionError("catalog is empty")

    header = lines[0].split()
    if len(header) != 3 or header[0] != CATALOG_HEADER or header[1] not in (MONO, QUAD):
        raise CacheCorruptionError("bad catalog header: {!r}".format(lines[0]))
    try:
        count = int(header[2])
    except ValueError:
        raise CacheCorruptionError("bad catalog header: {!r}".format(lines[0]))
    if count != len(lines) - 1:
        raise CacheCorruptionError("catalog should have {} tiles, found {}".format(count, len(lines) - 1))

    ncolours = 1 if header[1] == MONO else 4
    tiles = []
    for line in lines[1:]:
        (name, sep, rest) = line.rpartition("\t")
        if not sep or not name:
            raise CacheCorruptionError("bad catalog line: {!r}".format(line))
        try:
            values = [int(v) for v in rest.split()]
        except ValueError:
            raise CacheCorruptionError("bad catalog values: {!r}".format(line))
        channels = len(values) // ncolours
        if channels not in (3, 4) or channels * ncolours != len(values):
            raise CacheCorruptionError("wrong number of values: {!r}".format(line))
        colours = [tuple(values[i:i + channels]) for i in range(0, len(values), channels)]
        try:
            signature = Signature(tuple(colours))
        except ValueError as e:
            raise CacheCorruptionError("bad catalog colour: {}".format(e))
        tiles.append(Tile(name, signature))

    return TileSet(tiles, strategy=strategy, rng=rng)


# The catalog file for a tiles directory and mode.

def cache_path(cache_dir, directory, quad):
    key = hashlib.md5(os.path.abspath(directory).encode("utf-8")).hexdigest()
    return os.path.join(cache_dir, "{}_{}.catalog".format(key, QUAD if quad else MONO))


def invalidate(directory, quad, cache_dir=None):
    path = cache_path(cache_dir or CACHE_DIR, directory, quad)
    if os.path.exists(path):
        os.remove(path)
        return True
    return False


def save_catalog(tile_set, path):
    data = serialize(tile_set)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "wb") as f:
        f.write(data)
    os.replace(tmp, path)


# Return the tile set for the tiles directory, from the catalog file when
# there is one, otherwise by reading and summarising every tile and saving
# the result. With refresh set the catalog file is ignored and rewritten.
# A catalog that can't be saved is reported, the tile set is still returned.

def load_catalog(directory, quad=False, cache_dir=None, refresh=False, strategy=KDTREE, hash_threshold=0, workers=None, rng=None):
    path = cache_path(cache_dir or CACHE_DIR, directory, quad)

    if not refresh and os.path.exists(path):
        with open(path, "rb") as f:
            data = f.read()
        try:
            tile_set = deserialize(data, strategy=strategy, rng=rng)
            print("Using catalog {} ({} tiles)".format(path, len(tile_set)))
            return tile_set
        except CacheCorruptionError as e:
            print("Catalog {} is corrupt, rebuilding: {}".format(path, e))

    images = read_tiles(directory, hash_threshold)
    tile_set = analyse(images, quad=quad, workers=workers, strategy=strategy, rng=rng)
    try:
        save_catalog(tile_set, path)
        if CATALOG_DEBUG:
            print("Saved catalog {}".format(path))
    except (OSError, ValueError) as e:
        print("Can't save catalog {}: {}".format(path, e))
    sys.stdout.flush()

    return tile_set
