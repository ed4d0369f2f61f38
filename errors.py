#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# The errors raised while building a mosaic.
#
# Only TileDecodeError and CacheCorruptionError are recovered from: a tile
# that can't be read is skipped and a broken catalog is rebuilt. Everything
# else stops the mosaic before any output is written.


class MosaicError(Exception):
    pass


# The source image is missing or can't be decoded.

class InputError(MosaicError):
    pass


# A bad tile size, tint opacity or mode, or odd source dimensions in 4:1 mode.

class ValidationError(MosaicError):
    pass


# A single tile image couldn't be read.

class TileDecodeError(MosaicError):
    def __init__(self, path, reason):
        super().__init__("{}: {}".format(path, reason))
        self.path = path
        self.reason = reason


class PreconditionError(MosaicError):
    pass


class EmptyTileSetError(PreconditionError):
    def __init__(self, message="the tile set is empty"):
        super().__init__(message)


# A saved catalog couldn't be read back.

class CacheCorruptionError(MosaicError):
    pass
