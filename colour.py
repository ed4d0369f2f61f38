#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# Colour summaries of images and the distance between them.
#
# A tile is summarised by a signature: either the average colour of the
# whole image (a "mono" signature) or the average colours of its four
# quadrants (a "quad" signature). The quadrants are always stored in the
# order top-left, top-right, bottom-right, bottom-left:
#
#   TL  TR
#   BL  BR
#
# Colours are tuples of RGB or RGBA integers in the range 0 - 255. Alpha is
# carried along but never takes part in the distance between two colours.

from dataclasses import dataclass
import math

import numpy as np


MONO = "mono"
QUAD = "quad"

# Perceptual weights for the red, green and blue channels.
WEIGHTS = (0.3, 0.59, 0.11)

# Multiplying a channel by the square root of its weight turns the weighted
# squared distance into a plain squared Euclidean distance.
SCALES = tuple(math.sqrt(w) for w in WEIGHTS)

# A rect is rejected by the alpha gate when more than this fraction of its
# pixels are fully transparent.
TRANSPARENT_LIMIT = 0.5


# The weighted squared distance between two colours. Alpha is ignored.

def compare(a, b):
    dr = a[0] - b[0]
    dg = a[1] - b[1]
    db = a[2] - b[2]
    return WEIGHTS[0]*dr*dr + WEIGHTS[1]*dg*dg + WEIGHTS[2]*db*db


# The colour summary of a tile or of a region of the source image.
# Holds one colour (mono) or four quadrant colours (quad). Signatures of
# the same shape are compared channel by channel with compare().

@dataclass(frozen=True)
class Signature:
    colours: tuple

    def __post_init__(self):
        colours = tuple(tuple(int(v) for v in c) for c in self.colours)
        if len(colours) not in (1, 4):
            raise ValueError("a signature has 1 or 4 colours, not {}".format(len(colours)))
        for c in colours:
            if len(c) not in (3, 4):
                raise ValueError("colour {} is not RGB or RGBA".format(c))
            for v in c:
                if v < 0 or v > 255:
                    raise ValueError("colour {} is out of range".format(c))
        object.__setattr__(self, "colours", colours)

    @classmethod
    def mono(cls, colour):
        return cls((colour,))

    @classmethod
    def quad(cls, top_left, top_right, bottom_right, bottom_left):
        return cls((top_left, top_right, bottom_right, bottom_left))

    @property
    def shape(self):
        return MONO if len(self.colours) == 1 else QUAD

    @property
    def dimensions(self):
        return 3 * len(self.colours)

    def vector(self):
        return [float(c[i]) for c in self.colours for i in range(3)]

    def scaled_vector(self):
        return [c[i] * SCALES[i] for c in self.colours for i in range(3)]


# The distance between two signatures of the same shape: the sum of the
# distances between each pair of colours.

def compare_signatures(a, b):
    if len(a.colours) != len(b.colours):
        raise ValueError("can't compare a {} signature with a {} signature".format(a.shape, b.shape))
    dist = 0.0
    for ca, cb in zip(a.colours, b.colours):
        dist += compare(ca, cb)
    return dist


# Split a width x height area into four equal quadrants, returned as
# (left, top, width, height) rects in TL, TR, BR, BL order. When the width
# or height is odd the last column or row isn't part of any quadrant.

def quadrants(width, height):
    hw = width // 2
    hh = height // 2
    return [
        (0, 0, hw, hh),
        (hw, 0, hw, hh),
        (hw, hh, hw, hh),
        (0, hh, hw, hh),
    ]


# Return the average colour of the rect (left, top, width, height) of an
# RGB or RGBA image, rounding each channel to the nearest integer.
#
# With skip_transparent set, None is returned when more than half of the
# pixels in the rect are fully transparent.

def average_colour(im, rect, skip_transparent=False):
    (left, top, width, height) = rect
    if width <= 0 or height <= 0:
        raise ValueError("can't average the empty rect {}".format(rect))

    pixels = np.asarray(im.crop((left, top, left + width, top + height)), dtype=np.int64)
    if pixels.ndim == 2:
        pixels = pixels[:, :, np.newaxis]
    count = width * height
    pixels = pixels.reshape(count, pixels.shape[2])

    if skip_transparent and pixels.shape[1] == 4:
        transparent = int(np.count_nonzero(pixels[:, 3] == 0))
        if transparent > TRANSPARENT_LIMIT * count:
            return None

    # round half up, in integers so large rects don't lose precision
    totals = pixels.sum(axis=0)
    return tuple(int((2 * t + count) // (2 * count)) for t in totals)


# Return the signature of the image, or None when the image is too small to
# summarise or is mostly transparent. The image is converted to RGBA first,
# which is where a broken image file fails to decode.

def signature_of(im, quad=False, skip_transparent=True):
    rgba = im.convert("RGBA")
    (width, height) = rgba.size

    if quad:
        rects = quadrants(width, height)
    else:
        rects = [(0, 0, width, height)]

    colours = []
    for rect in rects:
        if rect[2] <= 0 or rect[3] <= 0:
            return None
        c = average_colour(rgba, rect, skip_transparent)
        if c is None:
            return None
        colours.append(c)

    return Signature(tuple(colours))
