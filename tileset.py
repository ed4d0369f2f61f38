#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# The set of tiles available for mosaicking and the search for the tile
# that best matches a colour signature.
#
# Two search strategies give the same answer:
#
#   linear - compare the signature with every tile and keep the closest.
#            On a tie the tile that came first in the set wins.
#   kdtree - a k-d tree built once over the tile signatures. A mono
#            signature is a point in 3 dimensions and a quad signature a
#            point in 12 (TL, TR, BR, BL red/green/blue). The coordinates
#            are scaled by the square root of the channel weights so the
#            tree's Euclidean distance is the weighted colour distance.
#
# A tile set never changes once it is built, so one set can be shared by
# several renders.

from collections import namedtuple
import random

import numpy as np
from scipy.spatial import cKDTree

from colour import compare_signatures
from errors import EmptyTileSetError


LINEAR = "linear"
KDTREE = "kdtree"
STRATEGIES = (LINEAR, KDTREE)


# The tile image is only reopened from path when the mosaic is rendered.
Tile = namedtuple("Tile", ["path", "signature"])


# A read-only collection of tiles sharing one signature shape.
# rng is the random.Random used by random_tile(), pass one (or a seed) to
# make random mosaics repeatable.

class TileSet:
    def __init__(self, tiles=(), strategy=KDTREE, rng=None, seed=None):
        if strategy not in STRATEGIES:
            raise ValueError("unknown search strategy {}, use one of {}".format(strategy, STRATEGIES))

        self.tiles = tuple(tiles)
        self.strategy = strategy
        self.rng = rng if rng is not None else random.Random(seed)

        shapes = set(tile.signature.shape for tile in self.tiles)
        if len(shapes) > 1:
            raise ValueError("tiles have mixed signature shapes: {}".format(sorted(shapes)))
        self.shape = shapes.pop() if shapes else None

        self._tree = None
        if strategy == KDTREE and self.tiles:
            points = np.array([tile.signature.scaled_vector() for tile in self.tiles], dtype=np.float64)
            self._tree = cKDTree(points)

    def __len__(self):
        return len(self.tiles)

    def __iter__(self):
        return iter(self.tiles)

    def __repr__(self):
        return "TileSet({} {} tiles, {})".format(len(self.tiles), self.shape, self.strategy)

    # The same tiles searched with another strategy.
    def with_strategy(self, strategy):
        return TileSet(self.tiles, strategy=strategy, rng=self.rng)

    def _check_query(self, signature):
        if not self.tiles:
            raise EmptyTileSetError()
        if signature.shape != self.shape:
            raise ValueError("can't match a {} signature against {} tiles".format(signature.shape, self.shape))

    def _scan(self, signature):
        best = None
        bestDistance = None
        for tile in self.tiles:
            dist = compare_signatures(tile.signature, signature)
            if best is None or dist < bestDistance:
                (best, bestDistance) = (tile, dist)
        return (best, bestDistance)

    # Return (tile, distance) for the tile closest to signature. The distance
    # is the weighted colour distance, whichever strategy is used. Raises
    # EmptyTileSetError when there are no tiles.

    def nearest(self, signature):
        self._check_query(signature)
        if self._tree is None:
            return self._scan(signature)

        (dist, index) = self._tree.query(signature.scaled_vector())
        dist = float(dist)
        return (self.tiles[int(index)], dist * dist)

    def nearest_tile(self, signature):
        return self.nearest(signature)[0]

    def random_tile(self, rng=None):
        if not self.tiles:
            raise EmptyTileSetError()
        if rng is None:
            rng = self.rng
        return self.tiles[rng.randrange(len(self.tiles))]
