"""
Pytest configuration and shared fixtures for the photomosaic tests.

Images are built in memory with Pillow; tile directories are written
into pytest's tmp_path.
"""

import pytest
from PIL import Image


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
YELLOW = (255, 255, 0)


def image_from_pixels(width, height, pixels, mode="RGB"):
    """Build an image from a row-major list of pixel tuples."""
    im = Image.new(mode, (width, height))
    im.putdata(list(pixels))
    return im


def quad_image(top_left, top_right, bottom_right, bottom_left, mode="RGB"):
    """A 2x2 image with one colour per quadrant."""
    return image_from_pixels(2, 2, [top_left, top_right, bottom_left, bottom_right], mode)


class BrokenImage:
    """Stands in for a lazily opened image whose data is corrupt."""

    size = (4, 4)

    def convert(self, mode):
        raise OSError("image file is truncated")


@pytest.fixture
def primary_colours():
    return [RED, GREEN, BLUE, YELLOW]


@pytest.fixture
def tile_dir(tmp_path, primary_colours):
    """A directory of four single pixel tiles, red, green, blue and yellow."""
    folder = tmp_path / "tiles"
    folder.mkdir()
    for (name, colour) in zip(("red", "green", "blue", "yellow"), primary_colours):
        Image.new("RGB", (1, 1), colour).save(folder / "{}.png".format(name))
    return folder


@pytest.fixture
def quad_tile_dir(tmp_path):
    """A directory of 2x2 tiles, one colour per quadrant."""
    folder = tmp_path / "quad_tiles"
    folder.mkdir()
    quad_image(RED, GREEN, BLUE, YELLOW).save(folder / "rgby.png")
    quad_image(YELLOW, BLUE, GREEN, RED).save(folder / "ybgr.png")
    quad_image(RED, RED, RED, RED).save(folder / "red.png")
    return folder


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    return str(path)


@pytest.fixture
def counting_opener():
    """An opener serving in-memory tiles that counts every open per path."""

    class Opener:
        def __init__(self):
            self.images = dict()
            self.calls = dict()

        def add(self, path, im):
            self.images[path] = im

        def __call__(self, path):
            self.calls[path] = self.calls.get(path, 0) + 1
            if path not in self.images:
                raise FileNotFoundError(path)
            return self.images[path].copy()

    return Opener()
