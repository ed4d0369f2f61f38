#-*- coding: utf-8 -*-

# Licensed under the MIT License.
# See https://opensource.org/licenses/MIT or License.txt for license text.

# This script generates synthetic tiles of random colours to demonstrate the
# photomosaic process.
#
# Each tile is a flat coloured square inside a one pixel white frame.


import os
import random
import sys

from PIL import Image, ImageDraw


# Default parameters
OUTPUT_FOLDER = "synthetic_tiles"
TILE_SIZE = (32, 32)  # Width x Height
NUM_TILES = 30000     # Total number of images to generate


def random_color(rng):
    return tuple(rng.randint(0, 255) for _ in range(3))


def draw_shape(draw, size, color):
    w, h = size
    padding = 1
    draw.rectangle([padding, padding, w-padding, h-padding], fill=color)


# Write count tiles into folder and return their paths. A seed makes the
# same tiles every time.

def make_tiles(folder, count, size=TILE_SIZE, seed=None):
    rng = random.Random(seed)
    os.makedirs(folder, exist_ok=True)

    paths = []
    for i in range(count):
        img = Image.new("RGB", size, color=(255, 255, 255))
        draw = ImageDraw.Draw(img)
        draw_shape(draw, size, random_color(rng))

        path = os.path.join(folder, f"tile_{i:06d}.png")
        img.save(path)
        paths.append(path)

    return paths


if __name__ == '__main__':
    folder = sys.argv[1] if len(sys.argv) > 1 else OUTPUT_FOLDER
    count = int(sys.argv[2]) if len(sys.argv) > 2 else NUM_TILES
    make_tiles(folder, count)
    print(f"Generated {count} synthetic tiles in '{folder}' folder.")
