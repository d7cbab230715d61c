"""
terrain.py
==========

Default terrain kernel: turns a source map PNG into the packed binary layers
and the WebP thumbnail consumed by the game client.

Source image encoding:

* water: alpha below ``WATER_ALPHA_THRESHOLD`` or blue channel exactly
  ``WATER_BLUE`` (#00006a in the map palette);
* land: everything else, with elevation read from the blue channel
  (140..200 mapped to magnitude 0..30).

Packed tile byte (one per tile, row-major):

    bit 7     land
    bit 6     shoreline
    bit 5     ocean
    bits 0-4  magnitude (land: elevation, water: half the distance to land)

``map`` is full resolution, ``map4x`` and ``map16x`` are 2x and 4x downscales
per axis. The thumbnail is rendered from ``map4x``.
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError
from scipy import ndimage

from map_generator.errors import GeneratorError
from map_generator.generator import GeneratorArgs, MapLayer, MapResult

# The largest source maps exceed Pillow's decompression bomb limit.
Image.MAX_IMAGE_PIXELS = None

WATER_ALPHA_THRESHOLD = 20
WATER_BLUE = 106
LAND_BLUE_MIN = 140
LAND_BLUE_MAX = 200

MIN_ISLAND_SIZE = 30
MIN_LAKE_SIZE = 200

MAX_MAGNITUDE = 31
THUMBNAIL_SCALE = 0.5
THUMBNAIL_QUALITY = 45

# 4-connectivity for labelling and shoreline detection.
CROSS = ndimage.generate_binary_structure(2, 1)


@dataclass
class Terrain:
    land: np.ndarray
    magnitude: np.ndarray
    shoreline: np.ndarray
    ocean: np.ndarray

    @property
    def width(self) -> int:
        return int(self.land.shape[1])

    @property
    def height(self) -> int:
        return int(self.land.shape[0])

    @classmethod
    def from_land(cls, land: np.ndarray, magnitude: np.ndarray) -> "Terrain":
        return cls(
            land=land,
            magnitude=magnitude.astype(np.float32),
            shoreline=np.zeros(land.shape, dtype=bool),
            ocean=np.zeros(land.shape, dtype=bool),
        )


def decode_terrain(image_buffer: bytes) -> Terrain:
    try:
        image = Image.open(io.BytesIO(image_buffer))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise GeneratorError(f"cannot decode map image: {exc}") from exc
    if image.format != "PNG":
        raise GeneratorError(f"map image is {image.format or 'unknown'}, expected PNG")

    rgba = np.asarray(image.convert("RGBA"))
    src_height, src_width = rgba.shape[:2]
    # Both downscales halve the grid, so keep dimensions divisible by 4.
    width = src_width - src_width % 4
    height = src_height - src_height % 4
    if width == 0 or height == 0:
        raise GeneratorError(f"map image {src_width}x{src_height} is smaller than 4x4")
    rgba = rgba[:height, :width]

    blue = rgba[:, :, 2]
    alpha = rgba[:, :, 3]
    land = ~((alpha < WATER_ALPHA_THRESHOLD) | (blue == WATER_BLUE))
    elevation = (np.clip(blue, LAND_BLUE_MIN, LAND_BLUE_MAX).astype(np.float32) - LAND_BLUE_MIN) / 2.0
    magnitude = np.where(land, elevation, 0.0)
    return Terrain.from_land(land, magnitude)


def remove_small_islands(terrain: Terrain, min_size: int = MIN_ISLAND_SIZE) -> int:
    """Sink land components smaller than *min_size* tiles. Returns how many were removed."""
    labeled, count = ndimage.label(terrain.land, structure=CROSS)
    if count == 0:
        return 0
    sizes = np.bincount(labeled.ravel())
    small = np.flatnonzero(sizes < min_size)
    small = small[small != 0]
    if small.size == 0:
        return 0
    sunk = np.isin(labeled, small)
    terrain.land[sunk] = False
    terrain.magnitude[sunk] = 0
    return int(small.size)


def process_water(terrain: Terrain, remove_small: bool, min_lake_size: int = MIN_LAKE_SIZE) -> None:
    """Classify ocean, optionally fill small lakes, then derive shoreline and water depth."""
    labeled, count = ndimage.label(~terrain.land, structure=CROSS)
    terrain.ocean = np.zeros(terrain.land.shape, dtype=bool)
    if count:
        sizes = np.bincount(labeled.ravel())
        sizes[0] = 0
        ocean_label = int(np.argmax(sizes))
        terrain.ocean = labeled == ocean_label
        if remove_small:
            lakes = np.flatnonzero((sizes > 0) & (sizes < min_lake_size))
            lakes = lakes[lakes != ocean_label]
            if lakes.size:
                filled = np.isin(labeled, lakes)
                terrain.land[filled] = True
                terrain.magnitude[filled] = 0

    land = terrain.land
    water = ~land
    terrain.shoreline = (ndimage.binary_dilation(land, structure=CROSS) & water) | (
        ndimage.binary_dilation(water, structure=CROSS) & land
    )

    if land.any() and water.any():
        distance = ndimage.distance_transform_cdt(water, metric="taxicab")
        depth = np.maximum(distance - 1, 0).astype(np.float32)
    else:
        depth = np.zeros(land.shape, dtype=np.float32)
    terrain.magnitude = np.where(water, depth, terrain.magnitude).astype(np.float32)


def downscale_terrain(terrain: Terrain) -> Terrain:
    height = terrain.height - terrain.height % 2
    width = terrain.width - terrain.width % 2

    def sample(grid: np.ndarray, dy: int, dx: int) -> np.ndarray:
        return grid[dy:height:2, dx:width:2]

    land = sample(terrain.land, 1, 1).copy()
    magnitude = sample(terrain.magnitude, 1, 1).copy()
    # Lowest priority first: a water sample at (0, 0) wins over every other.
    for dy, dx in ((0, 1), (1, 0), (0, 0)):
        water = ~sample(terrain.land, dy, dx)
        land[water] = False
        magnitude[water] = sample(terrain.magnitude, dy, dx)[water]
    return Terrain.from_land(land, magnitude)


def pack_terrain(terrain: Terrain) -> Tuple[bytes, int]:
    magnitude = terrain.magnitude
    mag_bits = np.where(
        terrain.land,
        np.minimum(np.ceil(magnitude), MAX_MAGNITUDE),
        np.minimum(np.ceil(magnitude / 2), MAX_MAGNITUDE),
    ).astype(np.uint8)
    packed = (
        (terrain.land.astype(np.uint8) << 7)
        | (terrain.shoreline.astype(np.uint8) << 6)
        | (terrain.ocean.astype(np.uint8) << 5)
        | (mag_bits & 0x1F)
    ).astype(np.uint8)
    return packed.tobytes(), int(np.count_nonzero(terrain.land))


def render_thumbnail(terrain: Terrain, scale: float = THUMBNAIL_SCALE) -> Image.Image:
    target_width = max(1, int(math.floor(terrain.width * scale)))
    target_height = max(1, int(math.floor(terrain.height * scale)))
    xs = np.minimum(np.floor(np.arange(target_width) / scale).astype(np.intp), terrain.width - 1)
    ys = np.minimum(np.floor(np.arange(target_height) / scale).astype(np.intp), terrain.height - 1)
    grid = np.ix_(ys, xs)
    land = terrain.land[grid]
    shore = terrain.shoreline[grid]
    mag = terrain.magnitude[grid].astype(np.float32)

    water_adj = 1.0 - np.minimum(mag / 2.0, 10.0)
    low = mag < 10
    mid = (mag >= 10) & (mag < 20)
    conditions = [
        ~land & shore,
        ~land,
        land & shore,
        land & low,
        land & mid,
    ]
    high = 230.0 + mag / 2.0

    def channel(water_shore, water_base, land_shore, land_low, land_mid, land_high):
        return np.select(
            conditions,
            [water_shore, water_base, land_shore, land_low, land_mid],
            default=land_high,
        )

    red = channel(100.0, np.maximum(70.0 + water_adj, 0.0), 204.0, 190.0, 200.0 + 2 * mag, high)
    green = channel(143.0, np.maximum(132.0 + water_adj, 0.0), 203.0, 220.0 - 2 * mag, 183.0 + 2 * mag, high)
    blue = channel(255.0, np.maximum(180.0 + water_adj, 0.0), 158.0, 138.0, 138.0 + 2 * mag, high)
    alpha = np.where(land, 255.0, 0.0)

    rgba = np.stack([red, green, blue, alpha], axis=-1)
    rgba = np.clip(rgba, 0, 255).astype(np.uint8)
    return Image.fromarray(rgba)


def encode_webp(image: Image.Image, quality: int = THUMBNAIL_QUALITY) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="WEBP", quality=quality)
    except (KeyError, OSError) as exc:
        raise GeneratorError(f"cannot encode WebP thumbnail: {exc}") from exc
    return buffer.getvalue()


def _layer(terrain: Terrain) -> MapLayer:
    data, num_land_tiles = pack_terrain(terrain)
    return MapLayer(
        width=terrain.width,
        height=terrain.height,
        num_land_tiles=num_land_tiles,
        data=data,
    )


def generate_map(args: GeneratorArgs) -> MapResult:
    terrain = decode_terrain(args.image_buffer)
    if args.remove_small:
        remove_small_islands(terrain)
    process_water(terrain, remove_small=args.remove_small)

    terrain4x = downscale_terrain(terrain)
    process_water(terrain4x, remove_small=False)
    terrain16x = downscale_terrain(terrain4x)
    process_water(terrain16x, remove_small=False)

    return MapResult(
        map=_layer(terrain),
        map4x=_layer(terrain4x),
        map16x=_layer(terrain16x),
        thumbnail=encode_webp(render_thumbnail(terrain4x)),
    )
