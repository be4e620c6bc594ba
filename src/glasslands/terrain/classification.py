"""Tile classification: deep water, water, sand, rock, scrub, grass."""

import numpy as np
from numpy.typing import NDArray

from ..terrain_types import TileType

# Depth below the waterline where water turns deep
DEEP_WATER_MARGIN = 0.06
ROCK_THRESHOLD = 0.7
SCRUB_MOISTURE = 0.25

# Storage codes for tile grids; stable, so never renumber
_TILE_VALUES: dict[TileType, int] = {
    TileType.DEEP_WATER: 0,
    TileType.WATER: 1,
    TileType.SAND: 2,
    TileType.ROCK: 3,
    TileType.SCRUB: 4,
    TileType.GRASS: 5,
}
_VALUE_TILES: dict[int, TileType] = {v: k for k, v in _TILE_VALUES.items()}


def tile_value(tile: TileType) -> int:
    """Convert TileType to its uint8 storage code."""
    return _TILE_VALUES[tile]


def tile_value_to_type(value: int) -> TileType:
    """Convert a uint8 storage code back to TileType."""
    return _VALUE_TILES.get(int(value), TileType.GRASS)


def rockiness(slope, weight: float):
    """Recipe-weighted rockiness in [0, 1] from slope."""
    return np.clip(np.asarray(slope, dtype=np.float64) * weight, 0.0, 1.0)


def classify_tile(
    height: float,
    moisture: float,
    slope: float,
    waterline: float,
    beach_width: float,
    rockiness_weight: float,
) -> TileType:
    """Classify a single tile from its sampled scalars.

    Thresholds are tested in order and the first match wins.
    """
    if height < waterline - DEEP_WATER_MARGIN:
        return TileType.DEEP_WATER
    if height < waterline:
        return TileType.WATER
    if height < waterline + beach_width:
        return TileType.SAND
    if float(rockiness(slope, rockiness_weight)) > ROCK_THRESHOLD:
        return TileType.ROCK
    if moisture < SCRUB_MOISTURE:
        return TileType.SCRUB
    return TileType.GRASS


def classify_tiles(
    height: NDArray[np.floating],
    moisture: NDArray[np.floating],
    slope: NDArray[np.floating],
    waterline: float,
    beach_width: float,
    rockiness_weight: float,
) -> NDArray[np.uint8]:
    """Classify a grid of tiles.

    Same rules as classify_tile, applied elementwise.

    Args:
        height: Carved height field [0, 1].
        moisture: Moisture field [0, 1].
        slope: Slope field (world rise over run).
        waterline: Height below which tiles are water.
        beach_width: Height band above the waterline that is sand.
        rockiness_weight: Slope multiplier for rockiness.

    Returns:
        Array of TileType storage codes as uint8, same shape as height.
    """
    # Compare in float64 so results match classify_tile on the same inputs
    height = np.asarray(height, dtype=np.float64)
    moisture = np.asarray(moisture, dtype=np.float64)
    rocky = rockiness(slope, rockiness_weight)

    conditions = [
        height < waterline - DEEP_WATER_MARGIN,
        height < waterline,
        height < waterline + beach_width,
        rocky > ROCK_THRESHOLD,
        moisture < SCRUB_MOISTURE,
    ]
    choices = [
        _TILE_VALUES[TileType.DEEP_WATER],
        _TILE_VALUES[TileType.WATER],
        _TILE_VALUES[TileType.SAND],
        _TILE_VALUES[TileType.ROCK],
        _TILE_VALUES[TileType.SCRUB],
    ]
    tiles = np.select(conditions, choices, default=_TILE_VALUES[TileType.GRASS])
    return tiles.astype(np.uint8)
