"""Terrain tile categories and their properties."""

from enum import Enum


class TileType(str, Enum):
    """Discrete tile categories produced by the classifier."""

    DEEP_WATER = "deep_water"
    WATER = "water"
    SAND = "sand"
    ROCK = "rock"
    SCRUB = "scrub"
    GRASS = "grass"

    @property
    def blocked(self) -> bool:
        """Whether the viewer is stopped by this tile."""
        return self in _BLOCKED_TYPES

    @property
    def is_water(self) -> bool:
        """Whether this tile is open water."""
        return self in _WATER_TYPES


# Define sets for O(1) lookup
_BLOCKED_TYPES = frozenset({
    TileType.DEEP_WATER,
    TileType.ROCK,
})

_WATER_TYPES = frozenset({
    TileType.DEEP_WATER,
    TileType.WATER,
})
