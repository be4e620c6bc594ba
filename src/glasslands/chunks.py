"""Chunk grid geometry and per-chunk records."""

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field

from .types import ChunkCoord, EntityDescriptor, EntityKind


class StreamConfig(BaseModel, frozen=True):
    """Chunk geometry and streaming limits."""

    tiles_x: int = Field(default=48, ge=1, le=1024, description="Chunk width in tiles")
    tiles_z: int = Field(default=48, ge=1, le=1024, description="Chunk depth in tiles")
    tile_size: float = Field(default=1.0, gt=0.0, description="World units per tile")
    height_scale: float = Field(
        default=16.0, gt=0.0, description="World height of normalized height 1.0"
    )
    window_radius: int = Field(
        default=2, ge=0, le=16, description="Chebyshev radius of the loaded window"
    )
    build_budget: int = Field(
        default=2, ge=1, le=1024, description="Chunk builds started per tick"
    )
    workers: int = Field(
        default=2, ge=0, le=64, description="Build threads; 0 builds inline"
    )

    @property
    def chunk_width(self) -> float:
        """Chunk extent along x in world units."""
        return self.tiles_x * self.tile_size

    @property
    def chunk_depth(self) -> float:
        """Chunk extent along z in world units."""
        return self.tiles_z * self.tile_size

    @property
    def tiles_per_chunk(self) -> int:
        return self.tiles_x * self.tiles_z


class ChunkState(str, Enum):
    """Lifecycle of a chunk coordinate in the streamer."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


def chunk_coords(tx: int, tz: int, config: StreamConfig) -> ChunkCoord:
    """Convert tile coordinates to the containing chunk."""
    return ChunkCoord(cx=tx // config.tiles_x, cz=tz // config.tiles_z)


def chunk_origin(coord: ChunkCoord, config: StreamConfig) -> tuple[int, int]:
    """Tile coordinates of a chunk's first tile."""
    return (coord.cx * config.tiles_x, coord.cz * config.tiles_z)


def local_coords(tx: int, tz: int, config: StreamConfig) -> tuple[int, int]:
    """Convert tile coordinates to (lx, lz) within their chunk."""
    return (tx % config.tiles_x, tz % config.tiles_z)


def world_to_chunk(x: float, z: float, config: StreamConfig) -> ChunkCoord:
    """Chunk containing a world-space position.

    Uses floor division, so negative positions land in negative chunks.
    """
    return ChunkCoord(
        cx=math.floor(x / config.chunk_width),
        cz=math.floor(z / config.chunk_depth),
    )


def desired_window(center: ChunkCoord, radius: int) -> list[ChunkCoord]:
    """All chunks within Chebyshev distance ``radius`` of ``center``.

    Returns:
        (2R+1)^2 coordinates in row-major order.
    """
    return [
        center.offset(dx, dz)
        for dz in range(-radius, radius + 1)
        for dx in range(-radius, radius + 1)
    ]


def _freeze(array: NDArray) -> NDArray:
    array.setflags(write=False)
    return array


@dataclass
class ChunkRecord:
    """A fully built chunk.

    Arrays are indexed [lz, lx] and are read-only. The record owns its
    entities as a dense tuple; descriptors never point back at it.
    """

    coord: ChunkCoord
    tiles: NDArray[np.uint8]
    heights: NDArray[np.float32]
    entities: tuple[EntityDescriptor, ...] = ()
    state: ChunkState = ChunkState.LOADED
    moisture: NDArray[np.float32] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        _freeze(self.tiles)
        _freeze(self.heights)
        if self.moisture is not None:
            _freeze(self.moisture)

    def entities_of(self, kind: EntityKind) -> list[EntityDescriptor]:
        """Entities of one kind, in placement order."""
        return [e for e in self.entities if e.kind == kind]

    def kind_counts(self) -> dict[EntityKind, int]:
        counts: dict[EntityKind, int] = {}
        for entity in self.entities:
            counts[entity.kind] = counts.get(entity.kind, 0) + 1
        return counts
