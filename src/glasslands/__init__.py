"""Deterministic infinite-world streaming core."""

from .cancellation import CancelToken
from .chunks import (
    ChunkRecord,
    ChunkState,
    StreamConfig,
    chunk_origin,
    desired_window,
    world_to_chunk,
)
from .config import Config, find_config, list_configs, load_config
from .exceptions import (
    ChunkBuildCancelled,
    GlasslandsError,
    StreamerClosedError,
    WrongThreadError,
)
from .seed import canonicalize, chunk_seed, derive_seed, fnv1a64, seed64, splitmix64
from .streaming import ChunkStreamer, StreamUpdate
from .terrain_types import TileType
from .types import ChunkCoord, EntityDescriptor, EntityKind

__all__ = [
    # Seeds
    "canonicalize",
    "fnv1a64",
    "splitmix64",
    "seed64",
    "chunk_seed",
    "derive_seed",
    # Types
    "ChunkCoord",
    "EntityDescriptor",
    "EntityKind",
    "TileType",
    # Chunks
    "ChunkRecord",
    "ChunkState",
    "StreamConfig",
    "chunk_origin",
    "desired_window",
    "world_to_chunk",
    # Streaming
    "CancelToken",
    "ChunkStreamer",
    "StreamUpdate",
    # Config
    "Config",
    "find_config",
    "list_configs",
    "load_config",
    # Exceptions
    "GlasslandsError",
    "ChunkBuildCancelled",
    "WrongThreadError",
    "StreamerClosedError",
]
