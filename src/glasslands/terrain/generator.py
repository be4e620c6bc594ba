"""Chunk build orchestration: sample, classify, seed, place."""

import logging

import numpy as np
from numpy.typing import NDArray

from ..cancellation import CancelToken, check_cancelled
from ..chunks import ChunkRecord, ChunkState, StreamConfig, chunk_origin
from ..seed import chunk_seed
from ..terrain_types import TileType
from ..types import ChunkCoord, EntityDescriptor
from .classification import classify_tiles, tile_value
from .config import BiomeRecipe
from .fields import NoiseFields
from .objects import PlacementSite, place_objects

logger = logging.getLogger(__name__)


def make_fields(seed64: int, recipe: BiomeRecipe, config: StreamConfig) -> NoiseFields:
    """Field sampler matching a stream configuration's vertical and tile scale."""
    return NoiseFields(
        seed64,
        recipe,
        height_scale=config.height_scale,
        tile_size=config.tile_size,
    )


def build_chunk(
    coord: ChunkCoord,
    fields: NoiseFields,
    recipe: BiomeRecipe,
    config: StreamConfig,
    seed64: int,
    cancel: CancelToken | None = None,
) -> ChunkRecord:
    """Build one chunk from scratch.

    Pure apart from logging: the result depends only on the arguments, so
    a chunk rebuilt after eviction is identical to the first build.

    Args:
        coord: Chunk to build.
        fields: Field sampler for (seed64, recipe).
        recipe: Biome recipe.
        config: Chunk geometry.
        seed64: World seed.
        cancel: Optional token; a set token aborts the build with
            ChunkBuildCancelled between stages and inside placement loops.

    Returns:
        ChunkRecord in state LOADED.
    """
    check_cancelled(cancel)
    origin_x, origin_z = chunk_origin(coord, config)

    logger.debug(f"Building chunk {coord}: sampling fields")
    samples = fields.sample_chunk(origin_x, origin_z, config.tiles_x, config.tiles_z)
    check_cancelled(cancel)

    tiles = classify_tiles(
        samples.height,
        samples.moisture,
        samples.slope,
        waterline=recipe.waterline,
        beach_width=recipe.beach_width,
        rockiness_weight=recipe.rockiness_weight,
    )
    check_cancelled(cancel)

    site = PlacementSite(
        origin_x=origin_x,
        origin_z=origin_z,
        tiles=tiles,
        fields=samples,
        sampler=fields,
    )
    entities = place_objects(site, chunk_seed(seed64, coord.cx, coord.cz), recipe, cancel)

    heights = (samples.height * np.float32(config.height_scale)).astype(np.float32)
    _log_chunk_stats(coord, tiles, entities)

    return ChunkRecord(
        coord=coord,
        tiles=tiles,
        heights=heights,
        entities=entities,
        state=ChunkState.LOADED,
        moisture=samples.moisture,
    )


def _log_chunk_stats(
    coord: ChunkCoord,
    tiles: NDArray[np.uint8],
    entities: tuple[EntityDescriptor, ...],
) -> None:
    """Log tile and entity statistics at debug level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    total = tiles.size
    logger.debug(f"Chunk {coord} stats ({total:,} tiles, {len(entities)} entities):")
    for tile in TileType:
        count = int(np.sum(tiles == tile_value(tile)))
        if count:
            logger.debug(f"  {tile.value}: {count:,} ({count / total * 100:.1f}%)")
