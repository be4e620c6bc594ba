"""Post-build chunk validation."""

import logging
import math

import numpy as np

from ..chunks import ChunkRecord, StreamConfig, chunk_coords, chunk_origin, local_coords
from ..types import EntityKind
from .classification import tile_value_to_type
from .config import BiomeRecipe
from .objects import expected_count

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of chunk validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_chunk(
    record: ChunkRecord,
    recipe: BiomeRecipe,
    config: StreamConfig,
) -> ValidationResult:
    """Validate a built chunk against its structural guarantees.

    Args:
        record: Built chunk.
        recipe: Recipe the chunk was built with.
        config: Chunk geometry.

    Returns:
        ValidationResult with any errors/warnings.
    """
    result = ValidationResult()

    _check_grids(record, config, result)
    if not result.passed:
        return result

    _check_entity_bounds(record, config, result)
    _check_entity_tiles(record, config, result)
    _check_setpiece_counts(record, recipe, config, result)

    if result.passed:
        logger.debug(f"Chunk {record.coord} validation passed")
    else:
        logger.warning(
            f"Chunk {record.coord} validation failed with {len(result.errors)} errors"
        )
        for error in result.errors:
            logger.error(f"  - {error}")

    for warning in result.warnings:
        logger.debug(f"  - {warning}")

    return result


def _check_grids(record: ChunkRecord, config: StreamConfig, result: ValidationResult) -> None:
    """Check grid shapes, dtypes and read-only flags."""
    shape = (config.tiles_z, config.tiles_x)
    if record.tiles.shape != shape:
        result.add_error(f"Tile grid shape {record.tiles.shape}, expected {shape}")
    if record.heights.shape != shape:
        result.add_error(f"Height grid shape {record.heights.shape}, expected {shape}")
    if record.tiles.dtype != np.uint8:
        result.add_error(f"Tile grid dtype {record.tiles.dtype}, expected uint8")
    if record.heights.dtype != np.float32:
        result.add_error(f"Height grid dtype {record.heights.dtype}, expected float32")
    if record.tiles.flags.writeable or record.heights.flags.writeable:
        result.add_error("Chunk grids are writeable")


def _check_entity_bounds(
    record: ChunkRecord, config: StreamConfig, result: ValidationResult
) -> None:
    """Check every entity lies inside the chunk's world rectangle."""
    origin_x, origin_z = chunk_origin(record.coord, config)
    min_x = origin_x * config.tile_size
    min_z = origin_z * config.tile_size
    max_x = min_x + config.chunk_width
    max_z = min_z + config.chunk_depth

    outside = sum(
        1
        for e in record.entities
        if not (min_x <= e.x < max_x and min_z <= e.z < max_z)
    )
    if outside > 0:
        result.add_error(f"{outside} entities outside chunk bounds")


def _check_entity_tiles(
    record: ChunkRecord, config: StreamConfig, result: ValidationResult
) -> None:
    """Check no entity stands on a water tile."""
    wet = 0
    for e in record.entities:
        tx = math.floor(e.x / config.tile_size)
        tz = math.floor(e.z / config.tile_size)
        # Out-of-chunk entities are reported by the bounds check
        if chunk_coords(tx, tz, config) != record.coord:
            continue
        lx, lz = local_coords(tx, tz, config)
        if tile_value_to_type(record.tiles[lz, lx]).is_water:
            wet += 1

    if wet > 0:
        result.add_error(f"{wet} entities on water tiles")


def _check_setpiece_counts(
    record: ChunkRecord,
    recipe: BiomeRecipe,
    config: StreamConfig,
    result: ValidationResult,
) -> None:
    """Check setpiece counts never exceed their rarity target.

    Only kinds placed by the rarity table alone are checked; kinds that
    scenery or tree passes also emit can legitimately exceed it.
    """
    counts = record.kind_counts()
    grid_kinds = {kind for kind, _ in recipe.decorations.priority()} | {EntityKind.TREE}

    for kind, rarity in recipe.setpieces.items():
        if kind in grid_kinds:
            continue
        expected = expected_count(config.tiles_per_chunk, rarity)
        placed = counts.get(kind, 0)
        if placed > expected:
            result.add_error(f"{placed} {kind.value} placed, at most {expected} expected")
        elif placed < expected:
            result.add_warning(f"{kind.value} under-placed: {placed}/{expected}")
