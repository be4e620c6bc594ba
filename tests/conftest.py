"""Shared test fixtures for glasslands tests."""

from collections.abc import Callable

import pytest

from glasslands.chunks import StreamConfig, chunk_origin
from glasslands.terrain.classification import classify_tiles
from glasslands.terrain.config import BiomeRecipe, DecorationBand
from glasslands.terrain.fields import NoiseFields
from glasslands.terrain.objects import PlacementSite
from glasslands.types import ChunkCoord, EntityKind


@pytest.fixture
def world_seed() -> int:
    """Fixed world seed used across tests."""
    return 0x1234


@pytest.fixture
def recipe() -> BiomeRecipe:
    """Default recipe."""
    return BiomeRecipe()


@pytest.fixture
def open_recipe() -> BiomeRecipe:
    """Recipe on which every tile is dry land and every beacon candidate passes.

    Waterline and beach at zero remove water and sand; zero rockiness
    weight removes rock. The beacon band accepts any land tile.
    """
    return BiomeRecipe(
        waterline=0.0,
        beach_width=0.0,
        rockiness_weight=0.0,
        setpieces={EntityKind.BEACON: 0.015},
        setpiece_bands={EntityKind.BEACON: DecorationBand()},
    )


@pytest.fixture
def stream_config() -> StreamConfig:
    """Small inline-build configuration: 16x16 chunks, 3x3 window."""
    return StreamConfig(
        tiles_x=16,
        tiles_z=16,
        window_radius=1,
        build_budget=2,
        workers=0,
    )


@pytest.fixture
def fields(world_seed: int, recipe: BiomeRecipe) -> NoiseFields:
    """Field sampler for the default recipe."""
    return NoiseFields(world_seed, recipe)


@pytest.fixture
def make_site() -> Callable[[NoiseFields, ChunkCoord, StreamConfig], PlacementSite]:
    """Factory building the placement view of a chunk."""

    def build(sampler: NoiseFields, coord: ChunkCoord, config: StreamConfig) -> PlacementSite:
        origin_x, origin_z = chunk_origin(coord, config)
        samples = sampler.sample_chunk(origin_x, origin_z, config.tiles_x, config.tiles_z)
        recipe = sampler.recipe
        tiles = classify_tiles(
            samples.height,
            samples.moisture,
            samples.slope,
            waterline=recipe.waterline,
            beach_width=recipe.beach_width,
            rockiness_weight=recipe.rockiness_weight,
        )
        return PlacementSite(
            origin_x=origin_x,
            origin_z=origin_z,
            tiles=tiles,
            fields=samples,
            sampler=sampler,
        )

    return build
