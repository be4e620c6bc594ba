"""Tests for setpiece, scenery and tree placement."""

import logging

import numpy as np
import pytest

from glasslands.cancellation import CancelToken
from glasslands.chunks import StreamConfig
from glasslands.exceptions import ChunkBuildCancelled
from glasslands.seed import chunk_seed
from glasslands.terrain.config import (
    BiomeRecipe,
    DecorationBand,
    DecorationConfig,
    TreeConfig,
)
from glasslands.terrain.fields import NoiseFields
from glasslands.terrain.objects import (
    expected_count,
    place_objects,
    place_setpieces,
    place_trees,
    scatter_scenery,
)
from glasslands.terrain_types import TileType
from glasslands.types import ChunkCoord, EntityKind

CHUNK_48 = StreamConfig(tiles_x=48, tiles_z=48)
CHUNK_16 = StreamConfig(tiles_x=16, tiles_z=16)

# Every land kind accepted everywhere, chance 1
OPEN_BAND = DecorationBand(chance=1.0)
CLOSED_BAND = DecorationBand(chance=0.0)


def _scenery_recipe(base: BiomeRecipe, **bands: DecorationBand) -> BiomeRecipe:
    closed = {
        "rock": CLOSED_BAND,
        "flower_patch": CLOSED_BAND,
        "mushroom": CLOSED_BAND,
        "reed": CLOSED_BAND,
        "crystal": CLOSED_BAND,
        "bush": CLOSED_BAND,
    }
    closed.update(bands)
    return base.model_copy(update={"decorations": DecorationConfig(**closed)})


def _inside(entity, site) -> bool:
    return (
        site.origin_x <= entity.x < site.origin_x + site.tiles_x
        and site.origin_z <= entity.z < site.origin_z + site.tiles_z
    )


class TestExpectedCount:
    """Rounding of rarity targets."""

    def test_reference_chunk(self) -> None:
        """48x48 tiles at rarity 0.015 expect 35 placements."""
        assert expected_count(48 * 48, 0.015) == 35

    def test_half_rounds_up(self) -> None:
        """Exact halves round up."""
        assert expected_count(100, 0.005) == 1
        assert expected_count(100, 0.0049) == 0

    def test_zero(self) -> None:
        """No tiles or no rarity means no placements."""
        assert expected_count(0, 0.5) == 0
        assert expected_count(2304, 0.0) == 0

    def test_full_rarity(self) -> None:
        """Rarity 1 targets every tile."""
        assert expected_count(2304, 1.0) == 2304


class TestSetpieces:
    """Bounded rejection sampling."""

    def test_rarity_convergence(self, world_seed, open_recipe, make_site) -> None:
        """With every tile eligible, each chunk gets exactly the expected count."""
        sampler = NoiseFields(world_seed, open_recipe)
        for cx, cz in [(0, 0), (1, -1), (-3, 2), (7, 7)]:
            coord = ChunkCoord(cx=cx, cz=cz)
            site = make_site(sampler, coord, CHUNK_48)
            placed = place_setpieces(site, chunk_seed(world_seed, cx, cz), open_recipe)
            assert len(placed) == 35
            assert all(e.kind == EntityKind.BEACON for e in placed)

    def test_full_rarity_fills_every_attempt(self, world_seed, open_recipe, make_site) -> None:
        """Rarity 1 on open ground places on every tile."""
        recipe = open_recipe.model_copy(update={"setpieces": {EntityKind.BEACON: 1.0}})
        sampler = NoiseFields(world_seed, recipe)
        site = make_site(sampler, ChunkCoord(cx=0, cz=0), CHUNK_16)
        placed = place_setpieces(site, chunk_seed(world_seed, 0, 0), recipe)
        assert len(placed) == 16 * 16

    def test_under_placement_is_normal(self, world_seed, open_recipe, make_site, caplog) -> None:
        """No eligible tile: zero placements, a debug log, no error."""
        recipe = open_recipe.model_copy(
            update={
                "setpiece_bands": {
                    EntityKind.BEACON: DecorationBand(tiles=frozenset({TileType.DEEP_WATER}))
                }
            }
        )
        sampler = NoiseFields(world_seed, recipe)
        site = make_site(sampler, ChunkCoord(cx=0, cz=0), CHUNK_16)

        with caplog.at_level(logging.DEBUG, logger="glasslands.terrain.objects"):
            placed = place_setpieces(site, chunk_seed(world_seed, 0, 0), recipe)

        assert placed == []
        assert "0/4 beacon" in caplog.text

    def test_constrained_band_converges(self, world_seed, fields, make_site) -> None:
        """Slope and river limits thin the candidates, yet counts stay at or just under target."""
        ratios = []
        for cx in range(-3, 3):
            for cz in range(-2, 2):
                site = make_site(fields, ChunkCoord(cx=cx, cz=cz), CHUNK_48)
                placed = place_setpieces(site, chunk_seed(world_seed, cx, cz), fields.recipe)
                ratios.append(len(placed) / 35)

        assert max(ratios) <= 1.0
        assert np.mean(ratios) >= 0.9

    def test_default_recipe_never_overshoots(self, world_seed, fields, make_site) -> None:
        """Rejection sampling stops at the expected count."""
        for cx in range(-3, 3):
            site = make_site(fields, ChunkCoord(cx=cx, cz=1), CHUNK_48)
            placed = place_setpieces(site, chunk_seed(world_seed, cx, 1), fields.recipe)
            assert len(placed) <= 35

    def test_jitter_within_quarter_tile(self, world_seed, open_recipe, make_site) -> None:
        """Setpieces sit within a quarter tile of a tile centre."""
        sampler = NoiseFields(world_seed, open_recipe)
        site = make_site(sampler, ChunkCoord(cx=-2, cz=3), CHUNK_48)
        for e in place_setpieces(site, chunk_seed(world_seed, -2, 3), open_recipe):
            assert 0.25 <= e.x % 1.0 <= 0.75
            assert 0.25 <= e.z % 1.0 <= 0.75
            assert _inside(e, site)

    def test_height_sampled_at_exact_position(self, world_seed, open_recipe, make_site) -> None:
        """Setpiece height is the world height at its position plus lift."""
        sampler = NoiseFields(world_seed, open_recipe)
        site = make_site(sampler, ChunkCoord(cx=1, cz=1), CHUNK_48)
        lift = open_recipe.eligibility_band(EntityKind.BEACON).lift
        for e in place_setpieces(site, chunk_seed(world_seed, 1, 1), open_recipe)[:5]:
            assert e.y == pytest.approx(sampler.world_height(e.x, e.z) + lift)

    def test_kinds_use_independent_streams(self, world_seed, open_recipe, make_site) -> None:
        """Adding a kind to the rarity table leaves other kinds untouched."""
        more = open_recipe.model_copy(
            update={"setpieces": {EntityKind.BEACON: 0.015, EntityKind.CRYSTAL: 0.01}}
        )
        seed = chunk_seed(world_seed, 4, 4)
        site = make_site(NoiseFields(world_seed, open_recipe), ChunkCoord(cx=4, cz=4), CHUNK_48)

        alone = place_setpieces(site, seed, open_recipe)
        mixed = place_setpieces(site, seed, more)
        assert [e for e in mixed if e.kind == EntityKind.BEACON] == alone

    def test_cancelled_token_aborts(self, world_seed, open_recipe, make_site) -> None:
        """A cancelled token stops setpiece sampling."""
        site = make_site(NoiseFields(world_seed, open_recipe), ChunkCoord(cx=0, cz=0), CHUNK_16)
        token = CancelToken()
        token.cancel()
        with pytest.raises(ChunkBuildCancelled):
            place_setpieces(site, chunk_seed(world_seed, 0, 0), open_recipe, token)


class TestScenery:
    """Coarse-grid decoration scatter."""

    def test_first_match_wins(self, world_seed, open_recipe, make_site) -> None:
        """Rocks come first, so an always-on rock band hides every other kind."""
        recipe = _scenery_recipe(open_recipe, rock=OPEN_BAND, flower_patch=OPEN_BAND, bush=OPEN_BAND)
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=0, cz=0), CHUNK_16)
        scenery = scatter_scenery(site, chunk_seed(world_seed, 0, 0), recipe)

        assert {e.kind for e in scenery} == {EntityKind.ROCK}
        # 4 x 4 cells, groups of 1-3 rocks
        assert 16 <= len(scenery) <= 48

    def test_falls_through_to_next_kind(self, world_seed, open_recipe, make_site) -> None:
        """A closed kind hands the cell to the next one."""
        recipe = _scenery_recipe(open_recipe, flower_patch=OPEN_BAND, bush=OPEN_BAND)
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=0, cz=0), CHUNK_16)
        scenery = scatter_scenery(site, chunk_seed(world_seed, 0, 0), recipe)

        assert len(scenery) == 16
        assert {e.kind for e in scenery} == {EntityKind.FLOWER_PATCH}

    def test_peak_arm_places_rocks_on_flat_ground(self, world_seed, open_recipe, make_site) -> None:
        """An unreachable slope floor still lets rocks onto ground above the peak height."""
        steep_only = DecorationBand(min_slope=500.0)
        site = make_site(NoiseFields(world_seed, open_recipe), ChunkCoord(cx=0, cz=0), CHUNK_16)
        seed = chunk_seed(world_seed, 0, 0)

        closed = _scenery_recipe(open_recipe, rock=steep_only)
        assert scatter_scenery(site, seed, closed) == []

        peaks = _scenery_recipe(open_recipe, rock=steep_only.model_copy(update={"peak_height": 0.0}))
        rocks = scatter_scenery(site, seed, peaks)
        assert len(rocks) >= 16
        assert {e.kind for e in rocks} == {EntityKind.ROCK}

    def test_chance_gates_density(self, world_seed, open_recipe, make_site) -> None:
        """A zero chance places nothing."""
        recipe = _scenery_recipe(open_recipe, bush=DecorationBand(chance=0.0))
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=0, cz=0), CHUNK_16)
        assert scatter_scenery(site, chunk_seed(world_seed, 0, 0), recipe) == []

    def test_rock_groups_grow(self, world_seed, open_recipe, make_site) -> None:
        """Grouped rocks stay in size range and inside the chunk."""
        recipe = _scenery_recipe(open_recipe, rock=OPEN_BAND)
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=2, cz=2), CHUNK_48)
        rocks = scatter_scenery(site, chunk_seed(world_seed, 2, 2), recipe)
        assert all(0.25 <= r.size <= 0.55 * 1.7 for r in rocks)
        assert all(_inside(r, site) for r in rocks)

    def test_default_scenery_inside_chunk(self, world_seed, fields, make_site) -> None:
        """Default scenery never spills into neighbours."""
        for cx, cz in [(0, 0), (-1, 2), (3, -4)]:
            site = make_site(fields, ChunkCoord(cx=cx, cz=cz), CHUNK_48)
            scenery = scatter_scenery(site, chunk_seed(world_seed, cx, cz), fields.recipe)
            assert all(_inside(e, site) for e in scenery)

    def test_cancelled_token_aborts(self, world_seed, recipe, fields, make_site) -> None:
        """A cancelled token stops the scatter."""
        site = make_site(fields, ChunkCoord(cx=0, cz=0), CHUNK_16)
        token = CancelToken()
        token.cancel()
        with pytest.raises(ChunkBuildCancelled):
            scatter_scenery(site, chunk_seed(world_seed, 0, 0), recipe, token)


class TestTrees:
    """Tree grid and groves."""

    def test_grove_only(self, world_seed, open_recipe, make_site) -> None:
        """With the grid closed, a sure grove plants three or four trees."""
        trees_cfg = TreeConfig(
            band=DecorationBand(chance=0.0),
            forest_chance=0.0,
            grove_attempts=1,
            grove=DecorationBand(chance=1.0),
        )
        recipe = open_recipe.model_copy(update={"trees": trees_cfg})
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=0, cz=0), CHUNK_48)
        trees = place_trees(site, chunk_seed(world_seed, 0, 0), recipe)

        assert 3 <= len(trees) <= 4
        assert all(e.kind == EntityKind.TREE for e in trees)
        assert all(_inside(e, site) for e in trees)

    def test_sure_grid_fills_every_cell(self, world_seed, open_recipe, make_site) -> None:
        """Sure chances plant one tree per grid cell."""
        trees_cfg = TreeConfig(
            band=DecorationBand(chance=1.0),
            forest_chance=1.0,
            grove_attempts=0,
        )
        recipe = open_recipe.model_copy(update={"trees": trees_cfg})
        site = make_site(NoiseFields(world_seed, recipe), ChunkCoord(cx=0, cz=0), CHUNK_48)
        trees = place_trees(site, chunk_seed(world_seed, 0, 0), recipe)

        assert len(trees) == 8 * 8
        assert all(0 <= e.variant < trees_cfg.variants for e in trees)


class TestPlaceObjects:
    """Combined placement."""

    def test_deterministic(self, world_seed, fields, make_site) -> None:
        """Same site and seed, same objects."""
        site = make_site(fields, ChunkCoord(cx=3, cz=-2), CHUNK_48)
        seed = chunk_seed(world_seed, 3, -2)
        assert place_objects(site, seed, fields.recipe) == place_objects(site, seed, fields.recipe)

    def test_mirrored_chunks_differ(self, world_seed, open_recipe, make_site) -> None:
        """Chunks reflected through the origin do not share a layout."""
        sampler = NoiseFields(world_seed, open_recipe)

        def local_layout(cx: int, cz: int) -> list[tuple[float, float]]:
            site = make_site(sampler, ChunkCoord(cx=cx, cz=cz), CHUNK_48)
            placed = place_setpieces(site, chunk_seed(world_seed, cx, cz), open_recipe)
            return [(e.x - site.origin_x, e.z - site.origin_z) for e in placed]

        assert local_layout(2, 6) != local_layout(-2, -6)
        assert local_layout(4, 4) != local_layout(-4, -4)

    def test_different_chunks_differ(self, world_seed, open_recipe, make_site) -> None:
        """Neighbouring chunks get different objects."""
        sampler = NoiseFields(world_seed, open_recipe)
        a = place_objects(
            make_site(sampler, ChunkCoord(cx=0, cz=0), CHUNK_48), chunk_seed(world_seed, 0, 0), open_recipe
        )
        b = place_objects(
            make_site(sampler, ChunkCoord(cx=1, cz=0), CHUNK_48), chunk_seed(world_seed, 1, 0), open_recipe
        )
        assert a != b

    def test_setpieces_first(self, world_seed, open_recipe, make_site) -> None:
        """Setpieces lead the combined tuple."""
        site = make_site(NoiseFields(world_seed, open_recipe), ChunkCoord(cx=0, cz=0), CHUNK_48)
        objects = place_objects(site, chunk_seed(world_seed, 0, 0), open_recipe)
        assert isinstance(objects, tuple)
        assert all(e.kind == EntityKind.BEACON for e in objects[:35])
