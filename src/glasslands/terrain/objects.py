"""Object placement: setpieces, scenery and trees inside one chunk.

Every random draw comes from a generator seeded from the chunk seed and a
fixed salt, created inside the call that uses it. Draw order is fixed, so a
chunk's objects are a pure function of (seed, recipe, coordinate).
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from ..cancellation import CancelToken, check_cancelled
from ..seed import derive_seed
from ..types import EntityDescriptor, EntityKind
from .classification import tile_value_to_type
from .config import BiomeRecipe, DecorationBand
from .fields import ChunkFields, NoiseFields

logger = logging.getLogger(__name__)

# Poll the cancel token this often inside attempt loops
CANCEL_CHECK_INTERVAL = 64

SETPIECE_JITTER = 0.25
ATTEMPTS_PER_TILE = 2

# Salts for the grid passes; distinct from every EntityKind salt
SCENERY_SALT = 0x101
TREE_GRID_SALT = 0x102
GROVE_SALT = 0x103

ROCK_VARIANTS = 4
SCENERY_VARIANTS = 3
ROCK_SPREAD = 0.6

# Keep clamped positions strictly inside the chunk's half-open rectangle
EDGE_EPSILON = 1e-4


def expected_count(total_tiles: int, rarity: float) -> int:
    """Target number of placements for a kind, rounding halves up."""
    return int(math.floor(total_tiles * rarity + 0.5))


@dataclass(frozen=True)
class PlacementSite:
    """Read-only view of one chunk's samples used by the placement passes.

    Positions handled here are in tile units of the infinite plane;
    ``origin_x``/``origin_z`` is the tile of local index (0, 0).
    """

    origin_x: int
    origin_z: int
    tiles: NDArray[np.uint8]
    fields: ChunkFields
    sampler: NoiseFields

    @property
    def tiles_x(self) -> int:
        return self.tiles.shape[1]

    @property
    def tiles_z(self) -> int:
        return self.tiles.shape[0]

    @property
    def total(self) -> int:
        return self.tiles_x * self.tiles_z

    def clamp(self, tx: float, tz: float) -> tuple[float, float]:
        """Clamp a tile-space position into the chunk."""
        tx = min(max(tx, float(self.origin_x)), self.origin_x + self.tiles_x - EDGE_EPSILON)
        tz = min(max(tz, float(self.origin_z)), self.origin_z + self.tiles_z - EDGE_EPSILON)
        return tx, tz

    def local_tile(self, tx: float, tz: float) -> tuple[int, int]:
        """Local (lx, lz) index of the tile containing a tile-space position."""
        lx = int(math.floor(tx)) - self.origin_x
        lz = int(math.floor(tz)) - self.origin_z
        return (
            min(max(lx, 0), self.tiles_x - 1),
            min(max(lz, 0), self.tiles_z - 1),
        )

    def accepts(self, band: DecorationBand, lx: int, lz: int) -> bool:
        f = self.fields
        return band.accepts(
            tile_value_to_type(self.tiles[lz, lx]),
            float(f.height[lz, lx]),
            float(f.moisture[lz, lx]),
            float(f.slope[lz, lx]),
            float(f.river[lz, lx]),
        )

    def tile_allowed(self, band: DecorationBand, tx: float, tz: float) -> bool:
        """Whether the tile under a position is one of the band's categories."""
        lx, lz = self.local_tile(tx, tz)
        return tile_value_to_type(self.tiles[lz, lx]) in band.tiles

    def descriptor(
        self,
        kind: EntityKind,
        tx: float,
        tz: float,
        lift: float,
        radius: float,
        variant: int = 0,
        size: float = 1.0,
    ) -> EntityDescriptor:
        """Build a descriptor at a tile-space position, clamped into the chunk.

        Height is sampled at the exact position, not the tile centre.
        """
        tx, tz = self.clamp(tx, tz)
        ground = float(self.sampler.sample_terrain_height(tx, tz)) * self.sampler.height_scale
        tile_size = self.sampler.tile_size
        return EntityDescriptor(
            kind=kind,
            x=tx * tile_size,
            y=ground + lift,
            z=tz * tile_size,
            variant=variant,
            size=size,
            radius=radius,
        )


def place_setpieces(
    site: PlacementSite,
    chunk_seed: int,
    recipe: BiomeRecipe,
    cancel: CancelToken | None = None,
) -> list[EntityDescriptor]:
    """Scatter rarity-table kinds by bounded rejection sampling.

    For each kind, in EntityKind order, draws uniform tiles until the
    expected count is placed or 2 * T attempts are spent. Falling short is
    a normal outcome.

    Args:
        site: Chunk samples and tile grid.
        chunk_seed: Seed of this chunk.
        recipe: Biome recipe holding the rarity table and bands.
        cancel: Optional token polled every CANCEL_CHECK_INTERVAL attempts.

    Returns:
        Placed descriptors, grouped by kind.
    """
    placed_all: list[EntityDescriptor] = []
    total = site.total
    max_attempts = ATTEMPTS_PER_TILE * total

    for kind in EntityKind:
        rarity = recipe.setpieces.get(kind, 0.0)
        expected = expected_count(total, rarity)
        if expected == 0:
            continue

        band = recipe.eligibility_band(kind)
        rng = np.random.default_rng(derive_seed(chunk_seed, kind.salt))
        placed = 0
        attempts = 0

        while placed < expected and attempts < max_attempts:
            if attempts % CANCEL_CHECK_INTERVAL == 0:
                check_cancelled(cancel)
            attempts += 1

            lx = int(rng.integers(site.tiles_x))
            lz = int(rng.integers(site.tiles_z))
            if not site.accepts(band, lx, lz):
                continue

            jx, jz = rng.uniform(-SETPIECE_JITTER, SETPIECE_JITTER, size=2)
            placed_all.append(
                site.descriptor(
                    kind,
                    site.origin_x + lx + 0.5 + float(jx),
                    site.origin_z + lz + 0.5 + float(jz),
                    lift=band.lift,
                    radius=band.radius,
                )
            )
            placed += 1

        if placed < expected:
            logger.debug(
                f"Placed {placed}/{expected} {kind.value} at tile origin "
                f"({site.origin_x}, {site.origin_z}) after {attempts} attempts"
            )

    return placed_all


def scatter_scenery(
    site: PlacementSite,
    chunk_seed: int,
    recipe: BiomeRecipe,
    cancel: CancelToken | None = None,
) -> list[EntityDescriptor]:
    """Scatter decorations on a coarse grid, first match wins per cell.

    Each cell draws one jitter offset and one chance roll per kind up
    front. A placed kind then draws its variant and size, and rocks draw
    their group, so later cells' draws depend on what earlier cells placed.
    The pass still reads one stream in a fixed order. Rocks come in small
    groups.
    """
    deco = recipe.decorations
    priority = deco.priority()
    rng = np.random.default_rng(derive_seed(chunk_seed, SCENERY_SALT))
    step = deco.step
    spread = deco.jitter * step
    scenery: list[EntityDescriptor] = []

    for lz in range(step // 2, site.tiles_z, step):
        check_cancelled(cancel)
        for lx in range(step // 2, site.tiles_x, step):
            jx, jz = rng.uniform(-spread, spread, size=2)
            rolls = rng.random(len(priority))
            tx = site.origin_x + lx + 0.5 + float(jx)
            tz = site.origin_z + lz + 0.5 + float(jz)
            tx, tz = site.clamp(tx, tz)
            cx, cz = site.local_tile(tx, tz)

            for (kind, band), roll in zip(priority, rolls):
                if roll >= band.chance or not site.accepts(band, cx, cz):
                    continue
                if kind == EntityKind.ROCK:
                    scenery.extend(_rock_group(site, rng, band, tx, tz, deco.rock_group_max))
                else:
                    scenery.append(
                        site.descriptor(
                            kind, tx, tz,
                            lift=band.lift,
                            radius=band.radius,
                            variant=int(rng.integers(SCENERY_VARIANTS)),
                            size=float(rng.uniform(0.8, 1.2)),
                        )
                    )
                break

    return scenery


def _rock_group(
    site: PlacementSite,
    rng: np.random.Generator,
    band: DecorationBand,
    tx: float,
    tz: float,
    group_max: int,
) -> list[EntityDescriptor]:
    """A cluster of one to group_max rocks, growing away from the anchor."""
    count = 1 + int(rng.integers(group_max))
    rocks: list[EntityDescriptor] = []

    for i in range(count):
        growth = 1.0 + 0.35 * i
        size = float(rng.uniform(0.25, 0.55)) * growth
        variant = int(rng.integers(ROCK_VARIANTS))
        if i == 0:
            rx, rz = tx, tz
        else:
            ox, oz = rng.uniform(-ROCK_SPREAD, ROCK_SPREAD, size=2) * growth
            rx, rz = site.clamp(tx + float(ox), tz + float(oz))
            if not site.tile_allowed(band, rx, rz):
                continue
        rocks.append(
            site.descriptor(
                EntityKind.ROCK, rx, rz,
                lift=band.lift,
                radius=band.radius * growth,
                variant=variant,
                size=size,
            )
        )

    return rocks


def place_trees(
    site: PlacementSite,
    chunk_seed: int,
    recipe: BiomeRecipe,
    cancel: CancelToken | None = None,
) -> list[EntityDescriptor]:
    """Place trees on a coarse grid, denser in forest cores, plus groves.

    A forest core is a moist, low, flat tile; there the per-cell chance
    rises from the base band chance to ``forest_chance``.
    """
    cfg = recipe.trees
    band = cfg.band
    rng = np.random.default_rng(derive_seed(chunk_seed, TREE_GRID_SALT))
    step = cfg.step
    spread = cfg.jitter * step
    trees: list[EntityDescriptor] = []

    for lz in range(step // 2, site.tiles_z, step):
        check_cancelled(cancel)
        for lx in range(step // 2, site.tiles_x, step):
            jx, jz = rng.uniform(-spread, spread, size=2)
            roll = float(rng.random())
            tx, tz = site.clamp(
                site.origin_x + lx + 0.5 + float(jx),
                site.origin_z + lz + 0.5 + float(jz),
            )
            cx, cz = site.local_tile(tx, tz)
            if not site.accepts(band, cx, cz):
                continue

            f = site.fields
            forest = (
                f.moisture[cz, cx] >= cfg.forest_min_moisture
                and f.height[cz, cx] <= cfg.forest_max_height
                and f.slope[cz, cx] <= cfg.forest_max_slope
            )
            chance = cfg.forest_chance if forest else band.chance
            if roll >= chance:
                continue

            trees.append(_tree(site, rng, recipe, tx, tz))

    trees.extend(_place_groves(site, chunk_seed, recipe, cancel))
    return trees


def _tree(
    site: PlacementSite,
    rng: np.random.Generator,
    recipe: BiomeRecipe,
    tx: float,
    tz: float,
) -> EntityDescriptor:
    band = recipe.trees.band
    size = float(rng.uniform(0.85, 1.25))
    return site.descriptor(
        EntityKind.TREE, tx, tz,
        lift=band.lift,
        radius=band.radius * size,
        variant=int(rng.integers(recipe.trees.variants)),
        size=size,
    )


def _place_groves(
    site: PlacementSite,
    chunk_seed: int,
    recipe: BiomeRecipe,
    cancel: CancelToken | None,
) -> list[EntityDescriptor]:
    """Try a few grove centres; each success plants a small ring of trees."""
    cfg = recipe.trees
    rng = np.random.default_rng(derive_seed(chunk_seed, GROVE_SALT))
    grove: list[EntityDescriptor] = []

    for _ in range(cfg.grove_attempts):
        check_cancelled(cancel)
        lx = int(rng.integers(site.tiles_x))
        lz = int(rng.integers(site.tiles_z))
        roll = float(rng.random())
        if roll >= cfg.grove.chance or not site.accepts(cfg.grove, lx, lz):
            continue

        low = min(cfg.grove_min_trees, cfg.grove_max_trees)
        count = int(rng.integers(low, cfg.grove_max_trees + 1))
        centre_x = site.origin_x + lx + 0.5
        centre_z = site.origin_z + lz + 0.5
        for _ in range(count):
            angle = float(rng.uniform(0.0, 2.0 * math.pi))
            dist = float(rng.uniform(0.0, cfg.grove_radius))
            tx, tz = site.clamp(
                centre_x + math.cos(angle) * dist,
                centre_z + math.sin(angle) * dist,
            )
            if not site.tile_allowed(cfg.band, tx, tz):
                continue
            grove.append(_tree(site, rng, recipe, tx, tz))

    return grove


def place_objects(
    site: PlacementSite,
    chunk_seed: int,
    recipe: BiomeRecipe,
    cancel: CancelToken | None = None,
) -> tuple[EntityDescriptor, ...]:
    """Run every placement pass for one chunk.

    Returns:
        Setpieces, then scenery, then trees, as one immutable tuple.
    """
    setpieces = place_setpieces(site, chunk_seed, recipe, cancel)
    scenery = scatter_scenery(site, chunk_seed, recipe, cancel)
    trees = place_trees(site, chunk_seed, recipe, cancel)
    return tuple(setpieces + scenery + trees)
