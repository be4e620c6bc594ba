"""Biome recipe configuration models.

A BiomeRecipe arrives from an external resolver and is read-only to the
engine. The bounds declared here are the sanitization boundary: once a recipe
validates, every generation step downstream is total.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..terrain_types import TileType
from ..types import EntityKind

_LAND_TILES = frozenset({TileType.SAND, TileType.GRASS, TileType.SCRUB})


class NoiseBase(str, Enum):
    """Base noise flavour for a field."""

    PERLIN = "perlin"
    RIDGED = "ridged"
    BILLOW = "billow"


class NoiseConfig(BaseModel, frozen=True, allow_inf_nan=False):
    """Noise parameters for a single scalar field."""

    base: NoiseBase = Field(default=NoiseBase.PERLIN, description="Noise flavour")
    octaves: int = Field(default=5, ge=1, le=12, description="Number of octaves")
    amplitude: float = Field(
        default=0.7, gt=0.0, le=4.0, description="Contrast around the 0.5 midpoint"
    )
    scale: float = Field(
        default=96.0, ge=1.0, le=100_000.0, description="Base wavelength in tiles"
    )
    lacunarity: float = Field(
        default=2.0, ge=1.0, le=4.0, description="Frequency multiplier per octave"
    )
    persistence: float = Field(
        default=0.5, gt=0.0, lt=1.0, description="Amplitude multiplier per octave"
    )


class RiverConfig(BaseModel, frozen=True, allow_inf_nan=False):
    """River mask channel and carving parameters."""

    scale: float = Field(default=220.0, ge=1.0, description="River noise wavelength")
    octaves: int = Field(default=3, ge=1, le=8, description="River noise octaves")
    sharpness: float = Field(
        default=8.0, ge=1.0, le=64.0, description="Exponent narrowing river lines"
    )
    carve_threshold: float = Field(
        default=0.55, ge=0.0, lt=1.0, description="Mask value where carving starts"
    )
    carve_depth: float = Field(
        default=0.35, ge=0.0, le=1.0, description="Fractional height removed at full mask"
    )


class DecorationBand(BaseModel, frozen=True, allow_inf_nan=False):
    """Eligibility band for one object kind.

    A tile is eligible when its category is allowed and every sampled scalar
    falls inside the inclusive [min, max] bands. When ``peak_height`` is set,
    a tile at or above it passes regardless of the slope band.
    """

    tiles: frozenset[TileType] = Field(default=_LAND_TILES)
    min_height: float = 0.0
    max_height: float = 1.0
    min_moisture: float = 0.0
    max_moisture: float = 1.0
    min_slope: float = 0.0
    max_slope: float = 1000.0
    min_river: float = 0.0
    max_river: float = 1.0
    peak_height: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Height that waives the slope band"
    )
    chance: float = Field(default=1.0, ge=0.0, le=1.0, description="Per-candidate roll")
    radius: float = Field(default=0.2, gt=0.0, le=16.0, description="Collision radius")
    lift: float = Field(default=0.0, ge=0.0, description="World height offset")

    def accepts(
        self,
        tile: TileType,
        height: float,
        moisture: float,
        slope: float,
        river: float,
    ) -> bool:
        """Whether a candidate with these samples satisfies the band."""
        return (
            tile in self.tiles
            and self.min_height <= height <= self.max_height
            and self.min_moisture <= moisture <= self.max_moisture
            and (
                self.min_slope <= slope <= self.max_slope
                or (self.peak_height is not None and height >= self.peak_height)
            )
            and self.min_river <= river <= self.max_river
        )


class DecorationConfig(BaseModel, frozen=True, allow_inf_nan=False):
    """Coarse-grid scenery scatter.

    Kinds are tried in a fixed priority order per cell and the first one
    that passes its band and chance roll wins the cell.
    """

    step: int = Field(default=4, ge=1, le=64, description="Grid stride in tiles")
    jitter: float = Field(default=0.45, ge=0.0, le=0.5, description="Cell jitter as a fraction of the step")

    rock: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.ROCK, TileType.SCRUB, TileType.GRASS, TileType.SAND}),
            min_slope=0.18,
            peak_height=0.80,
            chance=0.18,
            radius=0.3,
        )
    )
    flower_patch: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.GRASS}),
            min_moisture=0.40,
            max_moisture=0.75,
            max_slope=0.12,
            max_river=0.50,
            chance=0.14,
            radius=0.20,
            lift=0.02,
        )
    )
    mushroom: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.GRASS}),
            min_moisture=0.62,
            max_height=0.70,
            max_slope=0.12,
            max_river=0.50,
            chance=0.10,
            radius=0.18,
        )
    )
    reed: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.SAND, TileType.GRASS, TileType.SCRUB}),
            min_river=0.58,
            max_slope=0.18,
            chance=0.16,
            radius=0.22,
        )
    )
    crystal: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.SCRUB, TileType.ROCK}),
            max_moisture=0.30,
            min_height=0.50,
            max_slope=0.16,
            chance=0.06,
            radius=0.22,
        )
    )
    bush: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.GRASS}),
            min_moisture=0.50,
            max_height=0.75,
            max_slope=0.16,
            max_river=0.50,
            chance=0.16,
            radius=0.28,
        )
    )

    rock_group_max: int = Field(default=3, ge=1, le=8, description="Max rocks per group")

    def priority(self) -> list[tuple[EntityKind, DecorationBand]]:
        """Kinds in first-match-wins order."""
        return [
            (EntityKind.ROCK, self.rock),
            (EntityKind.FLOWER_PATCH, self.flower_patch),
            (EntityKind.MUSHROOM, self.mushroom),
            (EntityKind.REED, self.reed),
            (EntityKind.CRYSTAL, self.crystal),
            (EntityKind.BUSH, self.bush),
        ]

    def band_for(self, kind: EntityKind) -> DecorationBand | None:
        for candidate, band in self.priority():
            if candidate == kind:
                return band
        return None


class TreeConfig(BaseModel, frozen=True, allow_inf_nan=False):
    """Tree and grove placement parameters."""

    step: int = Field(default=6, ge=1, le=64, description="Grid stride in tiles")
    jitter: float = Field(default=0.45, ge=0.0, le=0.5, description="Cell jitter as a fraction of the step")
    band: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.GRASS, TileType.SCRUB}),
            max_slope=0.16,
            max_river=0.50,
            chance=0.08,
            radius=0.35,
        )
    )
    forest_chance: float = Field(
        default=0.22, ge=0.0, le=1.0, description="Tree chance inside forest cores"
    )
    forest_min_moisture: float = Field(default=0.52, description="Forest moisture floor")
    forest_max_height: float = Field(default=0.66, description="Forest height ceiling")
    forest_max_slope: float = Field(default=0.12, description="Forest slope ceiling")
    variants: int = Field(default=6, ge=1, le=64, description="Tree model variants")

    grove_attempts: int = Field(default=1, ge=0, le=16, description="Grove tries per chunk")
    grove: DecorationBand = Field(
        default_factory=lambda: DecorationBand(
            tiles=frozenset({TileType.GRASS}),
            min_height=0.42,
            max_height=0.78,
            min_moisture=0.48,
            max_moisture=0.80,
            max_slope=0.10,
            max_river=0.42,
            chance=0.35,
            radius=0.35,
        )
    )
    grove_min_trees: int = Field(default=3, ge=1, le=16)
    grove_max_trees: int = Field(default=4, ge=1, le=16)
    grove_radius: float = Field(default=3.5, ge=0.0, le=16.0, description="Spread in tiles")


def _default_setpiece_bands() -> dict[EntityKind, DecorationBand]:
    return {
        EntityKind.BEACON: DecorationBand(
            tiles=_LAND_TILES,
            max_slope=0.25,
            max_river=0.55,
            radius=0.18,
            lift=0.2,
        )
    }


class BiomeRecipe(BaseModel, frozen=True, allow_inf_nan=False):
    """Complete world recipe consumed by the engine."""

    height: NoiseConfig = Field(default_factory=NoiseConfig)
    moisture: NoiseConfig = Field(
        default_factory=lambda: NoiseConfig(octaves=4, amplitude=0.6, scale=110.0)
    )
    river: RiverConfig = Field(default_factory=RiverConfig)
    palette_hex: tuple[str, ...] = Field(
        default=("#A8DADC", "#457B9D", "#F1FAEE", "#E5989B", "#6A4C93"),
        description="Palette handed through to renderers",
    )

    setpieces: dict[EntityKind, float] = Field(
        default_factory=lambda: {EntityKind.BEACON: 0.015},
        description="Rarity table: expected fraction of chunk tiles per kind",
    )
    setpiece_bands: dict[EntityKind, DecorationBand] = Field(
        default_factory=_default_setpiece_bands,
        description="Eligibility bands for rejection-sampled kinds",
    )

    waterline: float = Field(default=0.30, ge=0.0, le=1.0, description="Water below this")
    beach_width: float = Field(default=0.04, ge=0.0, le=0.5, description="Sand band above water")
    rockiness_weight: float = Field(
        default=2.5, ge=0.0, le=50.0, description="Slope multiplier for rockiness"
    )

    decorations: DecorationConfig = Field(default_factory=DecorationConfig)
    trees: TreeConfig = Field(default_factory=TreeConfig)
    weather_bias: str = Field(default="temperate", description="Passed through to sky systems")

    @field_validator("setpieces")
    @classmethod
    def _check_rarity(cls, value: dict[EntityKind, float]) -> dict[EntityKind, float]:
        for kind, rarity in value.items():
            if not 0.0 <= rarity <= 1.0:
                raise ValueError(f"rarity for {kind.value} must be in [0, 1], got {rarity}")
        return value

    def eligibility_band(self, kind: EntityKind) -> DecorationBand:
        """Band used when ``kind`` is rejection-sampled from the rarity table.

        Falls back to the kind's scenery band, then to any land tile.
        """
        if kind in self.setpiece_bands:
            return self.setpiece_bands[kind]
        if kind == EntityKind.TREE:
            return self.trees.band
        band = self.decorations.band_for(kind)
        if band is not None:
            return band
        return DecorationBand()
