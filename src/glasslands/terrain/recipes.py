"""Deterministic biome recipe fallback derived from a seed charm's tokens.

Used when no external recipe resolver is available. Tokens are the
underscore-separated words of the canonical charm, compared uppercased.
"""

from ..seed import canonicalize
from ..types import EntityKind
from .config import BiomeRecipe, NoiseBase, NoiseConfig

COOL_TOKENS = frozenset({"RAIN", "MIST", "MOON", "PEAKS"})
WARM_TOKENS = frozenset({"SUN", "MESA", "BLOOM"})

PALETTE_COOL = ("#8BC7DA", "#36667C", "#E0F2F6", "#F3E2C0", "#704B2C")
PALETTE_WARM = ("#F2C14E", "#F78154", "#FCECC9", "#7FB069", "#3D405B")
PALETTE_NEUTRAL = ("#A8DADC", "#457B9D", "#F1FAEE", "#E5989B", "#6A4C93")

BEACON_RARITY = 0.015


def charm_tokens(charm: str) -> frozenset[str]:
    """Uppercased tokens of the canonical charm."""
    return frozenset(t.upper() for t in canonicalize(charm).split("_") if t)


def recipe_for_charm(charm: str) -> BiomeRecipe:
    """Build a recipe from charm tokens.

    PEAKS gives ridged, high-contrast height; MESA gives broad billowy
    height; MIST gives billowy moisture. When both cool and warm tokens are
    present, cool wins.

    Args:
        charm: Raw or canonical seed charm.

    Returns:
        A validated BiomeRecipe.
    """
    tokens = charm_tokens(charm)
    cool = bool(tokens & COOL_TOKENS)
    warm = bool(tokens & WARM_TOKENS)

    if "PEAKS" in tokens:
        height_base = NoiseBase.RIDGED
    elif "MESA" in tokens:
        height_base = NoiseBase.BILLOW
    else:
        height_base = NoiseBase.PERLIN
    moisture_base = NoiseBase.BILLOW if "MIST" in tokens else NoiseBase.PERLIN

    height = NoiseConfig(
        base=height_base,
        octaves=5,
        amplitude=1.0 if "PEAKS" in tokens else 0.7,
        scale=150.0 if "MESA" in tokens else 96.0,
    )
    moisture = NoiseConfig(
        base=moisture_base,
        octaves=4,
        amplitude=1.0 if tokens & {"MIST", "GROVE"} else 0.6,
        scale=82.0 if "MIST" in tokens else 110.0,
    )

    if cool:
        palette, weather = PALETTE_COOL, "cool"
    elif warm:
        palette, weather = PALETTE_WARM, "warm"
    else:
        palette, weather = PALETTE_NEUTRAL, "temperate"

    return BiomeRecipe(
        height=height,
        moisture=moisture,
        palette_hex=palette,
        setpieces={EntityKind.BEACON: BEACON_RARITY},
        weather_bias=weather,
    )
