"""Procedural terrain for streamed chunks.

Noise fields, tile classification, object placement and the chunk build
pipeline that ties them together.
"""

from .classification import classify_tile, classify_tiles, tile_value, tile_value_to_type
from .config import BiomeRecipe, DecorationBand, NoiseBase, NoiseConfig
from .fields import ChunkFields, NoiseFields
from .generator import build_chunk, make_fields
from .objects import expected_count, place_objects
from .recipes import recipe_for_charm
from .validation import ValidationResult, validate_chunk

__all__ = [
    "BiomeRecipe",
    "ChunkFields",
    "DecorationBand",
    "NoiseBase",
    "NoiseConfig",
    "NoiseFields",
    "ValidationResult",
    "build_chunk",
    "classify_tile",
    "classify_tiles",
    "expected_count",
    "make_fields",
    "place_objects",
    "recipe_for_charm",
    "tile_value",
    "tile_value_to_type",
    "validate_chunk",
]
