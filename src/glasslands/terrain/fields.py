"""Scalar fields sampled from a biome recipe: height, moisture, slope, rivers.

Coordinates are in tile units throughout; tile (tx, tz) covers
[tx, tx + 1) x [tz, tz + 1) and is sampled at its centre.

Normalization convention: height and moisture are in [0, 1], computed as
``clip(0.5 + 0.5 * amplitude * noise, 0, 1)``. Slope is rise over run in
world units. The river mask is in [0, 1] with 1 on a river line.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..seed import MASK64, derive_seed
from .config import BiomeRecipe, NoiseBase, NoiseConfig
from .noise import sample_noise

HEIGHT_SALT = 1
MOISTURE_SALT = 2
RIVER_SALT = 3

# Finite-difference half step for slope, in tiles
SLOPE_STEP = 0.5


@dataclass(frozen=True)
class ChunkFields:
    """Fields sampled at every tile centre of one chunk.

    All arrays have shape (tiles_z, tiles_x) and are indexed [lz, lx].
    ``height`` already includes river carving.
    """

    height: NDArray[np.float32]
    moisture: NDArray[np.float32]
    slope: NDArray[np.float32]
    river: NDArray[np.float32]

    @property
    def shape(self) -> tuple[int, int]:
        return self.height.shape


def _as_output(value: ArrayLike) -> float | NDArray[np.float64]:
    """Return a float for scalar input, an array otherwise."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return float(arr)
    return arr


class NoiseFields:
    """Pure field sampler for one (seed, recipe) pair.

    Holds only immutable configuration and derived channel seeds, so one
    instance can be shared by any number of build threads.
    """

    def __init__(
        self,
        seed: int,
        recipe: BiomeRecipe,
        height_scale: float = 16.0,
        tile_size: float = 1.0,
    ):
        self.seed = seed & MASK64
        self.recipe = recipe
        self.height_scale = height_scale
        self.tile_size = tile_size

        self._height_seed = derive_seed(self.seed, HEIGHT_SALT)
        self._moisture_seed = derive_seed(self.seed, MOISTURE_SALT)
        self._river_seed = derive_seed(self.seed, RIVER_SALT)
        self._river_noise = NoiseConfig(
            base=NoiseBase.PERLIN,
            octaves=recipe.river.octaves,
            amplitude=1.0,
            scale=recipe.river.scale,
        )

    # Raw array samplers

    def _height(self, x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
        n = sample_noise(self.recipe.height, self._height_seed, x, z)
        return np.clip(0.5 + 0.5 * self.recipe.height.amplitude * n, 0.0, 1.0)

    def _moisture(self, x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
        n = sample_noise(self.recipe.moisture, self._moisture_seed, x, z)
        return np.clip(0.5 + 0.5 * self.recipe.moisture.amplitude * n, 0.0, 1.0)

    def _river(self, x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
        n = sample_noise(self._river_noise, self._river_seed, x, z)
        return np.power(1.0 - np.abs(n), self.recipe.river.sharpness)

    def _terrain(self, x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
        height = self._height(x, z)
        river = self._river(x, z)
        threshold = self.recipe.river.carve_threshold
        t = np.clip((river - threshold) / (1.0 - threshold), 0.0, 1.0)
        return height * (1.0 - self.recipe.river.carve_depth * t)

    def _slope(self, x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
        x = np.asarray(x, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        e = SLOPE_STEP
        dx = (self._terrain(x + e, z) - self._terrain(x - e, z)) / (2.0 * e)
        dz = (self._terrain(x, z + e) - self._terrain(x, z - e)) / (2.0 * e)
        return np.hypot(dx, dz) * (self.height_scale / self.tile_size)

    # Public samplers

    def sample_height(self, x: ArrayLike, z: ArrayLike) -> float | NDArray[np.float64]:
        """Normalized terrain height in [0, 1], before river carving."""
        return _as_output(self._height(x, z))

    def sample_moisture(self, x: ArrayLike, z: ArrayLike) -> float | NDArray[np.float64]:
        """Normalized moisture in [0, 1]."""
        return _as_output(self._moisture(x, z))

    def sample_river_mask(self, x: ArrayLike, z: ArrayLike) -> float | NDArray[np.float64]:
        """River mask in [0, 1]; values near 1 lie on a river line."""
        return _as_output(self._river(x, z))

    def sample_terrain_height(self, x: ArrayLike, z: ArrayLike) -> float | NDArray[np.float64]:
        """Normalized height with river beds carved in."""
        return _as_output(self._terrain(x, z))

    def sample_slope(self, x: ArrayLike, z: ArrayLike) -> float | NDArray[np.float64]:
        """Gradient magnitude of the carved height, as world rise over run.

        Uses centred differences at a fixed half step of SLOPE_STEP tiles.
        """
        return _as_output(self._slope(x, z))

    def world_height(self, x: float, z: float) -> float:
        """World-space ground height at world-space (x, z)."""
        tx = x / self.tile_size
        tz = z / self.tile_size
        return float(self._terrain(tx, tz)) * self.height_scale

    def sample_chunk(
        self,
        origin_x: int,
        origin_z: int,
        tiles_x: int,
        tiles_z: int,
    ) -> ChunkFields:
        """Sample every field at the tile centres of a chunk.

        Args:
            origin_x: Tile x of the chunk's first column.
            origin_z: Tile z of the chunk's first row.
            tiles_x: Chunk width in tiles.
            tiles_z: Chunk depth in tiles.

        Returns:
            ChunkFields with arrays of shape (tiles_z, tiles_x).
        """
        xs = origin_x + np.arange(tiles_x, dtype=np.float64) + 0.5
        zs = origin_z + np.arange(tiles_z, dtype=np.float64) + 0.5
        gx, gz = np.meshgrid(xs, zs)

        return ChunkFields(
            height=self._terrain(gx, gz).astype(np.float32),
            moisture=self._moisture(gx, gz).astype(np.float32),
            slope=self._slope(gx, gz).astype(np.float32),
            river=self._river(gx, gz).astype(np.float32),
        )
