"""Noise functions for terrain fields.

Provides hashed-lattice Perlin noise and the fBm, ridged multifractal and
billow octave sums built on it. Every function is a pure function of its seed
and world coordinates, so any point of the infinite plane can be sampled in
any order and from any thread.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..seed import MASK64
from .config import NoiseBase, NoiseConfig

_HASH_X = np.uint64(0x9E3779B97F4A7C15)
_HASH_Z = np.uint64(0xC2B2AE3D27D4EB4F)
_MIX_1 = np.uint64(0xBF58476D1CE4E5B9)
_MIX_2 = np.uint64(0x94D049BB133111EB)
_S30 = np.uint64(30)
_S27 = np.uint64(27)
_S31 = np.uint64(31)
_S61 = np.uint64(61)

# Eight unit gradients: axes and diagonals
_GRADIENTS = np.array(
    [
        [1.0, 0.0],
        [-1.0, 0.0],
        [0.0, 1.0],
        [0.0, -1.0],
        [1.0, 1.0],
        [-1.0, 1.0],
        [1.0, -1.0],
        [-1.0, -1.0],
    ],
    dtype=np.float64,
)
_GRADIENTS /= np.linalg.norm(_GRADIENTS, axis=1, keepdims=True)

# Unit-gradient 2D Perlin peaks at sqrt(0.5); rescale to [-1, 1]
_PERLIN_NORM = float(np.sqrt(2.0))

OCTAVE_SEED_STRIDE = 1000
RIDGED_SEED_OFFSET = 500


def _lattice_hash(ix: NDArray[np.int64], iz: NDArray[np.int64], seed: int) -> NDArray[np.uint64]:
    """Avalanche-hash integer lattice points with the seed."""
    with np.errstate(over="ignore"):
        h = np.uint64(seed & MASK64) ^ (ix.view(np.uint64) * _HASH_X) ^ (iz.view(np.uint64) * _HASH_Z)
        h = (h ^ (h >> _S30)) * _MIX_1
        h = (h ^ (h >> _S27)) * _MIX_2
        h = h ^ (h >> _S31)
    return h


def _fade(t: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quintic fade curve."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _corner(
    ix: NDArray[np.int64],
    iz: NDArray[np.int64],
    dx: NDArray[np.float64],
    dz: NDArray[np.float64],
    seed: int,
) -> NDArray[np.float64]:
    """Dot product of a corner's gradient with the offset to the sample."""
    index = (_lattice_hash(ix, iz, seed) >> _S61).astype(np.intp)
    g = _GRADIENTS[index]
    return g[..., 0] * dx + g[..., 1] * dz


def perlin(x: ArrayLike, z: ArrayLike, seed: int) -> NDArray[np.float64]:
    """Single-octave 2D gradient noise.

    Args:
        x: Sample x coordinates (lattice units).
        z: Sample z coordinates (lattice units).
        seed: 64-bit noise seed.

    Returns:
        Noise values in [-1, 1], broadcast to the shape of x and z.
    """
    x, z = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64), np.asarray(z, dtype=np.float64)
    )
    shape = x.shape
    x = x.ravel()
    z = z.ravel()

    x0 = np.floor(x)
    z0 = np.floor(z)
    fx = x - x0
    fz = z - z0
    ix = x0.astype(np.int64)
    iz = z0.astype(np.int64)
    ix1 = ix + 1
    iz1 = iz + 1

    d00 = _corner(ix, iz, fx, fz, seed)
    d10 = _corner(ix1, iz, fx - 1.0, fz, seed)
    d01 = _corner(ix, iz1, fx, fz - 1.0, seed)
    d11 = _corner(ix1, iz1, fx - 1.0, fz - 1.0, seed)

    u = _fade(fx)
    v = _fade(fz)
    top = d00 + u * (d10 - d00)
    bottom = d01 + u * (d11 - d01)
    value = (top + v * (bottom - top)) * _PERLIN_NORM
    return np.clip(value, -1.0, 1.0).reshape(shape)


def fbm(
    x: ArrayLike,
    z: ArrayLike,
    seed: int,
    octaves: int = 5,
    lacunarity: float = 2.0,
    persistence: float = 0.5,
) -> NDArray[np.float64]:
    """Fractal Brownian motion over Perlin octaves.

    Sums octaves at increasing frequency and decreasing amplitude, each with
    its own seed offset so octaves are uncorrelated.

    Returns:
        Noise values in [-1, 1].
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    result = np.zeros(np.broadcast(x, z).shape, dtype=np.float64)

    frequency = 1.0
    amplitude = 1.0
    max_amplitude = 0.0

    for i in range(octaves):
        octave_seed = (seed + i * OCTAVE_SEED_STRIDE) & MASK64
        result += amplitude * perlin(x * frequency, z * frequency, octave_seed)
        max_amplitude += amplitude
        frequency *= lacunarity
        amplitude *= persistence

    return result / max_amplitude


def ridged_multifractal(
    x: ArrayLike,
    z: ArrayLike,
    seed: int,
    octaves: int = 4,
    lacunarity: float = 2.0,
    gain: float = 0.5,
    offset: float = 1.0,
) -> NDArray[np.float64]:
    """Ridged multifractal noise.

    Creates sharp ridges by inverting the absolute value of each octave;
    each octave is weighted by the previous one so ridges stay crisp.

    Returns:
        Noise values in [-1, 1] (the [0, 1] ridge sum remapped).
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    shape = np.broadcast(x, z).shape
    result = np.zeros(shape, dtype=np.float64)
    weight = np.ones(shape, dtype=np.float64)

    frequency = 1.0
    amplitude = 1.0
    max_value = 0.0

    for i in range(octaves):
        octave_seed = (seed + RIDGED_SEED_OFFSET + i * OCTAVE_SEED_STRIDE) & MASK64
        raw = perlin(x * frequency, z * frequency, octave_seed)

        # Convert to ridge: offset - |noise|, then square
        signal = offset - np.abs(raw)
        signal = signal * signal
        signal *= weight

        result += signal * amplitude
        weight = np.clip(signal * 2.0, 0.0, 1.0)

        max_value += amplitude
        frequency *= lacunarity
        amplitude *= gain

    result /= max_value * offset * offset
    return np.clip(result * 2.0 - 1.0, -1.0, 1.0)


def billow(
    x: ArrayLike,
    z: ArrayLike,
    seed: int,
    octaves: int = 5,
    lacunarity: float = 2.0,
    persistence: float = 0.5,
) -> NDArray[np.float64]:
    """Billow noise: fBm of folded octaves, giving rounded puffy hills.

    Returns:
        Noise values in [-1, 1].
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    result = np.zeros(np.broadcast(x, z).shape, dtype=np.float64)

    frequency = 1.0
    amplitude = 1.0
    max_amplitude = 0.0

    for i in range(octaves):
        octave_seed = (seed + i * OCTAVE_SEED_STRIDE) & MASK64
        raw = perlin(x * frequency, z * frequency, octave_seed)
        result += amplitude * (2.0 * np.abs(raw) - 1.0)
        max_amplitude += amplitude
        frequency *= lacunarity
        amplitude *= persistence

    return result / max_amplitude


def sample_noise(
    config: NoiseConfig, seed: int, x: ArrayLike, z: ArrayLike
) -> NDArray[np.float64]:
    """Sample a configured noise field at tile coordinates.

    Args:
        config: Noise flavour, octaves and wavelength.
        seed: 64-bit channel seed.
        x: Tile x coordinates.
        z: Tile z coordinates.

    Returns:
        Noise values in [-1, 1].
    """
    nx = np.asarray(x, dtype=np.float64) / config.scale
    nz = np.asarray(z, dtype=np.float64) / config.scale

    if config.base == NoiseBase.RIDGED:
        return ridged_multifractal(
            nx, nz, seed, octaves=config.octaves,
            lacunarity=config.lacunarity, gain=config.persistence,
        )
    if config.base == NoiseBase.BILLOW:
        return billow(
            nx, nz, seed, octaves=config.octaves,
            lacunarity=config.lacunarity, persistence=config.persistence,
        )
    return fbm(
        nx, nz, seed, octaves=config.octaves,
        lacunarity=config.lacunarity, persistence=config.persistence,
    )
