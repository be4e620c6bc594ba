"""Seed charm canonicalization and 64-bit seed derivation.

The hashing scheme here is part of the world's identity: a shared seed charm
must rebuild the same world forever, so none of these constants may change.
Python's built-in ``hash()`` is salted per process and is never used.
"""

import unicodedata

MASK64 = 0xFFFFFFFFFFFFFFFF

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x00000100000001B3

GOLDEN_GAMMA = 0x9E3779B97F4A7C15
MIX_MUL_1 = 0xBF58476D1CE4E5B9
MIX_MUL_2 = 0x94D049BB133111EB

# Per-axis odd multipliers for chunk seeding
AXIS_X_MUL = 0x9E3779B97F4A7C15
AXIS_Z_MUL = 0xBF58476D1CE4E5B9
SALT_MUL = 0xD6E8FEB86659FD93


def canonicalize(charm: str) -> str:
    """Normalize a seed charm to its shareable canonical form.

    NFKC-normalizes, trims, collapses whitespace runs to one space,
    lowercases, then replaces spaces with underscores.

    Args:
        charm: Raw user-entered charm.

    Returns:
        Canonical charm, e.g. ``"misty_fox_highlands"``.
    """
    text = unicodedata.normalize("NFKC", charm)
    text = " ".join(text.split())
    text = text.lower().replace(" ", "_")
    # Lowercasing can leave a non-NFKC sequence behind; renormalize so the
    # function is idempotent.
    return unicodedata.normalize("NFKC", text)


def fnv1a64(data: bytes) -> int:
    """64-bit FNV-1a hash of a byte string."""
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & MASK64
    return h


def mix64(value: int) -> int:
    """SplitMix64 finalizer: avalanche all 64 bits of ``value``."""
    z = value & MASK64
    z = ((z ^ (z >> 30)) * MIX_MUL_1) & MASK64
    z = ((z ^ (z >> 27)) * MIX_MUL_2) & MASK64
    return z ^ (z >> 31)


def splitmix64(value: int) -> int:
    """One SplitMix64 step: advance by the golden gamma, then finalize."""
    return mix64((value + GOLDEN_GAMMA) & MASK64)


def seed64(charm: str) -> int:
    """Derive the world seed from a seed charm.

    The charm is canonicalized first, so ``"Misty Fox"`` and ``"misty_fox"``
    name the same world.

    Args:
        charm: Raw or canonical seed charm.

    Returns:
        Unsigned 64-bit world seed.
    """
    return splitmix64(fnv1a64(canonicalize(charm).encode("utf-8")))


def chunk_seed(seed: int, cx: int, cz: int) -> int:
    """Derive the seed of the chunk at (cx, cz).

    Negative coordinates are taken in two's complement. The x term is
    avalanched before z is folded in; XOR-ing both products straight into
    the seed lets (cx, cz) and (-cx, -cz) cancel to the same value.
    """
    ux = cx & MASK64
    uz = cz & MASK64
    h = mix64((seed & MASK64) ^ ((ux * AXIS_X_MUL) & MASK64))
    h ^= (uz * AXIS_Z_MUL) & MASK64
    return splitmix64(h)


def derive_seed(seed: int, salt: int) -> int:
    """Derive an independent sub-stream seed from ``seed`` and a small salt."""
    return splitmix64((seed & MASK64) ^ ((salt * SALT_MUL) & MASK64))
