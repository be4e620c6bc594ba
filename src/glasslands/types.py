"""Core types for the world streamer."""

from enum import Enum

from pydantic import BaseModel


class ChunkCoord(BaseModel, frozen=True):
    """Immutable chunk index in the infinite chunk grid."""

    cx: int
    cz: int

    def offset(self, dx: int, dz: int) -> "ChunkCoord":
        """Return the chunk dx, dz chunks away."""
        return ChunkCoord(cx=self.cx + dx, cz=self.cz + dz)

    def chebyshev(self, other: "ChunkCoord") -> int:
        """Chebyshev (chessboard) distance in chunks."""
        return max(abs(self.cx - other.cx), abs(self.cz - other.cz))

    def __hash__(self) -> int:
        return hash((self.cx, self.cz))

    def __str__(self) -> str:
        return f"({self.cx}, {self.cz})"

    def __repr__(self) -> str:
        return f"ChunkCoord(cx={self.cx}, cz={self.cz})"


class EntityKind(str, Enum):
    """Kinds of objects the placement engine can emit."""

    BEACON = "beacon"
    ROCK = "rock"
    TREE = "tree"
    BUSH = "bush"
    REED = "reed"
    MUSHROOM = "mushroom"
    CRYSTAL = "crystal"
    FLOWER_PATCH = "flower_patch"

    @property
    def salt(self) -> int:
        """Small per-kind constant that separates random streams."""
        return _KIND_SALTS[self]


# Fixed values: changing any of these changes every shared world.
_KIND_SALTS: dict[EntityKind, int] = {
    EntityKind.BEACON: 0x11,
    EntityKind.ROCK: 0x23,
    EntityKind.TREE: 0x35,
    EntityKind.BUSH: 0x47,
    EntityKind.REED: 0x59,
    EntityKind.MUSHROOM: 0x6B,
    EntityKind.CRYSTAL: 0x7D,
    EntityKind.FLOWER_PATCH: 0x8F,
}


class EntityDescriptor(BaseModel, frozen=True):
    """A placed object in world space.

    Descriptors hold no reference to the chunk that produced them; the chunk
    owns them as a dense tuple.
    """

    kind: EntityKind
    x: float
    y: float
    z: float
    variant: int = 0
    size: float = 1.0
    radius: float

    @property
    def position(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)
