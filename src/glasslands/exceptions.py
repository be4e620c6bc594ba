"""Custom exceptions for the world streamer."""


class GlasslandsError(Exception):
    """Base exception for world errors."""

    pass


class ChunkBuildCancelled(GlasslandsError):
    """Raised inside a chunk build once its cancel token has been set."""

    pass


class WrongThreadError(GlasslandsError):
    """Raised when streamer bookkeeping is touched off its owning thread."""

    pass


class StreamerClosedError(GlasslandsError):
    """Raised when updating a streamer after it has been closed."""

    pass
