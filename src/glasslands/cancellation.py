"""Cooperative cancellation for chunk builds."""

import threading

from .exceptions import ChunkBuildCancelled


class CancelToken:
    """Flag shared between the streamer thread and one chunk build.

    The streamer sets it when the chunk leaves the window; the build polls it
    at row and attempt granularity and bails out with ChunkBuildCancelled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ChunkBuildCancelled if cancellation was requested."""
        if self._event.is_set():
            raise ChunkBuildCancelled()


def check_cancelled(token: CancelToken | None) -> None:
    """Raise if ``token`` is set; a missing token never cancels."""
    if token is not None:
        token.raise_if_cancelled()
