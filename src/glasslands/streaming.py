"""Viewer-centred chunk streaming.

The streamer owns the table of chunk states and is driven by ``update``
once per tick from a single authoritative thread. Chunk builds run inline
or on a thread pool; finished builds come back through a queue and only
become visible when the owning thread drains it.
"""

import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from queue import Empty, Queue

import structlog

from .cancellation import CancelToken
from .chunks import (
    ChunkRecord,
    ChunkState,
    StreamConfig,
    desired_window,
    world_to_chunk,
)
from .exceptions import ChunkBuildCancelled, StreamerClosedError, WrongThreadError
from .seed import MASK64
from .terrain.config import BiomeRecipe
from .terrain.generator import build_chunk, make_fields
from .types import ChunkCoord, EntityDescriptor, EntityKind

logger = structlog.get_logger()


@dataclass(frozen=True)
class StreamUpdate:
    """What one ``update`` tick changed."""

    center: ChunkCoord
    loaded: tuple[ChunkCoord, ...]
    evicted: tuple[ChunkCoord, ...]
    pending: int


@dataclass
class _PendingBuild:
    """A LOADING chunk whose build has been started."""

    token: CancelToken
    future: Future[ChunkRecord] | None = None


def _build_order(center: ChunkCoord) -> Callable[[ChunkCoord], tuple[int, int, int, int]]:
    """Sort key: nearest ring first, then Manhattan distance, then row-major."""

    def key(coord: ChunkCoord) -> tuple[int, int, int, int]:
        dx = coord.cx - center.cx
        dz = coord.cz - center.cz
        return (max(abs(dx), abs(dz)), abs(dx) + abs(dz), dz, dx)

    return key


class ChunkStreamer:
    """Keeps the chunks around a moving viewer loaded.

    Chunk states move UNLOADED -> LOADING -> LOADED -> UNLOADED. A chunk is
    visible only once LOADED; leaving the window drops it entirely, and
    coming back rebuilds identical content.

    At most ``config.build_budget`` builds start per tick, nearest first;
    the rest wait in LOADING for later ticks.
    """

    def __init__(
        self,
        seed64: int,
        recipe: BiomeRecipe,
        config: StreamConfig | None = None,
        on_chunk_loaded: Callable[[ChunkRecord], None] | None = None,
        on_chunk_evicted: Callable[[ChunkCoord], None] | None = None,
    ):
        self.seed64 = seed64 & MASK64
        self.recipe = recipe
        self.config = config or StreamConfig()
        self.fields = make_fields(self.seed64, recipe, self.config)
        self._on_chunk_loaded = on_chunk_loaded
        self._on_chunk_evicted = on_chunk_evicted

        self._records: dict[ChunkCoord, ChunkRecord] = {}
        self._loading: dict[ChunkCoord, _PendingBuild | None] = {}
        self._completed: Queue[tuple[ChunkCoord, CancelToken]] = Queue()
        self._executor: ThreadPoolExecutor | None = None
        if self.config.workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.workers, thread_name_prefix="chunkbuild"
            )

        self._owner: int | None = None
        self._closed = False
        self._center: ChunkCoord | None = None

        logger.info(
            "streamer_started",
            seed=f"{self.seed64:016x}",
            tiles_x=self.config.tiles_x,
            tiles_z=self.config.tiles_z,
            window_radius=self.config.window_radius,
            build_budget=self.config.build_budget,
            workers=self.config.workers,
        )

    # Tick

    def update(self, x: float, z: float) -> StreamUpdate:
        """Advance streaming for a viewer at world position (x, z).

        Raises:
            WrongThreadError: If called from a thread other than the first caller.
            StreamerClosedError: If the streamer has been closed.
        """
        self._check_owner()
        if self._closed:
            raise StreamerClosedError("update() called on a closed streamer")

        center = world_to_chunk(x, z, self.config)
        desired = desired_window(center, self.config.window_radius)
        desired_set = set(desired)

        evicted = self._evict_outside(desired_set)
        loaded = self._drain_completed()

        for coord in desired:
            if coord not in self._records and coord not in self._loading:
                self._loading[coord] = None

        waiting = [c for c, build in self._loading.items() if build is None]
        waiting.sort(key=_build_order(center))
        for coord in waiting[: self.config.build_budget]:
            record = self._start_build(coord)
            if record is not None:
                self._publish(record)
                loaded.append(coord)

        if center != self._center:
            logger.debug("viewer_chunk_changed", cx=center.cx, cz=center.cz)
            self._center = center

        return StreamUpdate(
            center=center,
            loaded=tuple(loaded),
            evicted=tuple(evicted),
            pending=len(self._loading),
        )

    def settle(self, x: float, z: float, timeout: float = 30.0) -> StreamUpdate:
        """Tick at a fixed position until no chunk is LOADING.

        Raises:
            TimeoutError: If the window is still incomplete after ``timeout`` seconds.
        """
        deadline = time.monotonic() + timeout
        result = self.update(x, z)
        while result.pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(
                    f"{result.pending} chunks still loading after {timeout:.1f}s"
                )
            in_flight = [
                build.future
                for build in self._loading.values()
                if build is not None and build.future is not None
            ]
            if in_flight:
                wait(in_flight, timeout=remaining, return_when=FIRST_COMPLETED)
            result = self.update(x, z)
        return result

    # Queries

    def state(self, coord: ChunkCoord) -> ChunkState:
        if coord in self._records:
            return ChunkState.LOADED
        if coord in self._loading:
            return ChunkState.LOADING
        return ChunkState.UNLOADED

    def record(self, coord: ChunkCoord) -> ChunkRecord | None:
        """The LOADED record at ``coord``, if any."""
        return self._records.get(coord)

    def loaded_coords(self) -> list[ChunkCoord]:
        """LOADED coordinates in row-major order."""
        return sorted(self._records, key=lambda c: (c.cz, c.cx))

    def pending_coords(self) -> list[ChunkCoord]:
        return sorted(self._loading, key=lambda c: (c.cz, c.cx))

    def entities(self, kind: EntityKind | None = None) -> list[EntityDescriptor]:
        """Entities of every LOADED chunk, optionally of one kind.

        Chunks are visited in row-major order, entities in placement order.
        """
        result: list[EntityDescriptor] = []
        for coord in self.loaded_coords():
            for entity in self._records[coord].entities:
                if kind is None or entity.kind == kind:
                    result.append(entity)
        return result

    def world_height(self, x: float, z: float) -> float:
        """Ground height at a world position, loaded or not."""
        return self.fields.world_height(x, z)

    # Lifecycle

    def close(self) -> None:
        """Cancel outstanding builds and stop the worker pool. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for build in self._loading.values():
            if build is not None:
                self._cancel(build)
        self._loading.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
        logger.info("streamer_closed", loaded=len(self._records))

    def __enter__(self) -> "ChunkStreamer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Internals

    def _check_owner(self) -> None:
        ident = threading.get_ident()
        if self._owner is None:
            self._owner = ident
        elif self._owner != ident:
            raise WrongThreadError(
                "ChunkStreamer bookkeeping must run on the thread that first called update()"
            )

    def _evict_outside(self, desired: set[ChunkCoord]) -> list[ChunkCoord]:
        evicted: list[ChunkCoord] = []
        for coord in [c for c in self._records if c not in desired]:
            del self._records[coord]
            evicted.append(coord)
            logger.debug("chunk_evicted", cx=coord.cx, cz=coord.cz)
            if self._on_chunk_evicted is not None:
                self._on_chunk_evicted(coord)

        for coord in [c for c in self._loading if c not in desired]:
            build = self._loading.pop(coord)
            if build is not None:
                self._cancel(build)
                logger.debug("chunk_build_cancelled", cx=coord.cx, cz=coord.cz)
        return evicted

    @staticmethod
    def _cancel(build: _PendingBuild) -> None:
        build.token.cancel()
        if build.future is not None:
            build.future.cancel()

    def _start_build(self, coord: ChunkCoord) -> ChunkRecord | None:
        """Start a build; inline mode returns the finished record."""
        token = CancelToken()
        if self._executor is None:
            del self._loading[coord]
            return build_chunk(
                coord, self.fields, self.recipe, self.config, self.seed64, token
            )

        future = self._executor.submit(
            build_chunk, coord, self.fields, self.recipe, self.config, self.seed64, token
        )
        self._loading[coord] = _PendingBuild(token=token, future=future)
        future.add_done_callback(lambda f, c=coord, t=token: self._completed.put((c, t)))
        return None

    def _drain_completed(self) -> list[ChunkCoord]:
        loaded: list[ChunkCoord] = []
        while True:
            try:
                coord, token = self._completed.get_nowait()
            except Empty:
                break

            build = self._loading.get(coord)
            # A stale completion from a build that was cancelled and restarted
            if build is None or build.token is not token:
                continue
            del self._loading[coord]

            future = build.future
            if future is None or future.cancelled() or token.cancelled:
                continue
            try:
                record = future.result()
            except ChunkBuildCancelled:
                continue

            self._publish(record)
            loaded.append(coord)
        return loaded

    def _publish(self, record: ChunkRecord) -> None:
        self._records[record.coord] = record
        logger.debug(
            "chunk_loaded",
            cx=record.coord.cx,
            cz=record.coord.cz,
            entities=len(record.entities),
        )
        if self._on_chunk_loaded is not None:
            self._on_chunk_loaded(record)
