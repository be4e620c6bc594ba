"""Tests for the viewer-centred chunk streamer."""

import threading

import numpy as np
import pytest

from glasslands.chunks import ChunkState, StreamConfig
from glasslands.exceptions import StreamerClosedError, WrongThreadError
from glasslands.streaming import ChunkStreamer
from glasslands.types import ChunkCoord, EntityKind

ORIGIN = ChunkCoord(cx=0, cz=0)


class TestInlineStreaming:
    """Streaming with builds on the calling thread."""

    def test_build_budget_limits_builds_per_tick(self, world_seed, recipe, stream_config) -> None:
        """No tick builds more than the budget."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        update = streamer.update(8.0, 8.0)

        assert update.center == ORIGIN
        assert update.loaded == (ORIGIN, ChunkCoord(cx=0, cz=-1))
        assert update.pending == 7
        assert streamer.state(ChunkCoord(cx=1, cz=1)) == ChunkState.LOADING

    def test_window_fills_in_five_ticks(self, world_seed, recipe, stream_config) -> None:
        """Nine chunks at budget two take five ticks."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        pending = [streamer.update(8.0, 8.0).pending for _ in range(5)]
        assert pending == [7, 5, 3, 1, 0]
        assert len(streamer.loaded_coords()) == 9

    def test_nearest_ring_first(self, world_seed, recipe) -> None:
        """The centre chunk builds before its ring."""
        config = StreamConfig(tiles_x=8, tiles_z=8, window_radius=2, build_budget=9, workers=0)
        streamer = ChunkStreamer(world_seed, recipe, config)
        loaded = streamer.update(4.0, 4.0).loaded
        assert all(ORIGIN.chebyshev(c) <= 1 for c in loaded)
        assert len(loaded) == 9

    def test_settle_loads_window(self, world_seed, recipe, stream_config) -> None:
        """Settle loads the whole window."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        update = streamer.settle(8.0, 8.0)
        assert update.pending == 0
        assert streamer.loaded_coords() == [
            ChunkCoord(cx=x, cz=z) for z in (-1, 0, 1) for x in (-1, 0, 1)
        ]

    def test_moving_evicts_trailing_edge(self, world_seed, recipe, stream_config) -> None:
        """Moving one chunk drops the row left behind."""
        loaded, evicted = [], []
        streamer = ChunkStreamer(
            world_seed,
            recipe,
            stream_config,
            on_chunk_loaded=lambda record: loaded.append(record.coord),
            on_chunk_evicted=evicted.append,
        )
        streamer.settle(8.0, 8.0)
        assert len(loaded) == 9

        update = streamer.settle(24.0, 8.0)
        assert update.center == ChunkCoord(cx=1, cz=0)
        assert sorted(evicted, key=lambda c: c.cz) == [ChunkCoord(cx=-1, cz=z) for z in (-1, 0, 1)]
        assert set(loaded[9:]) == {ChunkCoord(cx=2, cz=z) for z in (-1, 0, 1)}
        assert streamer.state(ChunkCoord(cx=-1, cz=0)) == ChunkState.UNLOADED
        assert streamer.record(ChunkCoord(cx=-1, cz=0)) is None

    def test_rebuild_after_eviction_is_identical(self, world_seed, recipe, stream_config) -> None:
        """An evicted chunk comes back unchanged."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        streamer.settle(8.0, 8.0)
        before = streamer.record(ChunkCoord(cx=-1, cz=0))

        streamer.settle(40.0, 8.0)
        assert streamer.state(ChunkCoord(cx=-1, cz=0)) == ChunkState.UNLOADED
        streamer.settle(8.0, 8.0)
        after = streamer.record(ChunkCoord(cx=-1, cz=0))

        assert after is not before
        np.testing.assert_array_equal(before.tiles, after.tiles)
        np.testing.assert_array_equal(before.heights, after.heights)
        assert before.entities == after.entities

    def test_negative_positions(self, world_seed, recipe, stream_config) -> None:
        """Negative viewer positions stream negative chunks."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        update = streamer.settle(-100.0, -0.5)
        assert update.center == ChunkCoord(cx=-7, cz=-1)
        assert streamer.state(ChunkCoord(cx=-8, cz=-2)) == ChunkState.LOADED

    def test_entities_query(self, world_seed, open_recipe, stream_config) -> None:
        """Entities come from loaded chunks only."""
        streamer = ChunkStreamer(world_seed, open_recipe, stream_config)
        streamer.settle(8.0, 8.0)

        everything = streamer.entities()
        assert len(everything) == sum(
            len(streamer.record(c).entities) for c in streamer.loaded_coords()
        )
        beacons = streamer.entities(EntityKind.BEACON)
        assert beacons
        assert all(e.kind == EntityKind.BEACON for e in beacons)

    def test_world_height(self, world_seed, recipe, stream_config) -> None:
        """World height delegates to the field sampler."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        assert streamer.world_height(3.3, -7.1) == streamer.fields.world_height(3.3, -7.1)


class TestThreadedStreaming:
    """Streaming with a worker pool."""

    def test_matches_inline(self, world_seed, recipe, stream_config) -> None:
        """Threaded streaming builds the same chunks as inline."""
        threaded_config = stream_config.model_copy(update={"workers": 2})
        with ChunkStreamer(world_seed, recipe, stream_config) as inline:
            inline.settle(8.0, 8.0)
            with ChunkStreamer(world_seed, recipe, threaded_config) as threaded:
                threaded.settle(8.0, 8.0)

                assert threaded.loaded_coords() == inline.loaded_coords()
                for coord in inline.loaded_coords():
                    a, b = inline.record(coord), threaded.record(coord)
                    np.testing.assert_array_equal(a.tiles, b.tiles)
                    assert a.entities == b.entities

    def test_builds_only_visible_after_drain(self, world_seed, recipe, stream_config) -> None:
        """Finished builds publish on the next update."""
        config = stream_config.model_copy(update={"workers": 2})
        with ChunkStreamer(world_seed, recipe, config) as streamer:
            update = streamer.update(8.0, 8.0)
            assert update.loaded == ()
            assert streamer.state(ORIGIN) == ChunkState.LOADING
            assert streamer.record(ORIGIN) is None

    def test_cancelled_build_never_published(self, world_seed, recipe) -> None:
        """A chunk that leaves the window mid-build is dropped."""
        config = StreamConfig(tiles_x=16, tiles_z=16, window_radius=0, build_budget=1, workers=1)
        loaded = []
        with ChunkStreamer(
            world_seed, recipe, config, on_chunk_loaded=lambda r: loaded.append(r.coord)
        ) as streamer:
            streamer.update(8.0, 8.0)
            streamer.settle(1000.0, 1000.0)

            far = ChunkCoord(cx=62, cz=62)
            assert loaded == [far]
            assert streamer.loaded_coords() == [far]
            assert streamer.state(ORIGIN) == ChunkState.UNLOADED


class TestStreamerLifecycle:
    """Ownership and shutdown."""

    def test_update_from_other_thread(self, world_seed, recipe, stream_config) -> None:
        """Only the owning thread may update."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        streamer.update(8.0, 8.0)

        errors = []

        def intruder() -> None:
            try:
                streamer.update(8.0, 8.0)
            except WrongThreadError as e:
                errors.append(e)

        thread = threading.Thread(target=intruder)
        thread.start()
        thread.join()
        assert len(errors) == 1

    def test_update_after_close(self, world_seed, recipe, stream_config) -> None:
        """A closed streamer refuses updates."""
        streamer = ChunkStreamer(world_seed, recipe, stream_config)
        streamer.close()
        streamer.close()
        with pytest.raises(StreamerClosedError):
            streamer.update(0.0, 0.0)

    def test_context_manager_closes(self, world_seed, recipe, stream_config) -> None:
        """Leaving the with block closes the streamer."""
        with ChunkStreamer(world_seed, recipe, stream_config.model_copy(update={"workers": 1})) as streamer:
            streamer.update(8.0, 8.0)
        with pytest.raises(StreamerClosedError):
            streamer.update(8.0, 8.0)
        assert streamer.pending_coords() == []
