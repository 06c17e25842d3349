"""
Tests for OwnershipStore and ownership state.
"""

import asyncio
import logging
import threading
from typing import List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from season_planner.ownership import (
    ContentKind,
    OwnershipState,
    OwnershipStore,
    merge_ownership,
)
from season_planner.persistence import (
    KeyValueStore,
    PersistenceError,
    PersistenceUnavailable,
    PersistenceWriteFailed,
)

FREE_CARS = {"Mazda MX-5"}
FREE_TRACKS = {"Lime Rock Park"}


class FakeStore(KeyValueStore):
    """Records puts; can be told to fail reads or writes."""

    def __init__(self, record: Optional[dict] = None, fail_get: bool = False, fail_put: bool = False):
        self.record = record
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.puts: List[Tuple[str, dict]] = []

    def get(self, key):
        if self.fail_get:
            raise PersistenceUnavailable("store closed")
        return self.record

    def put(self, key, record):
        if self.fail_put:
            raise PersistenceWriteFailed("disk full")
        self.puts.append((key, record))


class BlockingStore(FakeStore):
    """Holds the first write open until released."""

    def __init__(self):
        super().__init__()
        self.write_started = threading.Event()
        self.release = threading.Event()

    def put(self, key, record):
        self.puts.append((key, record))
        self.write_started.set()
        self.release.wait(timeout=2.0)


def make_store(backing: Optional[KeyValueStore] = None) -> OwnershipStore:
    """Helper to create an ownership store with the standard free content."""
    return OwnershipStore(
        backing if backing is not None else FakeStore(),
        free_cars=FREE_CARS,
        free_tracks=FREE_TRACKS,
    )


class TestOwnershipState:
    """Tests for OwnershipState records."""

    def test_to_record_is_sorted(self):
        """Test persisted lists are deterministic."""
        state = OwnershipState(cars={"b", "a"}, tracks={"z", "y"})
        assert state.to_record() == {"cars": ["a", "b"], "tracks": ["y", "z"]}

    def test_from_record_missing_keys(self):
        """Test missing categories load as empty."""
        state = OwnershipState.from_record({"cars": ["A"]})
        assert state.cars == {"A"}
        assert state.tracks == set()

    def test_copy_is_independent(self):
        """Test snapshots don't share sets with the original."""
        state = OwnershipState(cars={"A"})
        snapshot = state.copy()
        state.cars.add("B")
        assert snapshot.cars == {"A"}


class TestMergeOwnership:
    """Tests for merge_ownership()."""

    @pytest.mark.parametrize("persisted", [
        OwnershipState(),
        OwnershipState(cars={"BMW M4 GT3"}),
        OwnershipState(cars={"Mazda MX-5"}, tracks={"Road America"}),
        OwnershipState(cars={"X", "Y"}, tracks={"Lime Rock Park", "Spa"}),
    ])
    def test_free_content_always_owned(self, persisted):
        """Test free sets are included whatever was persisted."""
        merged = merge_ownership(persisted, FREE_CARS, FREE_TRACKS)
        assert FREE_CARS <= merged.cars
        assert FREE_TRACKS <= merged.tracks
        assert persisted.cars <= merged.cars
        assert persisted.tracks <= merged.tracks


class TestStart:
    """Tests for loading and merging at startup."""

    @pytest.mark.asyncio
    async def test_empty_store_gives_free_content(self):
        """Test a fresh store owns exactly the free content."""
        store = make_store()
        state = await store.start()

        assert state.cars == FREE_CARS
        assert state.tracks == FREE_TRACKS
        assert store.is_loaded is True

    @pytest.mark.asyncio
    async def test_merges_persisted_content(self):
        """Test persisted ownership is merged with free content."""
        store = make_store(FakeStore(record={"cars": ["BMW M4 GT3"], "tracks": ["Road America"]}))
        await store.start()

        assert store.owned_cars == {"BMW M4 GT3", "Mazda MX-5"}
        assert store.owned_tracks == {"Road America", "Lime Rock Park"}

    @pytest.mark.asyncio
    async def test_load_raises_when_unavailable(self):
        """Test load() reports an unavailable store."""
        store = make_store(FakeStore(fail_get=True))
        with pytest.raises(PersistenceUnavailable):
            await store.load()

    @pytest.mark.asyncio
    async def test_unavailable_store_falls_back_to_free(self, caplog):
        """Test start() recovers from an unavailable store."""
        store = make_store(FakeStore(fail_get=True))

        with caplog.at_level(logging.WARNING):
            state = await store.start()

        assert state.cars == FREE_CARS
        assert state.tracks == FREE_TRACKS
        assert store.is_loaded is True
        assert "Failed to load owned content" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [
        {"cars": 5, "tracks": []},
        {"cars": "Mazda", "tracks": []},
        {"cars": [], "tracks": {"Spa": True}},
    ])
    async def test_malformed_record_falls_back_to_free(self, record, caplog):
        """Test a record with non-list fields loads as free content only."""
        store = make_store(FakeStore(record=record))

        with caplog.at_level(logging.WARNING):
            state = await store.start()

        assert state.cars == FREE_CARS
        assert state.tracks == FREE_TRACKS
        assert "Failed to load owned content" in caplog.text

    @pytest.mark.asyncio
    async def test_non_string_entries_dropped(self):
        """Test stray values inside the lists are ignored."""
        store = make_store(FakeStore(record={"cars": ["BMW M4 GT3", 3, None], "tracks": ["Spa"]}))
        await store.start()

        assert store.owned_cars == {"BMW M4 GT3", "Mazda MX-5"}
        assert store.owned_tracks == {"Spa", "Lime Rock Park"}

    @pytest.mark.asyncio
    async def test_os_error_on_load_falls_back_to_free(self):
        """Test a store raising OSError on read still starts."""
        backing = MagicMock(spec=KeyValueStore)
        backing.get.side_effect = OSError("permission denied")
        store = make_store(backing)

        state = await store.start()
        assert state.cars == FREE_CARS

    @pytest.mark.asyncio
    async def test_start_does_not_save(self):
        """Test loading alone never writes."""
        backing = FakeStore()
        store = make_store(backing)
        await store.start()
        await store.flush()
        assert backing.puts == []


class TestToggle:
    """Tests for toggling ownership."""

    @pytest.mark.asyncio
    async def test_toggle_adds_and_removes(self):
        """Test toggling flips membership."""
        store = make_store()
        await store.start()

        assert store.toggle_car("BMW M4 GT3") is True
        assert "BMW M4 GT3" in store.owned_cars

        assert store.toggle_car("BMW M4 GT3") is True
        assert "BMW M4 GT3" not in store.owned_cars

    @pytest.mark.asyncio
    async def test_toggle_track(self):
        """Test tracks toggle independently of cars."""
        store = make_store()
        await store.start()

        store.toggle_track("Road America")
        assert store.owns("Road America", ContentKind.TRACK)
        assert not store.owns("Road America", ContentKind.CAR)

    @pytest.mark.asyncio
    async def test_toggle_persists_current_state(self):
        """Test a toggle saves the new state."""
        backing = FakeStore()
        store = make_store(backing)
        await store.start()

        store.toggle_car("BMW M4 GT3")
        await store.flush()

        assert len(backing.puts) == 1
        key, record = backing.puts[0]
        assert key == "owned"
        assert record["cars"] == ["BMW M4 GT3", "Mazda MX-5"]
        assert record["tracks"] == ["Lime Rock Park"]

    @pytest.mark.asyncio
    async def test_free_car_toggle_is_noop(self):
        """Test free cars can't be toggled and nothing is saved."""
        backing = FakeStore()
        store = make_store(backing)
        await store.start()
        before = store.state

        assert store.toggle_car("Mazda MX-5") is False
        await store.flush()

        assert store.state == before
        assert "Mazda MX-5" in store.owned_cars
        assert backing.puts == []

    @pytest.mark.asyncio
    async def test_free_track_toggle_is_noop(self):
        """Test free tracks can't be toggled and nothing is saved."""
        backing = FakeStore()
        store = make_store(backing)
        await store.start()

        assert store.toggle(next(iter(FREE_TRACKS)), ContentKind.TRACK) is False
        await store.flush()

        assert store.owned_tracks == FREE_TRACKS
        assert backing.puts == []

    @pytest.mark.asyncio
    async def test_free_name_only_guards_its_own_category(self):
        """Test a free car name doesn't block a track with the same name."""
        store = make_store()
        await store.start()
        assert store.toggle("Mazda MX-5", ContentKind.TRACK) is True

    @pytest.mark.asyncio
    async def test_state_is_a_snapshot(self):
        """Test callers can't mutate ownership through state."""
        store = make_store()
        await store.start()

        snapshot = store.state
        snapshot.cars.add("Stolen Car")
        assert "Stolen Car" not in store.owned_cars


class TestSaveFailures:
    """Tests for best-effort saving."""

    @pytest.mark.asyncio
    async def test_write_failure_is_logged_not_raised(self, caplog):
        """Test a failed save keeps the in-memory change."""
        store = make_store(FakeStore(fail_put=True))
        await store.start()

        with caplog.at_level(logging.ERROR):
            store.toggle_car("BMW M4 GT3")
            await store.flush()

        assert "BMW M4 GT3" in store.owned_cars
        assert "Failed to save owned content" in caplog.text

    @pytest.mark.asyncio
    async def test_other_store_errors_are_logged(self, caplog):
        """Test non-write-failure errors from a store don't escape flush()."""
        backing = MagicMock(spec=KeyValueStore)
        backing.get.return_value = None
        backing.put.side_effect = OSError("read-only file system")
        store = make_store(backing)
        await store.start()

        with caplog.at_level(logging.ERROR):
            store.toggle_car("BMW M4 GT3")
            await store.flush()

        assert "Failed to save owned content" in caplog.text
        assert "BMW M4 GT3" in store.owned_cars

    @pytest.mark.asyncio
    async def test_base_persistence_error_is_logged(self, caplog):
        """Test a generic PersistenceError from put() is logged, not raised."""
        backing = MagicMock(spec=KeyValueStore)
        backing.put.side_effect = PersistenceError("store closed")
        store = make_store(backing)

        with caplog.at_level(logging.ERROR):
            await store.save(OwnershipState(cars={"A"}))

        assert "store closed" in caplog.text

    @pytest.mark.asyncio
    async def test_save_swallows_write_failure(self):
        """Test save() itself never raises on write failure."""
        store = make_store(FakeStore(fail_put=True))
        await store.save(OwnershipState(cars={"A"}))


class TestSaveOrdering:
    """Tests for saving the latest snapshot when toggles overlap a save."""

    @pytest.mark.asyncio
    async def test_toggle_during_save_is_not_lost(self):
        """Test a toggle made mid-write triggers a follow-up write of the latest state."""
        backing = BlockingStore()
        store = make_store(backing)
        await store.start()

        store.toggle_car("BMW M4 GT3")
        while not backing.write_started.is_set():
            await asyncio.sleep(0.001)

        # First write is in flight
        store.toggle_car("Ferrari 296 GT3")
        store.toggle_track("Road America")
        backing.release.set()
        await store.flush()

        assert len(backing.puts) == 2
        assert backing.puts[0][1]["cars"] == ["BMW M4 GT3", "Mazda MX-5"]
        assert backing.puts[-1][1] == store.state.to_record()
        assert backing.puts[-1][1]["tracks"] == ["Lime Rock Park", "Road America"]

    @pytest.mark.asyncio
    async def test_rapid_toggles_end_with_latest_state(self):
        """Test a burst of toggles persists the final state."""
        backing = FakeStore()
        store = make_store(backing)
        await store.start()

        for car in ["A", "B", "C", "A"]:
            store.toggle_car(car)
        await store.flush()

        assert backing.puts[-1][1]["cars"] == ["B", "C", "Mazda MX-5"]

    @pytest.mark.asyncio
    async def test_flush_without_pending_save(self):
        """Test flush() is safe when nothing is pending."""
        store = make_store()
        await store.start()
        await store.flush()


class TestWithoutEventLoop:
    """Tests for synchronous callers (e.g. the CLI)."""

    def test_toggle_writes_immediately(self):
        """Test toggles outside an event loop are written inline."""
        backing = FakeStore()
        store = make_store(backing)
        asyncio.run(store.start())

        store.toggle_track("Road America")

        assert len(backing.puts) == 1
        assert backing.puts[0][1]["tracks"] == ["Lime Rock Park", "Road America"]

    def test_inline_write_failure_is_logged(self, caplog):
        """Test inline write failures are logged, not raised."""
        store = make_store(FakeStore(fail_put=True))
        asyncio.run(store.start())

        with caplog.at_level(logging.ERROR):
            assert store.toggle_car("BMW M4 GT3") is True

        assert "Failed to save owned content" in caplog.text
        assert "BMW M4 GT3" in store.owned_cars


class TestStoreCalls:
    """Tests for how the backing store is called."""

    @pytest.mark.asyncio
    async def test_reads_configured_key(self):
        """Test the configured record key is used for reads and writes."""
        backing = MagicMock(spec=KeyValueStore)
        backing.get.return_value = {"cars": ["BMW M4 GT3"], "tracks": []}
        store = OwnershipStore(backing, free_cars=FREE_CARS, free_tracks=FREE_TRACKS, record_key="garage")

        await store.start()
        store.toggle_track("Road America")
        await store.flush()

        backing.get.assert_called_once_with("garage")
        backing.put.assert_called_once_with(
            "garage",
            {"cars": ["BMW M4 GT3", "Mazda MX-5"], "tracks": ["Lime Rock Park", "Road America"]},
        )

    def test_toggle_before_load_does_not_write(self):
        """Test toggles before start() stay in memory only."""
        backing = MagicMock(spec=KeyValueStore)
        store = make_store(backing)

        assert store.toggle_car("BMW M4 GT3") is True

        backing.put.assert_not_called()
        assert "BMW M4 GT3" in store.owned_cars
