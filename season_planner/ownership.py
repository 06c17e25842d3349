"""
Owned content tracking. Free content is always owned.

The store is the only place ownership is mutated. Free content (everything
raced in the introductory tier) is always owned and cannot be toggled off.
Changes are applied in memory immediately and persisted in the background.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Set

from .persistence import (
    KeyValueStore,
    PersistenceError,
    PersistenceUnavailable,
)

logger = logging.getLogger(__name__)


class ContentKind(Enum):
    """Category of ownable content."""
    CAR = "car"
    TRACK = "track"


@dataclass
class OwnershipState:
    """Owned cars and base track names."""
    cars: Set[str] = field(default_factory=set)
    tracks: Set[str] = field(default_factory=set)

    def items(self, kind: ContentKind) -> Set[str]:
        return self.cars if kind is ContentKind.CAR else self.tracks

    def copy(self) -> "OwnershipState":
        return OwnershipState(cars=set(self.cars), tracks=set(self.tracks))

    def to_record(self) -> Dict[str, Any]:
        """Convert to the persisted record shape."""
        return {"cars": sorted(self.cars), "tracks": sorted(self.tracks)}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "OwnershipState":
        """
        Build from a persisted record; missing keys count as empty.

        Raises:
            PersistenceUnavailable: If a field is present but isn't a list.
        """
        return cls(
            cars=_record_names(record, "cars"),
            tracks=_record_names(record, "tracks"),
        )


def _record_names(record: Mapping[str, Any], key: str) -> Set[str]:
    value = record.get(key)
    if value is None:
        return set()
    if not isinstance(value, list):
        raise PersistenceUnavailable(f"Malformed '{key}' in owned record: {value!r}")
    # Non-string entries are dropped
    return {name for name in value if isinstance(name, str)}


def merge_ownership(
    persisted: OwnershipState,
    free_cars: Iterable[str],
    free_tracks: Iterable[str],
) -> OwnershipState:
    """Union persisted ownership with the always-owned free content."""
    return OwnershipState(
        cars=set(persisted.cars) | set(free_cars),
        tracks=set(persisted.tracks) | set(free_tracks),
    )


class OwnershipStore:
    """Single authority for the player's owned cars and tracks."""

    def __init__(
        self,
        store: KeyValueStore,
        free_cars: Iterable[str],
        free_tracks: Iterable[str],
        record_key: str = "owned",
    ):
        self._store = store
        self._record_key = record_key
        self._free: Dict[ContentKind, FrozenSet[str]] = {
            ContentKind.CAR: frozenset(free_cars),
            ContentKind.TRACK: frozenset(free_tracks),
        }

        self._state = OwnershipState()
        self._loaded: bool = False

        # Background persistence
        self._save_task: Optional[asyncio.Task] = None
        self._dirty: bool = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def owned_cars(self) -> FrozenSet[str]:
        return frozenset(self._state.cars)

    @property
    def owned_tracks(self) -> FrozenSet[str]:
        return frozenset(self._state.tracks)

    @property
    def state(self) -> OwnershipState:
        """Snapshot of the current in-memory ownership."""
        return self._state.copy()

    def owns(self, item: str, kind: ContentKind) -> bool:
        return item in self._state.items(kind)

    def is_free(self, item: str, kind: ContentKind) -> bool:
        return item in self._free[kind]

    async def load(self) -> OwnershipState:
        """
        Read persisted ownership from the backing store.

        Returns:
            Persisted state (empty if nothing was ever saved).

        Raises:
            PersistenceUnavailable: If the store cannot be opened or read.
        """
        loop = asyncio.get_running_loop()
        record = await loop.run_in_executor(None, self._store.get, self._record_key)
        if record is None:
            return OwnershipState()
        return OwnershipState.from_record(record)

    async def save(self, state: OwnershipState) -> None:
        """
        Persist a snapshot. Failures are logged and never raised.

        Args:
            state: Snapshot to write.
        """
        record = state.to_record()
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._store.put, self._record_key, record)
        except (PersistenceError, OSError) as e:
            logger.error("Failed to save owned content: %s", e)

    async def start(self) -> OwnershipState:
        """
        Load persisted ownership and merge in free content.

        Falls back to free content only when the store is unavailable.

        Returns:
            The merged state.
        """
        try:
            persisted = await self.load()
        except (PersistenceError, OSError) as e:
            logger.warning("Failed to load owned content, using free content only: %s", e)
            persisted = OwnershipState()

        self._state = merge_ownership(
            persisted,
            self._free[ContentKind.CAR],
            self._free[ContentKind.TRACK],
        )
        self._loaded = True
        return self.state

    def toggle(self, item: str, kind: ContentKind) -> bool:
        """
        Flip ownership of a car or track.

        Args:
            item: Car name or base track name.
            kind: Which category the item belongs to.

        Returns:
            True if ownership changed, False for free content (no-op).
        """
        # Free content can't be toggled off (or on - it's always owned)
        if self.is_free(item, kind):
            return False

        owned = self._state.items(kind)
        if item in owned:
            owned.discard(item)
        else:
            owned.add(item)

        if self._loaded:
            self._schedule_save()
        return True

    def toggle_car(self, car: str) -> bool:
        return self.toggle(car, ContentKind.CAR)

    def toggle_track(self, track: str) -> bool:
        return self.toggle(track, ContentKind.TRACK)

    async def flush(self) -> None:
        """Wait for any in-flight save to complete."""
        if self._save_task is not None:
            await self._save_task
            self._save_task = None

    def _schedule_save(self) -> None:
        """Persist the current state, coalescing toggles made mid-save."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (e.g. CLI) - write synchronously
            self._write_now()
            return

        if self._save_task is not None and not self._save_task.done():
            self._dirty = True
            return

        self._save_task = asyncio.create_task(self._save_worker())

    async def _save_worker(self) -> None:
        """Save until no toggle arrived during the last write."""
        while True:
            self._dirty = False
            # Snapshot taken now, not when the save was scheduled
            await self.save(self.state)
            if not self._dirty:
                break

    def _write_now(self) -> None:
        try:
            self._store.put(self._record_key, self._state.to_record())
        except (PersistenceError, OSError) as e:
            logger.error("Failed to save owned content: %s", e)
