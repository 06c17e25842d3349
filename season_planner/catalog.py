"""
Catalog of all cars and tracks in the schedule, and the free subsets.
"""

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, List

from .dataset import LicenseClass, Series
from .tracks import base_track_name


@dataclass(frozen=True)
class Catalog:
    """Every car and base track in the schedule, plus the free ones."""
    all_cars: FrozenSet[str]
    all_tracks: FrozenSet[str]
    free_cars: FrozenSet[str]
    free_tracks: FrozenSet[str]

    def sorted_cars(self) -> List[str]:
        return sorted(self.all_cars)

    def sorted_tracks(self) -> List[str]:
        return sorted(self.all_tracks)


@dataclass
class ContentItem:
    """One row of the owned-content listing."""
    name: str
    owned: bool
    free: bool  # Free items are always owned and can't be deselected


def extract_catalog(
    series: Iterable[Series],
    free_license_class: str = LicenseClass.ROOKIE.value,
) -> Catalog:
    """
    Collect cars and base tracks across all series.

    Args:
        series: Full schedule.
        free_license_class: Tier whose content every player owns.

    Returns:
        Catalog with all and free cars/tracks.
    """
    cars = set()
    tracks = set()
    free_cars = set()
    free_tracks = set()

    for s in series:
        is_free_tier = s.license_class == free_license_class

        for car in s.cars:
            cars.add(car)
            if is_free_tier:
                free_cars.add(car)

        # Base name only - configurations share ownership
        for week in s.tracks:
            base_name = base_track_name(week.track)
            tracks.add(base_name)
            if is_free_tier:
                free_tracks.add(base_name)

    return Catalog(
        all_cars=frozenset(cars),
        all_tracks=frozenset(tracks),
        free_cars=frozenset(free_cars),
        free_tracks=frozenset(free_tracks),
    )


def content_items(
    names: Iterable[str],
    owned: AbstractSet[str],
    free: AbstractSet[str],
) -> List[ContentItem]:
    """Build listing rows in the given order."""
    return [
        ContentItem(name=name, owned=name in owned or name in free, free=name in free)
        for name in names
    ]
