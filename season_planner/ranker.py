"""
Series recommendations ranked by ownership coverage.

Regular series are scored per unique base track. Combo-scored series (e.g. a
series that rotates car classes week to week) are scored per week: a week
counts only when both its track and one of its cars are owned.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Set, Union

from .car_classes import CarClassResolver
from .dataset import Discipline, LicenseClass, Series
from .ownership import OwnershipState
from .tracks import base_track_name

NO_MATCH_MESSAGE = "No series match the current filters."
OWNED_CAR_HINT = 'Try turning off the "own a car" filter.'


def _value(option: Union[str, Enum]) -> str:
    return option.value if isinstance(option, Enum) else option


def _toggle(options: Set[str], option: Union[str, Enum]) -> None:
    value = _value(option)
    if value in options:
        options.discard(value)
    else:
        options.add(value)


@dataclass
class SeriesFilters:
    """Discipline/class selection plus the "own a car" restriction."""
    disciplines: Set[str] = field(default_factory=lambda: {d.value for d in Discipline})
    license_classes: Set[str] = field(default_factory=lambda: {c.value for c in LicenseClass})
    require_owned_car: bool = False

    def matches(self, series: Series) -> bool:
        return (
            series.discipline in self.disciplines
            and series.license_class in self.license_classes
        )

    def toggle_discipline(self, discipline: Union[str, Discipline]) -> None:
        _toggle(self.disciplines, discipline)

    def toggle_license_class(self, license_class: Union[str, LicenseClass]) -> None:
        _toggle(self.license_classes, license_class)


@dataclass
class WeekCombo:
    """A combo-scored week: one (track, car class) pairing."""
    week: int
    raw_track: str
    base_name: str
    car_class: Optional[str]
    cars: List[str]  # Known cars mentioned in the week text
    display_name: str
    satisfied: bool


@dataclass
class SeriesRecommendation:
    """Ownership coverage for one series."""
    series: Series
    owned_count: int
    total_tracks: int
    percentage: float
    owns_any_car: bool
    owned_items: List[str] = field(default_factory=list)
    needed_items: List[str] = field(default_factory=list)


def combo_display_name(
    series: Series,
    raw_track: str,
    resolver: CarClassResolver,
) -> Optional[str]:
    """
    Short label for a combo week, e.g. "Talladega - GT3".

    Args:
        series: Series the week belongs to.
        raw_track: Raw week text.
        resolver: Car-class table lookup.

    Returns:
        "<track label> - <car class>", or None for regular series and for
        weeks whose car class can't be resolved.
    """
    if not series.uses_combo_scoring:
        return None

    car_class = resolver.class_of(raw_track)
    if car_class is None:
        return None

    label = series.combo_track_label or raw_track.split(" ")[0]
    return f"{label} - {car_class}"


def evaluate_combo_weeks(
    series: Series,
    ownership: OwnershipState,
    resolver: CarClassResolver,
) -> List[WeekCombo]:
    """Resolve and score every week entry of a combo-scored series."""
    weeks = []
    for entry in series.tracks:
        base_name = base_track_name(entry.track)
        cars = resolver.cars_mentioned(entry.track)
        satisfied = base_name in ownership.tracks and any(
            car in ownership.cars for car in cars
        )
        weeks.append(WeekCombo(
            week=entry.week,
            raw_track=entry.track,
            base_name=base_name,
            car_class=resolver.class_of(entry.track),
            cars=cars,
            display_name=combo_display_name(series, entry.track, resolver) or entry.track,
            satisfied=satisfied,
        ))
    return weeks


def _percentage(owned_count: int, total: int) -> float:
    if total == 0:
        return 0.0
    return owned_count / total * 100


def score_series(
    series: Series,
    ownership: OwnershipState,
    resolver: CarClassResolver,
) -> SeriesRecommendation:
    """
    Compute ownership coverage for a single series.

    Args:
        series: Series to score.
        ownership: Current owned cars/tracks.
        resolver: Car-class table lookup (used for combo series).

    Returns:
        SeriesRecommendation with counts and owned/needed item lists.
    """
    if series.uses_combo_scoring:
        weeks = evaluate_combo_weeks(series, ownership, resolver)
        owned = [w.display_name for w in weeks if w.satisfied]
        needed = [w.display_name for w in weeks if not w.satisfied]
        # Looser than per-week satisfaction: any car from any week
        owns_any_car = any(car in ownership.cars for w in weeks for car in w.cars)
    else:
        unique_tracks = list(dict.fromkeys(base_track_name(t.track) for t in series.tracks))
        owned = [t for t in unique_tracks if t in ownership.tracks]
        needed = [t for t in unique_tracks if t not in ownership.tracks]
        owns_any_car = any(car in ownership.cars for car in series.cars)

    total = len(owned) + len(needed)
    return SeriesRecommendation(
        series=series,
        owned_count=len(owned),
        total_tracks=total,
        percentage=_percentage(len(owned), total),
        owns_any_car=owns_any_car,
        owned_items=owned,
        needed_items=needed,
    )


def rank_series(
    series: Iterable[Series],
    ownership: OwnershipState,
    resolver: CarClassResolver,
    filters: Optional[SeriesFilters] = None,
) -> List[SeriesRecommendation]:
    """
    Filter and rank series by how much of their content is owned.

    Sorted by owned count, then percentage, both descending. Ties keep
    their input order.

    Args:
        series: Full schedule, in display order.
        ownership: Current owned cars/tracks.
        resolver: Car-class table lookup.
        filters: Selection to apply (defaults to everything).

    Returns:
        Ranked recommendations; empty when nothing matches.
    """
    if filters is None:
        filters = SeriesFilters()

    scored = [
        score_series(s, ownership, resolver)
        for s in series
        if filters.matches(s)
    ]
    if filters.require_owned_car:
        scored = [r for r in scored if r.owns_any_car]

    return sorted(scored, key=lambda r: (-r.owned_count, -r.percentage))


def no_match_message(filters: SeriesFilters) -> str:
    """Message shown when the ranked list is empty."""
    if filters.require_owned_car:
        return f"{NO_MATCH_MESSAGE} {OWNED_CAR_HINT}"
    return NO_MATCH_MESSAGE
