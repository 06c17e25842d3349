"""
Weekly schedule board with per-week ownership highlighting.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .car_classes import CarClassResolver
from .dataset import Series, Track
from .ownership import OwnershipState
from .ranker import SeriesFilters, combo_display_name
from .tracks import base_track_name

EMPTY_WEEK = "-"


@dataclass
class WeekRow:
    """One week of a series as displayed on the board."""
    week: int
    track: Optional[str]  # Raw track text, None for an unscheduled week
    display: str
    owned: bool


@dataclass
class SeriesSchedule:
    """A series card on the schedule board."""
    series: Series
    weeks: List[WeekRow]
    cars_tooltip: str


def week_rows(
    series: Series,
    ownership: OwnershipState,
    resolver: CarClassResolver,
) -> List[WeekRow]:
    """
    Build rows for weeks 1..max_week of a series.

    Args:
        series: Series to lay out.
        ownership: Current owned cars/tracks.
        resolver: Car-class table lookup (for combo week labels).

    Returns:
        One row per week; gaps in the schedule get an empty "-" row.
    """
    by_week: Dict[int, Track] = {}
    for entry in series.tracks:
        by_week.setdefault(entry.week, entry)

    rows = []
    for week in range(1, series.max_week + 1):
        entry = by_week.get(week)
        if entry is None:
            rows.append(WeekRow(week=week, track=None, display=EMPTY_WEEK, owned=False))
            continue

        owned = base_track_name(entry.track) in ownership.tracks
        if owned and series.uses_combo_scoring:
            # Combo weeks also need one of that week's cars
            owned = any(
                car in ownership.cars for car in resolver.cars_mentioned(entry.track)
            )

        display = combo_display_name(series, entry.track, resolver) or entry.track
        rows.append(WeekRow(week=week, track=entry.track, display=display, owned=owned))
    return rows


def build_schedule(
    series: Iterable[Series],
    ownership: OwnershipState,
    resolver: CarClassResolver,
    filters: Optional[SeriesFilters] = None,
) -> List[SeriesSchedule]:
    """Lay out every series matching the discipline/class filters, in input order."""
    if filters is None:
        filters = SeriesFilters()

    return [
        SeriesSchedule(
            series=s,
            weeks=week_rows(s, ownership, resolver),
            cars_tooltip=", ".join(s.cars),
        )
        for s in series
        if filters.matches(s)
    ]
