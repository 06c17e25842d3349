"""
Static schedule and car-class dataset.

Loads the season schedule and car-class table from JSON exports. Both are read
once at startup and never mutated afterwards.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class LicenseClass(str, Enum):
    """License tiers, lowest first."""
    UNRANKED = "Unranked"
    ROOKIE = "Rookie"
    CLASS_D = "Class D"
    CLASS_C = "Class C"
    CLASS_B = "Class B"
    CLASS_A = "Class A"


class Discipline(str, Enum):
    """Racing disciplines."""
    OVAL = "Oval"
    DIRT_OVAL = "Dirt Oval"
    DIRT_ROAD = "Dirt Road"
    SPORTS_CAR = "Sports Car"
    FORMULA_CAR = "Formula Car"


@dataclass
class Track:
    """One week of a series schedule."""
    week: int
    track: str  # Raw text, e.g. "Road America - Club" or a combo week description


@dataclass
class Series:
    """A competitive series and its season schedule."""
    name: str
    cars: List[str]
    license_class: str  # Raw value; compare against LicenseClass members
    discipline: str  # Raw value; compare against Discipline members
    tracks: List[Track] = field(default_factory=list)

    # Combo scoring: each week is a (track, car class) pairing
    uses_combo_scoring: bool = False
    combo_track_label: Optional[str] = None

    @property
    def max_week(self) -> int:
        return max((t.week for t in self.tracks), default=0)


@dataclass
class CarClassEntry:
    """A car class and its member cars, in table order."""
    class_name: str
    cars: List[str]


PathLike = Union[str, Path]


def _week_number(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Unreadable week number %r, using 0", value)
        return 0


def parse_series(
    raw: Mapping[str, Any],
    combo_series: Optional[Mapping[str, Optional[str]]] = None,
) -> Series:
    """
    Build a Series from one schedule entry.

    Args:
        raw: Entry with "Series", "Cars", "Class", "Discipline", "Tracks" keys.
        combo_series: Series names scored per (track, car class) week, mapped
            to their fixed display label (or None).

    Returns:
        Parsed Series. Unexpected values are kept as literal strings.
    """
    combo_series = combo_series or {}
    name = str(raw.get("Series", ""))
    tracks = [
        Track(week=_week_number(t.get("week", 0)), track=str(t.get("track", "")))
        for t in raw.get("Tracks") or []
    ]
    return Series(
        name=name,
        cars=[str(car) for car in raw.get("Cars") or []],
        license_class=str(raw.get("Class", "")),
        discipline=str(raw.get("Discipline", "")),
        tracks=tracks,
        uses_combo_scoring=name in combo_series,
        combo_track_label=combo_series.get(name),
    )


def parse_car_class(raw: Mapping[str, Any]) -> CarClassEntry:
    """Build a CarClassEntry from one classes.json entry."""
    return CarClassEntry(
        class_name=str(raw.get("Car Class", "")),
        cars=[str(car) for car in raw.get("Cars") or []],
    )


def load_schedule(
    path: PathLike,
    combo_series: Optional[Mapping[str, Optional[str]]] = None,
) -> List[Series]:
    """
    Load the season schedule from a JSON file.

    Args:
        path: Path to schedule.json.
        combo_series: Names of combo-scored series (see parse_series).

    Returns:
        Series in file order.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    series = [parse_series(entry, combo_series) for entry in data]
    logger.info("Loaded %d series from %s", len(series), path)
    return series


def load_car_classes(path: PathLike) -> List[CarClassEntry]:
    """Load the car-class table from a JSON file, preserving table order."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    entries = [parse_car_class(entry) for entry in data]
    logger.info("Loaded %d car classes from %s", len(entries), path)
    return entries
