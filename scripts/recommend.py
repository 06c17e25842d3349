"""
Print ranked series recommendations for your owned content.

Usage:
    python scripts/recommend.py                                # All series
    python scripts/recommend.py --discipline Oval --class "Class A"
    python scripts/recommend.py --own-car --limit 10           # Only series you have a car for
    python scripts/recommend.py --toggle-track "Road America"  # Flip ownership, then rank
    python scripts/recommend.py --no-persist                   # Ignore saved ownership
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config
from season_planner.car_classes import CarClassResolver
from season_planner.catalog import extract_catalog
from season_planner.dataset import Discipline, LicenseClass, load_car_classes, load_schedule
from season_planner.ownership import OwnershipStore
from season_planner.persistence import JsonFileStore, MemoryStore
from season_planner.ranker import SeriesFilters, no_match_message, rank_series


def main():
    parser = argparse.ArgumentParser(description="Rank series by owned content")
    parser.add_argument("--discipline", action="append", choices=[d.value for d in Discipline],
                        help="Discipline to include (repeatable, default: all)")
    parser.add_argument("--class", dest="license_class", action="append",
                        choices=[c.value for c in LicenseClass],
                        help="License class to include (repeatable, default: all)")
    parser.add_argument("--own-car", action="store_true", help="Only series where you own a car")
    parser.add_argument("--toggle-car", action="append", default=[], help="Flip ownership of a car")
    parser.add_argument("--toggle-track", action="append", default=[], help="Flip ownership of a base track")
    parser.add_argument("--limit", type=int, default=0, help="Show at most N series")
    parser.add_argument("--no-persist", action="store_true", help="Don't read or write saved ownership")

    args = parser.parse_args()
    config = Config()

    series = load_schedule(config.schedule_path, combo_series=config.combo_series)
    resolver = CarClassResolver(load_car_classes(config.classes_path))
    catalog = extract_catalog(series, free_license_class=config.free_license_class)

    store = MemoryStore() if args.no_persist else JsonFileStore(config.store_dir)
    ownership = OwnershipStore(
        store,
        free_cars=catalog.free_cars,
        free_tracks=catalog.free_tracks,
        record_key=config.owned_record_key,
    )
    asyncio.run(ownership.start())

    # No event loop here, so toggles are written immediately
    for car in args.toggle_car:
        if not ownership.toggle_car(car):
            print(f"[SKIP] {car} is free content")
    for track in args.toggle_track:
        if not ownership.toggle_track(track):
            print(f"[SKIP] {track} is free content")

    filters = SeriesFilters(require_owned_car=args.own_car)
    if args.discipline:
        filters.disciplines = set(args.discipline)
    if args.license_class:
        filters.license_classes = set(args.license_class)

    ranked = rank_series(series, ownership.state, resolver, filters)
    if not ranked:
        print(no_match_message(filters))
        return 1

    if args.limit:
        ranked = ranked[:args.limit]

    print(f"\n{'=' * 60}")
    print(f"Owned: {len(ownership.owned_cars)} cars | {len(ownership.owned_tracks)} tracks")
    print("=" * 60 + "\n")

    for rec in ranked:
        car_badge = "own car" if rec.owns_any_car else "NEED CAR"
        print(f"{rec.owned_count:>2}/{rec.total_tracks:<2} {rec.percentage:>4.0f}%  "
              f"{rec.series.name}  [{rec.series.discipline} | {rec.series.license_class}] ({car_badge})")
        if rec.needed_items:
            print(f"         needs: {', '.join(rec.needed_items)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
