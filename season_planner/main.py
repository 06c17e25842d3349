"""
Main integration for iRacing Season Planner.

Ties together the static dataset, catalog, ownership store and API server.
"""

import asyncio
import logging
import signal
from typing import Optional

from config import Config
from .api_server import PlannerContext, PlannerServer
from .car_classes import CarClassResolver
from .catalog import extract_catalog
from .dataset import load_car_classes, load_schedule
from .ownership import OwnershipStore
from .persistence import JsonFileStore


def build_context(config: Config) -> PlannerContext:
    """Load the dataset and wire up a planning session (ownership not yet loaded)."""
    series = load_schedule(config.schedule_path, combo_series=config.combo_series)
    resolver = CarClassResolver(load_car_classes(config.classes_path))
    catalog = extract_catalog(series, free_license_class=config.free_license_class)

    ownership = OwnershipStore(
        JsonFileStore(config.store_dir),
        free_cars=catalog.free_cars,
        free_tracks=catalog.free_tracks,
        record_key=config.owned_record_key,
    )
    return PlannerContext(
        series=series,
        catalog=catalog,
        resolver=resolver,
        ownership=ownership,
    )


class PlannerApp:
    """Runs the planner API until asked to stop."""

    def __init__(self, config: Config):
        self._config = config
        self._server: Optional[PlannerServer] = None

    async def run(self) -> None:
        """Load data and serve until shutdown."""
        print("Loading season data...")
        context = build_context(self._config)
        print(f"[DATA] {len(context.series)} series | "
              f"{len(context.catalog.all_cars)} cars | {len(context.catalog.all_tracks)} tracks")

        await context.ownership.start()
        print(f"[OWNED] {len(context.ownership.owned_cars)} cars | "
              f"{len(context.ownership.owned_tracks)} tracks")

        self._server = PlannerServer(
            context,
            host=self._config.server_host,
            port=self._config.server_port,
        )
        await self._server.start()
        try:
            await self._server.wait_closed()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Ask the server to exit; run() finishes the shutdown."""
        if self._server:
            self._server.request_exit()

    async def stop(self) -> None:
        """Stop serving; pending ownership saves are flushed by the server lifespan."""
        if self._server:
            await self._server.stop()
            self._server = None
            print("Shutdown complete.")


async def main():
    """Entry point."""
    config = Config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = PlannerApp(config)

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler():
        app.request_stop()

    try:
        loop.add_signal_handler(signal.SIGINT, signal_handler)
        loop.add_signal_handler(signal.SIGTERM, signal_handler)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler
        pass

    try:
        await app.run()
    except KeyboardInterrupt:
        await app.stop()


if __name__ == "__main__":
    asyncio.run(main())
