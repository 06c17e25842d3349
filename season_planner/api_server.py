"""
HTTP/WebSocket API for the season planner.

Serves the owned-content listing, ranked recommendations and the weekly
schedule board as JSON, and accepts ownership and filter toggles. Connected
WebSocket clients receive ownership updates after every toggle.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from .car_classes import CarClassResolver
from .catalog import Catalog, content_items
from .dataset import Discipline, LicenseClass, Series
from .ownership import ContentKind, OwnershipStore
from .ranker import (
    NO_MATCH_MESSAGE,
    SeriesFilters,
    SeriesRecommendation,
    no_match_message,
    rank_series,
)
from .schedule import SeriesSchedule, build_schedule


@dataclass
class PlannerContext:
    """Everything the API needs for one planning session."""
    series: List[Series]
    catalog: Catalog
    resolver: CarClassResolver
    ownership: OwnershipStore
    filters: SeriesFilters = field(default_factory=SeriesFilters)


def recommendation_to_dict(rec: SeriesRecommendation) -> Dict[str, Any]:
    """Convert a recommendation to its JSON record."""
    return {
        "series": rec.series.name,
        "discipline": rec.series.discipline,
        "license_class": rec.series.license_class,
        "cars": list(rec.series.cars),
        "owned_count": rec.owned_count,
        "total_tracks": rec.total_tracks,
        "percentage": round(rec.percentage, 1),
        "owns_any_car": rec.owns_any_car,
        "owned_items": list(rec.owned_items),
        "needed_items": list(rec.needed_items),
    }


def schedule_to_dict(card: SeriesSchedule) -> Dict[str, Any]:
    """Convert a schedule card to its JSON record."""
    return {
        "series": card.series.name,
        "discipline": card.series.discipline,
        "license_class": card.series.license_class,
        "cars": card.cars_tooltip,
        "weeks": [
            {"week": w.week, "track": w.track, "display": w.display, "owned": w.owned}
            for w in card.weeks
        ],
    }


class PlannerServer:
    """FastAPI app plus WebSocket fan-out for ownership changes."""

    def __init__(self, context: PlannerContext, host: str = "localhost", port: int = 8080):
        self._context = context
        self._host = host
        self._port = port
        self._app = FastAPI(title="iRacing Season Planner", lifespan=self._lifespan)
        self._connections: Set[WebSocket] = set()
        self._server = None
        self._server_task: Optional[asyncio.Task] = None

        # Setup routes
        self._setup_routes()

    @property
    def app(self) -> FastAPI:
        return self._app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        # Ownership must be merged with free content before anything is served
        if not self._context.ownership.is_loaded:
            await self._context.ownership.start()
        yield
        await self._context.ownership.flush()

    def _setup_routes(self) -> None:
        """Configure FastAPI routes."""
        ctx = self._context

        @self._app.get("/catalog")
        async def get_catalog():
            return self._catalog_payload()

        @self._app.post("/ownership/cars/{car:path}/toggle")
        async def toggle_car(car: str):
            if car not in ctx.catalog.all_cars:
                raise HTTPException(status_code=404, detail=f"Unknown car: {car}")
            return await self._toggle(car, ContentKind.CAR)

        @self._app.post("/ownership/tracks/{track:path}/toggle")
        async def toggle_track(track: str):
            if track not in ctx.catalog.all_tracks:
                raise HTTPException(status_code=404, detail=f"Unknown track: {track}")
            return await self._toggle(track, ContentKind.TRACK)

        @self._app.get("/filters")
        async def get_filters():
            return self._filters_payload()

        @self._app.post("/filters/disciplines/{discipline}/toggle")
        async def toggle_discipline(discipline: str):
            if discipline not in {d.value for d in Discipline}:
                raise HTTPException(status_code=400, detail=f"Unknown discipline: {discipline}")
            ctx.filters.toggle_discipline(discipline)
            return self._filters_payload()

        @self._app.post("/filters/classes/{license_class}/toggle")
        async def toggle_license_class(license_class: str):
            if license_class not in {c.value for c in LicenseClass}:
                raise HTTPException(status_code=400, detail=f"Unknown class: {license_class}")
            ctx.filters.toggle_license_class(license_class)
            return self._filters_payload()

        @self._app.post("/filters/owned-car")
        async def set_owned_car_filter(enabled: bool):
            ctx.filters.require_owned_car = enabled
            return self._filters_payload()

        @self._app.get("/recommendations")
        async def get_recommendations():
            ranked = rank_series(ctx.series, ctx.ownership.state, ctx.resolver, ctx.filters)
            return {
                "series": [recommendation_to_dict(r) for r in ranked],
                "message": None if ranked else no_match_message(ctx.filters),
            }

        @self._app.get("/schedule")
        async def get_schedule():
            cards = build_schedule(ctx.series, ctx.ownership.state, ctx.resolver, ctx.filters)
            return {
                "series": [schedule_to_dict(c) for c in cards],
                "message": None if cards else NO_MATCH_MESSAGE,
            }

        @self._app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await websocket.accept()
            self._connections.add(websocket)
            try:
                while True:
                    # Keep connection alive, ignore incoming messages
                    await websocket.receive_text()
            except WebSocketDisconnect:
                self._connections.discard(websocket)

    async def start(self) -> None:
        """Start the API server."""
        import uvicorn

        config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            log_level="warning",
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve())
        print(f"Season planner started at http://{self._host}:{self._port}")

    def request_exit(self) -> None:
        """Signal the server loop to exit without waiting."""
        if self._server:
            self._server.should_exit = True

    async def stop(self) -> None:
        """Stop the API server."""
        if self._server:
            self._server.should_exit = True
        if self._server_task:
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
        self._connections.clear()

    async def wait_closed(self) -> None:
        """Block until the server exits."""
        if self._server_task:
            await self._server_task

    async def _toggle(self, item: str, kind: ContentKind) -> Dict[str, Any]:
        ownership = self._context.ownership
        changed = ownership.toggle(item, kind)
        if changed:
            await self._broadcast({"type": "ownership", "data": self._ownership_counts()})
        return {
            "item": item,
            "changed": changed,
            "owned": ownership.owns(item, kind),
            "free": ownership.is_free(item, kind),
            **self._ownership_counts(),
        }

    def _ownership_counts(self) -> Dict[str, Any]:
        catalog = self._context.catalog
        ownership = self._context.ownership
        return {
            "cars_owned": len(ownership.owned_cars & catalog.all_cars),
            "cars_total": len(catalog.all_cars),
            "tracks_owned": len(ownership.owned_tracks & catalog.all_tracks),
            "tracks_total": len(catalog.all_tracks),
        }

    def _catalog_payload(self) -> Dict[str, Any]:
        catalog = self._context.catalog
        ownership = self._context.ownership
        cars = content_items(catalog.sorted_cars(), ownership.owned_cars, catalog.free_cars)
        tracks = content_items(catalog.sorted_tracks(), ownership.owned_tracks, catalog.free_tracks)
        counts = self._ownership_counts()
        return {
            "cars": {
                "owned": counts["cars_owned"],
                "total": counts["cars_total"],
                "items": [asdict(item) for item in cars],
            },
            "tracks": {
                "owned": counts["tracks_owned"],
                "total": counts["tracks_total"],
                "items": [asdict(item) for item in tracks],
            },
        }

    def _filters_payload(self) -> Dict[str, Any]:
        filters = self._context.filters
        return {
            # Known values in display order
            "disciplines": [d.value for d in Discipline if d.value in filters.disciplines],
            "license_classes": [c.value for c in LicenseClass if c.value in filters.license_classes],
            "require_owned_car": filters.require_owned_car,
        }

    async def _broadcast(self, data: dict) -> None:
        """Send data to all connected WebSocket clients."""
        if not self._connections:
            return

        message = json.dumps(data)
        dead_connections = set()

        for ws in self._connections:
            try:
                await ws.send_text(message)
            except Exception:
                dead_connections.add(ws)

        # Clean up dead connections
        self._connections -= dead_connections
