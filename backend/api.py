"""FastAPI routes for multi-floor point-to-point navigation.

Endpoints:
- Map supply (`/maps`, `/maps/{map_id}`, `/maps/validation`)
- Route computation (`/route`)
- Navigation sessions (`/sessions/...`)
- Collaborators: segment narration (`/navigation/summary`) and map
  digitization (`/admin/analyze-map`)
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from backend.digitization import MapDigitizer, candidate_points, decode_upload_image
from backend.errors import (
    InvalidGraph,
    InvalidTransition,
    NavigationError,
    NoPath,
    NoRouteAcrossFloors,
    UnknownPoint,
)
from backend.graph import FloorGraph, Point
from backend.llm import ModelError, ModelRateLimited, client_from_env
from backend.map_store import MapNotFound, MapRepository
from backend.multifloor import compute_route
from backend.narration import NarrationService
from backend.presentation import SegmentKey
from backend.session import TERMINAL_STATES, NavigationSession
from backend.utils import (
    serialize_key,
    serialize_point,
    serialize_route,
    serialize_session,
    to_serializable_samples,
)
from backend.validation import validate_floor_links

DEFAULT_MAPS_DIR = "backend/data/maps"
DEFAULT_MAX_SESSIONS = 500


@dataclass
class NavigationState:
    """In-memory state shared by request handlers."""

    repository: MapRepository | None = None
    sessions: dict[str, NavigationSession] = field(default_factory=dict)
    narration: NarrationService | None = None
    vision_client: Any = None


STATE = NavigationState()


class RouteRequest(BaseModel):
    """Start and end selection, each a (map id, node id) pair."""

    start_map_id: str = Field(..., min_length=1)
    start_node_id: str = Field(..., min_length=1)
    end_map_id: str = Field(..., min_length=1)
    end_node_id: str = Field(..., min_length=1)


class SummaryNode(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    type: str = "ROOM"
    x: float = 0.0
    y: float = 0.0


class SummaryRequest(BaseModel):
    """Request payload for segment narration."""

    nodes: list[SummaryNode]
    is_last_map: bool = False
    map_id: str = Field(..., min_length=1)


def _repository() -> MapRepository:
    """Get the map repository, loading it from disk on first use."""
    if STATE.repository is None:
        STATE.repository = MapRepository.from_directory(os.getenv("FLOORGUIDE_MAPS_DIR", DEFAULT_MAPS_DIR))
    return STATE.repository


def _narration() -> NarrationService:
    if STATE.narration is None:
        STATE.narration = NarrationService(client_from_env("GEMINI_SUMMARY_MODEL"))
    return STATE.narration


def _snapshot() -> dict[str, FloorGraph]:
    try:
        return _repository().snapshot()
    except InvalidGraph as exc:
        raise HTTPException(status_code=422, detail=f"Invalid map data: {exc}") from exc


def _store_session(session: NavigationSession) -> None:
    """Register a session, evicting the oldest ones beyond the configured cap."""
    limit = max(1, int(os.getenv("FLOORGUIDE_MAX_SESSIONS", str(DEFAULT_MAX_SESSIONS))))
    while len(STATE.sessions) >= limit:
        oldest = next(iter(STATE.sessions))
        del STATE.sessions[oldest]
    STATE.sessions[session.session_id] = session


def _session_or_404(session_id: str) -> NavigationSession:
    session = STATE.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' was not found")
    return session


def _navigation_http_error(exc: NavigationError) -> HTTPException:
    """Map typed routing/session failures to HTTP status codes."""
    if isinstance(exc, UnknownPoint):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (NoPath, NoRouteAcrossFloors)):
        return HTTPException(status_code=404, detail=f"No navigable route found: {exc}")
    if isinstance(exc, InvalidGraph):
        return HTTPException(status_code=422, detail=f"Invalid map data: {exc}")
    if isinstance(exc, InvalidTransition):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _route_from_request(payload: RouteRequest, floors: dict[str, FloorGraph]):
    try:
        return compute_route(
            floors,
            payload.start_map_id,
            payload.start_node_id,
            payload.end_map_id,
            payload.end_node_id,
        )
    except NavigationError as exc:
        raise _navigation_http_error(exc) from exc


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="FloorGuide API", version="1.0.0")

    raw_origins = os.getenv("FLOORGUIDE_CORS_ORIGINS", "*").strip()
    if raw_origins == "*":
        cors_origins = ["*"]
        allow_credentials = False
    else:
        cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health endpoint with runtime capability metadata."""
        return {
            "status": "ok",
            "version": app.version,
            "narration_configured": bool(os.getenv("GEMINI_API_KEY", "").strip()) or STATE.narration is not None,
            "map_count": len(STATE.repository) if STATE.repository is not None else None,
            "active_sessions": len(STATE.sessions),
        }

    @app.get("/maps")
    async def list_maps() -> dict[str, Any]:
        """Return summaries of all known map documents."""
        return {"maps": _repository().list_maps()}

    @app.get("/maps/validation")
    async def maps_validation() -> dict[str, Any]:
        """Return transition-link quality report over all maps."""
        return validate_floor_links(_snapshot())

    @app.get("/maps/{map_id}")
    async def get_map(map_id: str) -> dict[str, Any]:
        """Return the full map document (application id first, storage id fallback)."""
        try:
            return {"success": True, "data": _repository().get(map_id)}
        except MapNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.args[0]) from exc

    @app.post("/route")
    async def route(payload: RouteRequest) -> dict[str, Any]:
        """Compute a possibly multi-floor route without opening a session."""
        route = _route_from_request(payload, _snapshot())
        return serialize_route(route)

    @app.post("/sessions")
    async def create_session(payload: RouteRequest) -> dict[str, Any]:
        """Compute a route and open a navigation session over it."""
        floors = _snapshot()
        session = NavigationSession(_route_from_request(payload, floors), floors=floors)
        _store_session(session)
        return serialize_session(session)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> dict[str, Any]:
        return serialize_session(_session_or_404(session_id))

    @app.delete("/sessions/{session_id}")
    async def delete_session(session_id: str) -> dict[str, Any]:
        _session_or_404(session_id)
        del STATE.sessions[session_id]
        return {"success": True, "session_id": session_id}

    def _session_action(session_id: str, action: str) -> dict[str, Any]:
        session = _session_or_404(session_id)
        operations = {
            "start": session.start,
            "step": session.step,
            "finish-segment": session.finish_segment,
            "advance": session.advance_to_next_segment,
            "reset": session.reset,
            "abort": session.abort,
        }
        try:
            operations[action]()
        except NavigationError as exc:
            raise _navigation_http_error(exc) from exc

        payload = serialize_session(session)
        # Aborted and completed sessions are released; their last state is still returned.
        if session.state in TERMINAL_STATES:
            STATE.sessions.pop(session_id, None)
        return payload

    @app.post("/sessions/{session_id}/start")
    async def start_session(session_id: str) -> dict[str, Any]:
        return _session_action(session_id, "start")

    @app.post("/sessions/{session_id}/step")
    async def step_session(session_id: str) -> dict[str, Any]:
        return _session_action(session_id, "step")

    @app.post("/sessions/{session_id}/finish-segment")
    async def finish_segment(session_id: str) -> dict[str, Any]:
        return _session_action(session_id, "finish-segment")

    @app.post("/sessions/{session_id}/advance")
    async def advance_session(session_id: str) -> dict[str, Any]:
        """Confirm a floor transition and load the next segment."""
        return _session_action(session_id, "advance")

    @app.post("/sessions/{session_id}/reset")
    async def reset_session(session_id: str) -> dict[str, Any]:
        return _session_action(session_id, "reset")

    @app.post("/sessions/{session_id}/abort")
    async def abort_session(session_id: str) -> dict[str, Any]:
        return _session_action(session_id, "abort")

    @app.get("/sessions/{session_id}/segment")
    async def session_segment(session_id: str, speed: float = 1.0) -> dict[str, Any]:
        """Return the active segment's presentation payload for rendering."""
        session = _session_or_404(session_id)
        if speed <= 0:
            raise HTTPException(status_code=400, detail="speed must be > 0")

        presentation = session.presentation()
        timeline = list(presentation.timeline(speed))
        return {
            "floor_id": presentation.segment.floor_id,
            "floor_name": presentation.floor.name,
            "image_url": presentation.floor.image_ref,
            "is_final_segment": presentation.is_final,
            "cache_key": serialize_key(presentation.cache_key),
            "points": [serialize_point(p) for p in presentation.points()],
            "samples": to_serializable_samples(sample for sample, _ in timeline),
            "arrival_times_s": [t for _, t in timeline],
            "hop_distances": [float(d) for d in presentation.hop_distances()],
        }

    @app.get("/sessions/{session_id}/summary")
    async def session_summary(session_id: str) -> dict[str, Any]:
        """Narrate the active segment; results for a superseded segment are dropped."""
        session = _session_or_404(session_id)
        key = session.active_key()
        if key is None:
            raise HTTPException(status_code=409, detail="No active segment to narrate")

        narrator = _narration()
        summary = await asyncio.to_thread(narrator.summarize, session.presentation())

        if not session.accepts(key):
            return {"success": False, "stale": True, "summary": None, "cache_key": serialize_key(key)}
        return {"success": summary is not None, "stale": False, "summary": summary, "cache_key": serialize_key(key)}

    @app.post("/navigation/summary")
    async def navigation_summary(payload: SummaryRequest) -> dict[str, Any]:
        """Summarize an explicit list of path nodes for one map."""
        if len(payload.nodes) < 2:
            raise HTTPException(status_code=400, detail="Invalid path nodes provided")

        narrator = _narration()
        if narrator.client is None:
            raise HTTPException(status_code=503, detail="GEMINI_API_KEY is not set")

        try:
            points = [
                Point(id=node.id, name=node.name, x=node.x, y=node.y, category=node.type.upper())
                for node in payload.nodes
            ]
        except NavigationError as exc:
            raise _navigation_http_error(exc) from exc
        key = SegmentKey(
            floor_id=payload.map_id,
            point_ids=tuple(node.id for node in payload.nodes),
            is_final=payload.is_last_map,
        )
        summary = await asyncio.to_thread(narrator.summarize_points, key, points, payload.is_last_map)
        if summary is None:
            raise HTTPException(status_code=502, detail="Failed to generate summary")
        return {"success": True, "summary": summary}

    @app.post("/admin/analyze-map")
    async def analyze_map(file: UploadFile = File(...)) -> dict[str, Any]:
        """Detect labelled points on an uploaded floor plan (0-100 coordinates)."""
        if not file.filename:
            raise HTTPException(status_code=400, detail="No file name provided")

        client = STATE.vision_client or client_from_env()
        if client is None:
            raise HTTPException(status_code=503, detail="GEMINI_API_KEY is not set")

        try:
            image = decode_upload_image(await file.read())
            labels = await asyncio.to_thread(MapDigitizer(client).detect, image)
        except ModelRateLimited as exc:
            raise HTTPException(status_code=429, detail=str(exc)) from exc
        except ModelError as exc:
            raise HTTPException(status_code=502, detail=f"Failed to analyze map: {exc}") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Map analysis failed: {exc}") from exc
        except Exception as exc:  # pragma: no cover - safety net
            raise HTTPException(status_code=500, detail=f"Unexpected analysis error: {exc}") from exc

        return {
            "success": True,
            "data": [{"label": det.label, "x": det.x, "y": det.y} for det in labels],
            "candidate_points": [serialize_point(p) for p in candidate_points(labels)],
        }

    return app
