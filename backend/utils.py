"""Utility helpers shared across backend modules.

Purpose:
- Convert core dataclasses to JSON-safe payloads for the API layer.
"""

from __future__ import annotations

from typing import Any, Iterable

from backend.graph import Point
from backend.multifloor import Route, Segment
from backend.presentation import PathSample, SegmentKey
from backend.session import NavigationSession


def serialize_point(point: Point) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": point.id,
        "name": point.name,
        "kind": point.kind.value,
        "x": float(point.x),
        "y": float(point.y),
    }
    if point.link is not None:
        payload["link"] = {"floor_id": point.link.floor_id, "point_id": point.link.point_id}
    return payload


def serialize_segment(segment: Segment) -> dict[str, Any]:
    return {
        "floor_id": segment.floor_id,
        "point_ids": list(segment.point_ids),
        "distance": float(segment.distance),
    }


def serialize_route(route: Route) -> dict[str, Any]:
    return {
        "segments": [serialize_segment(seg) for seg in route],
        "segment_count": len(route),
        "total_distance": route.total_distance,
    }


def serialize_key(key: SegmentKey | None) -> dict[str, Any] | None:
    if key is None:
        return None
    return {
        "floor_id": key.floor_id,
        "point_ids": list(key.point_ids),
        "is_final": key.is_final,
        "value": str(key),
    }


def to_serializable_samples(samples: Iterable[PathSample]) -> list[dict[str, float]]:
    """Convert path samples to JSON-friendly dictionary objects."""
    return [
        {"x": float(s.x), "y": float(s.y), "cumulative_distance": float(s.cumulative_distance)}
        for s in samples
    ]


def serialize_session(session: NavigationSession) -> dict[str, Any]:
    progress = session.progress()
    return {
        "session_id": session.session_id,
        "state": session.state.value,
        "progress": {
            "segment_index": progress.segment_index,
            "point_index": progress.point_index,
            "total_segments": progress.total_segments,
        },
        "is_final_segment": session.is_final_segment(),
        "current_segment": serialize_segment(session.current_segment()),
        "active_key": serialize_key(session.active_key()),
        "route": serialize_route(session.route),
    }
