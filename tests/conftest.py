"""Pytest global fixtures and test isolation hooks."""

from __future__ import annotations

import pytest

from backend.api import STATE
from backend.graph import FloorGraph, Point, PointKind, PointLink
from backend.map_store import MapRepository


@pytest.fixture(autouse=True)
def reset_navigation_state() -> None:
    """Reset in-memory API state before each test."""
    STATE.repository = None
    STATE.sessions = {}
    STATE.narration = None
    STATE.vision_client = None


@pytest.fixture()
def two_floors() -> dict[str, FloorGraph]:
    """Floor A (P1 -> P2 transition) joined to floor B (Q1 transition -> Q2)."""
    floor_a = FloorGraph(
        "A",
        "Floor A",
        [
            Point("P1", "P1", x=0, y=0),
            Point("P2", "P2", PointKind.TRANSITION, x=10, y=0, link=PointLink("B", "Q1")),
        ],
        {"P1": ["P2"]},
    )
    floor_b = FloorGraph(
        "B",
        "Floor B",
        [
            Point("Q1", "Q1", PointKind.TRANSITION, x=0, y=0, link=PointLink("A", "P2")),
            Point("Q2", "Q2", x=20, y=0),
        ],
        {"Q1": ["Q2"]},
    )
    return {"A": floor_a, "B": floor_b}


@pytest.fixture()
def two_floor_repository() -> MapRepository:
    """Map documents equivalent to `two_floors`, installed as the API repository."""
    repo = MapRepository()
    repo.add(
        {
            "id": "A",
            "name": "Floor A",
            "imageUrl": "/maps/a.png",
            "nodes": [
                {"id": "P1", "name": "Lobby", "type": "ROOM", "x": 0, "y": 0},
                {"id": "P2", "name": "Stairs", "type": "GATEWAY", "x": 10, "y": 0, "targetMapId": "B", "targetNodeId": "Q1"},
            ],
            "adjacencyList": {"P1": ["P2"]},
        },
        storage_id="storage-a",
    )
    repo.add(
        {
            "id": "B",
            "name": "Floor B",
            "imageUrl": "/api/images/b",
            "nodes": [
                {"id": "Q1", "name": "Stairs", "type": "GATEWAY", "x": 0, "y": 0, "targetMapId": "A", "targetNodeId": "P2"},
                {"id": "Q2", "name": "Library", "type": "ROOM", "x": 20, "y": 0},
            ],
            "adjacencyList": {"Q1": ["Q2"]},
        },
        storage_id="storage-b",
    )
    STATE.repository = repo
    return repo
