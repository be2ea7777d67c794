"""Read-only map document supply.

Map documents are addressed by their application-level `id` field; when no
document carries that id, lookup falls back to the storage identifier (the
file stem for documents loaded from disk).

Document shape:
    {
      "id": "floor-1",
      "name": "Ground floor",
      "imageUrl": "/maps/floor-1.png",
      "nodes": [
        {"id": "lobby", "name": "Lobby", "type": "ROOM", "x": 10, "y": 20},
        {"id": "lift-1", "name": "Lift", "type": "GATEWAY", "x": 50, "y": 50,
         "targetMapId": "floor-2", "targetNodeId": "lift-2"}
      ],
      "adjacencyList": {"lobby": ["lift-1"]}
    }
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from backend.errors import InvalidGraph
from backend.graph import FloorGraph, Point, PointKind, PointLink

logger = logging.getLogger(__name__)

TRANSITION_NODE_TYPES = frozenset({"GATEWAY"})


class MapNotFound(KeyError):
    """No map document matches the requested id."""


def image_storage_type(image_url: str | None) -> str:
    """Classify an image reference as `database`, `local`, or `external`."""
    url = image_url or ""
    if url.startswith("/api/images/"):
        return "database"
    if url.startswith("/maps/"):
        return "local"
    return "external"


def _point_from_node(node: dict[str, Any]) -> Point:
    if not isinstance(node, dict) or "id" not in node:
        raise InvalidGraph("Every node must be an object with an 'id'")

    node_type = str(node.get("type", "ROOM")).upper()
    link: PointLink | None = None
    kind = PointKind.ORDINARY
    if node_type in TRANSITION_NODE_TYPES:
        kind = PointKind.TRANSITION
        target_map = node.get("targetMapId")
        target_node = node.get("targetNodeId")
        if target_map and target_node:
            link = PointLink(floor_id=str(target_map), point_id=str(target_node))

    try:
        x = float(node.get("x", 0.0))
        y = float(node.get("y", 0.0))
    except (TypeError, ValueError) as exc:
        raise InvalidGraph(f"Node '{node['id']}' has a non-numeric position") from exc

    return Point(
        id=str(node["id"]),
        name=str(node.get("name") or node["id"]),
        kind=kind,
        x=x,
        y=y,
        link=link,
        category=node_type,
    )


def floor_from_document(document: dict[str, Any]) -> FloorGraph:
    """Build an immutable floor graph snapshot from a map document."""
    if "id" not in document:
        raise InvalidGraph("Map document has no 'id'")

    points = [_point_from_node(node) for node in document.get("nodes", [])]
    raw_adjacency = document.get("adjacencyList") or {}
    if not isinstance(raw_adjacency, dict):
        raise InvalidGraph("adjacencyList must be an object")

    adjacency = {str(k): [str(v) for v in (vals or [])] for k, vals in raw_adjacency.items()}
    return FloorGraph(
        floor_id=str(document["id"]),
        name=str(document.get("name") or document["id"]),
        points=points,
        adjacency=adjacency,
        image_ref=document.get("imageUrl"),
    )


@dataclass(slots=True)
class StoredMap:
    storage_id: str
    document: dict[str, Any]

    @property
    def map_id(self) -> str:
        return str(self.document.get("id") or self.storage_id)


class MapRepository:
    """In-memory map document collection."""

    def __init__(self) -> None:
        self._maps: list[StoredMap] = []

    def __len__(self) -> int:
        return len(self._maps)

    def add(self, document: dict[str, Any], storage_id: str | None = None) -> StoredMap:
        stored = StoredMap(storage_id=storage_id or uuid.uuid4().hex, document=dict(document))
        self._maps.append(stored)
        return stored

    def find(self, map_id: str) -> StoredMap:
        """Locate a map by application id, then by storage id."""
        for stored in self._maps:
            if str(stored.document.get("id", "")) == map_id:
                return stored
        for stored in self._maps:
            if stored.storage_id == map_id:
                return stored
        raise MapNotFound(f"Map '{map_id}' not found")

    def get(self, map_id: str) -> dict[str, Any]:
        """Return a document copy whose `id` falls back to the storage id."""
        stored = self.find(map_id)
        return {**stored.document, "id": stored.map_id}

    def list_maps(self) -> list[dict[str, Any]]:
        summaries: list[dict[str, Any]] = []
        for stored in self._maps:
            doc = stored.document
            summaries.append(
                {
                    "id": stored.map_id,
                    "name": doc.get("name") or stored.map_id,
                    "image_url": doc.get("imageUrl"),
                    "image_storage": image_storage_type(doc.get("imageUrl")),
                    "node_count": len(doc.get("nodes", [])),
                }
            )
        return summaries

    def snapshot(self) -> dict[str, FloorGraph]:
        """Immutable floor graphs keyed by map id, in insertion order."""
        floors: dict[str, FloorGraph] = {}
        for stored in self._maps:
            floor = floor_from_document({**stored.document, "id": stored.map_id})
            if floor.floor_id in floors:
                raise InvalidGraph(f"Duplicate map id '{floor.floor_id}'")
            floors[floor.floor_id] = floor
        return floors

    @classmethod
    def from_directory(cls, directory: str | Path) -> "MapRepository":
        """Load every `*.json` document in a directory (sorted by file name)."""
        repo = cls()
        base = Path(directory)
        if not base.exists():
            logger.warning("Map directory %s does not exist, starting empty", base)
            return repo

        for path in sorted(base.glob("*.json")):
            try:
                document = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Map document {path.name} is not valid JSON") from exc
            if not isinstance(document, dict):
                raise ValueError(f"Map document {path.name} must be a JSON object")
            repo.add(document, storage_id=path.stem)
        return repo
