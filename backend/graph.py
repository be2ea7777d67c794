"""Floor-local point graph.

Purpose:
- Hold one floor's points of interest and their connections.
- Answer local graph queries (neighbours, direct edge distance).

Positions live in a normalized 0-100 coordinate space, so edge weights are the
Euclidean distance between endpoints and always match the visual layout.

Usage example:
    >>> from backend.graph import FloorGraph, Point
    >>> floor = FloorGraph("A", "Ground", [Point("x", "X", x=0, y=0), Point("y", "Y", x=3, y=4)], {"x": ["y"]})
    >>> floor.distance("x", "y")
    5.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from backend.errors import InvalidGraph, UnknownPoint


class PointKind(str, Enum):
    ORDINARY = "ORDINARY"
    TRANSITION = "TRANSITION"


@dataclass(frozen=True, slots=True)
class PointLink:
    """Target of a transition point on another floor."""

    floor_id: str
    point_id: str


@dataclass(frozen=True, slots=True)
class Point:
    """Named, positioned location on one floor."""

    id: str
    name: str
    kind: PointKind = PointKind.ORDINARY
    x: float = 0.0
    y: float = 0.0
    link: PointLink | None = None
    category: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidGraph("Point id must be a non-empty string")
        if self.kind is PointKind.TRANSITION and self.link is None:
            raise InvalidGraph(f"Transition point '{self.id}' has no link")
        if self.kind is PointKind.ORDINARY and self.link is not None:
            raise InvalidGraph(f"Ordinary point '{self.id}' cannot carry a link")

    @property
    def position(self) -> tuple[float, float]:
        return float(self.x), float(self.y)

    @property
    def is_transition(self) -> bool:
        return self.kind is PointKind.TRANSITION


def euclidean(a: Point, b: Point) -> float:
    """Straight-line distance between two points in the 0-100 space."""
    return math.hypot(float(a.x) - float(b.x), float(a.y) - float(b.y))


class FloorGraph:
    """Immutable snapshot of one floor's points and connections.

    Args:
        floor_id: Floor identity, unique across a snapshot.
        name: Display name.
        points: Points in display order. The order doubles as the stable
            tie-break order used by the pathfinder.
        adjacency: Mapping point id -> connected point ids. Connections are
            unordered, so listing a pair once is enough.
        image_ref: Opaque image reference owned by the map store.

    Raises:
        InvalidGraph: On duplicate ids, connections naming missing points,
            self connections, or transition links into the same floor.
    """

    __slots__ = ("floor_id", "name", "image_ref", "_points", "_order", "_adjacency")

    def __init__(
        self,
        floor_id: str,
        name: str,
        points: Iterable[Point],
        adjacency: Mapping[str, Iterable[str]] | None = None,
        image_ref: str | None = None,
    ) -> None:
        self.floor_id = str(floor_id)
        self.name = str(name)
        self.image_ref = image_ref

        by_id: dict[str, Point] = {}
        order: dict[str, int] = {}
        for point in points:
            if point.id in by_id:
                raise InvalidGraph(f"Duplicate point id '{point.id}' on floor '{self.floor_id}'")
            if point.link is not None and point.link.floor_id == self.floor_id:
                raise InvalidGraph(
                    f"Transition point '{point.id}' links into its own floor '{self.floor_id}'"
                )
            order[point.id] = len(order)
            by_id[point.id] = point

        neighbors: dict[str, set[str]] = {pid: set() for pid in by_id}
        for source, targets in (adjacency or {}).items():
            if source not in by_id:
                raise InvalidGraph(f"Connection references missing point '{source}' on floor '{self.floor_id}'")
            for target in targets:
                if target not in by_id:
                    raise InvalidGraph(
                        f"Connection references missing point '{target}' on floor '{self.floor_id}'"
                    )
                if target == source:
                    raise InvalidGraph(f"Point '{source}' is connected to itself")
                neighbors[source].add(target)
                neighbors[target].add(source)

        self._points: Mapping[str, Point] = MappingProxyType(by_id)
        self._order: Mapping[str, int] = MappingProxyType(order)
        self._adjacency: Mapping[str, frozenset[str]] = MappingProxyType(
            {pid: frozenset(nbrs) for pid, nbrs in neighbors.items()}
        )

    def __repr__(self) -> str:
        return f"FloorGraph(floor_id={self.floor_id!r}, points={len(self._points)})"

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._points

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> tuple[Point, ...]:
        return tuple(self._points.values())

    @property
    def adjacency(self) -> Mapping[str, frozenset[str]]:
        return self._adjacency

    def point(self, point_id: str) -> Point:
        try:
            return self._points[point_id]
        except KeyError:
            raise UnknownPoint(f"Point '{point_id}' does not exist on floor '{self.floor_id}'") from None

    def order_of(self, point_id: str) -> int:
        """Insertion index of a point, used for deterministic tie-breaking."""
        self.point(point_id)
        return self._order[point_id]

    def neighbors(self, point_id: str) -> frozenset[str]:
        self.point(point_id)
        return self._adjacency[point_id]

    def distance(self, a: str, b: str) -> float:
        """Edge weight between two directly connected points."""
        point_a = self.point(a)
        point_b = self.point(b)
        if b not in self._adjacency[a]:
            raise ValueError(f"Points '{a}' and '{b}' are not directly connected")
        return euclidean(point_a, point_b)

    def transition_points(self) -> list[Point]:
        return [p for p in self._points.values() if p.is_transition]

    def edges(self) -> Iterator[tuple[str, str]]:
        """Yield each unordered connection once, in point insertion order."""
        for pid in self._points:
            for other in sorted(self._adjacency[pid], key=self._order.__getitem__):
                if self._order[pid] < self._order[other]:
                    yield pid, other
