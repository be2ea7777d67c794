"""Multi-floor route stitching over floor-local graphs.

Floors stay independent graphs; cross-floor reasoning happens here:
- breadth-first search over floors connected by transition links,
- one Dijkstra run per floor from its entry point to its exit point.

Stitch invariant: the last point of segment i and the first point of segment
i+1 are transition points whose links reference each other's floor.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Mapping

from backend.errors import NoPath, NoRouteAcrossFloors, UnknownFloor
from backend.graph import FloorGraph, Point
from backend.pathfinding import PathResult, shortest_path


@dataclass(frozen=True, slots=True)
class Segment:
    """Single-floor simple path, part of a larger route."""

    floor_id: str
    point_ids: tuple[str, ...]
    distance: float

    @property
    def first(self) -> str:
        return self.point_ids[0]

    @property
    def last(self) -> str:
        return self.point_ids[-1]


@dataclass(frozen=True, slots=True)
class Route:
    """Ordered per-floor segments from origin to destination."""

    segments: tuple[Segment, ...]

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]

    @property
    def total_distance(self) -> float:
        return float(sum(seg.distance for seg in self.segments))

    @property
    def floor_ids(self) -> list[str]:
        return [seg.floor_id for seg in self.segments]

    @property
    def start(self) -> tuple[str, str]:
        return self.segments[0].floor_id, self.segments[0].first

    @property
    def end(self) -> tuple[str, str]:
        return self.segments[-1].floor_id, self.segments[-1].last


def _floor_or_raise(floors: Mapping[str, FloorGraph], floor_id: str) -> FloorGraph:
    floor = floors.get(floor_id)
    if floor is None:
        raise UnknownFloor(f"Floor '{floor_id}' does not exist")
    return floor


def _resolves(floors: Mapping[str, FloorGraph], point: Point) -> bool:
    """True when a transition link lands on a transition point of another floor."""
    link = point.link
    if link is None or link.floor_id not in floors:
        return False
    target_floor = floors[link.floor_id]
    if link.point_id not in target_floor:
        return False
    return target_floor.point(link.point_id).is_transition


def _exits_towards(floors: Mapping[str, FloorGraph], floor: FloorGraph, next_floor_id: str) -> list[Point]:
    return [
        p
        for p in floor.transition_points()
        if p.link is not None and p.link.floor_id == next_floor_id and _resolves(floors, p)
    ]


def floor_hops(floors: Mapping[str, FloorGraph], start_floor_id: str, end_floor_id: str) -> list[str]:
    """Fewest-hop floor sequence using unweighted BFS over transition links.

    Returns:
        Floor ids from start to end, inclusive. Empty list if unreachable.
    """
    _floor_or_raise(floors, start_floor_id)
    _floor_or_raise(floors, end_floor_id)
    if start_floor_id == end_floor_id:
        return [start_floor_id]

    q: deque[str] = deque([start_floor_id])
    parent: dict[str, str | None] = {start_floor_id: None}

    while q:
        cur = q.popleft()
        # Links are followed as declared, so one-directional links still count.
        next_floors: list[str] = []
        for point in floors[cur].transition_points():
            if not _resolves(floors, point):
                continue
            target = point.link.floor_id
            if target not in next_floors:
                next_floors.append(target)

        for nxt in next_floors:
            if nxt in parent:
                continue
            parent[nxt] = cur
            if nxt == end_floor_id:
                hops = [end_floor_id]
                while hops[-1] != start_floor_id:
                    p = parent[hops[-1]]
                    if p is None:
                        break
                    hops.append(p)
                hops.reverse()
                return hops
            q.append(nxt)

    return []


def _best_exit(floor: FloorGraph, entry_id: str, candidates: list[Point]) -> tuple[Point, PathResult]:
    """Pick the reachable exit with the lowest segment distance from entry."""
    best: tuple[Point, PathResult] | None = None
    for candidate in candidates:
        try:
            result = shortest_path(floor, entry_id, candidate.id)
        except NoPath:
            continue
        # Candidates arrive in insertion order, so strict < keeps the earliest on ties.
        if best is None or result.distance < best[1].distance:
            best = (candidate, result)

    if best is None:
        names = ", ".join(c.id for c in candidates)
        raise NoPath(f"No transition point ({names}) is reachable from '{entry_id}' on floor '{floor.floor_id}'")
    return best


def compute_route(
    floors: Mapping[str, FloorGraph],
    start_floor_id: str,
    start_point_id: str,
    end_floor_id: str,
    end_point_id: str,
) -> Route:
    """Compute a possibly multi-floor route between two points.

    Args:
        floors: Snapshot mapping floor id -> floor graph. Never mutated.
        start_floor_id: Floor holding the start point.
        start_point_id: Requested start point.
        end_floor_id: Floor holding the destination.
        end_point_id: Requested destination point.

    Returns:
        Route whose first point is the start and last point is the destination.

    Raises:
        UnknownFloor: If a floor id is missing from the snapshot.
        UnknownPoint: If a point id is missing from its floor.
        NoPath: If a floor-local segment is unreachable.
        NoRouteAcrossFloors: If no floor sequence connects the two floors.
    """
    start_floor = _floor_or_raise(floors, start_floor_id)
    end_floor = _floor_or_raise(floors, end_floor_id)
    start_floor.point(start_point_id)
    end_floor.point(end_point_id)

    if start_floor_id == end_floor_id:
        result = shortest_path(start_floor, start_point_id, end_point_id)
        return Route(segments=(Segment(start_floor_id, result.point_ids, result.distance),))

    hops = floor_hops(floors, start_floor_id, end_floor_id)
    if not hops:
        raise NoRouteAcrossFloors(f"No floor sequence connects floor '{start_floor_id}' to floor '{end_floor_id}'")

    segments: list[Segment] = []
    entry_id = start_point_id
    for floor_id, next_floor_id in zip(hops, hops[1:]):
        floor = floors[floor_id]
        exit_point, result = _best_exit(floor, entry_id, _exits_towards(floors, floor, next_floor_id))
        segments.append(Segment(floor_id, result.point_ids, result.distance))
        entry_id = exit_point.link.point_id

    result = shortest_path(end_floor, entry_id, end_point_id)
    segments.append(Segment(end_floor_id, result.point_ids, result.distance))
    return Route(segments=tuple(segments))
