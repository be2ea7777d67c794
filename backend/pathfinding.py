"""Dijkstra shortest paths over a single floor graph.

Purpose:
- Compute the minimum-distance route between two points on one floor.
- Keep results reproducible: ties are broken by point insertion order.

Usage example:
    >>> from backend.pathfinding import shortest_path
    >>> result = shortest_path(floor, "lobby", "room-101")
    >>> result.point_ids, result.distance
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Sequence

from backend.errors import NoPath
from backend.graph import FloorGraph


@dataclass(frozen=True, slots=True)
class PathResult:
    """Ordered point ids from start to end plus the summed edge distance."""

    point_ids: tuple[str, ...]
    distance: float


def shortest_path(graph: FloorGraph, start_id: str, end_id: str) -> PathResult:
    """Compute shortest path via Dijkstra.

    Args:
        graph: Floor graph to search.
        start_id: Start point id.
        end_id: End point id.

    Returns:
        PathResult. `start_id == end_id` yields a single-point path of length 0.

    Raises:
        UnknownPoint: If either id is absent from the graph.
        NoPath: If the two points are not connected.
    """
    graph.point(start_id)
    graph.point(end_id)

    if start_id == end_id:
        return PathResult(point_ids=(start_id,), distance=0.0)

    # Heap entries carry insertion order so equal distances pop deterministically.
    open_heap: list[tuple[float, int, str]] = []
    heapq.heappush(open_heap, (0.0, graph.order_of(start_id), start_id))

    came_from: dict[str, str] = {}
    dist: dict[str, float] = {start_id: 0.0}
    closed: set[str] = set()

    while open_heap:
        current_dist, _, current = heapq.heappop(open_heap)

        if current in closed:
            continue

        if current == end_id:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            return PathResult(point_ids=tuple(path), distance=current_dist)

        closed.add(current)

        for neighbor in sorted(graph.neighbors(current), key=graph.order_of):
            if neighbor in closed:
                continue

            tentative = current_dist + graph.distance(current, neighbor)
            if tentative < dist.get(neighbor, float("inf")):
                came_from[neighbor] = current
                dist[neighbor] = tentative
                heapq.heappush(open_heap, (tentative, graph.order_of(neighbor), neighbor))

    raise NoPath(f"No path from '{start_id}' to '{end_id}' on floor '{graph.floor_id}'")


def path_length(graph: FloorGraph, point_ids: Sequence[str]) -> float:
    """Sum consecutive edge distances of an explicit point sequence."""
    total = 0.0
    for a, b in zip(point_ids, point_ids[1:]):
        total += graph.distance(a, b)
    return total
