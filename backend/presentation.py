"""Segment presentation adapter for renderers and narrators.

Translates a route segment into:
- ordered (x, y, cumulative distance) samples for path animation,
- a stable cache key used to memoize and to discard stale narration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping, NamedTuple

import numpy as np

from backend.graph import FloorGraph, Point
from backend.multifloor import Route, Segment


class SegmentKey(NamedTuple):
    """Cache key `(floor_id, point ids, is_final)`.

    Point ids are kept as a tuple; ids may themselves contain hyphens, so the
    joined form is for display only.
    """

    floor_id: str
    point_ids: tuple[str, ...]
    is_final: bool

    def __str__(self) -> str:
        return f"{self.floor_id}_{'-'.join(self.point_ids)}_{'final' if self.is_final else 'intermediate'}"


@dataclass(frozen=True, slots=True)
class PathSample:
    x: float
    y: float
    cumulative_distance: float


class SegmentPresentation:
    """Restartable view over one segment's geometry.

    Every call to `iter()` starts again from the first point, so the same
    segment can be replayed without rebuilding the presentation.
    """

    def __init__(self, segment: Segment, floor: FloorGraph, is_final: bool) -> None:
        if segment.floor_id != floor.floor_id:
            raise ValueError(f"Segment floor '{segment.floor_id}' does not match floor '{floor.floor_id}'")
        self.segment = segment
        self.floor = floor
        self.is_final = bool(is_final)
        self._points = tuple(floor.point(pid) for pid in segment.point_ids)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PathSample]:
        cumulative = 0.0
        previous: Point | None = None
        for point in self._points:
            if previous is not None:
                cumulative += float(np.hypot(point.x - previous.x, point.y - previous.y))
            yield PathSample(x=float(point.x), y=float(point.y), cumulative_distance=cumulative)
            previous = point

    @property
    def cache_key(self) -> SegmentKey:
        return SegmentKey(
            floor_id=self.segment.floor_id,
            point_ids=tuple(self.segment.point_ids),
            is_final=self.is_final,
        )

    def points(self) -> tuple[Point, ...]:
        return self._points

    def coordinates(self) -> np.ndarray:
        """`(N, 2)` array of point positions."""
        return np.array([p.position for p in self._points], dtype=float).reshape(-1, 2)

    def hop_distances(self) -> np.ndarray:
        """Distance of each consecutive hop, length `N - 1`."""
        coords = self.coordinates()
        if len(coords) < 2:
            return np.zeros(0, dtype=float)
        deltas = np.diff(coords, axis=0)
        return np.hypot(deltas[:, 0], deltas[:, 1])

    def timeline(self, speed: float = 1.0) -> Iterator[tuple[PathSample, float]]:
        """Yield each sample with its arrival time at constant `speed` units/s."""
        if speed <= 0:
            raise ValueError("speed must be > 0")
        for sample in self:
            yield sample, sample.cumulative_distance / speed


def present_route(route: Route, floors: Mapping[str, FloorGraph]) -> list[SegmentPresentation]:
    """Build one presentation per segment, flagging the final one."""
    last = len(route) - 1
    return [
        SegmentPresentation(segment, floors[segment.floor_id], is_final=idx == last)
        for idx, segment in enumerate(route)
    ]
