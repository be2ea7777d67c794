"""Navigation session state machine.

States:
    AWAITING_START -> ON_SEGMENT -> AWAITING_TRANSITION -> ON_SEGMENT -> ... -> COMPLETED
    ABORTED from any non-terminal state; reset() returns to AWAITING_START from anywhere.

The session performs no I/O, scheduling, or rendering. It must be driven by
one caller at a time: a double advance would silently skip a segment.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from backend.errors import InvalidTransition
from backend.graph import FloorGraph
from backend.multifloor import Route, Segment
from backend.presentation import SegmentKey, SegmentPresentation


class SessionState(str, Enum):
    AWAITING_START = "AWAITING_START"
    ON_SEGMENT = "ON_SEGMENT"
    AWAITING_TRANSITION = "AWAITING_TRANSITION"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.ABORTED})


@dataclass(frozen=True, slots=True)
class Progress:
    segment_index: int
    point_index: int
    total_segments: int


class NavigationSession:
    """Mutable playback driver over an immutable route."""

    def __init__(self, route: Route, floors: Mapping[str, FloorGraph] | None = None) -> None:
        if len(route) == 0:
            raise ValueError("Route must contain at least one segment")
        self.session_id = uuid.uuid4().hex
        self.route = route
        self.floors = floors
        self._state = SessionState.AWAITING_START
        self._segment_index = 0
        self._point_index = 0

    @property
    def state(self) -> SessionState:
        return self._state

    def current_segment(self) -> Segment:
        return self.route[self._segment_index]

    def is_final_segment(self) -> bool:
        return self._segment_index == len(self.route) - 1

    def progress(self) -> Progress:
        return Progress(
            segment_index=self._segment_index,
            point_index=self._point_index,
            total_segments=len(self.route),
        )

    def _require(self, *allowed: SessionState, action: str) -> None:
        if self._state not in allowed:
            raise InvalidTransition(f"Cannot {action} while session is {self._state.value}")

    def _settle_segment_end(self) -> None:
        """Move out of ON_SEGMENT once the last point of the segment is reached."""
        if self._point_index < len(self.current_segment().point_ids) - 1:
            return
        self._state = SessionState.COMPLETED if self.is_final_segment() else SessionState.AWAITING_TRANSITION

    def start(self) -> None:
        self._require(SessionState.AWAITING_START, action="start")
        self._state = SessionState.ON_SEGMENT
        self._settle_segment_end()

    def step(self) -> None:
        """Move one point forward along the current segment."""
        self._require(SessionState.ON_SEGMENT, action="step")
        self._point_index += 1
        self._settle_segment_end()

    def finish_segment(self) -> None:
        """Jump to the last point of the current segment."""
        self._require(SessionState.ON_SEGMENT, action="finish segment")
        self._point_index = len(self.current_segment().point_ids) - 1
        self._settle_segment_end()

    def advance_to_next_segment(self) -> None:
        self._require(SessionState.AWAITING_TRANSITION, action="advance to next segment")
        self._segment_index += 1
        self._point_index = 0
        self._state = SessionState.ON_SEGMENT
        self._settle_segment_end()

    def reset(self) -> None:
        """Discard all progress; equivalent to a freshly built session."""
        self._state = SessionState.AWAITING_START
        self._segment_index = 0
        self._point_index = 0

    def abort(self) -> None:
        if self._state in TERMINAL_STATES:
            raise InvalidTransition(f"Cannot abort while session is {self._state.value}")
        self._state = SessionState.ABORTED

    def active_key(self) -> SegmentKey | None:
        """Cache key of the segment currently presented, if any.

        A completed session keeps presenting its final segment.
        """
        if self._state in (SessionState.AWAITING_START, SessionState.ABORTED):
            return None
        segment = self.current_segment()
        return SegmentKey(
            floor_id=segment.floor_id,
            point_ids=tuple(segment.point_ids),
            is_final=self.is_final_segment(),
        )

    def accepts(self, key: SegmentKey | None) -> bool:
        """True when an asynchronous result keyed by `key` is still current."""
        return key is not None and key == self.active_key()

    def presentation(self) -> SegmentPresentation:
        if self.floors is None:
            raise ValueError("Session was built without floor snapshots")
        segment = self.current_segment()
        return SegmentPresentation(segment, self.floors[segment.floor_id], is_final=self.is_final_segment())
