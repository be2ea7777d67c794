"""Unit tests for backend.session."""

from __future__ import annotations

import pytest

from backend.errors import InvalidTransition
from backend.graph import FloorGraph
from backend.multifloor import Route, Segment, compute_route
from backend.session import NavigationSession, SessionState


def _route(segment_count: int) -> Route:
    return Route(
        segments=tuple(
            Segment(f"F{i}", (f"in{i}", f"mid{i}", f"out{i}"), 2.0) for i in range(segment_count)
        )
    )


def _snapshot(session: NavigationSession) -> tuple:
    return session.state, session.progress(), session.current_segment(), session.active_key()


def test_fresh_session_awaits_start() -> None:
    session = NavigationSession(_route(2))

    assert session.state is SessionState.AWAITING_START
    assert session.progress().segment_index == 0
    assert session.progress().point_index == 0
    assert session.progress().total_segments == 2
    assert session.active_key() is None


def test_step_through_segment_reaches_transition() -> None:
    session = NavigationSession(_route(2))
    session.start()
    assert session.state is SessionState.ON_SEGMENT

    session.step()
    assert session.state is SessionState.ON_SEGMENT
    assert session.progress().point_index == 1

    session.step()
    assert session.state is SessionState.AWAITING_TRANSITION
    assert session.progress().point_index == 2


@pytest.mark.parametrize("segment_count", [1, 2, 3, 5])
def test_completes_after_n_minus_one_advances(segment_count: int) -> None:
    session = NavigationSession(_route(segment_count))
    session.start()

    advances = 0
    while session.state is not SessionState.COMPLETED:
        session.finish_segment()
        if session.state is SessionState.AWAITING_TRANSITION:
            session.advance_to_next_segment()
            advances += 1

    assert advances == segment_count - 1
    assert session.is_final_segment()


def test_advance_while_on_segment_is_invalid() -> None:
    session = NavigationSession(_route(2))
    session.start()

    with pytest.raises(InvalidTransition):
        session.advance_to_next_segment()


def test_advance_resets_point_index() -> None:
    session = NavigationSession(_route(2))
    session.start()
    session.finish_segment()
    session.advance_to_next_segment()

    assert session.state is SessionState.ON_SEGMENT
    assert session.progress().segment_index == 1
    assert session.progress().point_index == 0
    assert session.current_segment().floor_id == "F1"


def test_single_point_segment_ends_immediately() -> None:
    route = Route(segments=(Segment("A", ("x", "t"), 1.0), Segment("B", ("t2",), 0.0)))
    session = NavigationSession(route)
    session.start()
    session.finish_segment()
    session.advance_to_next_segment()

    assert session.state is SessionState.COMPLETED


@pytest.mark.parametrize("moves", [0, 1, 2, 3, 4])
def test_reset_matches_fresh_session(moves: int) -> None:
    fresh = NavigationSession(_route(2))
    session = NavigationSession(_route(2))
    actions = [session.start, session.finish_segment, session.advance_to_next_segment, session.step]
    for action in actions[:moves]:
        action()

    session.reset()
    assert _snapshot(session) == _snapshot(fresh)


def test_reset_from_aborted_and_completed() -> None:
    fresh = NavigationSession(_route(1))
    session = NavigationSession(_route(1))
    session.abort()
    session.reset()
    assert _snapshot(session) == _snapshot(fresh)

    session.start()
    session.finish_segment()
    assert session.state is SessionState.COMPLETED
    session.reset()
    assert _snapshot(session) == _snapshot(fresh)


def test_abort_only_from_non_terminal_states() -> None:
    session = NavigationSession(_route(1))
    session.start()
    session.abort()
    assert session.state is SessionState.ABORTED

    with pytest.raises(InvalidTransition):
        session.abort()
    with pytest.raises(InvalidTransition):
        session.start()


def test_active_key_follows_current_segment(two_floors: dict[str, FloorGraph]) -> None:
    session = NavigationSession(compute_route(two_floors, "A", "P1", "B", "Q2"), floors=two_floors)
    session.start()
    first_key = session.active_key()
    assert first_key == ("A", ("P1", "P2"), False)
    assert session.accepts(first_key)

    session.finish_segment()
    session.advance_to_next_segment()
    assert not session.accepts(first_key)
    assert session.active_key() == ("B", ("Q1", "Q2"), True)
    assert session.presentation().cache_key == session.active_key()

    session.reset()
    assert not session.accepts(first_key)


def test_empty_route_is_rejected() -> None:
    with pytest.raises(ValueError):
        NavigationSession(Route(segments=()))
