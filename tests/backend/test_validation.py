"""Unit tests for backend.validation."""

from __future__ import annotations

from backend.graph import FloorGraph, Point, PointKind, PointLink
from backend.validation import validate_floor_links


def _transition(pid: str, floor_id: str, target: str, x: float = 0) -> Point:
    return Point(pid, pid, PointKind.TRANSITION, x=x, link=PointLink(floor_id, target))


def _kinds(report: dict) -> list[tuple[str, str, str]]:
    return [(i["kind"], i["floor"], i["point_id"]) for i in report["issues"]]


def test_consistent_floors_pass(two_floors: dict[str, FloorGraph]) -> None:
    report = validate_floor_links(two_floors)

    assert report["ok"] is True
    assert report["issues"] == []
    assert report["summary"] == {"errors": 0, "warnings": 0, "floors": 2, "transition_points": 2}


def test_dangling_and_ordinary_targets_are_errors() -> None:
    floors = {
        "A": FloorGraph(
            "A",
            "A",
            [_transition("ghost", "Z", "z"), _transition("to-room", "B", "room", x=1)],
            {"ghost": ["to-room"]},
        ),
        "B": FloorGraph("B", "B", [Point("room", "Room")]),
    }

    report = validate_floor_links(floors)

    assert report["ok"] is False
    assert _kinds(report) == [("dangling_link", "A", "ghost"), ("link_to_ordinary", "A", "to-room")]
    assert report["summary"]["errors"] == 2


def test_one_directional_link_is_a_warning() -> None:
    floors = {
        "A": FloorGraph("A", "A", [_transition("down", "B", "land")]),
        "B": FloorGraph("B", "B", [_transition("land", "C", "c")]),
        "C": FloorGraph("C", "C", [_transition("c", "B", "land")]),
    }

    report = validate_floor_links(floors)

    assert ("asymmetric_link", "A", "down") in _kinds(report)
    assert report["ok"] is True


def test_isolated_points_are_reported_on_multi_point_floors() -> None:
    floors = {
        "A": FloorGraph("A", "A", [Point("a", "A"), Point("b", "B", x=1), Point("lonely", "L", x=2)], {"a": ["b"]}),
        "S": FloorGraph("S", "Single", [Point("only", "Only")]),
    }

    report = validate_floor_links(floors)

    assert _kinds(report) == [("isolated_point", "A", "lonely")]
    assert report["summary"]["warnings"] == 1
