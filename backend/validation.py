"""Transition-link quality checks over a floor snapshot."""

from __future__ import annotations

from typing import Any, Mapping

from backend.graph import FloorGraph


def _issue(kind: str, severity: str, floor_id: str, point_id: str, message: str) -> dict[str, Any]:
    return {
        "kind": kind,
        "severity": severity,
        "floor": floor_id,
        "point_id": point_id,
        "message": message,
    }


def validate_floor_links(floors: Mapping[str, FloorGraph]) -> dict[str, Any]:
    """Report dangling, mistyped, and one-directional transition links.

    Routing tolerates every issue reported here (broken links are simply not
    followed), so the report is advisory for map editors.
    """
    issues: list[dict[str, Any]] = []
    transition_count = 0

    for floor_id, floor in floors.items():
        for point in floor.points:
            if not floor.neighbors(point.id) and len(floor) > 1:
                issues.append(
                    _issue("isolated_point", "warning", floor_id, point.id, "Point has no connections on its floor")
                )

            if point.link is None:
                continue
            transition_count += 1
            link = point.link

            target_floor = floors.get(link.floor_id)
            if target_floor is None or link.point_id not in target_floor:
                issues.append(
                    _issue(
                        "dangling_link",
                        "error",
                        floor_id,
                        point.id,
                        f"Link target {link.floor_id}/{link.point_id} does not exist",
                    )
                )
                continue

            target = target_floor.point(link.point_id)
            if not target.is_transition:
                issues.append(
                    _issue(
                        "link_to_ordinary",
                        "error",
                        floor_id,
                        point.id,
                        f"Link target {link.floor_id}/{link.point_id} is not a transition point",
                    )
                )
                continue

            back = target.link
            if back is None or back.floor_id != floor_id or back.point_id != point.id:
                issues.append(
                    _issue(
                        "asymmetric_link",
                        "warning",
                        floor_id,
                        point.id,
                        f"Link target {link.floor_id}/{link.point_id} does not link back",
                    )
                )

    errors = sum(1 for issue in issues if issue["severity"] == "error")
    warnings = sum(1 for issue in issues if issue["severity"] == "warning")

    return {
        "ok": errors == 0,
        "summary": {
            "errors": errors,
            "warnings": warnings,
            "floors": len(floors),
            "transition_points": transition_count,
        },
        "issues": issues,
    }
