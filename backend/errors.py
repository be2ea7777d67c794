"""Typed failures raised by the routing core and navigation session.

All of them are deterministic, locally detectable conditions. They derive from
`ValueError` so callers that only care about "bad query" can keep catching that.
"""

from __future__ import annotations


class NavigationError(ValueError):
    """Base class for routing and session failures."""


class UnknownPoint(NavigationError):
    """A point id is not present on the floor it was looked up on."""


class UnknownFloor(UnknownPoint):
    """A floor id is not present in the supplied snapshot."""


class InvalidGraph(NavigationError):
    """A floor graph violates a structural invariant."""


class NoPath(NavigationError):
    """Two points on one floor are not connected."""


class NoRouteAcrossFloors(NavigationError):
    """No sequence of floor hops connects the start and end floors."""


class InvalidTransition(NavigationError):
    """A session operation is not allowed in the session's current state."""
