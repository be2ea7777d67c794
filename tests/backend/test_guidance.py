"""Unit tests for backend.guidance."""

from __future__ import annotations

import asyncio
import threading

import pytest

from backend.graph import FloorGraph
from backend.guidance import GuidanceCoordinator
from backend.multifloor import compute_route
from backend.presentation import SegmentPresentation
from backend.session import NavigationSession


class FakeSpeech:
    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.cancels = 0

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancels += 1


class EchoNarrator:
    """Summarizes a segment as its point ids, optionally waiting on a gate."""

    def __init__(self, gate: threading.Event | None = None) -> None:
        self.gate = gate
        self.calls = 0

    def summarize(self, presentation: SegmentPresentation) -> str:
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return f"via {presentation.segment.point_ids}"


def _coordinator(floors: dict[str, FloorGraph], narrator, speech=None) -> GuidanceCoordinator:
    session = NavigationSession(compute_route(floors, "A", "P1", "B", "Q2"), floors=floors)
    return GuidanceCoordinator(session, narrator, speech)


def test_start_narrates_first_segment(two_floors: dict[str, FloorGraph]) -> None:
    speech = FakeSpeech()
    coordinator = _coordinator(two_floors, EchoNarrator(), speech)

    async def scenario() -> str | None:
        return await coordinator.start()

    assert asyncio.run(scenario()) == "via ('P1', 'P2')"
    assert coordinator.current_summary == "via ('P1', 'P2')"
    assert speech.spoken == ["via ('P1', 'P2')"]


def test_same_segment_is_not_renarrated(two_floors: dict[str, FloorGraph]) -> None:
    narrator = EchoNarrator()
    coordinator = _coordinator(two_floors, narrator)

    async def scenario() -> None:
        first = coordinator.start()
        again = coordinator.finish_segment()
        assert again is first
        await first

    asyncio.run(scenario())
    assert narrator.calls == 1


def test_stale_result_is_rejected(two_floors: dict[str, FloorGraph]) -> None:
    speech = FakeSpeech()
    coordinator = _coordinator(two_floors, EchoNarrator(), speech)

    async def scenario() -> None:
        await coordinator.start()
        old_key = coordinator.session.active_key()
        coordinator.finish_segment()
        await coordinator.advance_to_next_segment()

        assert not coordinator.deliver(old_key, "late text")

    asyncio.run(scenario())
    assert "late text" not in speech.spoken
    assert coordinator.current_summary == "via ('Q1', 'Q2')"


def test_advance_cancels_in_flight_narration(two_floors: dict[str, FloorGraph]) -> None:
    gate = threading.Event()
    speech = FakeSpeech()
    coordinator = _coordinator(two_floors, EchoNarrator(gate), speech)

    async def scenario() -> None:
        old = coordinator.start()
        await asyncio.sleep(0)
        coordinator.finish_segment()
        coordinator.advance_to_next_segment()
        gate.set()

        with pytest.raises(asyncio.CancelledError):
            await old
        await coordinator._task

    try:
        asyncio.run(scenario())
    finally:
        gate.set()

    assert speech.spoken == ["via ('Q1', 'Q2')"]
    assert speech.cancels >= 1


def test_reset_clears_guidance(two_floors: dict[str, FloorGraph]) -> None:
    speech = FakeSpeech()
    coordinator = _coordinator(two_floors, EchoNarrator(), speech)

    async def scenario() -> None:
        await coordinator.start()
        key = coordinator.session.active_key()
        coordinator.reset()

        assert coordinator.current_summary is None
        assert not coordinator.pending
        assert not coordinator.deliver(key, "too late")

    asyncio.run(scenario())
    assert speech.spoken == ["via ('P1', 'P2')"]


def test_repeat_replays_current_summary(two_floors: dict[str, FloorGraph]) -> None:
    speech = FakeSpeech()
    coordinator = _coordinator(two_floors, EchoNarrator(), speech)
    assert not coordinator.repeat()

    async def scenario() -> None:
        await coordinator.start()

    asyncio.run(scenario())
    assert coordinator.repeat()
    assert speech.spoken == ["via ('P1', 'P2')", "via ('P1', 'P2')"]


def test_abort_stops_guidance(two_floors: dict[str, FloorGraph]) -> None:
    coordinator = _coordinator(two_floors, EchoNarrator())

    async def scenario() -> None:
        await coordinator.start()
        coordinator.abort()

    asyncio.run(scenario())
    assert coordinator.session.active_key() is None
    assert coordinator.current_summary is None
