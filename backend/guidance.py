"""Spoken/written guidance tied to the active navigation segment.

Narration and speech run asynchronously and may still be in flight when the
user changes floors or resets. Every result is keyed by the segment cache key
and dropped unless the session still presents that segment.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from backend.narration import NarrationService
from backend.presentation import SegmentKey, SegmentPresentation
from backend.session import NavigationSession


class SpeechSink(Protocol):
    def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


class GuidanceCoordinator:
    """Drives a session and keeps narration/speech in step with it.

    Session operations go through the wrapper methods so a segment change
    always invalidates pending guidance before anything new is scheduled.
    """

    def __init__(
        self,
        session: NavigationSession,
        narrator: NarrationService,
        speech: SpeechSink | None = None,
    ) -> None:
        self.session = session
        self.narrator = narrator
        self.speech = speech
        self.current_summary: str | None = None
        self._task: asyncio.Task | None = None
        self._scheduled_key: SegmentKey | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def _invalidate(self) -> None:
        if self.speech is not None:
            self.speech.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._scheduled_key = None
        self.current_summary = None

    def deliver(self, key: SegmentKey, text: str | None) -> bool:
        """Accept a narration result if it still matches the active segment."""
        if text is None or not self.session.accepts(key):
            return False
        self.current_summary = text
        if self.speech is not None:
            self.speech.speak(text)
        return True

    async def _narrate(self, key: SegmentKey, presentation: SegmentPresentation) -> str | None:
        text = await asyncio.to_thread(self.narrator.summarize, presentation)
        self.deliver(key, text)
        return text

    def segment_changed(self) -> asyncio.Task | None:
        """Invalidate old guidance and schedule narration for the active segment.

        Must be called from a running event loop when a segment is active.
        """
        key = self.session.active_key()
        if key is not None and key == self._scheduled_key:
            return self._task

        self._invalidate()
        if key is None:
            return None

        self._scheduled_key = key
        self._task = asyncio.get_running_loop().create_task(self._narrate(key, self.session.presentation()))
        return self._task

    def start(self) -> asyncio.Task | None:
        self.session.start()
        return self.segment_changed()

    def step(self) -> asyncio.Task | None:
        self.session.step()
        return self.segment_changed()

    def finish_segment(self) -> asyncio.Task | None:
        self.session.finish_segment()
        return self.segment_changed()

    def advance_to_next_segment(self) -> asyncio.Task | None:
        self.session.advance_to_next_segment()
        return self.segment_changed()

    def reset(self) -> None:
        self.session.reset()
        self._invalidate()

    def abort(self) -> None:
        self.session.abort()
        self._invalidate()

    def repeat(self) -> bool:
        """Replay the current summary, if one was delivered."""
        if self.current_summary is None or self.speech is None:
            return False
        self.speech.cancel()
        self.speech.speak(self.current_summary)
        return True
