"""Natural-language summaries of route segments.

Narration is best effort: any failure yields `None`, never an exception, so
missing guidance can't block route computation or playback.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from backend.graph import Point
from backend.llm import ModelError, text_part
from backend.presentation import SegmentKey, SegmentPresentation

logger = logging.getLogger(__name__)

CONTINUE_SENTENCE = (
    "After reaching the end of this path, please click the Continue button to load the map."
)
ARRIVAL_SENTENCE = "Your destination will be reached at the end of the route on this map."


class TextModel(Protocol):
    def generate(self, parts: list) -> str: ...


def _describe(point: Point) -> str:
    if point.is_transition or point.category.upper() == "GATEWAY":
        return f"{point.name} (Transition/Connection Point)"
    if point.category.upper() == "ROOM":
        return f"{point.name} (Room/Label)"
    return point.name


def build_summary_prompt(points: Sequence[Point], is_final: bool) -> str:
    """Prompt asking for a two-sentence summary of one floor's path."""
    nodes_list = "\n".join(f"{idx}. {_describe(p)}" for idx, p in enumerate(points, start=1))

    if is_final:
        transition_rule = f"- This IS the final destination. End with: '{ARRIVAL_SENTENCE}'"
    else:
        transition_rule = (
            "- This is NOT the final destination. End the summary with: "
            f"'{CONTINUE_SENTENCE}' (Never use the word 'gateway')."
        )

    return (
        "You are a concise navigation assistant. Summarize ONLY the path provided for the current map.\n\n"
        f"Path Nodes on this Map:\n{nodes_list}\n\n"
        "Instructions:\n"
        "1. Landmark focus: Mention 1-2 key rooms or landmarks along the path.\n"
        f"2. Map Transitions:\n   {transition_rule}\n"
        "3. Tone: Professional, reassuring, and brief (max 2 sentences).\n"
        "4. Do NOT mention specific node IDs.\n\n"
        "Output:\nJust the text summary. No formatting."
    )


class NarrationService:
    """Memoizing narration collaborator keyed by `SegmentKey`."""

    def __init__(self, client: TextModel | None) -> None:
        self.client = client
        self._cache: dict[SegmentKey, str] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def summarize_points(self, key: SegmentKey, points: Sequence[Point], is_final: bool) -> str | None:
        if len(points) < 2:
            return None

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Summary served from cache: %s", key)
            return cached

        if self.client is None:
            return None

        try:
            text = self.client.generate([text_part(build_summary_prompt(points, is_final))])
        except ModelError as exc:
            logger.warning("Summary generation failed for %s: %s", key, exc)
            return None

        summary = (text or "").strip()
        if not summary:
            logger.warning("Empty summary response for %s", key)
            return None

        self._cache[key] = summary
        return summary

    def summarize(self, presentation: SegmentPresentation) -> str | None:
        return self.summarize_points(presentation.cache_key, presentation.points(), presentation.is_final)

    def clear_cache(self) -> None:
        self._cache.clear()
