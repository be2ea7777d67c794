"""AI-assisted detection of labelled points on floor-plan images.

The vision model returns bounding boxes `[ymin, xmin, ymax, xmax]` on a
0-1000 grid. Stored point positions use the 0-100 space, so each box is
reduced to its center and divided by 10.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

import cv2
import numpy as np

from backend.graph import Point, PointKind
from backend.llm import image_part, strip_code_fences, text_part

logger = logging.getLogger(__name__)

DEFAULT_CENTER = (50.0, 50.0)

DETECTION_PROMPT = """
**ACT AS:** Senior AI Vision Engineer.
**TASK:** Detect every room number, office name, or label in the floor plan.

**INSTRUCTIONS:**
1. Analyze the floor plan image.
2. Identify every readable text label for rooms, offices, or points of interest.
3. For each label, return a bounding box defined as [ymin, xmin, ymax, xmax].
4. **COORDINATE SYSTEM:** Normalize all coordinates to a 1000x1000 grid.
   - Top-left is [0, 0].
   - Bottom-right is [1000, 1000].
   - ymin, xmin, ymax, xmax should be integers between 0 and 1000.

**CRITICAL OUTPUT FORMAT:**
Return ONLY a valid JSON array. Do not use markdown code blocks.
Structure:
[
  { "label": "Room 101", "box_2d": [ymin, xmin, ymax, xmax] },
  { "label": "Conference Room", "box_2d": [150, 400, 180, 450] }
]
"""


@dataclass(frozen=True, slots=True)
class DetectedLabel:
    label: str
    x: float
    y: float


def box_to_center(box_2d: Any) -> tuple[float, float]:
    """Convert a 0-1000 `[ymin, xmin, ymax, xmax]` box to a 0-100 center.

    Malformed boxes fall back to the middle of the map.
    """
    if not isinstance(box_2d, (list, tuple)) or len(box_2d) != 4:
        return DEFAULT_CENTER
    try:
        ymin, xmin, ymax, xmax = (float(v) for v in box_2d)
    except (TypeError, ValueError):
        return DEFAULT_CENTER

    x = (xmin + xmax) / 2 / 10
    y = (ymin + ymax) / 2 / 10
    return round(x, 2), round(y, 2)


def parse_detections(text: str) -> list[DetectedLabel]:
    """Parse the model's JSON array into detected labels.

    Raises:
        ValueError: If the text is not a JSON array.
    """
    try:
        raw = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise ValueError("Failed to parse AI response") from exc
    if not isinstance(raw, list):
        raise ValueError("AI response must be a JSON array")

    labels: list[DetectedLabel] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        x, y = box_to_center(item.get("box_2d"))
        labels.append(DetectedLabel(label=str(item.get("label", "")).strip(), x=x, y=y))
    return labels


def decode_upload_image(raw_bytes: bytes) -> np.ndarray:
    """Decode uploaded bytes into an OpenCV BGR image."""
    if not raw_bytes:
        raise ValueError("Uploaded file is empty")

    np_buf = np.frombuffer(raw_bytes, dtype=np.uint8)
    image = cv2.imdecode(np_buf, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Unsupported or corrupted image format")
    return image


def encode_image_png(image_bgr: np.ndarray) -> str:
    """Encode a BGR image as base64 PNG for the vision model."""
    if image_bgr is None or image_bgr.size == 0:
        raise ValueError("image_bgr is empty")
    ok, buf = cv2.imencode(".png", image_bgr)
    if not ok:
        raise ValueError("Failed to encode image as PNG")
    return base64.b64encode(buf.tobytes()).decode("ascii")


def candidate_points(labels: Sequence[DetectedLabel], id_prefix: str = "node") -> list[Point]:
    """Turn detections into ordinary points ready for manual review."""
    return [
        Point(
            id=f"{id_prefix}-{idx}",
            name=det.label or f"Point {idx}",
            kind=PointKind.ORDINARY,
            x=det.x,
            y=det.y,
            category="ROOM",
        )
        for idx, det in enumerate(labels, start=1)
    ]


class MapDigitizer:
    """Vision-model adapter producing candidate labels for one floor plan."""

    def __init__(self, client) -> None:
        self.client = client

    def detect(self, image_bgr: np.ndarray) -> list[DetectedLabel]:
        """Detect labels in a floor-plan image.

        Raises:
            ModelError: When the hosted model fails (rate limits included).
            ValueError: When the image is empty or the response is unparseable.
        """
        payload = encode_image_png(image_bgr)
        text = self.client.generate([text_part(DETECTION_PROMPT), image_part(payload, "image/png")])
        try:
            return parse_detections(text)
        except ValueError:
            logger.warning("Failed to parse digitization response: %.200s", text)
            raise

