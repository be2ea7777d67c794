"""Thin client for the hosted Gemini generateContent endpoint.

Used by the narration and map-digitization collaborators. Rate-limited calls
(HTTP 429) are retried with exponential backoff: 2s, 4s, 8s, ...
"""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

Part = dict[str, Any]


class ModelError(RuntimeError):
    """Hosted model call failed or returned an unusable payload."""


class ModelRateLimited(ModelError):
    """Hosted model kept answering 429 after all retries."""


def text_part(text: str) -> Part:
    return {"text": text}


def image_part(data_b64: str, mime_type: str = "image/png") -> Part:
    return {"inline_data": {"mime_type": mime_type, "data": data_b64}}


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences a model may add despite instructions."""
    return re.sub(r"```(?:json)?", "", text).strip()


class GeminiClient:
    """Minimal generateContent client.

    Args:
        api_key: Gemini API key.
        model: Model name.
        base_url: REST API root.
        timeout_s: Per-request timeout.
        max_retries: Attempts made when rate limited.
        session: Optional `requests.Session` (tests inject a fake).
        sleep: Backoff sleep function.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        max_retries: int = 3,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = float(timeout_s)
        self.max_retries = int(max_retries)
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        for attempt in range(self.max_retries):
            try:
                res = self._session.post(
                    self.endpoint,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                    timeout=self.timeout_s,
                )
            except requests.RequestException as exc:
                raise ModelError(f"Model request failed: {exc}") from exc

            if res.status_code != 429:
                return res
            if attempt == self.max_retries - 1:
                break

            wait_s = float(2 ** (attempt + 1))
            logger.info("Gemini rate limit (429), retrying in %.0fs", wait_s)
            self._sleep(wait_s)

        raise ModelRateLimited("AI rate limit exceeded, please try again in 1 minute")

    def generate(self, parts: list[Part]) -> str:
        """Run one generateContent call and return the concatenated text."""
        res = self._post({"contents": [{"parts": parts}]})
        if res.status_code >= 400:
            raise ModelError(f"Model returned HTTP {res.status_code}: {res.text[:200]}")

        try:
            body = res.json()
            candidate_parts = body["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ModelError("Model response has no candidates") from exc

        return "".join(str(p.get("text", "")) for p in candidate_parts).strip()


def client_from_env(model_env: str = "GEMINI_MODEL") -> GeminiClient | None:
    """Build a client from environment configuration, or None without a key.

    `model_env` names the variable consulted first for the model name; the
    generic `GEMINI_MODEL` and then the built-in default are the fallbacks.
    """
    api_key = os.getenv("GEMINI_API_KEY", "").strip()
    if not api_key:
        return None

    model = os.getenv(model_env, "").strip() or os.getenv("GEMINI_MODEL", "").strip() or DEFAULT_MODEL
    return GeminiClient(
        api_key=api_key,
        model=model,
        base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL),
        timeout_s=float(os.getenv("FLOORGUIDE_MODEL_TIMEOUT_S", "30")),
    )
