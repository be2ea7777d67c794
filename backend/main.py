"""Application entry point for the FloorGuide backend.

Run locally:
    uvicorn backend.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import uvicorn

from backend.api import create_app

ENV_FILES = (Path("backend/.env"), Path(".env"))


def _parse_env_file(env_path: Path) -> dict[str, str]:
    """Read `KEY=value` lines, skipping comments and lines without `=`."""
    values: dict[str, str] = {}
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, value = raw.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        values.setdefault(key, value.strip().strip("'").strip('"'))
    return values


def _load_local_env(candidates: tuple[Path, ...] = ENV_FILES) -> list[str]:
    """Fill unset environment variables from local .env files.

    The process environment always wins; between files, the first one
    defining a key wins. Returns the keys that were set.
    """
    merged: dict[str, str] = {}
    for env_path in candidates:
        if env_path.is_file():
            for key, value in _parse_env_file(env_path).items():
                merged.setdefault(key, value)

    loaded = [key for key in merged if key not in os.environ]
    for key in loaded:
        os.environ[key] = merged[key]
    return loaded


def _configure_logging() -> None:
    level = os.getenv("FLOORGUIDE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_load_local_env()
_configure_logging()
app = create_app()


if __name__ == "__main__":
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    reload_enabled = os.getenv("API_RELOAD", "true").lower() == "true"
    uvicorn.run("backend.main:app", host=host, port=port, reload=reload_enabled)
