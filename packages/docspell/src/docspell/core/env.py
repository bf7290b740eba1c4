"""Centralized environment variable helpers."""

from __future__ import annotations

import os

DEFAULT_JOBS = 2


def getenv(name: str, default: str | None = None) -> str | None:
    return os.environ.get(name, default)


def getenv_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def jobs_hint(default: int = DEFAULT_JOBS) -> int:
    return getenv_int("TEST_JOBS", default)
