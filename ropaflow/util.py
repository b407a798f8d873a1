"""
Small helpers shared across the flow builder.

This module intentionally avoids third-party dependencies.
"""

from __future__ import annotations

import random
import re
import time
from datetime import datetime, timezone


# Whitespace and characters that are path separators or reserved in filenames
_UNSAFE_RUN = re.compile(r"[\s\\/:*?\"<>|]+")


def new_id(prefix: str = "n", *, timestamp_ms: int | None = None, rng: random.Random | None = None) -> str:
    """
    Generate an element id: ``<prefix>_<epoch-ms>_<0..999>``.

    The millisecond timestamp keeps ids monotonically distinguishable across
    a session; the random suffix separates ids minted within the same tick.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    suffix = (rng or random).randrange(1000)
    return f"{prefix}_{timestamp_ms}_{suffix}"


def utc_now_iso() -> str:
    """Current UTC time as an ISO8601 string."""
    return datetime.now(timezone.utc).isoformat()


def slugify_filename(name: str | None, default: str = "flow") -> str:
    """Turn a flow name into a download filename stem.

    Runs of whitespace or unsafe characters become underscores, so the
    result never contains a path separator. A blank name, or one made only
    of dots, gives ``default``.
    """
    stem = _UNSAFE_RUN.sub("_", (name or "").strip())
    if not stem.strip("._"):
        return default
    return stem
