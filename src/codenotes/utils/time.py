"""Time helpers."""

from __future__ import annotations

import datetime as dt
import time

_EPOCH = dt.datetime.min.replace(tzinfo=dt.UTC)


def now_ts() -> int:
    return int(time.time())


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def utc_iso() -> str:
    return utc_now().isoformat()


def parse_iso(value: str) -> dt.datetime | None:
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def sort_key(value: str) -> dt.datetime:
    """Ordering key for ISO timestamps; unparseable values sort as oldest."""
    return parse_iso(value) or _EPOCH
