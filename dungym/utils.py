"""Utility helpers used across dungym modules."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

# Leading numeric prefix as accepted by JavaScript's parseFloat/parseInt
_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[+-]?\d+")


def parse_weight(value: Any) -> float:
    """Return the numeric weight in ``value`` or ``0.0``.

    Only the leading number counts, so ``"135 lb"`` is 135 and ``"abc"`` is 0.
    """

    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return 0.0
    match = _FLOAT_PREFIX.match(value)
    return float(match.group(0)) if match else 0.0


def parse_reps(value: Any) -> int:
    """Return the leading integer in ``value`` or ``0``."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str):
        return 0
    match = _INT_PREFIX.match(value)
    return int(match.group(0)) if match else 0


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning an aware ``datetime`` or ``None``.

    Naive timestamps are taken to be UTC.
    """

    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def session_sort_key(session: Mapping[str, Any]) -> tuple[datetime, str]:
    """Sort key ordering sessions by ``date``; unparseable dates sort oldest."""

    date = session.get("date") if isinstance(session, Mapping) else None
    parsed = parse_iso(date)
    return (parsed or _EPOCH, date if isinstance(date, str) else "")


def utc_now_iso(now: float | None = None) -> str:
    """Return ``now`` (epoch seconds) as an ISO timestamp with millisecond precision."""

    moment = (
        datetime.now(timezone.utc)
        if now is None
        else datetime.fromtimestamp(now, tz=timezone.utc)
    )
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_session_id() -> str:
    return str(uuid.uuid4())
