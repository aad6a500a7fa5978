"""Shared constants and defaults for the dungym modules."""

from __future__ import annotations

from pathlib import Path

# Default location of the local SQLite database
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "data" / "dungym.db"

# Keys of the two flat records kept in the local store
SESSIONS_KEY = "dungym-sessions"
DRAFT_KEY = "dungym-draft"

# Default rest period (seconds) when a rest specification can't be parsed
DEFAULT_REST_SECONDS = 60

# Two-tap confirmation windows in seconds
FINISH_CONFIRM_SECONDS = 3
DISCARD_CONFIRM_SECONDS = 2

# Seconds a finished rest timer stays on screen before dismissing itself
REST_DISMISS_SECONDS = 5

# Largest gap in days between workouts that still continues a streak
STREAK_GAP_DAYS = 3

__all__ = [
    "DEFAULT_DB_PATH",
    "SESSIONS_KEY",
    "DRAFT_KEY",
    "DEFAULT_REST_SECONDS",
    "FINISH_CONFIRM_SECONDS",
    "DISCARD_CONFIRM_SECONDS",
    "REST_DISMISS_SECONDS",
    "STREAK_GAP_DAYS",
]
