from __future__ import annotations

"""Loading and saving user settings, plus deployment configuration.

User settings are stored as a list of dictionaries to preserve order.
Each dictionary contains ``key``, ``value`` and ``type`` entries.

Deployment configuration (remote store credentials, database location)
comes from environment variables, optionally loaded from a ``.env`` file
by the command line entry point.
"""

from pathlib import Path
import json
import logging
import os
from typing import Any, List, Dict

from dungym import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

# Path to the JSON file where settings are persisted.
SETTINGS_PATH = Path(__file__).resolve().parents[1] / "data" / "settings.json"

# Default settings to initialize the file on first run.
DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "sound_level", "value": 1.0, "type": "slider"},
    {"key": "sound_on", "value": True, "type": "bool"},
    {"key": "vibrate_on", "value": True, "type": "bool"},
    {"key": "keep_awake", "value": True, "type": "bool"},
    {"key": "remote_timeout", "value": 10.0, "type": "float"},
]

DEFAULT_REMOTE_TABLE = "workout_sessions"

# Internal cache so settings are only read from disk once.
_settings_cache: List[Dict[str, Any]] | None = None


def _defaults() -> List[Dict[str, Any]]:
    return [dict(item) for item in DEFAULT_SETTINGS]


def load_settings() -> List[Dict[str, Any]]:
    """Load settings from :data:`SETTINGS_PATH` or create defaults."""
    if SETTINGS_PATH.exists():
        try:
            with SETTINGS_PATH.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
            if isinstance(data, list):
                return data
        except (OSError, ValueError):
            logger.warning("Settings file %s unreadable; using defaults", SETTINGS_PATH)
    defaults = _defaults()
    try:
        save_settings(defaults)
    except OSError:
        logger.warning("Could not write default settings to %s", SETTINGS_PATH, exc_info=True)
    return defaults


def save_settings(settings: List[Dict[str, Any]]) -> None:
    """Persist ``settings`` to :data:`SETTINGS_PATH`."""
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    with SETTINGS_PATH.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh)


def get_settings() -> List[Dict[str, Any]]:
    """Return the cached settings list, loading from disk if needed."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def clear_cache() -> None:
    global _settings_cache
    _settings_cache = None


def get_value(key: str) -> Any:
    """Fetch the value associated with ``key``.

    Keys missing from the file fall back to :data:`DEFAULT_SETTINGS`.
    """
    for item in get_settings():
        if item.get("key") == key:
            return item.get("value")
    for item in DEFAULT_SETTINGS:
        if item["key"] == key:
            return item["value"]
    return None


def set_value(key: str, value: Any) -> None:
    """Update ``key`` with ``value`` and persist the change."""
    settings = get_settings()
    for item in settings:
        if item.get("key") == key:
            item["value"] = value
            break
    else:
        settings.append({"key": key, "value": value, "type": type(value).__name__})
    save_settings(settings)


def device_options() -> Dict[str, Any]:
    """Keyword arguments for :class:`~dungym.device.KivyDevice`."""
    return {
        "sound_on": bool(get_value("sound_on")),
        "sound_level": float(get_value("sound_level")),
        "vibrate_on": bool(get_value("vibrate_on")),
        "keep_awake": bool(get_value("keep_awake")),
    }


def remote_timeout() -> float:
    try:
        return float(get_value("remote_timeout"))
    except (TypeError, ValueError):
        return 10.0


# ----------------------------------------------------------------------
# Environment
# ----------------------------------------------------------------------


def db_path() -> Path:
    """Local database location, overridable with ``DUNGYM_DB_PATH``."""
    value = os.environ.get("DUNGYM_DB_PATH", "")
    return Path(value).expanduser() if value else DEFAULT_DB_PATH


def access_token() -> str | None:
    return os.environ.get("DUNGYM_ACCESS_TOKEN") or None


def remote_config() -> Dict[str, str] | None:
    """Return the Supabase ``url``/``key``/``table`` or ``None`` if unset."""
    url = os.environ.get("DUNGYM_SUPABASE_URL", "").strip()
    key = os.environ.get("DUNGYM_SUPABASE_KEY", "").strip()
    if not url or not key:
        return None
    table = os.environ.get("DUNGYM_SUPABASE_TABLE", "").strip() or DEFAULT_REMOTE_TABLE
    return {"url": url, "key": key, "table": table}
