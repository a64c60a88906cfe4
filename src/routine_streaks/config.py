"""Configuration file management for routine-streaks.

Reads and writes ~/.routine-streaks/config.json for settings that don't belong
in the DB (reference timezone, lookback window, push credentials).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from routine_streaks.dates import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Path = Path.home() / ".routine-streaks" / "config.json"
DEFAULT_LOOKBACK_DAYS = 400  # ~13 months so year-to-date counts are complete
MIN_LOOKBACK_DAYS = 90


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("Ignoring unreadable config file %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def get_timezone(config_path: Path | None = None) -> str:
    """Return the reference timezone name used for every date key."""
    raw = load_config(config_path).get("timezone")
    if not raw:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r in config, using %s", raw, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return raw


def set_timezone(name: str, config_path: Path | None = None) -> None:
    """Persist the reference timezone. Raises ZoneInfoNotFoundError if unknown."""
    ZoneInfo(name)
    config = load_config(config_path)
    config["timezone"] = name
    save_config(config, config_path)


def get_lookback_days(config_path: Path | None = None) -> int:
    """Days of history fetched for streaks (never below MIN_LOOKBACK_DAYS)."""
    raw = load_config(config_path).get("lookback_days", DEFAULT_LOOKBACK_DAYS)
    try:
        return max(int(raw), MIN_LOOKBACK_DAYS)
    except (TypeError, ValueError):
        return DEFAULT_LOOKBACK_DAYS


def get_db_path(config_path: Path | None = None) -> Path | None:
    """Return the configured database path, or None for the default."""
    raw = load_config(config_path).get("db_path")
    if raw:
        return Path(raw).expanduser()
    return None


def get_vapid_settings(config_path: Path | None = None) -> dict[str, str] | None:
    """Return {"private_key", "subject"} for Web Push, or None if unset."""
    config = load_config(config_path)
    private_key = config.get("vapid_private_key")
    if not private_key:
        return None
    return {
        "private_key": private_key,
        "subject": config.get("vapid_subject") or "mailto:hello@example.com",
    }
