"""Persistent user preferences for gh-secrets-sync.

Stored as JSON in the XDG config directory:
~/.config/gh-secrets-sync/preferences.json
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PREFERENCES_DIR = Path.home() / ".config" / "gh-secrets-sync"
PREFERENCES_FILE = PREFERENCES_DIR / "preferences.json"


def _read() -> Dict[str, Any]:
    """Read all preferences; a missing or unreadable file counts as empty."""
    if not PREFERENCES_FILE.exists():
        return {}

    try:
        with open(PREFERENCES_FILE, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Ignoring unreadable preferences file {PREFERENCES_FILE}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Ignoring preferences file {PREFERENCES_FILE}: expected a JSON object")
        return {}
    return data


def _write(preferences: Dict[str, Any]) -> None:
    PREFERENCES_DIR.mkdir(parents=True, exist_ok=True)
    with open(PREFERENCES_FILE, "w") as f:
        json.dump(preferences, f, indent=2, sort_keys=True)


def get_preference(key: str) -> Optional[str]:
    """
    Get a preference value.

    Args:
        key: Preference key (e.g. "config_path")

    Returns:
        The stored value, or None if not set
    """
    return _read().get(key)


def set_preference(key: str, value: str) -> None:
    """
    Set a preference value, creating the preferences file if needed.

    Args:
        key: Preference key
        value: Value to store
    """
    preferences = _read()
    preferences[key] = value
    _write(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> None:
    """
    Remove a preference. Clearing an unset key is a no-op.

    Args:
        key: Preference key to remove
    """
    preferences = _read()
    if preferences.pop(key, None) is None:
        logger.debug(f"Preference '{key}' not set, nothing to clear")
        return
    _write(preferences)
    logger.info(f"Preference '{key}' cleared")


def get_all_preferences() -> Dict[str, Any]:
    """
    Get all stored preferences.

    Returns:
        Dict of every preference key and value (empty if none are set)
    """
    return _read()
