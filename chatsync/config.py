"""Configuration file management for chatsync.

The config is a flat JSON object. A missing file is treated as first
launch: defaults (including a fresh identity id and cipher secret) are
written out and the caller is told to stop so the user can edit them.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import uuid
from pathlib import Path
from typing import Any

from .constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_ROOM_NAME,
    MAX_MESSAGES_PER_ROOM_DEFAULT,
)
from .errors import FirstLaunchException

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
CONFIG_DIRS = ("/etc/chatsync", "~/.config/chatsync", "~/.chatsync")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Expected type per field; values of the wrong type fall back to the default
FIELD_TYPES: dict[str, type] = {
    "identity_id": str,
    "display_name": str,
    "email": str,
    "default_room_name": str,
    "demo_rooms": list,
    "history_limit": int,
    "max_messages_per_room": int,
    "encrypt_messages": bool,
    "correlate_sends": bool,
    "cipher_secret": str,
    "log_level": str,
    "log_to_file": bool,
    "log_to_console": bool,
    "max_log_size_mb": int,
    "log_backup_count": int,
    "show_timestamps": bool,
    "timestamp_format": str,
}

# Fields that must not be blank once loaded
REQUIRED_TEXT = ("identity_id", "default_room_name", "cipher_secret")


def get_config_dir() -> Path:
    """First existing directory of ``CONFIG_DIRS``, else ``~/.chatsync``."""
    candidates = [Path(os.path.expanduser(os.path.expandvars(p))) for p in CONFIG_DIRS]
    for path in candidates:
        if path.is_dir():
            logger.debug(f"Using config directory {path}")
            return path

    logger.debug(f"No config directory yet, defaulting to {candidates[-1]}")
    return candidates[-1]


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILENAME


def get_default_config() -> dict[str, Any]:
    """Default settings.

    ``identity_id`` and ``cipher_secret`` are random on every call and
    only become stable once written by ``load_config``.
    """
    return {
        "identity_id": str(uuid.uuid4()),
        "display_name": "",
        "email": "",
        "default_room_name": DEFAULT_ROOM_NAME,
        "demo_rooms": [DEFAULT_ROOM_NAME, "Random", "Announcements"],
        "history_limit": DEFAULT_HISTORY_LIMIT,
        "max_messages_per_room": MAX_MESSAGES_PER_ROOM_DEFAULT,
        "encrypt_messages": True,
        "correlate_sends": False,
        "cipher_secret": secrets.token_urlsafe(32),
        "log_level": "INFO",
        "log_to_file": True,
        "log_to_console": False,
        "max_log_size_mb": 10,
        "log_backup_count": 5,
        "show_timestamps": True,
        "timestamp_format": "%H:%M:%S",
    }


def _coerce(field: str, value: Any, default: Any) -> Any:
    expected = FIELD_TYPES[field]

    if expected is int:
        if isinstance(value, bool):
            return default
        try:
            number = int(value)
        except (ValueError, TypeError):
            return default
        return number if number >= 0 else default

    if expected is list:
        if isinstance(value, list) and value and all(
            isinstance(item, str) and item.strip() for item in value
        ):
            return value
        return default

    return value if isinstance(value, expected) else default


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Coerce known fields to their expected types, in place.

    Unknown keys are left untouched.

    Args:
        config: Settings merged over the defaults

    Returns:
        The same dictionary, sanitized
    """
    defaults = get_default_config()

    for field in FIELD_TYPES:
        if field in config:
            config[field] = _coerce(field, config[field], defaults[field])

    for field in REQUIRED_TEXT:
        if not config.get(field, "").strip():
            config[field] = defaults[field]

    if config.get("history_limit") == 0:
        config["history_limit"] = defaults["history_limit"]

    if config.get("log_level", "").upper() not in LOG_LEVELS:
        config["log_level"] = defaults["log_level"]

    return config


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Read the config file and merge it over the defaults.

    Args:
        config_path: Config file to read; defaults to ``get_config_path()``

    Returns:
        Validated settings

    Raises:
        FirstLaunchException: The file did not exist and defaults were written
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        logger.info(f"First launch, writing default config to {config_path}")
        save_config(get_default_config(), config_path)
        raise FirstLaunchException(config_path)

    saved: Any = {}
    try:
        saved = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {config_path}, using defaults: {e}")

    if not isinstance(saved, dict):
        logger.warning(f"Ignoring {config_path}: top level is not an object")
        saved = {}

    config = get_default_config()
    config.update(saved)
    return validate_config(config)


def save_config(config: dict[str, Any], config_path: Path | None = None) -> None:
    """Write settings as JSON, readable by the owner only."""
    config_path = config_path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        config_path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        os.chmod(config_path, 0o600)
    except OSError as e:
        raise RuntimeError(f"Failed to save config: {e}") from e
