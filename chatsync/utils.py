"""Utility functions for chatsync."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from .constants import UNKNOWN_SENDER
from .types import Identity

logger = logging.getLogger(__name__)


def email_local_part(email: str | None) -> str:
    """Return the part of an address before ``@`` (empty if none)."""
    if not email:
        return ""
    return email.split("@", 1)[0].strip()


def resolve_display_name(identity: Identity | None) -> str:
    """Pick the name shown for a sender.

    Falls back from the profile name to the local part of the email
    address, then to "Unknown".

    Args:
        identity: Resolved identity, or None if the lookup found nothing

    Returns:
        Display name
    """
    if identity is None:
        return UNKNOWN_SENDER

    name = sanitize_display_name(identity.name or "")
    if name:
        return name

    local = sanitize_display_name(email_local_part(identity.email))
    if local:
        return local

    return UNKNOWN_SENDER


CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
MAX_DISPLAY_NAME = 50


def sanitize_display_name(name: str) -> str:
    """Strip control characters, collapse whitespace and cap the length
    of a name shown in the message log."""
    if not name:
        return ""
    name = " ".join(CONTROL_CHARS.sub("", name).split())
    return name[:MAX_DISPLAY_NAME]


def format_timestamp(created_at_ms: int, fmt: str = "%H:%M:%S") -> str:
    """Format a millisecond timestamp in local time."""
    try:
        return datetime.fromtimestamp(created_at_ms / 1000).strftime(fmt)
    except (OverflowError, OSError, ValueError) as e:
        logger.debug(f"Could not format timestamp {created_at_ms}: {e}")
        return "--:--:--"


def format_short_id(identifier: str, width: int = 8) -> str:
    """Shorten an opaque id for logs and status lines."""
    if len(identifier) > width * 2:
        return f"{identifier[:width]}...{identifier[-width:]}"
    return identifier
