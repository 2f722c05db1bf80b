"""Debugging helpers for store records and stream frames."""

from __future__ import annotations

import logging
from typing import Any

from .constants import (
    K_CLIENT_ID,
    K_CONTENT,
    K_CONTENT_HASH,
    K_CREATED_AT,
    K_ENCRYPTED,
    K_ID,
    K_ROOM_ID,
    K_SENDER_ID,
)
from .utils import format_short_id

logger = logging.getLogger(__name__)


RECORD_KEYS = {
    K_ID: "ID",
    K_SENDER_ID: "SENDER",
    K_ROOM_ID: "ROOM",
    K_CONTENT: "CONTENT",
    K_CONTENT_HASH: "HASH",
    K_ENCRYPTED: "ENCRYPTED",
    K_CREATED_AT: "CREATED_AT",
    K_CLIENT_ID: "CLIENT_ID",
}


def record_key_name(key: str) -> str:
    """Get human-readable name for a record key.

    Args:
        key: Record field name

    Returns:
        Upper-case label or "UNKNOWN_KEY(key)"
    """
    return RECORD_KEYS.get(key, f"UNKNOWN_KEY({key})")


def format_record_debug(record: dict[str, Any]) -> str:
    """Format a message record for debug logging.

    Content is never printed in full; encrypted content only by length.

    Args:
        record: Stored message record

    Returns:
        Human-readable string representation
    """
    parts = []

    if K_ID in record:
        parts.append(f"ID: {format_short_id(str(record[K_ID]))}")

    if K_ROOM_ID in record:
        parts.append(f"Room: {format_short_id(str(record[K_ROOM_ID]))}")

    if K_SENDER_ID in record:
        parts.append(f"Sender: {format_short_id(str(record[K_SENDER_ID]))}")

    if K_CONTENT in record:
        content = record[K_CONTENT]
        if record.get(K_ENCRYPTED):
            parts.append(f"Content: <encrypted {len(str(content))} chars>")
        elif isinstance(content, str):
            preview = content[:50] + "..." if len(content) > 50 else content
            parts.append(f"Content: '{preview}'")
        else:
            parts.append(f"Content: {type(content).__name__}")

    if record.get(K_CLIENT_ID):
        parts.append(f"ClientID: {record[K_CLIENT_ID]}")

    return " | ".join(parts)


def log_record_debug(record: dict[str, Any], prefix: str = "") -> None:
    """Log record details at debug level.

    Args:
        record: Stored message record
        prefix: Optional prefix for log message (e.g., "RX" or "TX")
    """
    if logger.isEnabledFor(logging.DEBUG):
        msg = format_record_debug(record)
        if prefix:
            msg = f"{prefix}: {msg}"
        logger.debug(msg)


def validate_record_structure(record: Any) -> list[str]:
    """Validate record structure and return list of issues.

    Unlike ``records.validate_message_record`` this collects every problem
    instead of raising on the first one.

    Args:
        record: Candidate message record

    Returns:
        List of validation issues (empty if valid)
    """
    issues = []

    if not isinstance(record, dict):
        issues.append("Record is not a dict")
        return issues

    required_keys = [K_ID, K_SENDER_ID, K_ROOM_ID, K_CONTENT, K_CREATED_AT]
    for key in required_keys:
        if key not in record:
            issues.append(f"Missing required key: {record_key_name(key)}")

    for key in (K_ID, K_SENDER_ID, K_ROOM_ID, K_CONTENT):
        if key in record and not isinstance(record[key], str):
            issues.append(
                f"{record_key_name(key)} must be str, got {type(record[key]).__name__}"
            )

    if K_ENCRYPTED in record and not isinstance(record[K_ENCRYPTED], (bool, type(None))):
        issues.append(
            f"ENCRYPTED must be bool, got {type(record[K_ENCRYPTED]).__name__}"
        )

    if K_CREATED_AT in record and not isinstance(record[K_CREATED_AT], (int, str)):
        issues.append(
            f"CREATED_AT must be int or str, got {type(record[K_CREATED_AT]).__name__}"
        )

    return issues
