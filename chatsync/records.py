"""Store record construction and boundary validation."""

from __future__ import annotations

import secrets
import time
import uuid
from datetime import datetime
from typing import Any

from .constants import (
    K_CLIENT_ID,
    K_CONTENT,
    K_CONTENT_HASH,
    K_CREATED_AT,
    K_ENCRYPTED,
    K_ID,
    K_MEMBER_ROOM_ID,
    K_MEMBER_USER_ID,
    K_PROFILE_EMAIL,
    K_PROFILE_NAME,
    K_ROOM_ID,
    K_ROOM_NAME,
    K_SENDER_ID,
    TEMP_ID_PREFIX,
)
from .errors import RecordValidationError
from .types import Identity, Membership, Room, StoredMessage


def now_ms() -> int:
    return int(time.time() * 1000)


def temp_id() -> str:
    """Locally unique id for a pending message."""
    return f"{TEMP_ID_PREFIX}{now_ms()}-{secrets.token_hex(4)}"


def correlation_id() -> str:
    return uuid.uuid4().hex


def is_temp_id(message_id: str) -> bool:
    return message_id.startswith(TEMP_ID_PREFIX)


def make_message_record(
    *,
    sender_id: str,
    room_id: str,
    content: str,
    content_hash: str,
    encrypted: bool,
    client_id: str | None = None,
) -> dict[str, Any]:
    """Build the insert payload for a new message."""
    record: dict[str, Any] = {
        K_SENDER_ID: sender_id,
        K_ROOM_ID: room_id,
        K_CONTENT: content,
        K_CONTENT_HASH: content_hash,
        K_ENCRYPTED: bool(encrypted),
    }
    if client_id is not None:
        record[K_CLIENT_ID] = client_id
    return record


def normalize_timestamp(value: Any) -> int:
    """Convert a store timestamp (ms integer or ISO-8601 string) to ms."""
    if isinstance(value, bool):
        raise RecordValidationError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        if value < 0:
            raise RecordValidationError("timestamp must be unsigned")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return int(datetime.fromisoformat(text).timestamp() * 1000)
        except ValueError as e:
            raise RecordValidationError(f"invalid timestamp {value!r}") from e
    raise RecordValidationError(
        f"timestamp must be an integer or ISO string (got {type(value).__name__})"
    )


def _require_str(row: dict, key: str, what: str) -> str:
    if key not in row:
        raise RecordValidationError(f"{what} missing required key {key!r}")
    value = row[key]
    if not isinstance(value, str) or not value:
        raise RecordValidationError(f"{what} {key} must be a non-empty string")
    return value


def _optional_str(row: dict, key: str, what: str) -> str | None:
    value = row.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RecordValidationError(f"{what} {key} must be a string")
    return value


def validate_message_record(row: Any) -> None:
    if not isinstance(row, dict):
        raise RecordValidationError("message record must be a mapping")

    for key in (K_ID, K_SENDER_ID, K_ROOM_ID):
        _require_str(row, key, "message record")

    if K_CONTENT not in row or not isinstance(row[K_CONTENT], str):
        raise RecordValidationError("message record content must be a string")

    encrypted = row.get(K_ENCRYPTED, False)
    if encrypted is not None and not isinstance(encrypted, bool):
        raise RecordValidationError("message record encrypted flag must be a boolean")

    if K_CREATED_AT not in row:
        raise RecordValidationError("message record missing required key 'created_at'")
    normalize_timestamp(row[K_CREATED_AT])

    _optional_str(row, K_CONTENT_HASH, "message record")
    _optional_str(row, K_CLIENT_ID, "message record")


def parse_message_record(row: Any) -> StoredMessage:
    validate_message_record(row)
    return StoredMessage(
        id=row[K_ID],
        sender_id=row[K_SENDER_ID],
        room_id=row[K_ROOM_ID],
        content=row[K_CONTENT],
        encrypted=bool(row.get(K_ENCRYPTED) or False),
        created_at=normalize_timestamp(row[K_CREATED_AT]),
        content_hash=row.get(K_CONTENT_HASH),
        client_id=row.get(K_CLIENT_ID),
    )


def parse_room(row: Any) -> Room:
    if not isinstance(row, dict):
        raise RecordValidationError("room record must be a mapping")
    room_id = _require_str(row, K_ID, "room record")
    name = _require_str(row, K_ROOM_NAME, "room record")
    created_at = normalize_timestamp(row.get(K_CREATED_AT, 0))
    return Room(id=room_id, name=name, created_at=created_at)


def parse_membership(row: Any) -> Membership:
    if not isinstance(row, dict):
        raise RecordValidationError("membership record must be a mapping")
    return Membership(
        room_id=_require_str(row, K_MEMBER_ROOM_ID, "membership record"),
        identity_id=_require_str(row, K_MEMBER_USER_ID, "membership record"),
    )


def parse_profile(row: Any) -> Identity:
    if not isinstance(row, dict):
        raise RecordValidationError("profile record must be a mapping")
    return Identity(
        id=_require_str(row, K_ID, "profile record"),
        name=_optional_str(row, K_PROFILE_NAME, "profile record"),
        email=_optional_str(row, K_PROFILE_EMAIL, "profile record"),
    )
