"""Record types for identities, rooms, memberships and messages.

Store rows and stream notifications arrive as plain dicts. They are
validated at the boundary (see ``records``) and converted into these
frozen dataclasses; nothing past that boundary handles raw rows.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .constants import ROOM_KIND_GROUP


class MessageStatus(str, Enum):
    """Lifecycle of a visible message."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"


class ConnectionState(str, Enum):
    """Tri-state readiness signal gating input and send."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class RoomToken:
    """Tags async work with the room (and room activation) it targeted."""

    room_id: str
    generation: int


@dataclass(frozen=True)
class Identity:
    id: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    created_at: int
    member_count: int = 0
    is_member: bool = False
    kind: str = ROOM_KIND_GROUP


@dataclass(frozen=True)
class Membership:
    room_id: str
    identity_id: str


@dataclass(frozen=True)
class StoredMessage:
    """A persisted message record, content still as stored (maybe ciphertext)."""

    id: str
    sender_id: str
    room_id: str
    content: str
    encrypted: bool
    created_at: int
    content_hash: str | None = None
    client_id: str | None = None


@dataclass(frozen=True)
class Message:
    """A message as shown in the active room. Content is always plaintext."""

    id: str
    sender_id: str
    sender_name: str
    content: str
    created_at: int
    encrypted: bool
    status: MessageStatus
    remote_id: str | None = None
    correlation_id: str | None = None

    @property
    def is_pending(self) -> bool:
        """True until the authoritative echo has replaced this entry."""
        return self.status is not MessageStatus.DELIVERED

    def evolve(self, **changes: Any) -> Message:
        return replace(self, **changes)
