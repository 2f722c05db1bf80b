"""In-memory store and event stream implementing the collaborator contracts.

Used by the terminal front-end's local mode and by the test suite. The
stream CBOR-encodes each record on publish and decodes it on delivery, so
subscribers never share objects with the store.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .codec import decode, encode
from .constants import (
    CHANNEL_PREFIX,
    K_CREATED_AT,
    K_ID,
    K_MEMBER_ROOM_ID,
    K_MEMBER_USER_ID,
    K_PROFILE_EMAIL,
    K_PROFILE_NAME,
    K_ROOM_ID,
    K_ROOM_NAME,
    SUB_CLOSED,
    SUB_SUBSCRIBED,
)
from .debug import log_record_debug, validate_record_structure
from .errors import StoreError
from .interfaces import InsertCallback, StatusCallback
from .records import now_ms

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MemorySubscription:
    stream: MemoryEventStream
    room_id: str
    on_insert: InsertCallback
    on_status: StatusCallback
    active: bool = True
    channel: str = field(init=False)

    def __post_init__(self) -> None:
        self.channel = f"{CHANNEL_PREFIX}{self.room_id}"

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self.stream._detach(self)


class MemoryEventStream:
    """Per-room insert notifications delivered on the running event loop.

    Args:
        auto_acknowledge: Report ``SUBSCRIBED`` shortly after subscribing.
            Turn off to simulate a stalled subscription.
    """

    def __init__(self, auto_acknowledge: bool = True) -> None:
        self.auto_acknowledge = auto_acknowledge
        self._channels: dict[str, list[MemorySubscription]] = {}
        self.subscribe_count = 0
        self.cancel_count = 0

    def subscribe(
        self,
        room_id: str,
        on_insert: InsertCallback,
        on_status: StatusCallback,
    ) -> MemorySubscription:
        sub = MemorySubscription(self, room_id, on_insert, on_status)
        self._channels.setdefault(room_id, []).append(sub)
        self.subscribe_count += 1
        logger.debug("Channel %s joined", sub.channel)

        if self.auto_acknowledge:
            asyncio.get_running_loop().call_soon(self._report, sub, SUB_SUBSCRIBED)
        return sub

    def acknowledge(self, room_id: str, status: str = SUB_SUBSCRIBED) -> None:
        """Report ``status`` to every live subscriber of ``room_id``."""
        for sub in list(self._channels.get(room_id, [])):
            self._report(sub, status)

    def active_subscriptions(self, room_id: str | None = None) -> int:
        if room_id is not None:
            return len(self._channels.get(room_id, []))
        return sum(len(subs) for subs in self._channels.values())

    def publish(self, record: dict[str, Any]) -> None:
        """Fan a stored record out to the subscribers of its room."""
        issues = validate_record_structure(record)
        if issues:
            raise StoreError(f"refusing to publish malformed record: {'; '.join(issues)}")

        log_record_debug(record, "TX")
        payload = encode(record)
        loop = asyncio.get_running_loop()
        for sub in list(self._channels.get(record[K_ROOM_ID], [])):
            loop.call_soon(self._deliver, sub, payload)

    def _deliver(self, sub: MemorySubscription, payload: bytes) -> None:
        if not sub.active:
            return
        try:
            sub.on_insert(decode(payload))
        except Exception as e:
            logger.exception("Error in insert callback for %s: %s", sub.channel, e)

    def _report(self, sub: MemorySubscription, status: str) -> None:
        if not sub.active and status != SUB_CLOSED:
            return
        try:
            sub.on_status(status)
        except Exception as e:
            logger.exception("Error in status callback for %s: %s", sub.channel, e)

    def _detach(self, sub: MemorySubscription) -> None:
        subs = self._channels.get(sub.room_id, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._channels.pop(sub.room_id, None)
        self.cancel_count += 1
        logger.debug("Channel %s left", sub.channel)
        with contextlib.suppress(RuntimeError):
            asyncio.get_running_loop().call_soon(self._report, sub, SUB_CLOSED)


class MemoryStore:
    """Dict-backed store. Inserted messages are published to ``stream``."""

    def __init__(self, stream: MemoryEventStream | None = None) -> None:
        self.stream = stream
        self.rooms: dict[str, dict[str, Any]] = {}
        self.memberships: list[dict[str, str]] = []
        self.profiles: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self._clock = 0

    def _next_timestamp(self) -> int:
        # strictly increasing so records inserted in the same millisecond keep order
        self._clock = max(self._clock + 1, now_ms())
        return self._clock

    def add_room(self, name: str, room_id: str | None = None) -> dict[str, Any]:
        row = {
            K_ID: room_id or str(uuid.uuid4()),
            K_ROOM_NAME: name,
            K_CREATED_AT: self._next_timestamp(),
        }
        self.rooms[row[K_ID]] = row
        return dict(row)

    def add_profile(
        self, identity_id: str, name: str | None = None, email: str | None = None
    ) -> dict[str, Any]:
        row = {K_ID: identity_id, K_PROFILE_NAME: name, K_PROFILE_EMAIL: email}
        self.profiles[identity_id] = row
        return dict(row)

    def join(self, room_id: str, identity_id: str) -> None:
        if room_id not in self.rooms:
            raise StoreError(f"unknown room {room_id}")
        entry = {K_MEMBER_ROOM_ID: room_id, K_MEMBER_USER_ID: identity_id}
        if entry not in self.memberships:
            self.memberships.append(entry)

    async def list_rooms(self) -> list[dict[str, Any]]:
        rows = sorted(self.rooms.values(), key=lambda r: r[K_CREATED_AT])
        return [dict(r) for r in rows]

    async def list_memberships(self, identity_id: str) -> list[dict[str, Any]]:
        return [dict(m) for m in self.memberships if m[K_MEMBER_USER_ID] == identity_id]

    async def add_membership(self, room_id: str, identity_id: str) -> None:
        self.join(room_id, identity_id)

    async def count_members(self, room_id: str) -> int:
        return sum(1 for m in self.memberships if m[K_MEMBER_ROOM_ID] == room_id)

    async def recent_messages(self, room_id: str, limit: int) -> list[dict[str, Any]]:
        rows = [m for m in self.messages if m[K_ROOM_ID] == room_id]
        rows.sort(key=lambda m: m[K_CREATED_AT])
        if limit >= 0:
            rows = rows[-limit:] if limit else []
        return [dict(m) for m in rows]

    async def get_profiles(self, identity_ids: Iterable[str]) -> list[dict[str, Any]]:
        wanted = set(identity_ids)
        return [dict(p) for pid, p in self.profiles.items() if pid in wanted]

    async def get_profile(self, identity_id: str) -> dict[str, Any] | None:
        row = self.profiles.get(identity_id)
        return dict(row) if row else None

    async def insert_message(self, record: dict[str, Any]) -> dict[str, Any]:
        room_id = record.get(K_ROOM_ID)
        if room_id not in self.rooms:
            raise StoreError(f"unknown room {room_id}")

        row = dict(record)
        row[K_ID] = str(uuid.uuid4())
        row[K_CREATED_AT] = self._next_timestamp()
        self.messages.append(row)

        if self.stream is not None:
            self.stream.publish(dict(row))
        return dict(row)


def seed_demo_store(
    store: MemoryStore, room_names: Iterable[str], identity_id: str, name: str, email: str
) -> None:
    """Create rooms and the local profile for local mode."""
    for room_name in room_names:
        store.add_room(room_name)
    store.add_profile(identity_id, name=name or None, email=email or None)
