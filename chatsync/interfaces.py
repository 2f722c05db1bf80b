"""Collaborator contracts consumed by the sync engine."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Protocol

ContentHasher = Callable[[str], str]
InsertCallback = Callable[[dict[str, Any]], None]
StatusCallback = Callable[[str], None]


class Cipher(Protocol):
    def encrypt(self, plaintext: str, identity_id: str) -> str: ...

    def decrypt(self, ciphertext: str, identity_id: str) -> str: ...


class MessageStore(Protocol):
    """Async query surface of the persistent store.

    All methods return plain rows; validation happens in the engine.
    """

    async def list_rooms(self) -> list[dict[str, Any]]: ...

    async def list_memberships(self, identity_id: str) -> list[dict[str, Any]]: ...

    async def add_membership(self, room_id: str, identity_id: str) -> None: ...

    async def count_members(self, room_id: str) -> int: ...

    async def recent_messages(
        self, room_id: str, limit: int
    ) -> list[dict[str, Any]]: ...

    async def get_profiles(self, identity_ids: Iterable[str]) -> list[dict[str, Any]]: ...

    async def get_profile(self, identity_id: str) -> dict[str, Any] | None: ...

    async def insert_message(self, record: dict[str, Any]) -> dict[str, Any] | None: ...


class Subscription(Protocol):
    channel: str

    def cancel(self) -> None: ...


class EventStream(Protocol):
    def subscribe(
        self,
        room_id: str,
        on_insert: InsertCallback,
        on_status: StatusCallback,
    ) -> Subscription: ...
