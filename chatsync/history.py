"""Loads the most recent message window for a room."""

from __future__ import annotations

import logging

from .constants import DEFAULT_HISTORY_LIMIT
from .interfaces import Cipher, MessageStore
from .records import parse_message_record, parse_profile
from .types import Identity, Message, MessageStatus, StoredMessage
from .utils import resolve_display_name

logger = logging.getLogger(__name__)


def reveal_content(record: StoredMessage, cipher: Cipher, reader_id: str) -> str:
    """Plaintext of a stored record, decrypting when it is flagged."""
    if record.encrypted:
        return cipher.decrypt(record.content, reader_id)
    return record.content


def delivered_message(record: StoredMessage, sender_name: str, content: str) -> Message:
    return Message(
        id=record.id,
        sender_id=record.sender_id,
        sender_name=sender_name,
        content=content,
        created_at=record.created_at,
        encrypted=record.encrypted,
        status=MessageStatus.DELIVERED,
        correlation_id=record.client_id,
    )


class HistoryLoader:
    def __init__(
        self,
        store: MessageStore,
        cipher: Cipher,
        reader_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.reader_id = reader_id
        self.limit = limit

    async def load(self, room_id: str) -> list[Message]:
        """Fetch up to ``limit`` most recent messages, oldest first.

        Sender names are resolved with one batched profile lookup. A
        failing lookup or decryption fails the whole load.
        """
        rows = await self.store.recent_messages(room_id, self.limit)
        records = sorted(
            (parse_message_record(row) for row in rows), key=lambda r: r.created_at
        )
        if len(records) > self.limit:
            records = records[-self.limit:]

        sender_ids = list(dict.fromkeys(r.sender_id for r in records if r.sender_id))
        profiles: dict[str, Identity] = {}
        if sender_ids:
            for row in await self.store.get_profiles(sender_ids):
                profile = parse_profile(row)
                profiles[profile.id] = profile

        messages = [
            delivered_message(
                record,
                resolve_display_name(profiles.get(record.sender_id)),
                reveal_content(record, self.cipher, self.reader_id),
            )
            for record in records
        ]
        logger.debug(
            "Loaded %d message(s) for room %s (%d sender(s))",
            len(messages),
            room_id,
            len(sender_ids),
        )
        return messages
