"""Optimistic send pipeline: pending entries and persistence."""

from __future__ import annotations

import logging

from .crypto import content_hash
from .errors import RecordValidationError
from .interfaces import Cipher, ContentHasher, MessageStore
from .records import (
    correlation_id,
    make_message_record,
    now_ms,
    parse_message_record,
    temp_id,
)
from .types import Identity, Message, MessageStatus, StoredMessage
from .utils import resolve_display_name

logger = logging.getLogger(__name__)


class OptimisticSender:
    """Builds pending messages and persists them.

    The visible-list transitions (sending -> sent, or removal) are applied
    by the session, which knows whether the target room is still active.
    """

    def __init__(
        self,
        store: MessageStore,
        cipher: Cipher,
        identity: Identity,
        *,
        hasher: ContentHasher = content_hash,
        encrypt: bool = True,
        correlate: bool = False,
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.identity = identity
        self.hasher = hasher
        self.encrypt = encrypt
        self.correlate = correlate

    def build_pending(self, text: str) -> Message:
        return Message(
            id=temp_id(),
            sender_id=self.identity.id,
            sender_name=resolve_display_name(self.identity),
            content=text,
            created_at=now_ms(),
            encrypted=False,
            status=MessageStatus.SENDING,
            correlation_id=correlation_id() if self.correlate else None,
        )

    async def persist(self, room_id: str, pending: Message) -> StoredMessage | None:
        """Encrypt, hash and insert a pending message.

        Returns:
            The stored record if the store echoed a well-formed one, else None

        Raises:
            Exception: whatever the cipher, hasher or store raised
        """
        plaintext = pending.content
        content = (
            self.cipher.encrypt(plaintext, self.identity.id) if self.encrypt else plaintext
        )
        record = make_message_record(
            sender_id=self.identity.id,
            room_id=room_id,
            content=content,
            content_hash=self.hasher(plaintext),
            encrypted=self.encrypt,
            client_id=pending.correlation_id,
        )

        row = await self.store.insert_message(record)
        if not row:
            return None

        try:
            return parse_message_record(row)
        except RecordValidationError as e:
            logger.warning("Insert response for %s was malformed: %s", pending.id, e)
            return None
