"""Realtime reconciler: merges stream echoes into the visible list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from functools import partial
from typing import Any

from .constants import UNKNOWN_SENDER
from .debug import log_record_debug
from .history import delivered_message, reveal_content
from .interfaces import Cipher, EventStream, MessageStore, Subscription
from .records import parse_message_record, parse_profile
from .timeline import MessageTimeline
from .types import Message, RoomToken, StoredMessage
from .utils import resolve_display_name

logger = logging.getLogger(__name__)


def find_pending_match(
    messages: Sequence[Message],
    record: StoredMessage,
    content: str,
    *,
    use_correlation: bool = False,
) -> int | None:
    """Find the slot an incoming record should replace.

    Match order:
      1. an entry already carrying the record's durable id (as its id, or as
         the ``remote_id`` learned from the insert response)
      2. with correlation enabled, the pending entry whose correlation id
         the record echoes back
      3. the first pending entry from the same sender with exactly the same
         content, unless a durable id already pins that entry

    Rule 3 has no correlation key, so two identical messages sent close
    together by one sender may be matched in either order.

    Returns:
        Index to replace, or None to append
    """
    for i, msg in enumerate(messages):
        if msg.id == record.id or (msg.remote_id is not None and msg.remote_id == record.id):
            return i

    correlated = use_correlation and record.client_id is not None
    if correlated:
        for i, msg in enumerate(messages):
            if msg.is_pending and msg.correlation_id == record.client_id:
                return i

    for i, msg in enumerate(messages):
        if correlated and msg.correlation_id is not None:
            continue
        if msg.remote_id is not None:
            continue
        if (
            msg.sender_id == record.sender_id
            and msg.is_pending
            and msg.content == content
        ):
            return i

    return None


class RealtimeReconciler:
    """Owns the single live subscription for the active room.

    Deliveries are queued and resolved one at a time so that they merge in
    arrival order even though each needs an async profile lookup.
    """

    def __init__(
        self,
        stream: EventStream,
        store: MessageStore,
        cipher: Cipher,
        reader_id: str,
        timeline: MessageTimeline,
        *,
        correlate: bool = False,
    ) -> None:
        self.stream = stream
        self.store = store
        self.cipher = cipher
        self.reader_id = reader_id
        self.timeline = timeline
        self.correlate = correlate

        self.on_status: Callable[[RoomToken, str], None] | None = None
        self.on_merged: Callable[[RoomToken, int, Message], None] | None = None
        self.is_current: Callable[[RoomToken], bool] = lambda token: True

        self._token: RoomToken | None = None
        self._subscription: Subscription | None = None
        self._worker: asyncio.Task | None = None

        self.subscribe_count = 0
        self.teardown_count = 0

    @property
    def token(self) -> RoomToken | None:
        return self._token

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def start(self, token: RoomToken) -> None:
        """Subscribe to ``token.room_id``, tearing down any prior subscription."""
        self.stop()

        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._token = token
        self._worker = asyncio.get_running_loop().create_task(
            self._drain(token, queue), name=f"reconcile-{token.room_id}"
        )

        try:
            self._subscription = self.stream.subscribe(
                token.room_id,
                on_insert=partial(self._on_insert, token, queue),
                on_status=partial(self._on_status, token),
            )
        except Exception:
            self.stop()
            raise

        self.subscribe_count += 1
        logger.debug("Subscribed to %s", self._subscription.channel)

    def stop(self) -> bool:
        """Tear down the current subscription. Safe to call repeatedly.

        Returns:
            True if a subscription was cancelled
        """
        subscription = self._subscription
        worker = self._worker
        self._subscription = None
        self._worker = None
        self._token = None

        if worker is not None and not worker.done():
            worker.cancel()

        if subscription is None:
            return False

        try:
            subscription.cancel()
        except Exception as e:
            logger.warning("Error cancelling subscription %s: %s", subscription.channel, e)

        self.teardown_count += 1
        logger.debug("Removed subscription %s", subscription.channel)
        return True

    def _on_insert(
        self, token: RoomToken, queue: asyncio.Queue, row: dict[str, Any]
    ) -> None:
        if token != self._token:
            logger.debug("Dropping insert for stale subscription to %s", token.room_id)
            return
        if isinstance(row, dict):
            log_record_debug(row, "RX")
        queue.put_nowait(row)

    def _on_status(self, token: RoomToken, status: str) -> None:
        logger.debug("Message subscription status: %s", status)
        if token != self._token:
            return
        if self.on_status:
            try:
                self.on_status(token, status)
            except Exception as e:
                logger.exception("Error in on_status callback: %s", e)

    async def _drain(self, token: RoomToken, queue: asyncio.Queue) -> None:
        while True:
            row = await queue.get()
            try:
                message, record = await self.resolve(row)
            except Exception as e:
                logger.warning(
                    "Dropping undeliverable record in room %s: %s", token.room_id, e
                )
                continue

            if token != self._token or not self.is_current(token):
                logger.debug("Discarding late delivery for room %s", token.room_id)
                continue

            if record.room_id != token.room_id:
                logger.warning(
                    "Record %s for room %s arrived on %s", record.id, record.room_id, token.room_id
                )
                continue

            index = self.merge(message, record)

            if self.on_merged:
                try:
                    self.on_merged(token, index, message)
                except Exception as e:
                    logger.exception("Error in on_merged callback: %s", e)

    async def resolve(self, row: Any) -> tuple[Message, StoredMessage]:
        """Turn a raw insert notification into a delivered message."""
        record = parse_message_record(row)
        sender_name = await self._resolve_sender(record.sender_id)
        content = reveal_content(record, self.cipher, self.reader_id)
        return delivered_message(record, sender_name, content), record

    async def _resolve_sender(self, sender_id: str) -> str:
        try:
            row = await self.store.get_profile(sender_id)
            profile = parse_profile(row) if row else None
        except Exception as e:
            logger.warning("Profile lookup for %s failed: %s", sender_id, e)
            return UNKNOWN_SENDER
        return resolve_display_name(profile)

    def merge(self, message: Message, record: StoredMessage) -> int:
        """Replace the matching pending entry in place, or append.

        Returns:
            Index of the merged entry
        """
        index = find_pending_match(
            self.timeline.snapshot(),
            record,
            message.content,
            use_correlation=self.correlate,
        )
        if index is not None:
            self.timeline.replace_at(index, message)
            return index
        return self.timeline.append(message)
