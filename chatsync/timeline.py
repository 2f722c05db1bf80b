"""Ordered list of visible messages for the active room."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .constants import MAX_MESSAGES_PER_ROOM_DEFAULT
from .types import Message, MessageStatus

logger = logging.getLogger(__name__)


class MessageTimeline:
    """Visible messages in display order.

    Entries are only ever appended at the end or replaced in place, so a
    reconciled message keeps its slot. When the list grows past
    ``max_messages`` the oldest entries are dropped.
    """

    def __init__(self, max_messages: int = MAX_MESSAGES_PER_ROOM_DEFAULT):
        self.max_messages = max_messages
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def index_of(self, message_id: str) -> int | None:
        for i, msg in enumerate(self._messages):
            if msg.id == message_id:
                return i
        return None

    def append(self, message: Message) -> int:
        """Append a message and return its index after trimming."""
        self._messages.append(message)
        if self.max_messages and len(self._messages) > self.max_messages:
            dropped = len(self._messages) - self.max_messages
            self._messages = self._messages[dropped:]
            logger.debug("Dropped %d oldest message(s) from timeline", dropped)
        return len(self._messages) - 1

    def replace_at(self, index: int, message: Message) -> None:
        self._messages[index] = message

    def remove(self, message_id: str) -> Message | None:
        index = self.index_of(message_id)
        if index is None:
            return None
        return self._messages.pop(index)

    def mark_sent(self, message_id: str, remote_id: str | None = None) -> int | None:
        """Move a pending entry from sending to sent, in place.

        Returns:
            Index of the updated entry, or None if it is gone or no longer
            in the sending state
        """
        index = self.index_of(message_id)
        if index is None:
            return None

        current = self._messages[index]
        if current.status is not MessageStatus.SENDING:
            return None

        self._messages[index] = current.evolve(
            status=MessageStatus.SENT,
            remote_id=remote_id or current.remote_id,
        )
        return index

    def load_history(self, history: Iterable[Message]) -> None:
        """Replace the list with a freshly loaded history window.

        Entries that arrived while the load was in flight (local sends,
        realtime deliveries) are kept after the window, in their existing
        order, unless the window already holds them. A pending entry is
        covered by the newest unclaimed loaded message it pairs with (see
        ``_pairs_with``); each loaded message covers at most one entry.
        """
        loaded = list(history)
        known = {m.id for m in loaded}
        claimed: set[int] = set()
        carried = []

        for msg in self._messages:
            if msg.id in known:
                continue
            if msg.is_pending:
                index = next(
                    (
                        i
                        for i in reversed(range(len(loaded)))
                        if i not in claimed and _pairs_with(msg, loaded[i])
                    ),
                    None,
                )
                if index is not None:
                    claimed.add(index)
                    logger.debug("Pending %s already in history as %s", msg.id, loaded[index].id)
                    continue
            carried.append(msg)

        self._messages = loaded + carried
        if self.max_messages and len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages:]


def _pairs_with(pending: Message, loaded: Message) -> bool:
    # a known durable id pins the entry; otherwise correlation id, then content
    if pending.remote_id is not None:
        return pending.remote_id == loaded.id
    if pending.correlation_id is not None and loaded.correlation_id is not None:
        return pending.correlation_id == loaded.correlation_id
    return pending.sender_id == loaded.sender_id and pending.content == loaded.content
