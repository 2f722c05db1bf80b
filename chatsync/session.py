"""Chat session: the presented interface of the sync engine."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from .connectivity import ConnectivityState
from .constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_ROOM_NAME,
    MAX_MESSAGES_PER_ROOM_DEFAULT,
    MAX_NOTICES,
)
from .crypto import content_hash
from .directory import RoomDirectory
from .errors import ErrorSeverity, Notice
from .history import HistoryLoader
from .interfaces import Cipher, ContentHasher, EventStream, MessageStore
from .reconciler import RealtimeReconciler
from .sender import OptimisticSender
from .timeline import MessageTimeline
from .types import ConnectionState, Identity, Message, Room, RoomToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    default_room_name: str = DEFAULT_ROOM_NAME
    history_limit: int = DEFAULT_HISTORY_LIMIT
    max_messages_per_room: int = MAX_MESSAGES_PER_ROOM_DEFAULT
    encrypt_messages: bool = True
    correlate_sends: bool = False

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SessionConfig:
        """Build from a validated config dictionary (see ``config.load_config``)."""
        defaults = cls()
        return cls(
            default_room_name=config.get("default_room_name") or defaults.default_room_name,
            history_limit=config.get("history_limit", defaults.history_limit),
            max_messages_per_room=config.get(
                "max_messages_per_room", defaults.max_messages_per_room
            ),
            encrypt_messages=config.get("encrypt_messages", defaults.encrypt_messages),
            correlate_sends=config.get("correlate_sends", defaults.correlate_sends),
        )


class ChatSession:
    """Room list, active room messages, connectivity and ``submit``.

    Everything runs on one asyncio loop. Each async operation is tagged
    with the ``RoomToken`` that was active when it was dispatched, and its
    result is dropped if another room has been selected since.
    """

    def __init__(
        self,
        identity: Identity,
        store: MessageStore,
        stream: EventStream,
        cipher: Cipher,
        *,
        hasher: ContentHasher = content_hash,
        config: SessionConfig | None = None,
    ) -> None:
        self.identity = identity
        self.config = config or SessionConfig()

        self.connectivity = ConnectivityState()
        self.timeline = MessageTimeline(self.config.max_messages_per_room)
        self.directory = RoomDirectory(store, identity.id, self.config.default_room_name)
        self.history = HistoryLoader(store, cipher, identity.id, self.config.history_limit)
        self.sender = OptimisticSender(
            store,
            cipher,
            identity,
            hasher=hasher,
            encrypt=self.config.encrypt_messages,
            correlate=self.config.correlate_sends,
        )
        self.reconciler = RealtimeReconciler(
            stream,
            store,
            cipher,
            identity.id,
            self.timeline,
            correlate=self.config.correlate_sends,
        )
        self.reconciler.on_status = self._handle_subscription_status
        self.reconciler.on_merged = self._handle_merged
        self.reconciler.is_current = self.is_current

        self._rooms: list[Room] = []
        self._token: RoomToken | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

        self.loading = True
        self.draft = ""
        self.notices: deque[Notice] = deque(maxlen=MAX_NOTICES)

        self.on_rooms_changed: Callable[[tuple[Room, ...]], None] | None = None
        self.on_messages_changed: Callable[[tuple[Message, ...]], None] | None = None
        self.on_connection_changed: Callable[[ConnectionState], None] | None = None
        self.on_notice: Callable[[Notice], None] | None = None

        self.connectivity.on_change = self._handle_connectivity_change

    @property
    def rooms(self) -> tuple[Room, ...]:
        return tuple(self._rooms)

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.timeline.snapshot()

    @property
    def connection_state(self) -> ConnectionState:
        return self.connectivity.state

    @property
    def can_send(self) -> bool:
        return self.connectivity.can_send and self._token is not None

    @property
    def active_room_id(self) -> str | None:
        return self._token.room_id if self._token else None

    @property
    def active_room(self) -> Room | None:
        room_id = self.active_room_id
        for room in self._rooms:
            if room.id == room_id:
                return room
        return None

    def is_current(self, token: RoomToken) -> bool:
        return not self._closed and token == self._token

    async def start(self) -> bool:
        """Load the room directory and activate the first room."""
        return await self.load_rooms()

    async def load_rooms(self) -> bool:
        """Run the directory bootstrap.

        A failure leaves the session disconnected; calling this again is
        the manual retry.

        Returns:
            True if the directory loaded
        """
        self.loading = True
        self.connectivity.reset()
        try:
            rooms = await self.directory.load()
        except Exception as e:
            logger.error("Failed to load chat rooms: %s", e)
            self.loading = False
            self._drop_rooms()
            self.connectivity.mark_disconnected()
            self._notify(
                "Connection Error",
                "Failed to load chat rooms. Please refresh the page.",
                ErrorSeverity.ERROR,
            )
            return False
        finally:
            self.loading = False

        if self._closed:
            return False

        self._rooms = rooms
        self.connectivity.mark_connected()

        if rooms and self._token is None:
            self.select_room(rooms[0].id)
        else:
            self._fire(self.on_rooms_changed, self.rooms)

        return True

    def select_room(self, room_id: str) -> bool:
        """Make ``room_id`` the active room.

        Tears down the previous subscription, clears the visible list,
        subscribes to the new room and starts its history load.

        Returns:
            False if the room is already active, the session is closed,
            or the directory failed to load
        """
        if self._closed:
            return False
        if self.connection_state is ConnectionState.DISCONNECTED:
            logger.debug("Room selection ignored while disconnected")
            return False
        if self._token is not None and self._token.room_id == room_id:
            return False

        self._generation += 1
        token = RoomToken(room_id=room_id, generation=self._generation)
        self._token = token
        logger.info("Active room is now %s", room_id)

        self.connectivity.reset()
        self.timeline.clear()
        self._fire(self.on_rooms_changed, self.rooms)
        self._fire(self.on_messages_changed, self.messages)

        try:
            self.reconciler.start(token)
        except Exception as e:
            logger.error("Failed to subscribe to room %s: %s", room_id, e)

        self._spawn(self._load_history(token))
        return True

    def set_draft(self, text: str) -> None:
        self.draft = text

    def submit(self, text: str | None = None) -> asyncio.Task | None:
        """Send ``text`` (or the current draft) optimistically.

        Empty or whitespace-only text, no active room, or a session that
        is not connected make this a no-op that leaves the draft alone.

        Returns:
            The task persisting the message, or None if nothing was sent
        """
        raw = self.draft if text is None else text
        content = raw.strip()
        token = self._token

        if not content or token is None:
            return None
        if not self.connectivity.can_send:
            logger.debug("Submit ignored while %s", self.connection_state.value)
            return None

        self.draft = ""

        pending = self.sender.build_pending(content)
        self.timeline.append(pending)
        self._fire(self.on_messages_changed, self.messages)

        return self._spawn(self._persist(token, pending))

    async def close(self) -> None:
        """Tear down the subscription and cancel in-flight work."""
        if self._closed:
            return
        self._closed = True
        self.reconciler.stop()

        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._token = None

    async def _load_history(self, token: RoomToken) -> None:
        try:
            messages = await self.history.load(token.room_id)
        except Exception as e:
            logger.warning("Error loading messages for room %s: %s", token.room_id, e)
            if self.is_current(token):
                self._notify("Error loading messages", str(e), ErrorSeverity.ERROR)
            return

        if not self.is_current(token):
            logger.debug("Discarding stale history for room %s", token.room_id)
            return

        self.timeline.load_history(messages)
        self._fire(self.on_messages_changed, self.messages)

    async def _persist(self, token: RoomToken, pending: Message) -> None:
        try:
            stored = await self.sender.persist(token.room_id, pending)
        except Exception as e:
            logger.error("Error sending message %s: %s", pending.id, e)
            if self.is_current(token) and self.timeline.remove(pending.id) is not None:
                self._fire(self.on_messages_changed, self.messages)
            self._notify("Error sending message", str(e), ErrorSeverity.ERROR)
            return

        if not self.is_current(token):
            logger.debug("Discarding late send result for room %s", token.room_id)
            return

        remote_id = stored.id if stored else None
        if self.timeline.mark_sent(pending.id, remote_id) is not None:
            self._fire(self.on_messages_changed, self.messages)

    def _drop_rooms(self) -> None:
        """Forget the room list and the active room after a failed reload."""
        self.reconciler.stop()
        self._token = None
        self._rooms = []
        self.timeline.clear()
        self._fire(self.on_rooms_changed, self.rooms)
        self._fire(self.on_messages_changed, self.messages)

    def _handle_subscription_status(self, token: RoomToken, status: str) -> None:
        if self.is_current(token):
            self.connectivity.apply_subscription_status(status)

    def _handle_merged(self, token: RoomToken, index: int, message: Message) -> None:
        self._fire(self.on_messages_changed, self.messages)

    def _handle_connectivity_change(self, state: ConnectionState) -> None:
        self._fire(self.on_connection_changed, state)

    def _notify(self, title: str, description: str, severity: ErrorSeverity) -> None:
        notice = Notice(title=title, description=description, severity=severity)
        self.notices.append(notice)
        self._fire(self.on_notice, notice)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled error in session task: %r", exc)

    def _fire(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.exception("Error in session callback: %s", e)
