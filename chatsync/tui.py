"""Textual TUI front-end for a chat session."""

from __future__ import annotations

import logging
from typing import Any

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import (
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    RichLog,
    Static,
)

from .crypto import FernetCipher
from .errors import ErrorSeverity, Notice
from .memory import MemoryEventStream, MemoryStore, seed_demo_store
from .session import ChatSession, SessionConfig
from .types import ConnectionState, Identity, Message, MessageStatus, Room
from .utils import format_timestamp

logger = logging.getLogger(__name__)

STATUS_MARKERS = {
    MessageStatus.SENDING: "…",
    MessageStatus.SENT: "✓",
    MessageStatus.DELIVERED: "✓✓",
}

CONNECTION_LABELS = {
    ConnectionState.CONNECTING: ("●", "yellow", "Connecting"),
    ConnectionState.CONNECTED: ("●", "green", "Connected"),
    ConnectionState.DISCONNECTED: ("●", "red", "Disconnected"),
}

NOTIFY_SEVERITY = {
    ErrorSeverity.INFO: "information",
    ErrorSeverity.WARNING: "warning",
    ErrorSeverity.ERROR: "error",
    ErrorSeverity.CRITICAL: "error",
}


class MessageFormatter:
    """Handles formatting of chat messages with timestamps and styling."""

    def __init__(self, config: dict, own_id: str):
        self.config = config
        self.own_id = own_id

    def format_timestamp(self, created_at: int) -> str:
        if self.config.get("show_timestamps", True):
            fmt = self.config.get("timestamp_format", "%H:%M:%S")
            return f"[{format_timestamp(created_at, fmt)}] "
        return ""

    def format_message(self, message: Message) -> Text:
        """Own messages carry a status marker; others are prefixed by sender."""
        own = message.sender_id == self.own_id
        text = Text(self.format_timestamp(message.created_at), style="dim")

        if own:
            text.append(message.content)
            text.append(f" {STATUS_MARKERS[message.status]}")
            if message.status is MessageStatus.SENDING:
                text.stylize("yellow")
            elif message.status is MessageStatus.DELIVERED:
                text.stylize("green")
        else:
            text.append(f"<{message.sender_name}> ", style="bold cyan")
            text.append(message.content)

        if message.encrypted:
            text.append(" 🔒", style="dim")
        return text

    def format_system_message(self, text: str) -> Text:
        return Text(f"--- {text}", style="green")


class RoomButton(ListItem):
    """A room entry showing its member count."""

    def __init__(self, room: Room, **kwargs: Any):
        super().__init__(**kwargs)
        self.room_id = room.id
        self.room_name = room.name
        self.member_count = room.member_count

    def compose(self) -> ComposeResult:
        yield Label(f"# {self.room_name} ({self.member_count})")


class RoomHeader(Static):
    """Name and member count of the active room."""

    def __init__(self, **kwargs: Any):
        super().__init__("", **kwargs)
        self.text = ""

    def show(self, room: Room | None) -> None:
        self.text = f"# {room.name} - {room.member_count} members" if room else ""
        self.update(self.text)


class ChatSyncApp(App):
    """Textual-based TUI over a ``ChatSession``."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2 1;
        grid-columns: 28 1fr;
    }

    #room_container {
        border: solid $primary;
        height: 100%;
        padding: 0 1;
    }

    #message_container {
        border: solid $primary;
        height: 100%;
        layout: vertical;
    }

    #room_info {
        width: 100%;
        height: 1;
        background: $accent;
        color: $text;
        padding: 0 1;
    }

    #message_display {
        height: 1fr;
        border: solid $accent;
        background: $surface;
    }

    #input_box {
        height: 3;
        border: solid $accent;
        layout: horizontal;
        padding: 0 1;
    }

    #input_prompt {
        width: auto;
    }

    #input_field {
        width: 1fr;
    }

    Input {
        background: $surface;
        border: none;
    }

    ListView {
        height: 100%;
    }

    ListItem {
        height: auto;
        padding: 0 1;
    }

    .room_active {
        background: $accent;
        color: $text;
    }
    """

    BINDINGS = [
        Binding("f5", "reload_rooms", "Reload rooms"),
        Binding("f10", "quit", "Quit"),
    ]

    def __init__(self, session: ChatSession, config: dict[str, Any] | None = None):
        super().__init__()
        self.session = session
        self.config = config or {}
        self.message_formatter = MessageFormatter(self.config, session.identity.id)

    def compose(self) -> ComposeResult:
        """Compose the UI layout."""
        yield Header()

        with Container(id="room_container"):
            yield Static("Chat Rooms", classes="box-title")
            yield ListView(id="room_list")

        with Container(id="message_container"):
            yield RoomHeader(id="room_info")
            yield RichLog(id="message_display", highlight=False, markup=False, wrap=True)
            with Container(id="input_box"):
                yield Static("> ", id="input_prompt")
                yield Input(placeholder="Connecting...", id="input_field", disabled=True)

        yield Footer()

    def on_mount(self) -> None:
        """Wire session callbacks and start the directory load."""
        self.title = "chatsync"

        self.session.on_rooms_changed = lambda rooms: self._update_room_list()
        self.session.on_messages_changed = lambda messages: self._update_message_display()
        self.session.on_connection_changed = self._set_connection_state
        self.session.on_notice = self._show_notice

        self._update_header()
        self._update_message_display()
        self.run_worker(self.session.start(), exclusive=True, group="directory")

    def _set_connection_state(self, state: ConnectionState) -> None:
        """React to connectivity changes."""
        self._update_header()
        self._update_input_state()

    def _update_header(self) -> None:
        dot, color, label = CONNECTION_LABELS[self.session.connection_state]
        self.sub_title = f"{dot} {label}"
        header = self.query_one(Header)
        header.styles.color = color

    def _update_input_state(self) -> None:
        input_field = self.query_one("#input_field", Input)
        enabled = self.session.can_send
        input_field.disabled = not enabled
        input_field.placeholder = "Type your message..." if enabled else "Connecting..."
        if enabled:
            input_field.focus()

    def _update_room_list(self) -> None:
        """Update the room list display."""
        room_list = self.query_one("#room_list", ListView)
        room_list.clear()

        for room in self.session.rooms:
            item = RoomButton(room)
            if room.id == self.session.active_room_id:
                item.add_class("room_active")
            room_list.append(item)

        self._update_room_info()
        self._update_input_state()
        self._update_message_display()

    def _update_room_info(self) -> None:
        """Update the room info header."""
        self.query_one("#room_info", RoomHeader).show(self.session.active_room)

    def _update_message_display(self) -> None:
        """Redraw the message log for the active room."""
        message_log = self.query_one("#message_display", RichLog)
        message_log.clear()

        if self.session.loading:
            message_log.write(self.message_formatter.format_system_message("Loading chat rooms..."))
            return

        for message in self.session.messages:
            message_log.write(self.message_formatter.format_message(message))

    def _show_notice(self, notice: Notice) -> None:
        self.notify(
            notice.description,
            title=notice.title,
            severity=NOTIFY_SEVERITY[notice.severity],
        )

    @on(ListView.Selected, "#room_list")
    def on_room_selected(self, event: ListView.Selected) -> None:
        """Handle room selection."""
        if isinstance(event.item, RoomButton):
            self.session.select_room(event.item.room_id)

    @on(Input.Changed, "#input_field")
    def on_input_changed(self, event: Input.Changed) -> None:
        self.session.set_draft(event.value)

    @on(Input.Submitted, "#input_field")
    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Hand the draft to the session; clear the field once accepted."""
        self.session.set_draft(event.value)
        if self.session.submit() is not None:
            event.input.value = ""

    def action_reload_rooms(self) -> None:
        """Retry the directory load."""
        self.run_worker(self.session.load_rooms(), exclusive=True, group="directory")

    async def action_quit(self) -> None:
        """Quit the application, tearing down the live subscription first."""
        try:
            await self.session.close()
        except Exception as e:
            logger.debug(f"Error closing session during quit: {e}")

        self.exit()


def build_local_session(config: dict[str, Any]) -> ChatSession:
    """Session over the in-memory backend, seeded with ``demo_rooms``."""
    stream = MemoryEventStream()
    store = MemoryStore(stream)
    seed_demo_store(
        store,
        config.get("demo_rooms", []),
        config["identity_id"],
        config.get("display_name", ""),
        config.get("email", ""),
    )
    identity = Identity(
        id=config["identity_id"],
        name=config.get("display_name") or None,
        email=config.get("email") or None,
    )
    return ChatSession(
        identity,
        store,
        stream,
        FernetCipher(config["cipher_secret"]),
        config=SessionConfig.from_config(config),
    )


def run_textual_tui(config: dict[str, Any]) -> None:
    """Entry point for running the Textual TUI."""
    app = ChatSyncApp(build_local_session(config), config)
    app.run()
