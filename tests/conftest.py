"""Shared fixtures: an in-memory backend and a session over it."""

import asyncio

import pytest

from chatsync.constants import K_CONTENT, K_CREATED_AT, K_ENCRYPTED, K_ID, K_ROOM_ID, K_SENDER_ID
from chatsync.crypto import FernetCipher
from chatsync.memory import MemoryEventStream, MemoryStore
from chatsync.session import ChatSession, SessionConfig
from chatsync.types import Identity

ALICE = Identity(id="alice-id", name="Alice", email="alice@example.com")
BOB = Identity(id="bob-id", name=None, email="bob@example.com")


async def settle(rounds: int = 20) -> None:
    """Let queued callbacks and tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def add_stored_message(store, room_id, sender_id, content, created_at, message_id=None):
    """Put a plaintext row straight into the store, bypassing the stream."""
    row = {
        K_ID: message_id or f"msg-{room_id}-{created_at}",
        K_SENDER_ID: sender_id,
        K_ROOM_ID: room_id,
        K_CONTENT: content,
        K_ENCRYPTED: False,
        K_CREATED_AT: created_at,
    }
    store.messages.append(row)
    return row


@pytest.fixture
def cipher():
    return FernetCipher("test-secret")


@pytest.fixture
def stream():
    return MemoryEventStream()


@pytest.fixture
def store(stream):
    store = MemoryStore(stream)
    store.add_profile(ALICE.id, name=ALICE.name, email=ALICE.email)
    store.add_profile(BOB.id, name=BOB.name, email=BOB.email)
    return store


@pytest.fixture
def general(store):
    room = store.add_room("General Discussion")
    store.join(room[K_ID], ALICE.id)
    store.join(room[K_ID], BOB.id)
    return room[K_ID]


@pytest.fixture
async def make_session(store, stream, cipher):
    """Build sessions over the fixture backend; closes them afterwards."""
    sessions = []

    def _make(identity=ALICE, backend=None, **config):
        session = ChatSession(
            identity,
            backend or store,
            stream,
            cipher,
            config=SessionConfig(**config),
        )
        sessions.append(session)
        return session

    yield _make

    for session in sessions:
        await session.close()
