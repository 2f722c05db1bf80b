"""Tests for the in-memory backend."""

import pytest
from conftest import ALICE, BOB, settle

from chatsync.errors import StoreError
from chatsync.memory import MemoryEventStream, MemoryStore, seed_demo_store


class TestMemoryEventStream:
    async def test_subscribe_acknowledges(self, stream):
        statuses = []

        stream.subscribe("room-1", lambda row: None, statuses.append)
        await settle()

        assert statuses == ["SUBSCRIBED"]

    async def test_stalled_stream_waits_for_acknowledge(self):
        stream = MemoryEventStream(auto_acknowledge=False)
        statuses = []
        stream.subscribe("room-1", lambda row: None, statuses.append)
        await settle()

        assert statuses == []

        stream.acknowledge("room-1", "TIMED_OUT")

        assert statuses == ["TIMED_OUT"]

    async def test_cancel_is_idempotent_and_reports_closed(self, stream):
        statuses = []
        sub = stream.subscribe("room-1", lambda row: None, statuses.append)

        sub.cancel()
        sub.cancel()
        await settle()

        assert stream.cancel_count == 1
        assert stream.active_subscriptions() == 0
        assert statuses[-1] == "CLOSED"

    async def test_cancelled_subscription_gets_no_inserts(self, stream, store, general):
        rows = []
        sub = stream.subscribe(general, rows.append, lambda status: None)
        sub.cancel()

        await store.insert_message(
            {"sender_id": BOB.id, "group_id": general, "content": "x", "encrypted": False}
        )
        await settle()

        assert rows == []

    async def test_publish_rejects_malformed_record(self, stream):
        with pytest.raises(StoreError):
            stream.publish({"id": "r1"})


class TestMemoryStore:
    async def test_insert_assigns_id_and_timestamp(self, store, general):
        first = await store.insert_message(
            {"sender_id": ALICE.id, "group_id": general, "content": "a", "encrypted": False}
        )
        second = await store.insert_message(
            {"sender_id": ALICE.id, "group_id": general, "content": "b", "encrypted": False}
        )

        assert first["id"] != second["id"]
        assert second["created_at"] > first["created_at"]

    async def test_insert_into_unknown_room_fails(self, store):
        with pytest.raises(StoreError):
            await store.insert_message({"sender_id": ALICE.id, "group_id": "nope", "content": "a"})

    async def test_subscribers_receive_decoded_copies(self, stream, store, general):
        rows = []
        stream.subscribe(general, rows.append, lambda status: None)

        inserted = await store.insert_message(
            {"sender_id": ALICE.id, "group_id": general, "content": "a", "encrypted": False}
        )
        await settle()

        assert rows == [inserted]
        assert rows[0] is not store.messages[-1]

    async def test_recent_messages_window(self, store, general):
        for i in range(5):
            await store.insert_message(
                {"sender_id": ALICE.id, "group_id": general, "content": str(i), "encrypted": False}
            )

        rows = await store.recent_messages(general, 2)

        assert [r["content"] for r in rows] == ["3", "4"]
        assert await store.recent_messages(general, 0) == []

    async def test_seed_demo_store(self):
        store = MemoryStore()

        seed_demo_store(store, ["General Discussion", "Random"], "me", "", "me@example.com")

        assert [r["name"] for r in await store.list_rooms()] == ["General Discussion", "Random"]
        assert await store.get_profile("me") == {"id": "me", "name": None, "email": "me@example.com"}
        assert await store.get_profile("nobody") is None
