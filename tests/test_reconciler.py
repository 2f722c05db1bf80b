"""Tests for realtime reconciliation."""

import pytest
from conftest import ALICE, BOB, settle

from chatsync.constants import K_CONTENT, K_CREATED_AT, K_ENCRYPTED, K_ID, K_ROOM_ID, K_SENDER_ID
from chatsync.reconciler import RealtimeReconciler, find_pending_match
from chatsync.timeline import MessageTimeline
from chatsync.types import Message, MessageStatus, RoomToken, StoredMessage


def pending(message_id, content, sender_id=ALICE.id, status=MessageStatus.SENDING, **kwargs):
    return Message(
        id=message_id,
        sender_id=sender_id,
        sender_name="Alice",
        content=content,
        created_at=1,
        encrypted=False,
        status=status,
        **kwargs,
    )


def stored(record_id, sender_id=ALICE.id, client_id=None):
    return StoredMessage(
        id=record_id,
        sender_id=sender_id,
        room_id="room-1",
        content="ciphertext",
        encrypted=True,
        created_at=2,
        client_id=client_id,
    )


class TestFindPendingMatch:
    """Match order for incoming records."""

    def test_matches_by_remote_id(self):
        messages = [pending("temp-1", "hi", status=MessageStatus.SENT, remote_id="r1")]

        assert find_pending_match(messages, stored("r1"), "different") == 0

    def test_matches_delivered_entry_by_id(self):
        messages = [pending("r1", "hi", status=MessageStatus.DELIVERED)]

        assert find_pending_match(messages, stored("r1"), "hi") == 0

    def test_heuristic_same_sender_same_content(self):
        messages = [
            pending("temp-1", "other"),
            pending("temp-2", "hi"),
        ]

        assert find_pending_match(messages, stored("r9"), "hi") == 1

    def test_heuristic_accepts_sent_status(self):
        messages = [pending("temp-1", "hi", status=MessageStatus.SENT)]

        assert find_pending_match(messages, stored("r2"), "hi") == 0

    def test_heuristic_skips_entry_pinned_to_other_record(self):
        messages = [pending("temp-1", "hi", status=MessageStatus.SENT, remote_id="r1")]

        assert find_pending_match(messages, stored("r2"), "hi") is None

    def test_heuristic_skips_delivered(self):
        messages = [pending("r1", "hi", status=MessageStatus.DELIVERED)]

        assert find_pending_match(messages, stored("r2"), "hi") is None

    def test_heuristic_requires_same_sender(self):
        messages = [pending("temp-1", "hi")]

        assert find_pending_match(messages, stored("r1", sender_id=BOB.id), "hi") is None

    def test_heuristic_is_exact(self):
        messages = [pending("temp-1", "hi")]

        assert find_pending_match(messages, stored("r1"), "hi ") is None

    def test_correlation_wins_over_order(self):
        messages = [
            pending("temp-1", "same", correlation_id="c1"),
            pending("temp-2", "same", correlation_id="c2"),
        ]
        record = stored("r1", client_id="c2")

        assert find_pending_match(messages, record, "same", use_correlation=True) == 1
        assert find_pending_match(messages, record, "same") == 0

    def test_correlated_record_does_not_steal_tagged_entry(self):
        messages = [pending("temp-1", "same", correlation_id="c1")]
        record = stored("r1", client_id="c-unknown")

        assert find_pending_match(messages, record, "same", use_correlation=True) is None

    def test_no_match_appends(self):
        assert find_pending_match([], stored("r1"), "hi") is None


def insert_row(record_id, room_id, sender_id, content, encrypted=False):
    return {
        K_ID: record_id,
        K_SENDER_ID: sender_id,
        K_ROOM_ID: room_id,
        K_CONTENT: content,
        K_ENCRYPTED: encrypted,
        K_CREATED_AT: 1000,
    }


@pytest.fixture
async def reconciler(stream, store, cipher, general):
    timeline = MessageTimeline()
    reconciler = RealtimeReconciler(stream, store, cipher, ALICE.id, timeline)
    yield reconciler
    reconciler.stop()


class TestRealtimeReconciler:
    """Subscription lifecycle and delivery handling."""

    async def test_start_subscribes_and_reports_status(self, reconciler, stream, general):
        statuses = []
        reconciler.on_status = lambda token, status: statuses.append(status)

        reconciler.start(RoomToken(general, 1))
        await settle()

        assert stream.active_subscriptions(general) == 1
        assert reconciler.subscription.channel == f"messages:{general}"
        assert statuses == ["SUBSCRIBED"]

    async def test_stop_is_idempotent(self, reconciler, stream, general):
        reconciler.start(RoomToken(general, 1))

        assert reconciler.stop() is True
        assert reconciler.stop() is False
        assert reconciler.teardown_count == 1
        assert stream.cancel_count == 1

    async def test_restart_replaces_subscription(self, reconciler, stream, general):
        reconciler.start(RoomToken(general, 1))
        reconciler.start(RoomToken(general, 2))

        assert stream.active_subscriptions() == 1
        assert reconciler.subscribe_count == 2
        assert reconciler.teardown_count == 1

    async def test_delivery_appends_with_sender_name(self, reconciler, stream, general):
        merged = []
        reconciler.on_merged = lambda token, index, message: merged.append(index)
        reconciler.start(RoomToken(general, 1))

        stream.publish(insert_row("r1", general, BOB.id, "hello"))
        stream.publish(insert_row("r2", general, "stranger", "who am i"))
        await settle()

        messages = reconciler.timeline.snapshot()
        assert merged == [0, 1]
        assert [m.sender_name for m in messages] == ["bob", "Unknown"]
        assert all(m.status is MessageStatus.DELIVERED for m in messages)

    async def test_redelivery_is_idempotent(self, reconciler, stream, general):
        reconciler.start(RoomToken(general, 1))

        stream.publish(insert_row("r1", general, BOB.id, "once"))
        stream.publish(insert_row("r1", general, BOB.id, "once"))
        await settle()

        assert len(reconciler.timeline) == 1

    async def test_undecryptable_record_is_dropped(self, reconciler, stream, cipher, general):
        reconciler.start(RoomToken(general, 1))

        stream.publish(insert_row("r1", general, BOB.id, "garbage", encrypted=True))
        stream.publish(
            insert_row("r2", general, BOB.id, cipher.encrypt("fine", BOB.id), encrypted=True)
        )
        await settle()

        assert [m.content for m in reconciler.timeline] == ["fine"]

    async def test_stale_token_is_dropped(self, reconciler, stream, general):
        current = {"ok": True}
        reconciler.is_current = lambda token: current["ok"]
        reconciler.start(RoomToken(general, 1))

        current["ok"] = False
        stream.publish(insert_row("r1", general, BOB.id, "late"))
        await settle()

        assert len(reconciler.timeline) == 0

    async def test_profile_failure_falls_back_to_unknown(self, reconciler, stream, store, general):
        async def broken(identity_id):
            raise RuntimeError("profiles down")

        store.get_profile = broken
        reconciler.start(RoomToken(general, 1))

        stream.publish(insert_row("r1", general, BOB.id, "hi"))
        await settle()

        assert reconciler.timeline[0].sender_name == "Unknown"
