"""Tests for room directory bootstrap."""

import pytest
from conftest import ALICE, BOB

from chatsync.constants import K_ID
from chatsync.directory import RoomDirectory
from chatsync.errors import StoreError


class TestRoomDirectory:
    async def test_first_use_joins_default_room(self, store):
        general = store.add_room("General Discussion")[K_ID]
        random = store.add_room("Random")[K_ID]
        store.join(random, BOB.id)

        rooms = await RoomDirectory(store, ALICE.id).load()

        assert [r.id for r in rooms] == [general]
        assert rooms[0].is_member is True
        assert rooms[0].member_count == 1
        assert {"group_id": general, "user_id": ALICE.id} in store.memberships

    async def test_existing_members_skip_auto_join(self, store):
        store.add_room("General Discussion")
        random = store.add_room("Random")[K_ID]
        store.join(random, ALICE.id)
        store.join(random, BOB.id)

        rooms = await RoomDirectory(store, ALICE.id).load()

        assert [(r.name, r.member_count) for r in rooms] == [("Random", 2)]

    async def test_rooms_in_creation_order(self, store):
        ids = [store.add_room(name)[K_ID] for name in ("b", "a", "c")]
        for room_id in ids:
            store.join(room_id, ALICE.id)

        rooms = await RoomDirectory(store, ALICE.id).load()

        assert [r.name for r in rooms] == ["b", "a", "c"]

    async def test_missing_default_room_yields_no_rooms(self, store):
        store.add_room("Random")

        rooms = await RoomDirectory(store, ALICE.id, default_room_name="Lobby").load()

        assert rooms == []
        assert store.memberships == []

    async def test_store_failure_propagates(self, store):
        async def broken(room_id):
            raise StoreError("count failed")

        room_id = store.add_room("General Discussion")[K_ID]
        store.join(room_id, ALICE.id)
        store.count_members = broken

        with pytest.raises(StoreError):
            await RoomDirectory(store, ALICE.id).load()
