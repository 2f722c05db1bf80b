"""Room directory: membership bootstrap and member counts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from .constants import DEFAULT_ROOM_NAME
from .interfaces import MessageStore
from .records import parse_membership, parse_room
from .types import Room

logger = logging.getLogger(__name__)


class RoomDirectory:
    """Resolves the rooms an identity belongs to.

    On first use (no memberships at all) the identity is joined to the
    room named ``default_room_name``. Store failures propagate to the
    caller; nothing here retries.
    """

    def __init__(
        self,
        store: MessageStore,
        identity_id: str,
        default_room_name: str = DEFAULT_ROOM_NAME,
    ) -> None:
        self.store = store
        self.identity_id = identity_id
        self.default_room_name = default_room_name

    async def load(self) -> list[Room]:
        """Fetch member rooms with live member counts.

        Returns:
            Member rooms in creation order, each with ``member_count`` set
        """
        rows = await self.store.list_rooms()
        rooms = sorted((parse_room(row) for row in rows), key=lambda r: r.created_at)

        memberships = [
            parse_membership(row)
            for row in await self.store.list_memberships(self.identity_id)
        ]
        member_ids = list(dict.fromkeys(m.room_id for m in memberships))

        if not member_ids and rooms:
            default_room = self._find_default_room(rooms)
            if default_room is not None:
                await self.store.add_membership(default_room.id, self.identity_id)
                member_ids.append(default_room.id)
                logger.info(
                    "Joined %s to default room %r", self.identity_id, default_room.name
                )
            else:
                logger.warning(
                    "Default room %r not found; identity has no rooms",
                    self.default_room_name,
                )

        wanted = set(member_ids)
        member_rooms = [r for r in rooms if r.id in wanted]

        counts = await asyncio.gather(
            *(self.store.count_members(r.id) for r in member_rooms)
        )

        result = [
            replace(room, member_count=int(count or 0), is_member=True)
            for room, count in zip(member_rooms, counts)
        ]
        logger.debug("Directory loaded %d room(s)", len(result))
        return result

    def _find_default_room(self, rooms: list[Room]) -> Room | None:
        for room in rooms:
            if room.name == self.default_room_name:
                return room
        return None
