"""User-to-user blocks. A block hides both users from each other's nearby feed."""

from __future__ import annotations

import logging

from beacon.domain.identity.repository import BlockRepository, UserRepository
from beacon.moderation.domain.errors import NotFoundError, SelfActionError

logger = logging.getLogger(__name__)


class BlockService:
    def __init__(self, users: UserRepository, blocks: BlockRepository) -> None:
        self._users = users
        self._blocks = blocks

    async def block_user(self, blocker_id: int, blocked_id: int) -> bool:
        """Record a block; returns False when it already existed."""
        if blocker_id == blocked_id:
            raise SelfActionError("cannot_block_self")
        if await self._users.get(blocker_id) is None or await self._users.get(blocked_id) is None:
            raise NotFoundError("user_not_found")
        created = await self._blocks.add(blocker_id, blocked_id)
        if created:
            logger.info("user_blocked", extra={"blocker_id": blocker_id, "blocked_id": blocked_id})
        return created

    async def unblock_user(self, blocker_id: int, blocked_id: int) -> bool:
        removed = await self._blocks.remove(blocker_id, blocked_id)
        if removed:
            logger.info("user_unblocked", extra={"blocker_id": blocker_id, "blocked_id": blocked_id})
        return removed

    async def excluded_ids(self, user_id: int) -> frozenset[int]:
        return frozenset(await self._blocks.related_ids(user_id))
