"""Block and unblock endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from beacon.domain.identity.blocks import BlockService
from beacon.infra.auth import AuthenticatedUser, get_current_user
from beacon.moderation.domain import container

router = APIRouter(prefix="/users", tags=["blocks"])


class BlockResult(BaseModel):
	blocker_id: int
	blocked_id: int
	blocked: bool
	changed: bool


def get_block_service_dep() -> BlockService:
	return container.get_block_service()


@router.post("/{user_id}/block", response_model=BlockResult)
async def block_user(
	user_id: int = Path(..., ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BlockService = Depends(get_block_service_dep),
) -> BlockResult:
	created = await service.block_user(auth_user.id, user_id)
	return BlockResult(blocker_id=auth_user.id, blocked_id=user_id, blocked=True, changed=created)


@router.delete("/{user_id}/block", response_model=BlockResult)
async def unblock_user(
	user_id: int = Path(..., ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: BlockService = Depends(get_block_service_dep),
) -> BlockResult:
	removed = await service.unblock_user(auth_user.id, user_id)
	return BlockResult(blocker_id=auth_user.id, blocked_id=user_id, blocked=False, changed=removed)
