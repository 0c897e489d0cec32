"""Nearby feed and stateless ranking endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from beacon.domain.discovery import service
from beacon.domain.discovery.schemas import (
	DiscoveryMode,
	NearbyQuery,
	NearbyResponse,
	RankRequest,
	RankResponse,
	ScatterRequest,
	ScatterResponse,
)
from beacon.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/discovery", tags=["discovery"])


@router.get("/nearby", response_model=NearbyResponse)
async def nearby(
	*,
	mode: DiscoveryMode = Query(default="blend"),
	max_meters: Optional[float] = Query(default=None, gt=0, le=100000),
	limit: int = Query(default=50, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> NearbyResponse:
	query = NearbyQuery(mode=mode, max_meters=max_meters, limit=limit)
	return await service.list_nearby(auth_user, query)


@router.post("/rank", response_model=RankResponse)
async def rank(
	payload: RankRequest,
	_: AuthenticatedUser = Depends(get_current_user),
) -> RankResponse:
	return service.rank_candidates(payload)


@router.post("/scatter", response_model=ScatterResponse)
async def scatter(
	payload: ScatterRequest,
	_: AuthenticatedUser = Depends(get_current_user),
) -> ScatterResponse:
	return service.scatter_users(payload)
