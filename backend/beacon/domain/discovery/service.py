"""Nearby feed assembly on top of the pure ranking engine."""

from __future__ import annotations

import logging
from typing import Optional

from beacon.domain.discovery.ranking import (
	MATCHMAKING_WEIGHTS,
	RankedCandidate,
	RankingOptions,
	RankingWeights,
	Requester,
	rank_nearby,
)
from beacon.domain.discovery.schemas import (
	DiscoveryMode,
	NearbyQuery,
	NearbyResponse,
	NearbyUser,
	PlacedUser,
	ProfileIn,
	RankRequest,
	RankResponse,
	ScatterRequest,
	ScatterResponse,
	WeightsIn,
)
from beacon.domain.identity.models import Coordinates, UserProfile
from beacon.domain.proximity.geo import scatter_around
from beacon.infra.auth import AuthenticatedUser
from beacon.moderation.domain import container
from beacon.moderation.domain.errors import NotFoundError
from beacon.obs import metrics as obs_metrics
from beacon.settings import settings

logger = logging.getLogger(__name__)


def weights_for(mode: DiscoveryMode, override: Optional[WeightsIn] = None) -> RankingWeights:
	if override is not None:
		return RankingWeights(tag_sim=override.tag_sim, distance=override.distance)
	if mode == "matchmaking":
		return MATCHMAKING_WEIGHTS
	return RankingWeights(tag_sim=settings.ranking_tag_weight, distance=settings.ranking_distance_weight)


def _to_nearby_user(candidate: RankedCandidate) -> NearbyUser:
	profile = candidate.profile
	return NearbyUser(
		user_id=profile.id,
		display_name=profile.display_name,
		interest_tags=list(profile.interest_tags),
		shared_tags=list(candidate.shared_tags),
		distance_m=round(candidate.distance_m, 1),
		distance_label=candidate.distance_label,
		score=candidate.score,
		tag_similarity=candidate.breakdown.tag_similarity,
		distance_component=candidate.breakdown.distance_component,
	)


def _profile_from_input(payload: ProfileIn) -> UserProfile:
	coords = None
	if payload.lat is not None and payload.lon is not None:
		coords = Coordinates(latitude=payload.lat, longitude=payload.lon)
	return UserProfile(
		id=payload.id,
		email=payload.email,
		display_name=payload.display_name,
		interest_tags=tuple(payload.interest_tags),
		coords=coords,
		visible=payload.visible,
	)


async def list_nearby(auth_user: AuthenticatedUser, query: NearbyQuery) -> NearbyResponse:
	users = container.get_user_repository()
	requester = await users.get(auth_user.id)
	if requester is None:
		raise NotFoundError("user_not_found")
	if requester.banned:
		obs_metrics.observe_discovery(query.mode, 0, 0)
		return NearbyResponse(mode=query.mode, items=[])

	candidates = await users.list_discoverable()
	excluded = await container.get_block_service().excluded_ids(requester.id)
	options = RankingOptions(
		weights=weights_for(query.mode),
		half_life_m=settings.ranking_half_life_m,
		max_meters=query.max_meters if query.max_meters is not None else settings.ranking_max_meters,
		exclude_ids=excluded,
	)
	ranked = rank_nearby(Requester.from_profile(requester), candidates, options)
	items = [_to_nearby_user(candidate) for candidate in ranked[: query.limit]]
	obs_metrics.observe_discovery(query.mode, len(candidates), len(items))
	logger.info(
		"nearby_ranked",
		extra={"mode": query.mode, "candidates": len(candidates), "returned": len(items), "excluded": len(excluded)},
	)
	return NearbyResponse(mode=query.mode, items=items)


def rank_candidates(payload: RankRequest) -> RankResponse:
	"""Rank caller-supplied profiles without touching storage."""
	options = RankingOptions(
		weights=weights_for(payload.mode, payload.weights),
		half_life_m=payload.half_life_m or settings.ranking_half_life_m,
		max_meters=payload.max_meters,
		exclude_ids=frozenset(payload.exclude_ids),
	)
	requester = Requester.from_profile(_profile_from_input(payload.requester))
	candidates = [_profile_from_input(item) for item in payload.candidates]
	ranked = rank_nearby(requester, candidates, options)
	return RankResponse(items=[_to_nearby_user(candidate) for candidate in ranked])


def scatter_users(payload: ScatterRequest) -> ScatterResponse:
	center_lat = payload.center_lat if payload.center_lat is not None else settings.discovery_center_lat
	center_lon = payload.center_lon if payload.center_lon is not None else settings.discovery_center_lon
	placed = scatter_around([_profile_from_input(item) for item in payload.users], center_lat, center_lon)
	return ScatterResponse(
		center_lat=center_lat,
		center_lon=center_lon,
		users=[
			PlacedUser(
				id=profile.id,
				display_name=profile.display_name,
				interest_tags=list(profile.interest_tags),
				lat=profile.coords.latitude,
				lon=profile.coords.longitude,
			)
			for profile in placed
			if profile.coords is not None
		],
	)
