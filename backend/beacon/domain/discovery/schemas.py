"""Schemas for the nearby feed and the stateless ranking helpers."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

DiscoveryMode = Literal["blend", "matchmaking"]


class NearbyQuery(BaseModel):
	mode: DiscoveryMode = "blend"
	max_meters: Optional[float] = Field(default=None, gt=0, le=100000)
	limit: int = Field(default=50, ge=1, le=200)


class NearbyUser(BaseModel):
	"""Ranked profile as shown on a nearby card. Coordinates are never echoed back."""

	user_id: int
	display_name: Optional[str] = None
	interest_tags: list[str] = Field(default_factory=list)
	shared_tags: list[str] = Field(default_factory=list)
	distance_m: float = Field(..., ge=0)
	distance_label: str
	score: float = Field(..., ge=0, le=1)
	tag_similarity: float
	distance_component: float


class NearbyResponse(BaseModel):
	mode: DiscoveryMode
	items: list[NearbyUser] = Field(default_factory=list)


class ProfileIn(BaseModel):
	id: int = Field(..., ge=1)
	display_name: Optional[str] = None
	email: Optional[str] = None
	interest_tags: list[str] = Field(default_factory=list)
	lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
	lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
	visible: bool = True


class WeightsIn(BaseModel):
	tag_sim: float = Field(default=0.7, ge=0)
	distance: float = Field(default=0.3, ge=0)


class RankRequest(BaseModel):
	requester: ProfileIn
	candidates: list[ProfileIn] = Field(default_factory=list, max_length=1000)
	mode: DiscoveryMode = "blend"
	weights: Optional[WeightsIn] = None
	half_life_m: Optional[float] = Field(default=None, gt=0)
	max_meters: Optional[float] = Field(default=None, gt=0)
	exclude_ids: list[int] = Field(default_factory=list)


class RankResponse(BaseModel):
	items: list[NearbyUser] = Field(default_factory=list)


class ScatterRequest(BaseModel):
	users: list[ProfileIn] = Field(default_factory=list, max_length=1000)
	center_lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
	center_lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class PlacedUser(BaseModel):
	id: int
	display_name: Optional[str] = None
	interest_tags: list[str] = Field(default_factory=list)
	lat: float
	lon: float


class ScatterResponse(BaseModel):
	center_lat: float
	center_lon: float
	users: list[PlacedUser] = Field(default_factory=list)
