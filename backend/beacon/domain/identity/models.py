"""Domain models for user profiles consumed by discovery and moderation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

MIN_TRUST_SCORE = 0
MAX_TRUST_SCORE = 100
DEFAULT_TRUST_SCORE = 99


def normalize_tags(tags: Any) -> tuple[str, ...]:
	"""Trim and deduplicate tags case-insensitively, keeping the first spelling seen.

	Anything that is not an iterable of strings is treated as an empty tag list.
	"""
	if tags is None or isinstance(tags, (str, bytes)):
		return ()
	try:
		items = list(tags)
	except TypeError:
		return ()
	seen: set[str] = set()
	result: list[str] = []
	for tag in items:
		if not isinstance(tag, str):
			continue
		trimmed = tag.strip()
		if not trimmed:
			continue
		key = trimmed.lower()
		if key in seen:
			continue
		seen.add(key)
		result.append(trimmed)
	return tuple(result)


@dataclass(frozen=True, slots=True)
class Coordinates:
	latitude: float
	longitude: float

	def is_valid(self) -> bool:
		return math.isfinite(self.latitude) and math.isfinite(self.longitude)


@dataclass(slots=True)
class UserProfile:
	"""System-of-record user row; banned users are kept for audit, never deleted."""

	id: int
	email: Optional[str] = None
	display_name: Optional[str] = None
	interest_tags: tuple[str, ...] = ()
	coords: Optional[Coordinates] = None
	trust_score: int = DEFAULT_TRUST_SCORE
	visible: bool = True
	banned: bool = False
	banned_at: Optional[datetime] = None
	ban_reason: Optional[str] = None
	banned_by: Optional[int] = None
	is_admin: bool = False
	version: int = 0
	created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

	def __post_init__(self) -> None:
		self.interest_tags = normalize_tags(self.interest_tags)

	@property
	def label(self) -> str:
		return self.display_name or self.email or f"user-{self.id}"


@dataclass(frozen=True, slots=True)
class BanState:
	user_id: int
	banned: bool
	banned_at: Optional[datetime]
	ban_reason: Optional[str]

	@classmethod
	def from_profile(cls, profile: UserProfile) -> "BanState":
		return cls(
			user_id=profile.id,
			banned=profile.banned,
			banned_at=profile.banned_at,
			ban_reason=profile.ban_reason,
		)
