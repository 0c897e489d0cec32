"""Match ranking for the nearby feed.

Candidates are scored by interest overlap (Jaccard) blended with an exponential
distance decay, then put into a total order so repeated calls page identically.
Everything here is pure: no I/O, no shared state, and malformed input degrades to
neutral values instead of raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from beacon.domain.identity.models import Coordinates, UserProfile
from beacon.domain.proximity.geo import format_distance, haversine_distance_m

DEFAULT_HALF_LIFE_M = 1200.0


@dataclass(frozen=True, slots=True)
class RankingWeights:
    tag_sim: float = 0.7
    distance: float = 0.3


DEFAULT_WEIGHTS = RankingWeights()
# Pure matchmaking: distance still filters and breaks ties but adds nothing to the score
MATCHMAKING_WEIGHTS = RankingWeights(tag_sim=1.0, distance=0.0)


@dataclass(frozen=True, slots=True)
class RankingOptions:
    weights: RankingWeights = DEFAULT_WEIGHTS
    half_life_m: float = DEFAULT_HALF_LIFE_M
    max_meters: Optional[float] = None
    exclude_ids: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True)
class Requester:
    """Snapshot of the user asking for the feed."""

    id: int
    interest_tags: tuple[str, ...] = ()
    coords: Optional[Coordinates] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "Requester":
        return cls(id=profile.id, interest_tags=profile.interest_tags, coords=profile.coords)


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    tag_similarity: float
    distance_component: float


@dataclass(frozen=True, slots=True)
class RankedCandidate:
    profile: UserProfile
    distance_m: float
    distance_label: str
    score: float
    breakdown: ScoreBreakdown
    shared_tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def user_id(self) -> int:
        return self.profile.id


def tag_set(tags: Any) -> frozenset[str]:
    """Lowercased, trimmed, de-duplicated tags; anything malformed is an empty set."""

    if tags is None or isinstance(tags, (str, bytes)):
        return frozenset()
    try:
        items: Iterable[Any] = list(tags)
    except TypeError:
        return frozenset()
    return frozenset(tag.strip().lower() for tag in items if isinstance(tag, str) and tag.strip())


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    """Intersection over union; two empty sets score 0 rather than dividing by zero."""

    if not a and not b:
        return 0.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def distance_component(distance_m: float, half_life_m: float) -> float:
    """Halves every ``half_life_m`` meters; invalid inputs contribute nothing."""

    if not math.isfinite(distance_m) or distance_m < 0 or not half_life_m > 0:
        return 0.0
    return 2 ** (-distance_m / half_life_m)


def combine(weights: RankingWeights, tag_similarity: float, distance_score: float) -> float:
    raw = weights.tag_sim * tag_similarity + weights.distance * distance_score
    if math.isnan(raw):
        return 0.0
    return max(0.0, min(1.0, raw))


def _has_location(coords: Optional[Coordinates]) -> bool:
    if coords is None:
        return False
    try:
        return coords.is_valid()
    except TypeError:
        return False


def _sort_key(candidate: RankedCandidate) -> tuple[float, int, float, int]:
    return (-candidate.score, -len(candidate.shared_tags), candidate.distance_m, candidate.profile.id)


def rank_nearby(
    requester: Requester,
    candidates: Sequence[UserProfile],
    options: Optional[RankingOptions] = None,
) -> list[RankedCandidate]:
    """Score and order candidates for ``requester``.

    Order: score desc, shared tag count desc, distance asc, id asc.
    Skipped: the requester, ``exclude_ids``, hidden profiles, candidates without a
    usable location and anything past ``max_meters``. A requester without a location
    gets an empty list since no distance can be computed.
    """

    opts = options or RankingOptions()
    req_coords = requester.coords
    if req_coords is None or not _has_location(req_coords):
        return []
    req_lat, req_lon = req_coords.latitude, req_coords.longitude
    req_tags = tag_set(requester.interest_tags)
    excluded = set(opts.exclude_ids)
    excluded.add(requester.id)

    ranked: list[RankedCandidate] = []
    for candidate in candidates:
        if candidate.id in excluded or not candidate.visible:
            continue
        coords = candidate.coords
        if coords is None or not _has_location(coords):
            continue
        distance = haversine_distance_m(req_lat, req_lon, coords.latitude, coords.longitude)
        if opts.max_meters is not None and distance > opts.max_meters:
            continue
        cand_tags = tag_set(candidate.interest_tags)
        tag_similarity = jaccard(req_tags, cand_tags)
        distance_score = distance_component(distance, opts.half_life_m)
        ranked.append(
            RankedCandidate(
                profile=candidate,
                distance_m=distance,
                distance_label=format_distance(distance),
                score=combine(opts.weights, tag_similarity, distance_score),
                breakdown=ScoreBreakdown(tag_similarity=tag_similarity, distance_component=distance_score),
                shared_tags=tuple(sorted(req_tags & cand_tags)),
            )
        )

    ranked.sort(key=_sort_key)
    return ranked
