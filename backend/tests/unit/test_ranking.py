import math
import random

import pytest

from beacon.domain.discovery.ranking import (
	DEFAULT_WEIGHTS,
	MATCHMAKING_WEIGHTS,
	RankingOptions,
	RankingWeights,
	Requester,
	distance_component,
	jaccard,
	rank_nearby,
	tag_set,
)
from beacon.domain.identity.models import Coordinates


@pytest.fixture
def requester(profile_factory):
	return Requester.from_profile(profile_factory(1, ["Chess", "Hiking"]))


def test_tag_set_normalises_and_tolerates_garbage():
	assert tag_set(["Chess", " chess ", "", "  ", 3, None, "Hiking"]) == frozenset({"chess", "hiking"})
	assert tag_set(None) == frozenset()
	assert tag_set(42) == frozenset()
	assert tag_set("chess") == frozenset()


def test_jaccard_identity_symmetry_and_empty():
	a = frozenset({"chess", "hiking"})
	b = frozenset({"chess", "music", "art"})
	assert jaccard(a, a) == 1.0
	assert jaccard(a, b) == jaccard(b, a) == pytest.approx(1 / 4)
	assert jaccard(frozenset(), frozenset()) == 0.0
	assert jaccard(a, frozenset()) == 0.0


def test_distance_component_halves_every_half_life():
	assert distance_component(0, 1200) == 1.0
	assert distance_component(1200, 1200) == pytest.approx(0.5)
	assert distance_component(2400, 1200) == pytest.approx(0.25)


def test_distance_component_is_monotonic():
	values = [distance_component(d, 1200) for d in (0, 10, 100, 500, 1000, 5000)]
	assert values == sorted(values, reverse=True)


@pytest.mark.parametrize("distance,half_life", [(-1, 1200), (float("nan"), 1200), (float("inf"), 1200), (100, 0), (100, -5)])
def test_distance_component_invalid_inputs(distance, half_life):
	assert distance_component(distance, half_life) == 0.0


def test_blend_score_combines_tags_and_distance(requester, profile_factory):
	twin = profile_factory(2, ["chess", "HIKING"])
	stranger = profile_factory(3, ["opera"], north_m=1200)

	ranked = rank_nearby(requester, [stranger, twin])

	assert [c.user_id for c in ranked] == [2, 3]
	assert ranked[0].score == pytest.approx(1.0)
	assert ranked[0].shared_tags == ("chess", "hiking")
	assert ranked[1].score == pytest.approx(0.3 * 0.5, abs=1e-3)
	assert ranked[1].distance_label.endswith(" km")


def test_score_is_clamped(requester, profile_factory):
	options = RankingOptions(weights=RankingWeights(tag_sim=2.0, distance=2.0))
	ranked = rank_nearby(requester, [profile_factory(2, ["chess", "hiking"])], options)
	assert ranked[0].score == 1.0


def test_tie_breaks_shared_tags_then_distance_then_id(profile_factory):
	requester = Requester.from_profile(profile_factory(1, ["a", "b"]))
	# All four score 0.5 under pure tag matching
	wide = profile_factory(10, ["a", "b", "c", "d"], north_m=900)
	near = profile_factory(11, ["a"], north_m=100)
	far = profile_factory(12, ["b"], north_m=400)
	far_twin = profile_factory(13, ["b"], north_m=400)

	ranked = rank_nearby(requester, [far_twin, far, near, wide], RankingOptions(weights=MATCHMAKING_WEIGHTS))

	assert [c.score for c in ranked] == [0.5, 0.5, 0.5, 0.5]
	assert [c.user_id for c in ranked] == [10, 11, 12, 13]


def test_ranking_is_deterministic_under_shuffle(requester, profile_factory):
	candidates = [
		profile_factory(i, random.Random(i).sample(["chess", "hiking", "art", "music", "film"], 2), north_m=i * 37)
		for i in range(2, 40)
	]
	baseline = [c.user_id for c in rank_nearby(requester, candidates)]
	for seed in range(5):
		shuffled = list(candidates)
		random.Random(seed).shuffle(shuffled)
		assert [c.user_id for c in rank_nearby(requester, shuffled)] == baseline


def test_exclusions(requester, profile_factory):
	candidates = [
		profile_factory(1, ["chess"]),
		profile_factory(2, ["chess"]),
		profile_factory(3, ["chess"], visible=False),
		profile_factory(4, ["chess"], located=False),
		profile_factory(5, ["chess"], north_m=5000),
		profile_factory(6, ["chess"], north_m=200),
	]
	options = RankingOptions(weights=DEFAULT_WEIGHTS, max_meters=1000, exclude_ids=frozenset({2}))

	ranked = rank_nearby(requester, candidates, options)

	assert [c.user_id for c in ranked] == [6]


def test_requester_without_location_gets_nothing(profile_factory):
	requester = Requester.from_profile(profile_factory(1, ["chess"], located=False))
	assert rank_nearby(requester, [profile_factory(2, ["chess"])]) == []


def test_malformed_candidate_tags_score_zero_similarity(requester, profile_factory):
	candidate = profile_factory(2)
	candidate.interest_tags = None
	ranked = rank_nearby(requester, [candidate])
	assert ranked[0].breakdown.tag_similarity == 0.0
	assert ranked[0].score == pytest.approx(0.3)


def test_antipodal_candidate_is_still_ranked(profile_factory):
	requester = Requester(id=1, interest_tags=("chess",), coords=Coordinates(latitude=69.51, longitude=86.58))
	candidate = profile_factory(2, ["chess"])
	candidate.coords = Coordinates(latitude=-69.51, longitude=-93.42)

	ranked = rank_nearby(requester, [candidate])

	assert [c.user_id for c in ranked] == [2]
	assert ranked[0].distance_m == pytest.approx(math.pi * 6_371_000, rel=1e-6)
	assert ranked[0].distance_label == "20015 km"
	assert ranked[0].score == pytest.approx(0.7)
