import pytest
import pytest_asyncio

from beacon.domain.discovery import service
from beacon.domain.discovery.schemas import NearbyQuery, ProfileIn, RankRequest, ScatterRequest, WeightsIn
from beacon.infra.auth import AuthenticatedUser
from beacon.moderation.domain import container
from beacon.moderation.domain.errors import NotFoundError
from beacon.moderation.domain.rbac import StaffContext

ADMIN = StaffContext(actor_id=900, admin=True)


@pytest_asyncio.fixture
async def campus(users_repo, profile_factory):
	await users_repo.add(profile_factory(1, ["chess", "hiking"]))
	await users_repo.add(profile_factory(2, ["chess", "hiking"], north_m=50))
	await users_repo.add(profile_factory(3, ["chess"], north_m=300))
	await users_repo.add(profile_factory(4, ["opera"], north_m=20))
	await users_repo.add(profile_factory(5, ["chess"], north_m=100, visible=False))
	await users_repo.add(profile_factory(6, ["chess"], located=False))
	return users_repo


@pytest.mark.asyncio
async def test_nearby_blend_ranking(campus):
	response = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery())

	assert response.mode == "blend"
	assert [item.user_id for item in response.items] == [2, 3, 4]
	top = response.items[0]
	assert top.shared_tags == ["chess", "hiking"]
	assert top.distance_label == "50 m"
	assert 0.99 < top.score <= 1.0


@pytest.mark.asyncio
async def test_nearby_matchmaking_ignores_distance(campus):
	response = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery(mode="matchmaking"))

	assert [item.user_id for item in response.items] == [2, 3, 4]
	assert response.items[1].score == pytest.approx(0.5)
	assert response.items[2].score == 0.0


@pytest.mark.asyncio
async def test_nearby_respects_limit_and_radius(campus):
	limited = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery(limit=1))
	assert [item.user_id for item in limited.items] == [2]

	close = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery(max_meters=100))
	assert [item.user_id for item in close.items] == [2, 4]


@pytest.mark.asyncio
async def test_blocks_hide_users_both_ways(campus):
	blocks = container.get_block_service()
	assert await blocks.block_user(2, 1)

	mine = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery())
	theirs = await service.list_nearby(AuthenticatedUser(id=2), NearbyQuery())

	assert 2 not in [item.user_id for item in mine.items]
	assert 1 not in [item.user_id for item in theirs.items]


@pytest.mark.asyncio
async def test_banned_users_disappear_and_see_nothing(campus):
	await container.get_dispatcher().ban_user(2, actor=ADMIN)

	feed = await service.list_nearby(AuthenticatedUser(id=1), NearbyQuery())
	assert [item.user_id for item in feed.items] == [3, 4]

	banned_feed = await service.list_nearby(AuthenticatedUser(id=2), NearbyQuery())
	assert banned_feed.items == []


@pytest.mark.asyncio
async def test_unknown_requester(campus):
	with pytest.raises(NotFoundError):
		await service.list_nearby(AuthenticatedUser(id=404), NearbyQuery())


def test_weights_for_modes():
	assert service.weights_for("matchmaking").distance == 0.0
	blend = service.weights_for("blend")
	assert (blend.tag_sim, blend.distance) == (0.7, 0.3)
	custom = service.weights_for("matchmaking", WeightsIn(tag_sim=0.5, distance=0.5))
	assert (custom.tag_sim, custom.distance) == (0.5, 0.5)


def test_rank_candidates_is_stateless():
	payload = RankRequest(
		requester=ProfileIn(id=1, interest_tags=["Chess"], lat=36.885, lon=-76.305),
		candidates=[
			ProfileIn(id=2, interest_tags=["chess"], lat=36.885, lon=-76.305),
			ProfileIn(id=3, interest_tags=["chess"], lat=36.9, lon=-76.305),
			ProfileIn(id=4, interest_tags=["chess"]),
		],
		exclude_ids=[3],
	)
	response = service.rank_candidates(payload)
	assert [item.user_id for item in response.items] == [2]
	assert response.items[0].score == pytest.approx(1.0)


def test_scatter_users_defaults_to_configured_center():
	response = service.scatter_users(ScatterRequest(users=[ProfileIn(id=1), ProfileIn(id=2)]))
	assert (response.center_lat, response.center_lon) == (36.885, -76.305)
	assert [user.id for user in response.users] == [1, 2]
	again = service.scatter_users(ScatterRequest(users=[ProfileIn(id=1), ProfileIn(id=2)]))
	assert again == response
