import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def campus(users_repo, profile_factory):
	await users_repo.add(profile_factory(1, ["chess", "hiking"]))
	await users_repo.add(profile_factory(2, ["chess", "hiking"], north_m=50))
	await users_repo.add(profile_factory(3, ["chess"], north_m=1500))
	await users_repo.add(profile_factory(4, ["opera"], north_m=20))
	return users_repo


@pytest.mark.asyncio
async def test_nearby_feed(api_client, headers, campus):
	response = await api_client.get("/discovery/nearby", headers=headers.member(1))

	assert response.status_code == 200
	body = response.json()
	assert body["mode"] == "blend"
	assert [item["user_id"] for item in body["items"]] == [2, 3, 4]
	assert body["items"][1]["distance_label"] == "1.5 km"
	assert "lat" not in body["items"][0]


@pytest.mark.asyncio
async def test_nearby_query_params(api_client, headers, campus):
	response = await api_client.get(
		"/discovery/nearby", params={"mode": "matchmaking", "max_meters": 1000, "limit": 1}, headers=headers.member(1)
	)
	assert [item["user_id"] for item in response.json()["items"]] == [2]

	invalid = await api_client.get("/discovery/nearby", params={"limit": 0}, headers=headers.member(1))
	assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_nearby_requires_identity(api_client, campus):
	response = await api_client.get("/discovery/nearby")
	assert response.status_code == 401


@pytest.mark.asyncio
async def test_block_endpoints_shape_the_feed(api_client, headers, campus):
	blocked = await api_client.post("/users/2/block", headers=headers.member(1))
	assert blocked.json() == {"blocker_id": 1, "blocked_id": 2, "blocked": True, "changed": True}

	repeat = await api_client.post("/users/2/block", headers=headers.member(1))
	assert repeat.json()["changed"] is False

	feed = await api_client.get("/discovery/nearby", headers=headers.member(2))
	assert 1 not in [item["user_id"] for item in feed.json()["items"]]

	removed = await api_client.delete("/users/2/block", headers=headers.member(1))
	assert removed.json() == {"blocker_id": 1, "blocked_id": 2, "blocked": False, "changed": True}

	self_block = await api_client.post("/users/1/block", headers=headers.member(1))
	assert self_block.status_code == 400
	assert self_block.json()["detail"] == "cannot_block_self"


@pytest.mark.asyncio
async def test_rank_endpoint(api_client, headers):
	payload = {
		"requester": {"id": 1, "interest_tags": ["chess"], "lat": 36.885, "lon": -76.305},
		"candidates": [
			{"id": 2, "interest_tags": ["opera"], "lat": 36.885, "lon": -76.305},
			{"id": 3, "interest_tags": ["Chess"], "lat": 36.885, "lon": -76.305},
		],
		"mode": "matchmaking",
	}
	response = await api_client.post("/discovery/rank", json=payload, headers=headers.member(1))
	assert response.status_code == 200
	items = response.json()["items"]
	assert [item["user_id"] for item in items] == [3, 2]
	assert items[0]["score"] == 1.0
	assert items[1]["score"] == 0.0


@pytest.mark.asyncio
async def test_scatter_endpoint(api_client, headers):
	payload = {"users": [{"id": 7, "display_name": "Sam"}], "center_lat": 10.0, "center_lon": 20.0}
	first = await api_client.post("/discovery/scatter", json=payload, headers=headers.member(1))
	second = await api_client.post("/discovery/scatter", json=payload, headers=headers.member(1))
	assert first.status_code == 200
	assert first.json() == second.json()
	placed = first.json()["users"][0]
	assert abs(placed["lat"] - 10.0) <= 0.005
	assert abs(placed["lon"] - 20.0) <= 0.005
