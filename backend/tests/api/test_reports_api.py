import pytest
import pytest_asyncio

from beacon.settings import settings


@pytest_asyncio.fixture
async def seeded(users_repo, profile_factory):
	for user_id in (1, 2, 3):
		await users_repo.add(profile_factory(user_id, ["chess"]))
	await users_repo.add(profile_factory(9, is_admin=True))
	return users_repo


@pytest.mark.asyncio
async def test_submit_report(api_client, headers, seeded):
	response = await api_client.post(
		"/api/report",
		json={"reported_id": 2, "reason": "harassment", "severity": "5"},
		headers=headers.member(1),
	)

	assert response.status_code == 201
	body = response.json()
	assert body["status"] == "NEEDS_REVIEW"
	assert body["severity"] == 5
	assert body["deduction"] == 10
	assert body["trust_score"] == 89

	trust = await api_client.get("/api/users/2/trust", headers=headers.member(3))
	assert trust.status_code == 200
	assert trust.json() == {"user_id": 2, "trust_score": 89}


@pytest.mark.asyncio
async def test_report_requires_identity(api_client, seeded):
	response = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"})
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_identity"


@pytest.mark.asyncio
async def test_self_report_is_bad_request(api_client, headers, seeded):
	response = await api_client.post("/api/report", json={"reported_id": 1, "reason": "me"}, headers=headers.member(1))
	assert response.status_code == 400
	assert response.json()["detail"] == "cannot_report_self"
	assert "request_id" in response.json()


@pytest.mark.asyncio
async def test_blank_reason_is_bad_request(api_client, headers, seeded):
	response = await api_client.post("/api/report", json={"reported_id": 2, "reason": "  "}, headers=headers.member(1))
	assert response.status_code == 400
	assert response.json()["detail"] == "reason_required"


@pytest.mark.asyncio
async def test_malformed_body_is_unprocessable(api_client, headers, seeded):
	response = await api_client.post("/api/report", json={"reason": "spam"}, headers=headers.member(1))
	assert response.status_code == 422
	assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_unknown_target_is_not_found(api_client, headers, seeded):
	response = await api_client.post("/api/report", json={"reported_id": 404, "reason": "spam"}, headers=headers.member(1))
	assert response.status_code == 404
	assert response.json()["detail"] == "reported_user_not_found"


@pytest.mark.asyncio
async def test_admins_cannot_report(api_client, headers, seeded):
	by_role = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"}, headers=headers.admin(1))
	assert by_role.status_code == 403
	assert by_role.json()["detail"] == "admins_cannot_report"

	by_flag = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"}, headers=headers.member(9))
	assert by_flag.status_code == 403


@pytest.mark.asyncio
async def test_report_rate_limit(api_client, headers, seeded, monkeypatch):
	monkeypatch.setattr(settings, "report_rate_limit", 2)
	for _ in range(2):
		ok = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"}, headers=headers.member(1))
		assert ok.status_code == 201

	limited = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"}, headers=headers.member(1))
	assert limited.status_code == 429
	assert limited.json()["detail"] == "rate_limited"

	other = await api_client.post("/api/report", json={"reported_id": 2, "reason": "spam"}, headers=headers.member(3))
	assert other.status_code == 201


@pytest.mark.asyncio
async def test_trust_lookup_not_found(api_client, headers, seeded):
	response = await api_client.get("/api/users/404/trust", headers=headers.member(1))
	assert response.status_code == 404
	assert response.json()["detail"] == "user_not_found"
