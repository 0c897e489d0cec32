import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from beacon.domain.identity.models import Coordinates, UserProfile
from beacon.main import app
from beacon.moderation.domain import container
from beacon.settings import settings

# Demo campus center; every seeded user sits a short walk away from it
CENTER_LAT = 36.885
CENTER_LON = -76.305


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from beacon.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def memory_container():
	container.configure_memory()
	yield
	container.configure_memory()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Identity headers on, no configured admin ids, test environment."""
	original_env = settings.environment
	original_headers = settings.trust_identity_headers
	original_admins = settings.moderation_admin_ids
	settings.environment = "test"
	settings.trust_identity_headers = True
	settings.moderation_admin_ids = ()
	try:
		yield
	finally:
		settings.environment = original_env
		settings.trust_identity_headers = original_headers
		settings.moderation_admin_ids = original_admins


def make_profile(user_id: int, tags=(), *, north_m: float = 0.0, east_m: float = 0.0, located: bool = True, **kwargs) -> UserProfile:
	"""Profile placed ``north_m`` / ``east_m`` meters from the demo center."""
	coords = None
	if located:
		coords = Coordinates(
			latitude=CENTER_LAT + north_m / 111_195.0,
			longitude=CENTER_LON + east_m / (111_195.0 * 0.8),
		)
	kwargs.setdefault("display_name", f"User {user_id}")
	kwargs.setdefault("email", f"user{user_id}@example.edu")
	return UserProfile(id=user_id, interest_tags=tuple(tags), coords=coords, **kwargs)


@pytest.fixture
def users_repo():
	return container.get_user_repository()


@pytest.fixture
def profile_factory():
	return make_profile


def member_headers(user_id: int) -> dict[str, str]:
	return {"X-User-Id": str(user_id)}


def admin_headers(user_id: int) -> dict[str, str]:
	return {"X-User-Id": str(user_id), "X-User-Roles": "admin"}


@pytest.fixture
def headers():
	class _Headers:
		member = staticmethod(member_headers)
		admin = staticmethod(admin_headers)

	return _Headers


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
