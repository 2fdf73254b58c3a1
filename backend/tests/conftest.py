import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from pawmap.domain.locations.container import build_service
from pawmap.domain.locations.models import Profile
from pawmap.domain.locations.profiles import InMemoryProfileStore
from pawmap.domain.locations.store import RedisPositionStore
from pawmap.infra import postgres
from pawmap.infra.redis import redis_client, set_redis_client
from pawmap.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(server=FakeServer(), decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	original_env = settings.environment
	original_backend = settings.position_backend
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.position_backend = original_backend


class FakePool:
	"""Records asyncpg calls and returns canned results."""

	def __init__(self) -> None:
		self.calls: list[tuple[str, str, tuple]] = []
		self.fetchrow_result = None
		self.fetch_result: list = []
		self.execute_result = "OK"
		self.error: Exception | None = None

	def _record(self, method: str, query: str, args: tuple) -> None:
		self.calls.append((method, " ".join(query.split()), args))
		if self.error is not None:
			raise self.error

	async def fetchrow(self, query: str, *args):
		self._record("fetchrow", query, args)
		return self.fetchrow_result

	async def fetch(self, query: str, *args):
		self._record("fetch", query, args)
		return self.fetch_result

	async def execute(self, query: str, *args):
		self._record("execute", query, args)
		return self.execute_result


@pytest.fixture
def fake_pool():
	return FakePool()


@pytest.fixture
def utc_now():
	return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def profiles():
	return InMemoryProfileStore(
		[
			Profile(user_id="u1", display_name="Rex", category="Beagle", avatar_ref="avatars/u1.png"),
			Profile(user_id="u2", display_name="Luna", category="Golden Retriever", avatar_ref=None),
			Profile(user_id="u3", display_name="Max", category="Beagle", avatar_ref="avatars/u3.png"),
		]
	)


@pytest.fixture
def position_store():
	return RedisPositionStore(redis_client, geo_key="test:locations:geo")


@pytest.fixture
def locations_service(position_store, profiles):
	return build_service(position_store, profiles, redis=redis_client)


@pytest_asyncio.fixture
async def api_client():
	from pawmap.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
