import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pawmap.domain.locations.cache import NearbyCache, cache_key
from pawmap.domain.locations.models import NearbyEntry
from pawmap.domain.locations.results import unwrap
from pawmap.domain.locations.schemas import NearbyFilters
from pawmap.infra.redis import RedisProxy


def test_cache_key_keeps_exact_numbers():
	assert cache_key(32.081194, 34.890737, 500, {}) == "nearby:32.081194:34.890737:500:{}"
	assert cache_key(0.1 + 0.2, -0.0, 500.0) == "nearby:0.30000000000000004:-0.0:500.0:{}"


def test_cache_key_sorts_filters():
	first = cache_key(1.0, 2.0, 300, {"limit": 5, "breed": "Beagle"})
	second = cache_key(1.0, 2.0, 300, {"breed": "Beagle", "limit": 5})

	assert first == second == 'nearby:1.0:2.0:300:{"breed":"Beagle","limit":5}'
	assert cache_key(1.0, 2.0, 300, {}, prefix="t:") == "t:1.0:2.0:300:{}"


@pytest.mark.asyncio
async def test_set_uses_millisecond_ttl(fake_redis):
	cache = NearbyCache()
	entry = NearbyEntry(user_id="u1", lat=1.0, lng=2.0, distance_meters=3.5, display_name="Rex")

	await cache.set("nearby:k", [entry])

	ttl = await fake_redis.pttl("nearby:k")
	assert 0 < ttl <= 300_000
	assert await cache.get("nearby:k") == [entry]


@pytest.mark.asyncio
async def test_missing_and_undecodable_entries_are_misses(fake_redis):
	cache = NearbyCache()
	await fake_redis.set("nearby:bad", "{not json")

	assert await cache.get("nearby:none") is None
	assert await cache.get("nearby:bad") is None


@pytest.mark.asyncio
async def test_invalidate_drops_entry(fake_redis):
	cache = NearbyCache(ttl_ms=1000)
	await cache.set("nearby:k", [])

	await cache.invalidate("nearby:k")

	assert await fake_redis.exists("nearby:k") == 0


@pytest.mark.asyncio
async def test_stale_answer_until_entry_expires(locations_service, position_store, fake_redis):
	await position_store.save_location("u1", 0.0, 0.0)
	first = unwrap(await locations_service.find_nearby(0.0, 0.0, 500))

	await position_store.save_location("u2", 0.0, 0.001)
	stale = unwrap(await locations_service.find_nearby(0.0, 0.0, 500))

	assert [entry.user_id for entry in first] == ["u1"]
	assert stale == first

	# simulate the end of the TTL window
	await fake_redis.pexpire(cache_key(0.0, 0.0, 500, {}), 1)
	await asyncio.sleep(0.01)
	fresh = unwrap(await locations_service.find_nearby(0.0, 0.0, 500))

	assert [entry.user_id for entry in fresh] == ["u1", "u2"]


@pytest.mark.asyncio
async def test_cache_hit_skips_engine(locations_service, position_store):
	await position_store.save_location("u1", 0.0, 0.0)
	filters = NearbyFilters(breed="Beagle")
	await locations_service.find_nearby(0.0, 0.0, 500, filters)
	locations_service.engine.find_nearby = AsyncMock()

	hit = unwrap(await locations_service.find_nearby(0.0, 0.0, 500, filters))

	assert [entry.user_id for entry in hit] == ["u1"]
	locations_service.engine.find_nearby.assert_not_awaited()


@pytest.mark.asyncio
async def test_distinct_filters_use_distinct_entries(locations_service, position_store):
	await position_store.save_location("u1", 0.0, 0.0)
	await position_store.save_location("u2", 0.0, 0.0001)

	everyone = unwrap(await locations_service.find_nearby(0.0, 0.0, 500))
	goldens = unwrap(await locations_service.find_nearby(0.0, 0.0, 500, NearbyFilters(breed="Golden Retriever")))

	assert [entry.user_id for entry in everyone] == ["u1", "u2"]
	assert [entry.user_id for entry in goldens] == ["u2"]


@pytest.mark.asyncio
async def test_cache_outage_falls_back_to_engine(locations_service, position_store):
	await position_store.save_location("u1", 0.0, 0.0)
	broken = AsyncMock()
	broken.get.side_effect = RedisConnectionError("down")
	broken.set.side_effect = RedisConnectionError("down")
	locations_service.cache = NearbyCache(RedisProxy(broken))

	result = unwrap(await locations_service.find_nearby(0.0, 0.0, 500))

	assert [entry.user_id for entry in result] == ["u1"]
	broken.set.assert_awaited_once()
