"""Service container for the locations domain.

Starts with Redis positions and in-memory profiles; ``configure_postgres`` swaps in
the asyncpg-backed stores once the pool exists.
"""

from __future__ import annotations

from typing import Optional

import asyncpg

from pawmap.domain.locations.cache import NearbyCache
from pawmap.domain.locations.engine import ProximityEngine
from pawmap.domain.locations.profiles import InMemoryProfileStore, PostgresProfileStore, ProfileStore
from pawmap.domain.locations.service import LocationsService
from pawmap.domain.locations.store import PositionStore, PostgisPositionStore, RedisPositionStore
from pawmap.infra.redis import RedisProxy, redis_client
from pawmap.settings import settings


def build_service(
	store: PositionStore,
	profiles: ProfileStore,
	*,
	redis: Optional[RedisProxy] = None,
	ttl_ms: Optional[int] = None,
) -> LocationsService:
	engine = ProximityEngine(store, profiles)
	cache = NearbyCache(redis or redis_client, ttl_ms=ttl_ms)
	return LocationsService(store, engine, cache)


_service: LocationsService = build_service(RedisPositionStore(redis_client), InMemoryProfileStore())


def configure(service: LocationsService) -> None:
	global _service
	_service = service


async def configure_postgres(pool: asyncpg.Pool, redis: Optional[RedisProxy] = None) -> LocationsService:
	"""Wire the configured position backend and the ``users`` profile reader."""
	proxy = redis or redis_client
	store: PositionStore
	if settings.position_backend == "postgis":
		postgis = PostgisPositionStore(pool)
		if settings.ensure_schema_on_startup:
			await postgis.ensure_schema()
		store = postgis
	else:
		store = RedisPositionStore(proxy)
	service = build_service(store, PostgresProfileStore(pool), redis=proxy)
	configure(service)
	return service


def get_service() -> LocationsService:
	return _service