"""Short-lived Redis cache for nearby answers.

Entries expire after ``settings.nearby_cache_ttl_ms`` and are never invalidated
when positions move, so a repeated query may be stale for at most one TTL.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Mapping, Optional

from redis.exceptions import RedisError

from pawmap.domain.locations.models import NearbyEntry
from pawmap.infra.redis import RedisProxy, redis_client
from pawmap.obs import metrics as obs_metrics
from pawmap.settings import settings

logger = logging.getLogger(__name__)


def cache_key(
	lat: float,
	lng: float,
	radius: float,
	filters: Optional[Mapping[str, Any]] = None,
	*,
	prefix: Optional[str] = None,
) -> str:
	"""Deterministic signature of a proximity query.

	Numbers keep the exact representation they arrived with (``json.dumps`` uses
	``repr`` for floats) and filter keys are sorted.
	"""
	filters_json = json.dumps(dict(filters or {}), sort_keys=True, separators=(",", ":"))
	head = prefix if prefix is not None else settings.nearby_cache_prefix
	return f"{head}{json.dumps(lat)}:{json.dumps(lng)}:{json.dumps(radius)}:{filters_json}"


class NearbyCache:
	"""JSON list cache with millisecond TTLs."""

	def __init__(self, redis: RedisProxy | None = None, *, ttl_ms: Optional[int] = None) -> None:
		self.redis = redis or redis_client
		self.ttl_ms = ttl_ms if ttl_ms is not None else settings.nearby_cache_ttl_ms

	async def get(self, key: str) -> Optional[List[NearbyEntry]]:
		try:
			raw = await self.redis.get(key)
		except RedisError:
			logger.warning("nearby cache read failed key=%s", key, exc_info=True)
			obs_metrics.nearby_cache("error")
			return None
		if raw is None:
			obs_metrics.nearby_cache("miss")
			return None
		try:
			decoded = json.loads(raw if isinstance(raw, str) else raw.decode("utf-8"))
			entries = [NearbyEntry.from_dict(item) for item in decoded]
		except (ValueError, KeyError, TypeError):
			logger.warning("nearby cache entry undecodable key=%s", key)
			obs_metrics.nearby_cache("error")
			return None
		obs_metrics.nearby_cache("hit")
		return entries

	async def set(self, key: str, value: List[NearbyEntry], ttl_ms: Optional[int] = None) -> None:
		payload = json.dumps([entry.to_dict() for entry in value], separators=(",", ":"))
		try:
			await self.redis.set(key, payload, px=ttl_ms if ttl_ms is not None else self.ttl_ms)
		except RedisError:
			logger.warning("nearby cache write failed key=%s", key, exc_info=True)

	async def invalidate(self, key: str) -> None:
		try:
			await self.redis.delete(key)
		except RedisError:
			logger.warning("nearby cache invalidate failed key=%s", key, exc_info=True)
