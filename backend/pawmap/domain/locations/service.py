"""Locations service: the facade used by the live channel.

Store and engine errors are raised as ``LocationError`` subclasses; this layer
turns them into ``Ok``/``Err`` results so callers branch on a tag instead of
catching exceptions.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pawmap.domain.locations.cache import NearbyCache, cache_key
from pawmap.domain.locations.engine import ProximityEngine
from pawmap.domain.locations.errors import LocationError
from pawmap.domain.locations.models import NearbyEntry, Position
from pawmap.domain.locations.results import Err, Ok, Result
from pawmap.domain.locations.schemas import NearbyFilters
from pawmap.domain.locations.store import PositionStore
from pawmap.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class LocationsService:
	def __init__(self, store: PositionStore, engine: ProximityEngine, cache: NearbyCache) -> None:
		self.store = store
		self.engine = engine
		self.cache = cache

	async def save_location(self, user_id: str, lat: float, lng: float) -> Result[Position]:
		try:
			position = await self.store.save_location(user_id, lat, lng)
		except LocationError as exc:
			obs_metrics.location_write(exc.code)
			logger.info("save_location rejected user=%s reason=%s", user_id, exc.reason)
			return Err.from_exc(exc)
		obs_metrics.location_write("ok")
		return Ok(position)

	async def get_location(self, user_id: str) -> Result[Optional[Position]]:
		try:
			return Ok(await self.store.get_location(user_id))
		except LocationError as exc:
			return Err.from_exc(exc)

	async def find_nearby(
		self,
		lat: float,
		lng: float,
		radius_meters: float,
		filters: Optional[NearbyFilters] = None,
	) -> Result[List[NearbyEntry]]:
		"""Cache-checked proximity query.

		A hit is returned as is, even if positions moved since it was stored.
		"""
		filters = filters or NearbyFilters()
		key = cache_key(lat, lng, radius_meters, filters.signature())
		cached = await self.cache.get(key)
		if cached is not None:
			return Ok(cached)
		try:
			entries = await self.engine.find_nearby(lat, lng, radius_meters, filters)
		except LocationError as exc:
			logger.warning("find_nearby failed reason=%s", exc.reason)
			return Err.from_exc(exc)
		await self.cache.set(key, entries)
		return Ok(entries)
