"""Proximity query engine.

Candidates come from the position store's index-backed radius search; the store
computes geodesic distances. The engine joins profiles, applies the category
filter, fixes the order and paginates.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional

from pawmap.domain.locations.errors import InvalidQuery, ProfileLookupFailure
from pawmap.domain.locations.models import NearbyEntry, Profile
from pawmap.domain.locations.profiles import ProfileStore
from pawmap.domain.locations.schemas import NearbyFilters
from pawmap.domain.locations.store import PositionStore, validate_coordinates
from pawmap.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _sort_key(entry: NearbyEntry) -> tuple[float, str]:
	return (entry.distance_meters, entry.user_id)


def paginate(entries: List[NearbyEntry], limit: Optional[int], offset: Optional[int]) -> List[NearbyEntry]:
	start = offset or 0
	if limit is None:
		return entries[start:]
	return entries[start : start + limit]


class ProximityEngine:
	def __init__(self, store: PositionStore, profiles: ProfileStore) -> None:
		self.store = store
		self.profiles = profiles

	async def find_nearby(
		self,
		lat: float,
		lng: float,
		radius_meters: float,
		filters: Optional[NearbyFilters] = None,
	) -> List[NearbyEntry]:
		"""Positions within ``radius_meters`` of the point, nearest first.

		Equal distances are ordered by ``user_id``. The category filter runs before
		``limit``/``offset`` so pagination walks the filtered set.
		"""
		lat, lng = validate_coordinates(lat, lng)
		try:
			radius = float(radius_meters)
		except (TypeError, ValueError):
			raise InvalidQuery("radius_not_a_number") from None
		if not math.isfinite(radius) or radius < 0:
			raise InvalidQuery("radius_out_of_range", detail=f"radius={radius_meters}")
		filters = filters or NearbyFilters()

		rows = await self.store.within_radius(lat, lng, radius)
		profiles = await self._load_profiles([position.user_id for position, _ in rows])

		entries: List[NearbyEntry] = []
		for position, distance in rows:
			if distance > radius:
				continue
			entry = NearbyEntry.build(position, distance, profiles.get(position.user_id))
			if filters.category is not None and entry.category != filters.category:
				continue
			entries.append(entry)
		entries.sort(key=_sort_key)
		page = paginate(entries, filters.limit, filters.offset)
		obs_metrics.proximity_query(radius, len(page))
		logger.debug(
			"nearby radius=%s candidates=%s matched=%s returned=%s",
			radius,
			len(rows),
			len(entries),
			len(page),
		)
		return page

	async def _load_profiles(self, user_ids: List[str]) -> Dict[str, Profile]:
		if not user_ids:
			return {}
		try:
			return await self.profiles.get_profiles(user_ids)
		except ProfileLookupFailure as exc:
			# entries stay in the answer with empty profile fields
			logger.warning("profile join failed for %s users: %s", len(user_ids), exc.reason)
			obs_metrics.profile_lookup_failed()
			return {}
