"""Domain models used by the locations service."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(slots=True, frozen=True)
class Position:
	"""Last reported coordinate of a user (WGS-84 degrees)."""

	user_id: str
	lat: float
	lng: float
	last_updated: datetime

	@property
	def coordinates(self) -> tuple[float, float]:
		"""Longitude-first pair, the order every spatial primitive expects."""
		return (self.lng, self.lat)


@dataclass(slots=True, frozen=True)
class Profile:
	user_id: str
	display_name: Optional[str] = None
	category: Optional[str] = None
	avatar_ref: Optional[str] = None


@dataclass(slots=True, frozen=True)
class NearbyEntry:
	"""One row of a proximity answer, joined with the owner's profile."""

	user_id: str
	lat: float
	lng: float
	distance_meters: float
	display_name: Optional[str] = None
	category: Optional[str] = None
	avatar_ref: Optional[str] = None

	@classmethod
	def build(cls, position: Position, distance_m: float, profile: Optional[Profile]) -> "NearbyEntry":
		return cls(
			user_id=position.user_id,
			lat=position.lat,
			lng=position.lng,
			distance_meters=float(distance_m),
			display_name=profile.display_name if profile else None,
			category=profile.category if profile else None,
			avatar_ref=profile.avatar_ref if profile else None,
		)

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "NearbyEntry":
		return cls(
			user_id=str(data["user_id"]),
			lat=float(data["lat"]),
			lng=float(data["lng"]),
			distance_meters=float(data["distance_meters"]),
			display_name=data.get("display_name"),
			category=data.get("category"),
			avatar_ref=data.get("avatar_ref"),
		)
