"""Pydantic schemas for the live location channel payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pawmap.domain.locations.errors import MalformedMessage
from pawmap.domain.locations.models import NearbyEntry

# Largest radius a client may ask for, in metres
MAX_SEARCH_RADIUS_M = 50_000


class NearbyFilters(BaseModel):
	"""Optional filters attached to a proximity query.

	On the wire the category filter is called ``breed``.
	"""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	category: Optional[str] = Field(default=None, alias="breed")
	limit: Optional[int] = Field(default=None, ge=0, strict=True)
	offset: Optional[int] = Field(default=None, ge=0, strict=True)

	def signature(self) -> Dict[str, Any]:
		"""Only the filters that were actually set, keyed by their wire names."""
		return self.model_dump(by_alias=True, exclude_none=True)


class _ChannelMessage(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	user_id: str = Field(..., alias="userId", min_length=1)
	filters: NearbyFilters = Field(default_factory=NearbyFilters)

	@field_validator("user_id", mode="before")
	def coerce_user_id(cls, value: Any) -> Any:
		if isinstance(value, (int, float)) and not isinstance(value, bool):
			return str(value)
		return value

	@field_validator("filters", mode="before")
	def default_filters(cls, value: Any) -> Any:
		return {} if value is None else value


class UpdateLocationMessage(_ChannelMessage):
	"""Client -> server ``update_location``.

	Coordinates must arrive as JSON numbers; ranges are checked by the position store.
	"""

	lat: float = Field(..., strict=True, allow_inf_nan=False)
	lng: float = Field(..., strict=True, allow_inf_nan=False)


class UpdateSearchRadiusMessage(_ChannelMessage):
	"""Client -> server ``update_search_radius``."""

	radius: float = Field(..., gt=0, le=MAX_SEARCH_RADIUS_M, strict=True, allow_inf_nan=False)


class UpdatedPosition(BaseModel):
	user_id: str
	lat: float
	lng: float


class LocationUpdatedEvent(BaseModel):
	"""Server -> all clients ``location_updated``."""

	updated: UpdatedPosition
	nearby: List[Dict[str, Any]]

	@classmethod
	def build(cls, user_id: str, lat: float, lng: float, nearby: List[NearbyEntry]) -> "LocationUpdatedEvent":
		return cls(
			updated=UpdatedPosition(user_id=user_id, lat=lat, lng=lng),
			nearby=[entry.to_dict() for entry in nearby],
		)


class ChannelWarning(BaseModel):
	"""Server -> sender ``sys.warn``."""

	code: str
	event: str
	detail: Optional[str] = None


M = TypeVar("M", bound=_ChannelMessage)


def parse_message(model: type[M], data: Any) -> M:
	"""Validate a raw channel payload or raise ``MalformedMessage``."""
	if not isinstance(data, dict):
		raise MalformedMessage("payload_not_an_object")
	if not data.get("userId"):
		raise MalformedMessage("missing_user_id", missing_user_id=True)
	try:
		return model.model_validate(data)
	except ValidationError as exc:
		fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
		raise MalformedMessage("validation_failed", detail=",".join(fields)) from exc
