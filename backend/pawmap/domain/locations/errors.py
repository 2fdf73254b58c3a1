"""Error taxonomy for the locations domain.

Every error carries a stable ``code`` that is surfaced to clients in ``sys.warn``
events and used as the tag of an ``Err`` result.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
	INVALID_COORDINATE = "invalid_coordinate"
	INVALID_QUERY = "invalid_query"
	STORAGE_UNAVAILABLE = "storage_unavailable"
	PROFILE_LOOKUP_FAILURE = "profile_lookup_failure"
	INVALID_PAYLOAD = "invalid_payload"
	MISSING_USER_ID = "missing_user_id"


class LocationError(Exception):
	kind: ErrorKind = ErrorKind.STORAGE_UNAVAILABLE

	def __init__(self, reason: str, *, detail: Optional[str] = None) -> None:
		super().__init__(reason)
		self.reason = reason
		self.detail = detail

	@property
	def code(self) -> str:
		return self.kind.value


class InvalidCoordinate(LocationError):
	kind = ErrorKind.INVALID_COORDINATE


class InvalidQuery(LocationError):
	kind = ErrorKind.INVALID_QUERY


class StorageUnavailable(LocationError):
	kind = ErrorKind.STORAGE_UNAVAILABLE


class ProfileLookupFailure(LocationError):
	kind = ErrorKind.PROFILE_LOOKUP_FAILURE


class MalformedMessage(LocationError):
	kind = ErrorKind.INVALID_PAYLOAD

	def __init__(self, reason: str, *, detail: Optional[str] = None, missing_user_id: bool = False) -> None:
		super().__init__(reason, detail=detail)
		if missing_user_id:
			self.kind = ErrorKind.MISSING_USER_ID
