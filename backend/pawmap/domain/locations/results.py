"""Tagged results returned by the locations service instead of raising."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

from pawmap.domain.locations.errors import ErrorKind, LocationError

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
	value: T
	ok: Literal[True] = True


@dataclass(slots=True, frozen=True)
class Err:
	error: ErrorKind
	reason: str = ""
	ok: Literal[False] = False

	@classmethod
	def from_exc(cls, exc: LocationError) -> "Err":
		return cls(error=exc.kind, reason=exc.reason)


Result = Union[Ok[T], Err]


def unwrap(result: "Result[T]") -> T:
	"""Return the value of an ``Ok`` or raise ``ValueError`` for an ``Err``."""
	if isinstance(result, Ok):
		return result.value
	raise ValueError(f"{result.error.value}: {result.reason}")
