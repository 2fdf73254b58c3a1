"""Per-process state of the live location channel.

One ``ChannelContext`` is owned by the namespace and handed to it explicitly, so
tests can build isolated instances. All access happens on the event loop thread.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from pawmap.settings import settings


class ConnectionState(str, Enum):
	CONNECTED = "connected"
	ACTIVE = "active"


@dataclass
class ChannelContext:
	"""Connection registry plus radius preferences.

	Radius preferences are keyed by user id, not by connection, and are never
	cleared on disconnect. They are not shared between server processes.
	"""

	default_radius_m: float = field(default_factory=lambda: settings.default_search_radius_m)
	connections: Dict[str, ConnectionState] = field(default_factory=dict)
	radius_preferences: Dict[str, float] = field(default_factory=dict)
	_locks: Dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

	def register(self, sid: str) -> None:
		self.connections[sid] = ConnectionState.CONNECTED

	def unregister(self, sid: str) -> None:
		self.connections.pop(sid, None)
		self._locks.pop(sid, None)

	def mark_active(self, sid: str) -> None:
		if sid in self.connections:
			self.connections[sid] = ConnectionState.ACTIVE

	def state(self, sid: str) -> Optional[ConnectionState]:
		return self.connections.get(sid)

	def radius_for(self, user_id: str) -> float:
		return self.radius_preferences.get(user_id, self.default_radius_m)

	def set_radius(self, user_id: str, radius_m: float) -> None:
		self.radius_preferences[user_id] = float(radius_m)

	def lock_for(self, sid: str) -> asyncio.Lock:
		"""FIFO lock that serialises the messages of one connection."""
		lock = self._locks.get(sid)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[sid] = lock
		return lock
