"""Socket.IO namespace for live location updates."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional

import socketio

from pawmap.domain.locations.channel import ChannelContext
from pawmap.domain.locations.errors import MalformedMessage
from pawmap.domain.locations.models import NearbyEntry
from pawmap.domain.locations.results import Err
from pawmap.domain.locations.schemas import (
    ChannelWarning,
    LocationUpdatedEvent,
    UpdateLocationMessage,
    UpdateSearchRadiusMessage,
    parse_message,
)
from pawmap.domain.locations.service import LocationsService
from pawmap.obs import metrics as obs_metrics
from pawmap.obs.logging import bind_context, reset_context

logger = logging.getLogger(__name__)

LOCATION_UPDATED = "location_updated"
WARN_EVENT = "sys.warn"

Handler = Callable[[str, Any], Awaitable[None]]


class LocationsNamespace(socketio.AsyncNamespace):
    """Accepts position and radius updates and broadcasts nearby lists to everyone.

    Every ``location_updated`` goes to all connected clients of the namespace,
    not only to clients near the update.
    """

    def __init__(
        self,
        service: LocationsService,
        context: Optional[ChannelContext] = None,
        namespace: str = "/",
    ) -> None:
        super().__init__(namespace)
        self.service = service
        self.context = context or ChannelContext()

    async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
        obs_metrics.socket_connected(self.namespace)
        self.context.register(sid)
        logger.info("locations connect sid=%s", sid)

    async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
        obs_metrics.socket_disconnected(self.namespace)
        self.context.unregister(sid)
        logger.info("locations disconnect sid=%s reason=%s", sid, reason)

    async def on_update_location(self, sid: str, data: Any = None) -> None:
        await self._dispatch(sid, "update_location", data, self._update_location)

    async def on_update_search_radius(self, sid: str, data: Any = None) -> None:
        await self._dispatch(sid, "update_search_radius", data, self._update_search_radius)

    async def _dispatch(self, sid: str, event: str, data: Any, handler: Handler) -> None:
        obs_metrics.socket_event(self.namespace, event)
        # Held for the whole message so one socket's messages finish in arrival order.
        async with self.context.lock_for(sid):
            self.context.mark_active(sid)
            user_id = data.get("userId") if isinstance(data, dict) else None
            tokens = bind_context(sid=sid, event=event, user_id=str(user_id) if user_id else None)
            try:
                await handler(sid, data)
            except MalformedMessage as exc:
                await self._warn(sid, event, exc.code, exc.detail)
            finally:
                reset_context(tokens)
        if self.context.state(sid) is None:
            self.context.unregister(sid)

    async def _update_location(self, sid: str, data: Any) -> None:
        message = parse_message(UpdateLocationMessage, data)
        saved = await self.service.save_location(message.user_id, message.lat, message.lng)
        if isinstance(saved, Err):
            # never announce a position that was not persisted
            await self._warn(sid, "update_location", saved.error.value, saved.reason)
            return
        radius = self.context.radius_for(message.user_id)
        nearby = await self.service.find_nearby(message.lat, message.lng, radius, message.filters)
        if isinstance(nearby, Err):
            await self._warn(sid, "update_location", nearby.error.value, nearby.reason)
            return
        await self._broadcast(message.user_id, message.lat, message.lng, nearby.value)

    async def _update_search_radius(self, sid: str, data: Any) -> None:
        message = parse_message(UpdateSearchRadiusMessage, data)
        self.context.set_radius(message.user_id, message.radius)
        stored = await self.service.get_location(message.user_id)
        if isinstance(stored, Err):
            await self._warn(sid, "update_search_radius", stored.error.value, stored.reason)
            return
        position = stored.value
        if position is None:
            logger.debug("radius stored without position user=%s", message.user_id)
            return
        nearby = await self.service.find_nearby(position.lat, position.lng, message.radius, message.filters)
        if isinstance(nearby, Err):
            await self._warn(sid, "update_search_radius", nearby.error.value, nearby.reason)
            return
        await self._broadcast(message.user_id, position.lat, position.lng, nearby.value)

    async def _broadcast(self, user_id: str, lat: float, lng: float, nearby: List[NearbyEntry]) -> None:
        payload = LocationUpdatedEvent.build(user_id, lat, lng, nearby).model_dump()
        try:
            await self.emit(LOCATION_UPDATED, payload)
        except Exception:
            # at-most-once: the stored position goes out with the next update
            obs_metrics.broadcast("error")
            logger.warning("location_updated broadcast failed user=%s", user_id, exc_info=True)
            return
        obs_metrics.broadcast("ok")

    async def _warn(self, sid: str, event: str, code: str, detail: Optional[str] = None) -> None:
        obs_metrics.socket_warning(code)
        warning = ChannelWarning(code=code, event=event, detail=detail)
        await self.emit(WARN_EVENT, warning.model_dump(exclude_none=True), room=sid)
