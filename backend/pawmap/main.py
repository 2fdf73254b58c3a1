"""FastAPI application entrypoint with the live location Socket.IO server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pawmap.api import ops
from pawmap.domain.locations import container
from pawmap.domain.locations.channel import ChannelContext
from pawmap.domain.locations.sockets import LocationsNamespace
from pawmap.infra import postgres
from pawmap.infra.redis import redis_client
from pawmap.obs import init as obs_init
from pawmap.settings import settings

logger = logging.getLogger(__name__)

channel_context = ChannelContext()
locations_namespace = LocationsNamespace(container.get_service(), channel_context)


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.init_pool()
	locations_namespace.service = await container.configure_postgres(pool, redis_client)
	logger.info("locations service ready backend=%s", settings.position_backend)
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="pawmap proximity core", lifespan=lifespan)

allow_origins = list(settings.cors_allow_origins)
# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(ops.router, tags=["ops"])

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
sio.register_namespace(locations_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init()
