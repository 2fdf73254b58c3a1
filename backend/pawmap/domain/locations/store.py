"""Position store: one current coordinate per user, upserted atomically.

Two implementations share the ``PositionStore`` protocol:

* ``PostgisPositionStore`` keeps positions in a ``geography(Point, 4326)`` column
  behind a GIST index and relies on ``INSERT ... ON CONFLICT`` for the upsert.
* ``RedisPositionStore`` keeps them in a GEO sorted set plus one hash per user,
  written together inside ``MULTI/EXEC``.

Every spatial call site passes longitude first.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Protocol, Sequence

import asyncpg
from redis.exceptions import RedisError, WatchError

from pawmap.domain.locations.errors import InvalidCoordinate, StorageUnavailable
from pawmap.domain.locations.models import Position
from pawmap.infra.redis import RedisProxy, redis_client
from pawmap.settings import settings

logger = logging.getLogger(__name__)

# Redis GEO only indexes the Web-Mercator latitude band.
REDIS_MAX_LATITUDE = 85.05112878

# Search circle used for zero-radius queries, in metres
POINT_SEARCH_M = 1.0
# Optimistic radius reads retried when a concurrent write touches the index
SNAPSHOT_ATTEMPTS = 3

NearbyRow = tuple[Position, float]


def validate_coordinates(lat: float, lng: float) -> tuple[float, float]:
    """Return ``(lat, lng)`` as floats or raise ``InvalidCoordinate``."""
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        raise InvalidCoordinate("not_a_number") from None
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise InvalidCoordinate("not_finite")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinate("latitude_out_of_range", detail=f"lat={lat_f}")
    if not -180.0 <= lng_f <= 180.0:
        raise InvalidCoordinate("longitude_out_of_range", detail=f"lng={lng_f}")
    return lat_f, lng_f


class PositionStore(Protocol):
    """Persistence for the last known position of each user."""

    async def save_location(self, user_id: str, lat: float, lng: float) -> Position:
        """Validate and upsert the position, returning the stored row."""

    async def get_location(self, user_id: str) -> Position | None:
        """Return the stored position or ``None`` when the user never reported one."""

    async def within_radius(self, lat: float, lng: float, radius_m: float) -> Sequence[NearbyRow]:
        """Index-backed search for positions within ``radius_m`` metres of the point."""


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


@contextmanager
def _postgres_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except _DB_ERRORS as exc:
        logger.warning("position store %s failed: %s", operation, exc.__class__.__name__)
        raise StorageUnavailable(operation, detail=str(exc)) from exc


class PostgisPositionStore(PositionStore):
    """Asyncpg-backed store on a PostGIS geography column."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_schema(self) -> None:
        """Create the extension, table and spatial index when missing."""
        with _postgres_errors("ensure_schema"):
            await self.pool.execute("CREATE EXTENSION IF NOT EXISTS postgis")
            await self.pool.execute(
                """
                CREATE TABLE IF NOT EXISTS users_locations (
                    user_id VARCHAR PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                    location GEOGRAPHY(Point, 4326) NOT NULL,
                    last_updated TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )
            await self.pool.execute(
                "CREATE INDEX IF NOT EXISTS location_gist_idx ON users_locations USING GIST (location)"
            )

    async def save_location(self, user_id: str, lat: float, lng: float) -> Position:
        lat, lng = validate_coordinates(lat, lng)
        query = """
        INSERT INTO users_locations (user_id, location, last_updated)
        VALUES ($1, ST_SetSRID(ST_MakePoint($2, $3), 4326)::geography, now())
        ON CONFLICT (user_id)
        DO UPDATE SET location = EXCLUDED.location, last_updated = EXCLUDED.last_updated
        RETURNING user_id, ST_Y(location::geometry) AS lat, ST_X(location::geometry) AS lng, last_updated
        """
        with _postgres_errors("save_location"):
            record = await self.pool.fetchrow(query, user_id, lng, lat)
        if record is None:
            raise StorageUnavailable("save_location", detail="upsert returned no row")
        return _position_from_record(record)

    async def get_location(self, user_id: str) -> Position | None:
        query = """
        SELECT user_id, ST_Y(location::geometry) AS lat, ST_X(location::geometry) AS lng, last_updated
        FROM users_locations
        WHERE user_id = $1
        """
        with _postgres_errors("get_location"):
            record = await self.pool.fetchrow(query, user_id)
        return _position_from_record(record) if record else None

    async def within_radius(self, lat: float, lng: float, radius_m: float) -> Sequence[NearbyRow]:
        query = """
        SELECT l.user_id,
               ST_Y(l.location::geometry) AS lat,
               ST_X(l.location::geometry) AS lng,
               l.last_updated,
               ST_Distance(l.location, c.geog) AS distance
        FROM users_locations l,
             (SELECT ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography AS geog) AS c
        WHERE ST_DWithin(l.location, c.geog, $3)
        ORDER BY distance ASC, l.user_id ASC
        """
        with _postgres_errors("within_radius"):
            records = await self.pool.fetch(query, lng, lat, float(radius_m))
        return [(_position_from_record(record), float(record["distance"])) for record in records]


def _position_from_record(record) -> Position:
    return Position(
        user_id=str(record["user_id"]),
        lat=float(record["lat"]),
        lng=float(record["lng"]),
        last_updated=_utc(record["last_updated"]),
    )


_REDIS_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


@contextmanager
def _redis_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except _REDIS_ERRORS as exc:
        logger.warning("position store %s failed: %s", operation, exc.__class__.__name__)
        raise StorageUnavailable(operation, detail=str(exc)) from exc


def _check_redis_band(lat: float) -> None:
    if abs(lat) > REDIS_MAX_LATITUDE:
        raise InvalidCoordinate("latitude_outside_geo_index", detail=f"lat={lat}")


class RedisPositionStore(PositionStore):
    """Redis GEO store; exact coordinates live in ``location:{user_id}`` hashes."""

    def __init__(self, redis: RedisProxy | None = None, *, geo_key: str | None = None) -> None:
        self.redis = redis or redis_client
        self.geo_key = geo_key or settings.redis_geo_key

    @staticmethod
    def _hash_key(user_id: str) -> str:
        return f"location:{user_id}"

    async def save_location(self, user_id: str, lat: float, lng: float) -> Position:
        lat, lng = validate_coordinates(lat, lng)
        _check_redis_band(lat)
        now_ms = int(time.time() * 1000)
        with _redis_errors("save_location"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.geoadd(self.geo_key, [lng, lat, user_id])
                pipe.hset(
                    self._hash_key(user_id),
                    mapping={"lat": repr(lat), "lng": repr(lng), "last_updated": str(now_ms)},
                )
                await pipe.execute()
        return Position(user_id=user_id, lat=lat, lng=lng, last_updated=_from_ms(now_ms))

    async def get_location(self, user_id: str) -> Position | None:
        with _redis_errors("get_location"):
            raw = await self.redis.hgetall(self._hash_key(user_id))
        if not raw:
            return None
        return _position_from_hash(user_id, raw)

    async def within_radius(self, lat: float, lng: float, radius_m: float) -> Sequence[NearbyRow]:
        """GEOSEARCH and the hash reads run under WATCH so distances match coordinates.

        GEOSEARCH cannot take a zero radius; a point query searches a small
        circle and keeps only positions stored at exactly the requested point.
        """
        lat, lng = validate_coordinates(lat, lng)
        _check_redis_band(lat)
        radius = float(radius_m)
        exact_point = radius == 0
        with _redis_errors("within_radius"):
            for _ in range(SNAPSHOT_ATTEMPTS):
                try:
                    hits, snapshots = await self._snapshot(lat, lng, POINT_SEARCH_M if exact_point else radius)
                except WatchError:
                    logger.debug("geo index changed during radius search, retrying")
                    continue
                break
            else:
                raise StorageUnavailable("within_radius", detail="positions changed during every attempt")
        rows: list[NearbyRow] = []
        for (member, distance), raw in zip(hits, snapshots):
            if not raw:
                # member without its hash is not a usable position
                logger.debug("position hash missing for member=%s", member)
                continue
            position = _position_from_hash(member, raw)
            if exact_point:
                if (position.lat, position.lng) != (lat, lng):
                    continue
                distance = 0.0
            rows.append((position, distance))
        return rows

    async def _snapshot(self, lat: float, lng: float, radius: float) -> tuple[list, list]:
        async with self.redis.pipeline(transaction=True) as pipe:
            await pipe.watch(self.geo_key)
            found = await pipe.geosearch(
                self.geo_key,
                longitude=lng,
                latitude=lat,
                radius=radius,
                unit="m",
                withdist=True,
                sort="ASC",
            )
            hits = [(str(member), float(distance)) for member, distance in found or []]
            if not hits:
                return [], []
            pipe.multi()
            for member, _ in hits:
                pipe.hgetall(self._hash_key(member))
            snapshots = await pipe.execute()
        return hits, snapshots


def _from_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _position_from_hash(user_id: str, raw: dict) -> Position:
    return Position(
        user_id=str(user_id),
        lat=float(raw["lat"]),
        lng=float(raw["lng"]),
        last_updated=_from_ms(int(raw.get("last_updated") or 0)),
    )
