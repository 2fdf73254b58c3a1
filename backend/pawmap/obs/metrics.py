"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Summary

SOCKET_CLIENTS = Gauge(
	"pawmap_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"pawmap_socketio_events_total",
	"Socket.IO events received per namespace",
	["namespace", "event"],
)

SOCKET_WARNINGS = Counter(
	"pawmap_socketio_warnings_total",
	"sys.warn replies sent to a single connection",
	["code"],
)

LOCATION_WRITES = Counter(
	"pawmap_location_writes_total",
	"Position upserts by outcome",
	["result"],
)

PROXIMITY_QUERIES = Counter(
	"pawmap_proximity_queries_total",
	"Nearby proximity queries by radius bucket (metres, upper bound)",
	["radius"],
)

PROXIMITY_RESULTS = Summary(
	"pawmap_proximity_results_avg",
	"Nearby query result sizes",
)

PROXIMITY_PROFILE_FAILURES = Counter(
	"pawmap_proximity_profile_failures_total",
	"Profile joins that degraded to empty profile fields",
)

NEARBY_CACHE = Counter(
	"pawmap_nearby_cache_total",
	"Nearby cache lookups by result",
	["result"],
)

BROADCASTS = Counter(
	"pawmap_location_broadcasts_total",
	"location_updated broadcasts by outcome",
	["result"],
)

REDIS_UP = Gauge("pawmap_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("pawmap_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("pawmap_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("pawmap_postgres_latency_seconds", "Postgres ping latency (seconds)")


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def socket_warning(code: str) -> None:
	SOCKET_WARNINGS.labels(code=code).inc()


def location_write(result: str) -> None:
	LOCATION_WRITES.labels(result=result).inc()


# Upper bounds in metres for the radius label
RADIUS_BUCKETS = (100, 250, 500, 1000, 2500, 5000, 10000, 50000)


def radius_bucket(radius: float) -> str:
	for bound in RADIUS_BUCKETS:
		if radius <= bound:
			return str(bound)
	return "+Inf"


def proximity_query(radius: float, result_count: int) -> None:
	PROXIMITY_QUERIES.labels(radius=radius_bucket(radius)).inc()
	PROXIMITY_RESULTS.observe(result_count)


def profile_lookup_failed() -> None:
	PROXIMITY_PROFILE_FAILURES.inc()


def nearby_cache(result: str) -> None:
	NEARBY_CACHE.labels(result=result).inc()


def broadcast(result: str) -> None:
	BROADCASTS.labels(result=result).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
