"""AsyncPG pool shared by the PostGIS position store and the profile reader."""

from __future__ import annotations

import asyncio
from typing import Optional

import asyncpg

from pawmap.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			ssl="require" if settings.postgres_ssl else "disable",
		)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def ping(timeout: float = 0.3) -> None:
	"""Run a trivial query; raises on timeout or connection failure."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
