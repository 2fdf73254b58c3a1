from unittest.mock import AsyncMock

import pytest

from pawmap.domain.locations.errors import ErrorKind, StorageUnavailable
from pawmap.domain.locations.results import Err, Ok, unwrap


@pytest.mark.asyncio
async def test_save_location_returns_ok(locations_service):
	result = await locations_service.save_location("u1", 40.0, -74.0)

	assert isinstance(result, Ok)
	assert result.ok is True
	assert result.value.user_id == "u1"


@pytest.mark.asyncio
async def test_save_location_invalid_coordinate_is_err(locations_service, fake_redis):
	result = await locations_service.save_location("u1", 91.0, 0.0)

	assert isinstance(result, Err)
	assert result.ok is False
	assert result.error is ErrorKind.INVALID_COORDINATE
	assert result.reason == "latitude_out_of_range"
	assert await fake_redis.exists("location:u1") == 0


@pytest.mark.asyncio
async def test_storage_failure_is_err(locations_service):
	locations_service.store.save_location = AsyncMock(side_effect=StorageUnavailable("save_location"))

	result = await locations_service.save_location("u1", 1.0, 1.0)

	assert result == Err(error=ErrorKind.STORAGE_UNAVAILABLE, reason="save_location")
	with pytest.raises(ValueError):
		unwrap(result)


@pytest.mark.asyncio
async def test_get_location_wraps_missing_position(locations_service):
	assert unwrap(await locations_service.get_location("nobody")) is None

	await locations_service.save_location("u1", 5.0, 6.0)
	position = unwrap(await locations_service.get_location("u1"))

	assert (position.lat, position.lng) == (5.0, 6.0)


@pytest.mark.asyncio
async def test_find_nearby_bad_radius_is_err_and_not_cached(locations_service, fake_redis):
	result = await locations_service.find_nearby(0.0, 0.0, -5)

	assert isinstance(result, Err)
	assert result.error is ErrorKind.INVALID_QUERY
	assert await fake_redis.keys("nearby:*") == []


@pytest.mark.asyncio
async def test_find_nearby_storage_failure_is_err(locations_service):
	locations_service.store.within_radius = AsyncMock(side_effect=StorageUnavailable("within_radius"))

	result = await locations_service.find_nearby(0.0, 0.0, 100)

	assert result.error is ErrorKind.STORAGE_UNAVAILABLE
