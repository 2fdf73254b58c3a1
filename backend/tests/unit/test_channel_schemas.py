import pytest

from pawmap.domain.locations.errors import ErrorKind, MalformedMessage
from pawmap.domain.locations.models import NearbyEntry
from pawmap.domain.locations.schemas import (
	LocationUpdatedEvent,
	NearbyFilters,
	UpdateLocationMessage,
	UpdateSearchRadiusMessage,
	parse_message,
)


def test_update_location_parses_wire_names():
	message = parse_message(
		UpdateLocationMessage,
		{"userId": "u1", "lat": 32.08, "lng": 34.89, "filters": {"breed": "Beagle", "limit": 10}},
	)

	assert message.user_id == "u1"
	assert (message.lat, message.lng) == (32.08, 34.89)
	assert message.filters.category == "Beagle"
	assert message.filters.signature() == {"breed": "Beagle", "limit": 10}


def test_missing_filters_default_to_empty():
	plain = parse_message(UpdateLocationMessage, {"userId": "u1", "lat": 1, "lng": 2})
	nulled = parse_message(UpdateLocationMessage, {"userId": "u1", "lat": 1, "lng": 2, "filters": None})

	assert plain.filters == NearbyFilters()
	assert nulled.filters.signature() == {}


def test_numeric_user_id_is_coerced():
	message = parse_message(UpdateSearchRadiusMessage, {"userId": 42, "radius": 800})

	assert message.user_id == "42"
	assert message.radius == 800.0


@pytest.mark.parametrize("payload", [{"lat": 1, "lng": 2}, {"userId": "", "lat": 1, "lng": 2}, {"userId": None}])
def test_missing_user_id(payload):
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, payload)
	assert excinfo.value.kind is ErrorKind.MISSING_USER_ID
	assert excinfo.value.code == "missing_user_id"


@pytest.mark.parametrize("payload", ["u1", None, [1, 2]])
def test_non_object_payload(payload):
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, payload)
	assert excinfo.value.code == "invalid_payload"
	assert excinfo.value.reason == "payload_not_an_object"


def test_validation_failure_names_fields():
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, {"userId": "u1", "lat": "north", "lng": float("nan")})
	assert excinfo.value.code == "invalid_payload"
	assert excinfo.value.detail == "lat,lng"


@pytest.mark.parametrize("radius", [0, -10, float("inf"), "wide"])
def test_radius_must_be_positive_number(radius):
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateSearchRadiusMessage, {"userId": "u1", "radius": radius})
	assert excinfo.value.detail == "radius"


def test_negative_pagination_is_rejected():
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, {"userId": "u1", "lat": 1, "lng": 1, "filters": {"offset": -1}})
	assert excinfo.value.detail == "filters.offset"


def test_location_updated_payload_shape():
	entry = NearbyEntry(user_id="u2", lat=1.0, lng=2.0, distance_meters=12.5, category="Beagle")

	payload = LocationUpdatedEvent.build("u1", 1.0, 2.0, [entry]).model_dump()

	assert payload["updated"] == {"user_id": "u1", "lat": 1.0, "lng": 2.0}
	assert payload["nearby"] == [
		{
			"user_id": "u2",
			"lat": 1.0,
			"lng": 2.0,
			"distance_meters": 12.5,
			"display_name": None,
			"category": "Beagle",
			"avatar_ref": None,
		}
	]


@pytest.mark.parametrize("lat,lng", [(True, 1.0), (1.0, "0.5"), ("32.08", "34.89")])
def test_coordinates_must_be_numbers(lat, lng):
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, {"userId": "u1", "lat": lat, "lng": lng})
	assert excinfo.value.code == "invalid_payload"


def test_radius_has_an_upper_bound():
	accepted = parse_message(UpdateSearchRadiusMessage, {"userId": "u1", "radius": 50_000})

	assert accepted.radius == 50_000.0
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateSearchRadiusMessage, {"userId": "u1", "radius": 50_001})
	assert excinfo.value.detail == "radius"


@pytest.mark.parametrize("limit", ["5", True, 2.5])
def test_pagination_must_be_integers(limit):
	with pytest.raises(MalformedMessage) as excinfo:
		parse_message(UpdateLocationMessage, {"userId": "u1", "lat": 1, "lng": 1, "filters": {"limit": limit}})
	assert excinfo.value.detail == "filters.limit"
