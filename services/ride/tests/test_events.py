"""Tests for event serialization (tagged by ``event_type``)."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from conftest import NOW
from ride_service.events import (
    EVENT_TYPES,
    RideCreated,
    RideDeleted,
    RideEdited,
    WeatherFetched,
    WeatherFetchFailed,
    deserialize_event,
    serialize_event,
)
from ride_service.weather import Weather


def _envelope(**kw):
    defaults = dict(aggregate_id=uuid4(), timestamp=NOW, user_id="user-1")
    defaults.update(kw)
    return defaults


def _roundtrip(event):
    event_type, data = serialize_event(event)
    return deserialize_event(event_type, data)


class TestRoundTrip:
    def test_ride_created_with_weather(self, sunny):
        event = RideCreated(
            **_envelope(version=0),
            date=date(2025, 6, 10),
            hour=7,
            distance=Decimal("12.345"),
            distance_unit="kilometers",
            ride_name="Commute",
            start_location="A",
            end_location="B",
            notes="windy",
            weather=sunny,
        )
        restored = _roundtrip(event)
        assert restored == event
        assert isinstance(restored, RideCreated)
        assert restored.distance == Decimal("12.345")
        assert restored.timestamp.tzinfo is not None

    def test_ride_created_absent_optionals(self):
        event = RideCreated(
            **_envelope(version=0),
            date=date(2025, 6, 10),
            hour=7,
            distance=Decimal("1"),
            distance_unit="miles",
            ride_name="x",
            start_location="y",
            end_location="z",
        )
        restored = _roundtrip(event)
        assert restored.notes is None
        assert restored.weather is None

    def test_ride_edited_keeps_absent_fields_absent(self):
        event = RideEdited(
            **_envelope(version=1),
            changed_fields=["RideName", "Distance"],
            new_ride_name="Renamed",
            new_distance=Decimal("7.50"),
        )
        restored = _roundtrip(event)
        assert restored == event
        assert restored.changed_fields == ("RideName", "Distance")
        assert restored.new_date is None
        assert restored.new_weather is None

    def test_changed_fields_cannot_be_mutated(self):
        event = RideEdited(**_envelope(version=1), changed_fields=["Hour"], new_hour=3)
        assert event.changed_fields == ("Hour",)
        with pytest.raises(AttributeError):
            event.changed_fields.append("Notes")

    def test_weather_events(self, sunny):
        fetched = WeatherFetched(**_envelope(version=1), weather=sunny)
        failed = WeatherFetchFailed(**_envelope(version=2), error_message="Weather fetch error: x")
        unavailable = WeatherFetched(**_envelope(version=1), weather=Weather.unavailable(NOW))

        assert _roundtrip(fetched) == fetched
        assert _roundtrip(failed) == failed
        assert _roundtrip(unavailable).weather.is_unavailable
        assert _roundtrip(failed).source_api == "NOAA"

    def test_ride_deleted(self):
        event = RideDeleted(**_envelope(version=3), deletion_type="formal_request")
        assert _roundtrip(event) == event


class TestCodec:
    def test_payload_carries_envelope_and_tag(self):
        event = RideDeleted(**_envelope(version=3))
        event_type, data = serialize_event(event)
        payload = json.loads(data)
        assert event_type == "RideDeleted"
        assert payload["event_type"] == "RideDeleted"
        for key in ("event_id", "aggregate_id", "aggregate_type", "timestamp", "version", "user_id"):
            assert key in payload
        assert payload["aggregate_type"] == "Ride"

    def test_accepts_decoded_dict(self):
        event = RideDeleted(**_envelope(version=3))
        _, data = serialize_event(event)
        assert deserialize_event("RideDeleted", json.loads(data)) == event

    def test_unknown_tag(self):
        with pytest.raises(ValueError, match="Unknown event type"):
            deserialize_event("RideTeleported", "{}")

    def test_registry_covers_all_variants(self):
        assert set(EVENT_TYPES) == {
            "RideCreated", "RideEdited", "WeatherFetched", "WeatherFetchFailed", "RideDeleted",
        }

    def test_events_are_immutable(self):
        event = RideDeleted(**_envelope(version=3))
        with pytest.raises(ValidationError):
            event.version = 9
