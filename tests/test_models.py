"""
Tests for entity models and their wire format
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from toki_store.models import (
    Card, CardKind, Coordinates, DistanceUnit, ExportBundle, Media, Place,
    Trip, mime_extension,
)
from tests.test_fixtures import TOKYO_TOWER


class TestTrip:

    def test_defaults(self):
        trip = Trip(name="Japan 2025")
        assert trip.id
        assert trip.settings.distance_units == DistanceUnit.KM
        assert trip.settings.auto_reverse_geocode is True
        assert trip.settings.hide_precise_location is False
        assert trip.companions == []
        assert trip.reservations == []
        assert trip.updated_at >= trip.created_at

    def test_ids_are_unique(self):
        assert Trip(name="a").id != Trip(name="a").id

    def test_updated_before_created_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            Trip(name="x", created_at=now, updated_at=now - timedelta(seconds=1))

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            Trip(name="")

    def test_touch_never_goes_below_created(self):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        trip = Trip(name="x", created_at=future, updated_at=future)
        trip.touch()
        assert trip.updated_at >= trip.created_at


class TestPlace:

    def test_geohash_derived(self):
        place = Place(lat=TOKYO_TOWER[0], lon=TOKYO_TOWER[1])
        assert len(place.geohash5) == 5

    def test_explicit_geohash_kept(self):
        place = Place(lat=1.0, lon=2.0, geohash5="s00tw")
        assert place.geohash5 == "s00tw"

    @pytest.mark.parametrize("lat,lon", [(91, 0), (0, 181), (-90.5, 10)])
    def test_coordinate_ranges(self, lat, lon):
        with pytest.raises(ValidationError):
            Place(lat=lat, lon=lon)

    def test_coordinates(self):
        place = Place(lat=1.5, lon=2.5)
        assert place.coordinates == Coordinates(lat=1.5, lon=2.5)


class TestWireFormat:
    """camelCase keys and ISO-8601 timestamps on disk and in bundles"""

    def test_card_record_keys(self):
        card = Card(
            trip_id="t1", kind=CardKind.PHOTO, media_id="m1",
            place_label_at_save="Tokyo Tower", coords_at_save=Coordinates(lat=1, lon=2),
        )
        record = card.to_record()
        assert record["tripId"] == "t1"
        assert record["mediaId"] == "m1"
        assert record["kind"] == "photo"
        assert record["placeLabelAtSave"] == "Tokyo Tower"
        assert record["coordsAtSave"] == {"lat": 1.0, "lon": 2.0}
        assert "takenAt" in record and "trip_id" not in record

    def test_timestamps_are_iso_strings(self):
        trip = Trip(name="x", start_date=datetime(2025, 4, 1, 9, 30, tzinfo=timezone.utc))
        record = trip.to_record()
        assert record["startDate"].startswith("2025-04-01T09:30:00")
        assert datetime.fromisoformat(record["createdAt"].replace("Z", "+00:00"))

    def test_round_trip_through_record(self):
        trip = Trip(name="Round trip", start_date=datetime(2025, 1, 2, tzinfo=timezone.utc))
        assert Trip.model_validate(trip.to_record()) == trip

    def test_snake_case_accepted_too(self):
        card = Card.model_validate({"trip_id": "t1", "kind": "note"})
        assert card.trip_id == "t1"

    def test_naive_datetimes_become_utc(self):
        card = Card(trip_id="t", kind=CardKind.NOTE, taken_at=datetime(2025, 1, 1, 12, 0))
        assert card.taken_at.tzinfo is not None
        assert card.taken_at.utcoffset() == timedelta(0)

    def test_unknown_card_kind_rejected(self):
        with pytest.raises(ValidationError):
            Card(trip_id="t", kind="video")

    def test_bundle_keys(self):
        bundle = ExportBundle(trip=Trip(name="x"))
        record = bundle.to_record()
        assert record["version"] == 1
        assert set(record) == {"version", "trip", "places", "cards", "media", "mediaIndex"}


class TestMedia:

    @pytest.mark.parametrize("mime,ext", [
        ("image/jpeg", "jpg"),
        ("image/png", "png"),
        ("image/heic", "heic"),
        ("audio/m4a", "m4a"),
        ("audio/webm", "webm"),
        ("video/mp4", "bin"),
        ("", "bin"),
    ])
    def test_extension_table(self, mime, ext):
        assert mime_extension(mime) == ext

    def test_filename(self):
        assert Media(id="m1", mime="image/jpeg").filename == "m1.jpg"
        assert Media(id="m2", mime="application/pdf").filename == "m2.bin"

    @pytest.mark.parametrize("bad_id", ["../evil", "a/b", "a\\b", "..", "."])
    def test_id_must_be_a_plain_name(self, bad_id):
        with pytest.raises(ValidationError):
            Media(id=bad_id, mime="image/jpeg")

    def test_bundle_with_path_id_rejected(self):
        with pytest.raises(ValidationError):
            ExportBundle.model_validate({
                "trip": {"name": "x"},
                "media": [{"id": "../evil", "mime": "image/jpeg"}],
            })
