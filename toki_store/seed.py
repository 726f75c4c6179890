"""
Demo data for showcasing the store: an Okinawa trip laid out as a path of
sights, two hotel stays, and a mix of photo and note cards.
"""

import logging
import random
from datetime import datetime, timedelta
from io import BytesIO
from typing import Optional

from PIL import Image, ImageDraw

from toki_store.models import CardKind, Reservation, ReservationType, Trip, TripCompanion, utcnow
from toki_store.services.storage_service import StorageService

logger = logging.getLogger(__name__)

# Okinawa locations with coordinates - arranged in a logical travel path
OKINAWA_PLACES = [
    ("Naha Airport", 26.1958, 127.6456, ["transport", "arrival"],
     "Starting point of your Okinawa adventure"),
    ("Naha Castle Ruins", 26.2167, 127.7167, ["culture", "historical", "view"],
     "Historic castle ruins with panoramic views of Naha"),
    ("Asato Dojo", 26.2133, 127.6800, ["culture", "hidden", "walk"],
     "Traditional karate dojo in the heart of Naha"),
    ("Ogimi Village Farm to Table Experience", 26.6833, 128.1167, ["food", "culture", "hidden"],
     "Authentic farm-to-table experience in the longevity village"),
    ("Cape Hedo", 26.8700, 128.2633, ["view", "sunset", "scenic drive"],
     "Northernmost point of Okinawa with stunning ocean views"),
    ("Okinawa Churaumi Aquarium", 26.6944, 127.8772, ["attraction", "family", "view"],
     "One of the world's largest aquariums"),
]

# (name, lat, lon, check-in day offset, check-out day offset)
OKINAWA_HOTELS = [
    ("Naha Grand Hotel", 26.2125, 127.6800, -2, 0),
    ("Okinawa Resort & Spa", 26.7000, 127.8500, 0, 2),
]

PLACEHOLDER_COLORS = [(10, 132, 255), (48, 209, 88), (255, 159, 10), (191, 90, 242)]
HOTEL_COLOR = (175, 82, 222)


def placeholder_jpeg(text: str, color, size=(800, 600)) -> bytes:
    """Flat-colour JPEG with a caption, standing in for a real photo"""
    image = Image.new("RGB", size, color)
    draw = ImageDraw.Draw(image)
    draw.text((40, size[1] // 2), text, fill=(255, 255, 255))
    buf = BytesIO()
    image.save(buf, format="JPEG", quality=80)
    return buf.getvalue()


def _at(day: datetime, hour: int) -> datetime:
    return day.replace(hour=hour, minute=0, second=0, microsecond=0)


def create_sample_trip(storage: StorageService, today: Optional[datetime] = None) -> Trip:
    """Create the "Okinawa 2025" demo trip and return it"""
    today = today or utcnow()
    trip = storage.create_trip(
        name="Okinawa 2025",
        start_date=today - timedelta(days=5),
        end_date=today + timedelta(days=3),
    )

    # Hotel check-ins first so they appear early in the timeline
    reservations = []
    for name, lat, lon, check_in_day, check_out_day in OKINAWA_HOTELS:
        place = storage.find_or_create_place(lat, lon, label=name, categories=["hotel", "accommodation"])
        check_in = _at(today + timedelta(days=check_in_day), 15)
        check_out = _at(today + timedelta(days=check_out_day), 11)

        reservation = Reservation(
            type=ReservationType.HOTEL,
            confirmation_number=f"OKN-{random.randint(1000, 9999)}",
            provider="Booking.com",
            date=check_in,
            notes=f"Check-in: {check_in:%Y-%m-%d}\nCheck-out: {check_out:%Y-%m-%d}",
        )
        reservations.append(reservation)

        card = storage.create_card(
            trip_id=trip.id,
            place_id=place.id,
            kind=CardKind.PHOTO,
            taken_at=check_in,
            tags=["hotel", "accommodation", "check-in"],
            text=(
                f"**{name}**\n\n"
                f"Check-in: {check_in:%b %d, %H:%M}\n"
                f"Check-out: {check_out:%b %d, %H:%M}\n\n"
                f"Confirmation: {reservation.confirmation_number}\n\n"
                "Your home base for exploring Okinawa!"
            ),
        )
        card.media_id = storage.save_media(placeholder_jpeg(name, HOTEL_COLOR), "image/jpeg")
        storage.update_card(card)

    # One stop per day, starting two days ago
    for index, (name, lat, lon, categories, description) in enumerate(OKINAWA_PLACES):
        place = storage.find_or_create_place(lat, lon, label=name, categories=categories)
        taken_at = _at(today + timedelta(days=index - 2), 0) + timedelta(hours=10 + index * 2)

        card = storage.create_card(
            trip_id=trip.id,
            place_id=place.id,
            kind=CardKind.PHOTO,
            taken_at=taken_at,
            tags=categories,
            text=description,
        )
        color = PLACEHOLDER_COLORS[index % len(PLACEHOLDER_COLORS)]
        card.media_id = storage.save_media(placeholder_jpeg(name, color), "image/jpeg")
        storage.update_card(card)

        if index % 2 == 0:
            storage.create_card(
                trip_id=trip.id,
                place_id=place.id,
                kind=CardKind.NOTE,
                taken_at=taken_at + timedelta(hours=2),
                tags=["food", "walk"],
                text="Must try the local specialties here!",
            )

    trip = storage.get_trip(trip.id)
    trip.reservations = reservations
    trip.companions = [TripCompanion(name="Aiko")]
    first_with_media = next((c for c in storage.cards_for_trip(trip.id) if c.media_id), None)
    if first_with_media is not None:
        trip.cover_photo_id = first_with_media.media_id
    trip = storage.update_trip(trip)

    logger.info(f"Seeded sample trip {trip.id} with {len(storage.cards_for_trip(trip.id))} cards")
    return trip
