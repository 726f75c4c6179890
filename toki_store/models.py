"""
Data models for all trip journal entities
Using Pydantic for validation and serialization

ARCHITECTURE:
- Trips, Places, Cards and Media are flat records linked by id only
- Cards point at their Trip (required) and Place/Media (optional)
- Cards carry a snapshot of the Place label/coordinates taken at save time
- Python attributes are snake_case; files and bundles use camelCase keys
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from toki_store.utils import geohash


def new_id() -> str:
    """Allocate a fresh opaque entity id"""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class DistanceUnit(str, Enum):
    KM = "km"
    MI = "mi"


class ReservationType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    RESTAURANT = "restaurant"
    ACTIVITY = "activity"
    CAR = "car"
    OTHER = "other"


class CardKind(str, Enum):
    """What a journal card holds"""
    PHOTO = "photo"
    NOTE = "note"
    AUDIO = "audio"


# MIME type -> payload file extension. Anything else is stored as .bin
MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/heic": "heic",
    "audio/m4a": "m4a",
    "audio/webm": "webm",
}
DEFAULT_EXTENSION = "bin"


def mime_extension(mime: str) -> str:
    return MIME_EXTENSIONS.get(mime, DEFAULT_EXTENSION)


AVAILABLE_TAGS = [
    "food", "beach", "walk", "view", "cafe", "market",
    "sunset", "hidden", "quiet", "lunch", "dinner", "breakfast",
]


# ============================================================================
# Base Models
# ============================================================================

class TokiModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    @field_validator('*', mode='after')
    @classmethod
    def assume_utc(cls, v):
        # Naive datetimes are read as UTC so takenAt ordering never mixes kinds
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_record(self) -> dict:
        """JSON-ready dict with camelCase keys and ISO-8601 timestamps"""
        return self.model_dump(mode="json", by_alias=True)


class BaseEntity(TokiModel):
    """Base model for all stored entities"""
    id: str = Field(default_factory=new_id, min_length=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def check_timestamps(self):
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not be earlier than createdAt")
        return self

    def touch(self):
        """Bump updated_at, never moving it below created_at"""
        self.updated_at = max(utcnow(), self.created_at)


# ============================================================================
# Trip
# ============================================================================

class TripSettings(TokiModel):
    distance_units: DistanceUnit = DistanceUnit.KM
    auto_reverse_geocode: bool = True
    enable_suggestions: bool = True
    hide_precise_location: bool = False


class TripCompanion(TokiModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


class Reservation(TokiModel):
    id: str = Field(default_factory=new_id)
    type: ReservationType
    confirmation_number: str
    provider: Optional[str] = None  # e.g. "United Airlines", "Marriott"
    date: Optional[datetime] = None
    notes: Optional[str] = None


class Trip(BaseEntity):
    """A journaling container spanning a date range"""
    name: str = Field(..., min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    cover_photo_id: Optional[str] = None
    settings: TripSettings = Field(default_factory=TripSettings)
    companions: List[TripCompanion] = Field(default_factory=list)
    reservations: List[Reservation] = Field(default_factory=list)


# ============================================================================
# Place
# ============================================================================

class Coordinates(TokiModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class PlaceMeta(TokiModel):
    address: Optional[str] = None
    city: Optional[str] = None
    hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


class Place(BaseEntity):
    """
    Deduplicated point of interest.

    geohash5 is the deduplication key: the store keeps one Place per
    5-character cell. It is derived from (lat, lon) when not supplied.
    """
    label: Optional[str] = None
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    geohash5: str = ""
    provider_key: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    meta: Optional[PlaceMeta] = None

    @model_validator(mode='after')
    def derive_geohash(self):
        if not self.geohash5:
            self.geohash5 = geohash.encode(self.lat, self.lon, geohash.PLACE_HASH_LENGTH)
        return self

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


# ============================================================================
# Card
# ============================================================================

class Card(BaseEntity):
    """
    Single journal entry: photo, note or audio clip.

    place_label_at_save / coords_at_save are captured once when the card is
    created and never recomputed from the live Place.
    """
    trip_id: str = Field(..., min_length=1)
    place_id: Optional[str] = None
    kind: CardKind
    taken_at: datetime = Field(default_factory=utcnow)
    tags: List[str] = Field(default_factory=list)
    text: Optional[str] = None
    media_id: Optional[str] = None

    # Denormalized snapshot fields for export resilience
    place_label_at_save: Optional[str] = None
    coords_at_save: Optional[Coordinates] = None


# ============================================================================
# Media
# ============================================================================

class MediaEXIF(TokiModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    timestamp: Optional[datetime] = None
    camera: Optional[str] = None
    iso: Optional[int] = None
    aperture: Optional[str] = None
    shutter_speed: Optional[str] = None


class Media(TokiModel):
    """Binary asset metadata; the payload lives in media/{id}.{ext}"""
    id: str = Field(default_factory=new_id, min_length=1)
    mime: str
    width: Optional[int] = None
    height: Optional[int] = None
    exif: Optional[MediaEXIF] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator('id')
    @classmethod
    def check_id_is_plain_name(cls, v: str) -> str:
        # The id names the payload file inside media/
        if '/' in v or '\\' in v or '\x00' in v or v in ('.', '..'):
            raise ValueError(f"Media id must not contain path separators: {v!r}")
        return v

    @property
    def filename(self) -> str:
        return f"{self.id}.{mime_extension(self.mime)}"


# ============================================================================
# Export Models
# ============================================================================

SUPPORTED_BUNDLE_VERSION = 1


class MediaIndexEntry(TokiModel):
    media_id: str
    filename: str


class ExportBundle(TokiModel):
    """Self-contained export of one trip and everything it references"""
    version: int = SUPPORTED_BUNDLE_VERSION
    trip: Trip
    places: List[Place] = Field(default_factory=list)
    cards: List[Card] = Field(default_factory=list)
    media: List[Media] = Field(default_factory=list)
    media_index: List[MediaIndexEntry] = Field(default_factory=list)
