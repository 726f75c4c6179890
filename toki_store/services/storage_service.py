import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional

from toki_store.config import StoreConfig
from toki_store.container import RepositoryContainer
from toki_store.errors import DuplicatePlaceError, NotFoundError
from toki_store.models import (
    Card, CardKind, Media, Place, Trip, new_id, utcnow,
)
from toki_store.utils import geohash
from toki_store.utils.exif import extract_image_metadata

logger = logging.getLogger(__name__)

ACTIVE_TRIP_KEY = "activeTripId"


class ChangeAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    IMPORTED = "imported"


@dataclass(frozen=True)
class StoreEvent:
    """Emitted to subscribers after a mutation has been persisted"""
    entity: str  # trip | place | card | media | active_trip
    action: ChangeAction
    entity_id: Optional[str] = None


Listener = Callable[[StoreEvent], None]


class StorageService:
    """
    Single mutation/query gateway for the trip store.

    Owns in-memory copies of the four collections and the active trip id.
    Each mutation writes the whole affected collection first and only then
    updates memory, so a PersistenceError leaves the cache matching disk.
    Reads return copies; change a record and pass it to an update_* method.

    Not thread-safe: confine all calls to one thread.
    """

    def __init__(self, repos: RepositoryContainer, config: Optional[StoreConfig] = None):
        self.repos = repos
        self.config = config or repos.db.config
        self._listeners: List[Listener] = []
        self.trips: List[Trip] = []
        self.places: List[Place] = []
        self.cards: List[Card] = []
        self.media: List[Media] = []
        self._active_trip_id: Optional[str] = None
        self.reload()

    @classmethod
    def open(cls, config: StoreConfig) -> "StorageService":
        """Open (creating if needed) the store rooted at config.data_dir"""
        return cls(RepositoryContainer.from_config(config), config)

    def reload(self):
        """Re-read every collection from disk"""
        self.trips = self.repos.trips.load_all()
        self.places = self.repos.places.load_all()
        self.cards = self.repos.cards.load_all()
        self.media = self.repos.media.load_all()

        active = self.repos.db.get_preference(ACTIVE_TRIP_KEY)
        if active is not None and self._find(self.trips, active) is None:
            logger.warning(f"Stored active trip {active} no longer exists, clearing it")
            active = None
        self._active_trip_id = active

        logger.info(
            f"Loaded {len(self.trips)} trips, {len(self.places)} places, "
            f"{len(self.cards)} cards, {len(self.media)} media from {self.config.data_dir}"
        )

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, entity: str, action: ChangeAction, entity_id: Optional[str] = None):
        event = StoreEvent(entity, action, entity_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Store listener failed on {entity} {action.value}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _find(items, item_id: Optional[str]):
        if item_id is None:
            return None
        return next((item for item in items if item.id == item_id), None)

    @staticmethod
    def _index_of(items, item_id: str) -> int:
        return next((i for i, item in enumerate(items) if item.id == item_id), -1)

    def _media_in_use(self, media_id: str) -> bool:
        """True while a card or a trip cover still points at the media"""
        return (
            any(c.media_id == media_id for c in self.cards)
            or any(t.cover_photo_id == media_id for t in self.trips)
        )

    @staticmethod
    def _copy(item):
        return item.model_copy(deep=True) if item is not None else None

    def _set_active(self, trip_id: Optional[str]):
        self.repos.db.set_preference(ACTIVE_TRIP_KEY, trip_id)
        self._active_trip_id = trip_id
        self._notify("active_trip", ChangeAction.UPDATED, trip_id)

    # ------------------------------------------------------------------
    # Active trip
    # ------------------------------------------------------------------

    @property
    def active_trip_id(self) -> Optional[str]:
        return self._active_trip_id

    def active_trip(self) -> Optional[Trip]:
        return self.get_trip(self._active_trip_id)

    def active_trip_cards(self) -> List[Card]:
        if self._active_trip_id is None:
            return []
        return self.cards_for_trip(self._active_trip_id)

    def set_active_trip(self, trip_id: Optional[str]):
        """Mark a trip as current; None clears the selection"""
        if trip_id is not None and self._find(self.trips, trip_id) is None:
            raise NotFoundError("Trip", trip_id)
        self._set_active(trip_id)

    # ------------------------------------------------------------------
    # Trips
    # ------------------------------------------------------------------

    def create_trip(
        self,
        name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Trip:
        """Create a trip; the first trip created becomes the active one"""
        trip = Trip(name=name, start_date=start_date, end_date=end_date)
        self.repos.trips.save_all(self.trips + [trip])
        self.trips.append(trip)
        logger.info(f"Created trip {trip.id} '{trip.name}'")
        self._notify("trip", ChangeAction.CREATED, trip.id)

        if self._active_trip_id is None:
            self._set_active(trip.id)

        return self._copy(trip)

    def get_trip(self, trip_id: Optional[str]) -> Optional[Trip]:
        return self._copy(self._find(self.trips, trip_id))

    def list_trips(self) -> List[Trip]:
        return [self._copy(t) for t in self.trips]

    def update_trip(self, trip: Trip) -> Trip:
        """Replace a trip by id and bump updated_at"""
        index = self._index_of(self.trips, trip.id)
        if index < 0:
            raise NotFoundError("Trip", trip.id)

        updated = trip.model_copy(deep=True)
        updated.created_at = self.trips[index].created_at
        updated.touch()

        trips = list(self.trips)
        trips[index] = updated
        self.repos.trips.save_all(trips)
        self.trips = trips
        self._notify("trip", ChangeAction.UPDATED, trip.id)
        return self._copy(updated)

    def delete_trip(self, trip_id: str):
        """
        Delete a trip and every card in it.

        Media referenced only by the removed cards or the trip cover is deleted
        as well; media another card or trip cover still points at is kept.
        """
        trip = self._find(self.trips, trip_id)
        if trip is None:
            raise NotFoundError("Trip", trip_id)

        removed = [c for c in self.cards if c.trip_id == trip_id]
        remaining_cards = [c for c in self.cards if c.trip_id != trip_id]
        remaining_trips = [t for t in self.trips if t.id != trip_id]

        # Cards first: a failed trips write leaves an empty trip, never orphan cards
        self.repos.cards.save_all(remaining_cards)
        self.cards = remaining_cards
        self.repos.trips.save_all(remaining_trips)
        self.trips = remaining_trips

        candidates = {c.media_id for c in removed if c.media_id}
        if trip.cover_photo_id:
            candidates.add(trip.cover_photo_id)
        orphaned = {m for m in candidates if not self._media_in_use(m)}
        for media_id in orphaned:
            if self._find(self.media, media_id) is not None:
                self.delete_media(media_id)

        logger.info(f"Deleted trip {trip_id} with {len(removed)} cards and {len(orphaned)} media")
        self._notify("trip", ChangeAction.DELETED, trip_id)

        if self._active_trip_id == trip_id:
            self._set_active(self.trips[0].id if self.trips else None)

    # ------------------------------------------------------------------
    # Places
    # ------------------------------------------------------------------

    def find_or_create_place(
        self,
        lat: float,
        lon: float,
        label: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> Place:
        """
        Return the Place occupying the geohash-5 cell of (lat, lon), creating
        it on a miss. An existing Place keeps its label and categories.
        """
        cell = geohash.encode(lat, lon, geohash.PLACE_HASH_LENGTH)
        existing = next((p for p in self.places if p.geohash5 == cell), None)
        if existing is not None:
            return self._copy(existing)

        place = Place(label=label, lat=lat, lon=lon, geohash5=cell, categories=list(categories or []))
        self.repos.places.save_all(self.places + [place])
        self.places.append(place)
        logger.info(f"Created place {place.id} '{label or ''}' in cell {cell}")
        self._notify("place", ChangeAction.CREATED, place.id)
        return self._copy(place)

    def get_place(self, place_id: Optional[str]) -> Optional[Place]:
        return self._copy(self._find(self.places, place_id))

    def get_place_for_card(self, card: Card) -> Optional[Place]:
        return self.get_place(card.place_id)

    def list_places(self) -> List[Place]:
        return [self._copy(p) for p in self.places]

    def update_place(self, place: Place) -> Place:
        """
        Replace a place by id and bump updated_at.

        The geohash is re-derived from the coordinates; moving into a cell
        another place already owns raises DuplicatePlaceError.
        """
        index = self._index_of(self.places, place.id)
        if index < 0:
            raise NotFoundError("Place", place.id)

        updated = place.model_copy(deep=True)
        updated.created_at = self.places[index].created_at
        updated.geohash5 = geohash.encode(updated.lat, updated.lon, geohash.PLACE_HASH_LENGTH)
        if updated.geohash5 != self.places[index].geohash5:
            clash = next(
                (p for p in self.places if p.geohash5 == updated.geohash5 and p.id != place.id),
                None,
            )
            if clash is not None:
                raise DuplicatePlaceError(place.id, updated.geohash5, clash.id)
        updated.touch()

        places = list(self.places)
        places[index] = updated
        self.repos.places.save_all(places)
        self.places = places
        self._notify("place", ChangeAction.UPDATED, place.id)
        return self._copy(updated)

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def create_card(
        self,
        trip_id: str,
        kind: CardKind,
        place_id: Optional[str] = None,
        taken_at: Optional[datetime] = None,
        tags: Optional[Iterable[str]] = None,
        text: Optional[str] = None,
        media_id: Optional[str] = None,
    ) -> Card:
        """
        Create a card, snapshotting the place label and coordinates as they
        are right now. Cards are kept in creation order; use cards_for_trip
        for takenAt order.
        """
        place = self._find(self.places, place_id)
        card = Card(
            trip_id=trip_id,
            place_id=place_id,
            kind=kind,
            taken_at=taken_at or utcnow(),
            tags=list(tags or []),
            text=text,
            media_id=media_id,
            place_label_at_save=place.label if place else None,
            coords_at_save=place.coordinates if place else None,
        )
        self.repos.cards.save_all(self.cards + [card])
        self.cards.append(card)
        logger.debug(f"Created {card.kind} card {card.id} in trip {trip_id}")
        self._notify("card", ChangeAction.CREATED, card.id)
        return self._copy(card)

    def get_card(self, card_id: Optional[str]) -> Optional[Card]:
        return self._copy(self._find(self.cards, card_id))

    def update_card(self, card: Card) -> Card:
        """
        Replace a card by id and bump updated_at.

        created_at and the place snapshot of the stored card are kept.
        """
        index = self._index_of(self.cards, card.id)
        if index < 0:
            raise NotFoundError("Card", card.id)

        current = self.cards[index]
        updated = card.model_copy(deep=True)
        updated.created_at = current.created_at
        updated.place_label_at_save = current.place_label_at_save
        updated.coords_at_save = self._copy(current.coords_at_save)
        updated.touch()

        cards = list(self.cards)
        cards[index] = updated
        self.repos.cards.save_all(cards)
        self.cards = cards
        self._notify("card", ChangeAction.UPDATED, card.id)
        return self._copy(updated)

    def delete_card(self, card_id: str):
        """Delete a card and, if no other card uses it, its media"""
        card = self._find(self.cards, card_id)
        if card is None:
            raise NotFoundError("Card", card_id)

        remaining = [c for c in self.cards if c.id != card_id]
        self.repos.cards.save_all(remaining)
        self.cards = remaining

        if card.media_id:
            if self._media_in_use(card.media_id):
                logger.info(f"Keeping media {card.media_id}: still used by another card or trip cover")
            elif self._find(self.media, card.media_id) is not None:
                self.delete_media(card.media_id)

        self._notify("card", ChangeAction.DELETED, card_id)

    def _sorted_by_taken_at(self, cards: Iterable[Card]) -> List[Card]:
        return [self._copy(c) for c in sorted(cards, key=lambda c: c.taken_at)]

    def cards_for_trip(self, trip_id: str) -> List[Card]:
        """Cards of a trip in takenAt order"""
        return self._sorted_by_taken_at(c for c in self.cards if c.trip_id == trip_id)

    def cards_for_place(self, place_id: str) -> List[Card]:
        """Cards attached to a place in takenAt order"""
        return self._sorted_by_taken_at(c for c in self.cards if c.place_id == place_id)

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def save_media(self, data: bytes, mime: str, media_id: Optional[str] = None) -> str:
        """
        Write a payload to media/{id}.{ext} and upsert its index record.

        Passing an existing media_id overwrites it; a payload stored under a
        different extension (MIME change) is removed.
        """
        media = Media(id=media_id or new_id(), mime=mime)
        if self.config.extract_exif and mime.startswith("image/"):
            media.width, media.height, media.exif = extract_image_metadata(data)

        self.repos.media.write_payload(media, data)

        index = self._index_of(self.media, media.id)
        records = list(self.media)
        if index >= 0:
            previous = records[index]
            records[index] = media
        else:
            previous = None
            records.append(media)
        self.repos.media.save_all(records)
        self.media = records

        if previous is not None and previous.filename != media.filename:
            self.repos.media.delete_payload(previous)

        logger.debug(f"Saved media {media.id} ({mime}, {len(data)} bytes)")
        self._notify("media", ChangeAction.UPDATED if previous else ChangeAction.CREATED, media.id)
        return media.id

    def get_media(self, media_id: Optional[str]) -> Optional[Media]:
        return self._copy(self._find(self.media, media_id))

    def load_media(self, media_id: str) -> Optional[bytes]:
        """Payload bytes, or None for an unknown id or a missing file"""
        media = self._find(self.media, media_id)
        if media is None:
            return None
        try:
            return self.repos.media.read_payload(media)
        except ValueError as e:
            logger.error(f"Media {media_id} has no usable payload path: {e}")
            return None

    def delete_media(self, media_id: str):
        """Remove a media payload file and its index entry, clearing trip covers that use it"""
        media = self._find(self.media, media_id)
        if media is None:
            raise NotFoundError("Media", media_id)

        covered = [t for t in self.trips if t.cover_photo_id == media_id]
        if covered:
            trips = []
            for t in self.trips:
                if t.cover_photo_id == media_id:
                    t = t.model_copy(deep=True, update={"cover_photo_id": None})
                    t.touch()
                trips.append(t)
            self.repos.trips.save_all(trips)
            self.trips = trips
            for t in covered:
                self._notify("trip", ChangeAction.UPDATED, t.id)

        remaining = [m for m in self.media if m.id != media_id]
        self.repos.media.save_all(remaining)
        self.media = remaining
        self.repos.media.delete_payload(media)
        self._notify("media", ChangeAction.DELETED, media_id)

    # ------------------------------------------------------------------
    # Bulk merge (import)
    # ------------------------------------------------------------------

    def merge_records(
        self,
        places: Iterable[Place] = (),
        media: Iterable[Media] = (),
        trips: Iterable[Trip] = (),
        cards: Iterable[Card] = (),
    ):
        """
        Append records whose ids are not present yet and persist all four
        collections. Existing records are never replaced.
        """
        new_places = self._absent(self.places, places)
        new_media = self._absent(self.media, media)
        new_trips = self._absent(self.trips, trips)
        new_cards = self._absent(self.cards, cards)

        # Referenced collections first, trips last; memory follows each write
        all_places = self.places + new_places
        self.repos.places.save_all(all_places)
        self.places = all_places

        all_media = self.media + new_media
        self.repos.media.save_all(all_media)
        self.media = all_media

        all_cards = self.cards + new_cards
        self.repos.cards.save_all(all_cards)
        self.cards = all_cards

        all_trips = self.trips + new_trips
        self.repos.trips.save_all(all_trips)
        self.trips = all_trips

        for entity, added in (("place", new_places), ("media", new_media), ("trip", new_trips), ("card", new_cards)):
            for record in added:
                self._notify(entity, ChangeAction.IMPORTED, record.id)

    @staticmethod
    def _absent(existing, incoming) -> list:
        seen = {item.id for item in existing}
        fresh = []
        for item in incoming:
            if item.id not in seen:
                seen.add(item.id)
                fresh.append(item.model_copy(deep=True))
        return fresh

    def media_filename(self, media_id: str) -> Optional[str]:
        media = self._find(self.media, media_id)
        return media.filename if media else None
