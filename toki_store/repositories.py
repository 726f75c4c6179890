"""
Repository layer for file operations
Maps each entity collection to its JSON file
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from toki_store.database import JsonFileStore
from toki_store.models import Card, Media, Place, Trip

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """
    Base repository with common operations.

    Repositories hold no cache: load_all always reads the file and save_all
    always rewrites it. The StorageService owns the in-memory copies.
    """

    collection: str = ""
    model_class: Type[ModelT]

    def __init__(self, db: JsonFileStore):
        self.db = db

    def _dict_to_model(self, data: dict) -> Optional[ModelT]:
        """Convert a stored record to its Pydantic model, None if invalid"""
        try:
            return self.model_class.model_validate(data)
        except ValidationError as e:
            record_id = data.get('id', '?')
            logger.warning(
                f"Skipping invalid {self.model_class.__name__} record {record_id} "
                f"in {self.collection}.json: {e.error_count()} validation error(s)"
            )
            return None

    def load_all(self) -> List[ModelT]:
        """Load every valid record from the collection file"""
        models = []
        for row in self.db.read_collection(self.collection):
            model = self._dict_to_model(row)
            if model is not None:
                models.append(model)
        return models

    def save_all(self, items: List[ModelT]):
        """Rewrite the collection file with exactly these records"""
        self.db.write_collection(self.collection, [item.to_record() for item in items])


class TripsRepository(BaseRepository[Trip]):
    """Repository for trips.json"""
    collection = "trips"
    model_class = Trip


class PlacesRepository(BaseRepository[Place]):
    """Repository for places.json"""
    collection = "places"
    model_class = Place


class CardsRepository(BaseRepository[Card]):
    """Repository for cards.json"""
    collection = "cards"
    model_class = Card


class MediaRepository(BaseRepository[Media]):
    """Repository for the media.json index and the payload files it names"""
    collection = "media"
    model_class = Media

    def write_payload(self, media: Media, data: bytes):
        self.db.write_blob(media.filename, data)

    def write_payload_file(self, filename: str, data: bytes):
        self.db.write_blob(filename, data)

    def read_payload(self, media: Media) -> Optional[bytes]:
        return self.db.read_blob(media.filename)

    def payload_exists(self, filename: str) -> bool:
        return self.db.blob_exists(filename)

    def delete_payload(self, media: Media) -> bool:
        deleted = self.db.delete_blob(media.filename)
        if not deleted:
            logger.warning(f"Media payload {media.filename} was already missing")
        return deleted
