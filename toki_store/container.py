"""
Repository Container - Centralized dependency injection container

Single source of truth for wiring the repositories to one file store, used
by the StorageService, the CLI and the tests alike.
"""

from toki_store.config import StoreConfig
from toki_store.database import JsonFileStore
from toki_store.repositories import (
    TripsRepository, PlacesRepository, CardsRepository, MediaRepository,
)


class RepositoryContainer:
    """
    Container for repository instances with attribute access.
    """
    def __init__(self, db: JsonFileStore):
        self.db = db
        self.trips = TripsRepository(db)
        self.places = PlacesRepository(db)
        self.cards = CardsRepository(db)
        self.media = MediaRepository(db)

    @classmethod
    def from_config(cls, config: StoreConfig) -> "RepositoryContainer":
        db = JsonFileStore(config)
        db.ensure_layout()
        return cls(db)
