"""
Error taxonomy for the trip store.

Every error raised on purpose by the store derives from TokiStoreError so the
CLI (and any host application) can catch one type and report a short message.
"""

from typing import Optional


class TokiStoreError(Exception):
    """Base class for all trip store errors"""


class DecodeError(TokiStoreError, ValueError):
    """Malformed geohash string"""


class NotFoundError(TokiStoreError, LookupError):
    """Update/delete/export referencing an unknown id"""

    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class DuplicatePlaceError(TokiStoreError):
    """A place update would move it into a cell owned by another place"""

    def __init__(self, place_id: str, geohash5: str, existing_id: str):
        self.place_id = place_id
        self.geohash5 = geohash5
        self.existing_id = existing_id
        super().__init__(
            f"Place '{place_id}' cannot move to cell '{geohash5}': "
            f"already occupied by place '{existing_id}'"
        )


class PersistenceError(TokiStoreError):
    """Underlying file write/read failure"""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class ImportConflictError(TokiStoreError):
    """Bundle schema version is newer than this store understands"""


class BundleFormatError(TokiStoreError):
    """Bundle or archive content is not a valid export"""
