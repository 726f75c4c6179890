"""
File store management and utilities
JSON collection files plus a media payload directory, written atomically
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from toki_store.config import StoreConfig
from toki_store.errors import PersistenceError

logger = logging.getLogger(__name__)

PREFERENCES_FILE = "preferences.json"


class JsonFileStore:
    """
    Owns the on-disk layout of one trip store:

        {data_dir}/trips.json
        {data_dir}/places.json
        {data_dir}/cards.json
        {data_dir}/media.json
        {data_dir}/preferences.json
        {data_dir}/media/{id}.{ext}

    Every write replaces the whole file via write-temp-then-rename, so a
    reader never observes a half-written collection.
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self.data_dir = config.data_dir
        self.media_dir = config.media_dir

    def ensure_layout(self):
        """Create the data and media directories if needed"""
        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.media_dir}: {e}", self.media_dir) from e

    def collection_path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def read_collection(self, name: str) -> List[Dict[str, Any]]:
        """
        Read a collection file.

        A missing file is a first run and yields []. An unreadable or corrupt
        file also yields [] so startup never fails, but is logged as an error
        so data loss can be told apart from a fresh install.
        """
        path = self.collection_path(name)
        if not path.exists():
            logger.info(f"No {path.name} yet, starting with an empty {name} collection")
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load {path}, treating {name} as empty: {e}")
            return []

        if not isinstance(data, list):
            logger.error(f"Corrupt {path}: expected a JSON array, got {type(data).__name__}")
            return []

        records = [item for item in data if isinstance(item, dict)]
        if len(records) != len(data):
            logger.warning(f"Skipped {len(data) - len(records)} non-object entries in {path.name}")
        return records

    def write_collection(self, name: str, records: List[Dict[str, Any]]):
        """Overwrite a collection file with the full list of records"""
        payload = json.dumps(records, indent=self.config.json_indent, ensure_ascii=False)
        self._atomic_write(self.collection_path(name), payload.encode('utf-8'))
        logger.debug(f"Saved {len(records)} {name}")

    # ------------------------------------------------------------------
    # Media payloads
    # ------------------------------------------------------------------

    def blob_path(self, filename: str) -> Path:
        if Path(filename).name != filename or filename in ('', '.', '..'):
            raise ValueError(f"Invalid media filename: {filename!r}")
        return self.media_dir / filename

    def write_blob(self, filename: str, data: bytes) -> Path:
        path = self.blob_path(filename)
        self._atomic_write(path, data)
        return path

    def read_blob(self, filename: str) -> Optional[bytes]:
        """Payload bytes, or None when the file is missing or unreadable"""
        path = self.blob_path(filename)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            logger.warning(f"Media payload missing: {path}")
            return None
        except OSError as e:
            logger.error(f"Failed to read media payload {path}: {e}")
            return None

    def blob_exists(self, filename: str) -> bool:
        return self.blob_path(filename).exists()

    def delete_blob(self, filename: str) -> bool:
        """Remove a payload file. Returns False if it was already gone."""
        path = self.blob_path(filename)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}", path) from e

    # ------------------------------------------------------------------
    # Key-value preferences (activeTripId)
    # ------------------------------------------------------------------

    def _read_preferences(self) -> Dict[str, Any]:
        path = self.data_dir / PREFERENCES_FILE
        if not path.exists():
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load {path}, ignoring stored preferences: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_preference(self, key: str) -> Optional[Any]:
        return self._read_preferences().get(key)

    def set_preference(self, key: str, value: Optional[Any]):
        """Store a scalar preference; None removes the key"""
        prefs = self._read_preferences()
        if value is None:
            prefs.pop(key, None)
        else:
            prefs[key] = value
        payload = json.dumps(prefs, indent=self.config.json_indent)
        self._atomic_write(self.data_dir / PREFERENCES_FILE, payload.encode('utf-8'))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _atomic_write(self, path: Path, data: bytes):
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise PersistenceError(f"Failed to write {path}: {e}", path) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
