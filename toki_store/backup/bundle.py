"""
Trip export/import bundles.

Creates a self-contained snapshot of one trip:
- The trip itself
- Every card in the trip (takenAt order)
- Places and media those cards reference
- A media index (id -> payload filename)

The JSON is metadata only. write_bundle_archive packs it together with the
referenced payload files into a zip:

    bundle.json
    media/{id}.{ext}

Import merges a bundle into the local store: places and media keep their ids
(merged, never duplicated), the trip and its cards get fresh ids.
"""

import json
import logging
import zipfile
from pathlib import Path, PurePosixPath
from typing import Union

from pydantic import ValidationError

from toki_store.errors import BundleFormatError, ImportConflictError, NotFoundError
from toki_store.models import (
    SUPPORTED_BUNDLE_VERSION, ExportBundle, MediaIndexEntry, Trip, new_id, utcnow,
)
from toki_store.services.storage_service import StorageService

logger = logging.getLogger(__name__)

BUNDLE_JSON = "bundle.json"
ARCHIVE_MEDIA_DIR = "media"


def export_trip(storage: StorageService, trip_id: str) -> ExportBundle:
    """Collect a trip and everything it references into a bundle"""
    trip = storage.get_trip(trip_id)
    if trip is None:
        raise NotFoundError("Trip", trip_id)

    cards = storage.cards_for_trip(trip_id)

    place_ids = {c.place_id for c in cards if c.place_id}
    places = [p for p in storage.list_places() if p.id in place_ids]

    media_ids = [c.media_id for c in cards if c.media_id]
    if trip.cover_photo_id:
        media_ids.append(trip.cover_photo_id)
    media = []
    for media_id in dict.fromkeys(media_ids):
        record = storage.get_media(media_id)
        if record is None:
            logger.warning(f"Trip {trip_id} references unknown media {media_id}, not exported")
            continue
        media.append(record)

    bundle = ExportBundle(
        version=SUPPORTED_BUNDLE_VERSION,
        trip=trip,
        places=places,
        cards=cards,
        media=media,
        media_index=[MediaIndexEntry(media_id=m.id, filename=m.filename) for m in media],
    )
    logger.info(
        f"Exported trip {trip_id}: {len(cards)} cards, {len(places)} places, {len(media)} media"
    )
    return bundle


def _check_version(version: int):
    if version > SUPPORTED_BUNDLE_VERSION:
        raise ImportConflictError(
            f"Bundle version {version} is newer than supported version {SUPPORTED_BUNDLE_VERSION}"
        )


def _unique_trip_name(storage: StorageService, name: str) -> str:
    taken = {t.name for t in storage.list_trips()}
    candidate = name
    suffix = 2
    while candidate in taken:
        candidate = f"{name} {suffix}"
        suffix += 1
    return candidate


def import_trip(storage: StorageService, bundle: ExportBundle) -> Trip:
    """
    Merge a bundle into the store as a new trip.

    Not idempotent: importing the same bundle twice yields two trips that
    share the same places and media records. Payload bytes are not copied
    here; read_bundle_archive does that.
    """
    _check_version(bundle.version)

    media_by_id = {m.id: m for m in bundle.media}
    media = []
    for entry in bundle.media_index:
        record = media_by_id.get(entry.media_id)
        if record is None:
            logger.warning(f"Media index entry {entry.media_id} has no metadata record, skipped")
            continue
        if not _safe_filename(record.filename):
            raise BundleFormatError(f"Unsafe media id in bundle: {record.id!r}")
        media.append(record)

    source = bundle.trip
    now = utcnow()
    trip = source.model_copy(
        deep=True,
        update={
            "id": new_id(),
            "name": _unique_trip_name(storage, source.name),
            "created_at": now,
            "updated_at": now,
        },
    )

    cards = [
        card.model_copy(deep=True, update={"id": new_id(), "trip_id": trip.id})
        for card in bundle.cards
    ]

    storage.merge_records(places=bundle.places, media=media, trips=[trip], cards=cards)
    logger.info(f"Imported trip '{source.name}' as {trip.id} '{trip.name}' with {len(cards)} cards")
    return storage.get_trip(trip.id)


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def dump_bundle(bundle: ExportBundle, indent: int = 2) -> str:
    return json.dumps(bundle.to_record(), indent=indent, ensure_ascii=False)


def load_bundle(text: Union[str, bytes]) -> ExportBundle:
    """Parse bundle JSON, rejecting versions newer than this store supports"""
    try:
        data = json.loads(text)
    except ValueError as e:
        raise BundleFormatError(f"Bundle is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BundleFormatError("Bundle must be a JSON object")

    version = data.get("version", SUPPORTED_BUNDLE_VERSION)
    if not isinstance(version, int) or isinstance(version, bool):
        raise BundleFormatError(f"Bundle version must be an integer, got {version!r}")
    _check_version(version)

    try:
        return ExportBundle.model_validate(data)
    except ValidationError as e:
        raise BundleFormatError(f"Invalid bundle: {e.error_count()} validation error(s)\n{e}") from e


# ----------------------------------------------------------------------
# Zip archives (bundle.json + payloads)
# ----------------------------------------------------------------------

def write_bundle_archive(storage: StorageService, trip_id: str, path: Union[str, Path]) -> Path:
    """Export a trip as a zip holding bundle.json and its media payloads"""
    bundle = export_trip(storage, trip_id)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(BUNDLE_JSON, dump_bundle(bundle))
        for entry in bundle.media_index:
            data = storage.load_media(entry.media_id)
            if data is None:
                logger.warning(f"Payload for media {entry.media_id} missing, archive will lack {entry.filename}")
                continue
            zf.writestr(f"{ARCHIVE_MEDIA_DIR}/{entry.filename}", data)

    logger.info(f"Wrote bundle archive {path}")
    return path


def _safe_filename(filename: str) -> bool:
    return PurePosixPath(filename).name == filename and filename not in ('', '.', '..') and '\\' not in filename


def read_bundle_archive(storage: StorageService, path: Union[str, Path]) -> Trip:
    """
    Import a zip written by write_bundle_archive.

    Payloads are copied into the local media directory first; a payload that
    already exists locally is left untouched.
    """
    path = Path(path)
    try:
        zf = zipfile.ZipFile(path)
    except (OSError, zipfile.BadZipFile) as e:
        raise BundleFormatError(f"Cannot open bundle archive {path}: {e}") from e

    with zf:
        try:
            bundle = load_bundle(zf.read(BUNDLE_JSON))
        except KeyError as e:
            raise BundleFormatError(f"{path} has no {BUNDLE_JSON}") from e

        names = set(zf.namelist())
        media_by_id = {m.id: m for m in bundle.media}
        payloads = []
        for entry in bundle.media_index:
            if not _safe_filename(entry.filename):
                raise BundleFormatError(f"Unsafe media filename in bundle: {entry.filename!r}")
            record = media_by_id.get(entry.media_id)
            if record is None:
                continue
            if not _safe_filename(record.filename):
                raise BundleFormatError(f"Unsafe media id in bundle: {record.id!r}")
            payloads.append((entry, record))

        for entry, record in payloads:
            # Stored under the name load_media derives from the record
            target = record.filename
            if storage.repos.media.payload_exists(target):
                continue
            member = f"{ARCHIVE_MEDIA_DIR}/{entry.filename}"
            if member not in names:
                logger.warning(f"Archive lacks payload {member}")
                continue
            storage.repos.media.write_payload_file(target, zf.read(member))

    return import_trip(storage, bundle)
