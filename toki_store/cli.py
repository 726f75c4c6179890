#!/usr/bin/env python3
"""
Toki trip store CLI - inspect and move trips from the command line.

Usage:
    toki-store trips                         # List trips (* marks the active one)
    toki-store cards <trip_id>               # Cards of a trip in takenAt order
    toki-store create-trip "Japan 2025"      # Create a trip
    toki-store add-note <trip_id> "Ramen!" --lat 35.66 --lon 139.70 --label Shibuya
    toki-store activate <trip_id>            # Make a trip the active one
    toki-store export <trip_id> japan.zip    # Write a bundle archive
    toki-store import japan.zip              # Merge a bundle archive as a new trip
    toki-store seed                          # Create the Okinawa demo trip
    toki-store --data-dir ~/trips trips      # Use a specific store directory
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from toki_store import __version__
from toki_store.backup.bundle import read_bundle_archive, write_bundle_archive
from toki_store.config import StoreConfig
from toki_store.errors import NotFoundError, TokiStoreError
from toki_store.models import CardKind
from toki_store.seed import create_sample_trip
from toki_store.services.storage_service import StorageService

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="toki-store",
        description="Toki - local trip journal store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', '-v', action='version', version=f"toki-store {__version__}")
    parser.add_argument('--data-dir', type=Path, default=None,
                        help="Store directory (default: TOKI_DATA_DIR or the APP_ENV data root)")
    parser.add_argument('--debug', action='store_true', help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("trips", help="List trips")

    cards = sub.add_parser("cards", help="List the cards of a trip")
    cards.add_argument("trip_id")

    create = sub.add_parser("create-trip", help="Create a trip")
    create.add_argument("name")

    note = sub.add_parser("add-note", help="Add a note card to a trip")
    note.add_argument("trip_id")
    note.add_argument("text")
    note.add_argument("--lat", type=float, default=None)
    note.add_argument("--lon", type=float, default=None)
    note.add_argument("--label", type=str, default=None, help="Label for a newly created place")
    note.add_argument("--tag", action="append", default=[], dest="tags")

    activate = sub.add_parser("activate", help="Set the active trip")
    activate.add_argument("trip_id")

    export = sub.add_parser("export", help="Export a trip as a zip bundle")
    export.add_argument("trip_id")
    export.add_argument("output", type=Path)

    imp = sub.add_parser("import", help="Import a zip bundle as a new trip")
    imp.add_argument("archive", type=Path)

    sub.add_parser("seed", help="Create the Okinawa demo trip")

    return parser.parse_args(argv)


def _print_trips(storage: StorageService):
    trips = storage.list_trips()
    if not trips:
        print("No trips yet.")
        return
    for trip in trips:
        marker = "*" if trip.id == storage.active_trip_id else " "
        count = len(storage.cards_for_trip(trip.id))
        print(f"{marker} {trip.id}  {trip.name}  ({count} cards)")


def _print_cards(storage: StorageService, trip_id: str):
    if storage.get_trip(trip_id) is None:
        raise NotFoundError("Trip", trip_id)
    for card in storage.cards_for_trip(trip_id):
        where = f" @ {card.place_label_at_save}" if card.place_label_at_save else ""
        text = (card.text or "").splitlines()[0] if card.text else ""
        print(f"{card.taken_at:%Y-%m-%d %H:%M}  [{card.kind}]{where}  {text}")


def run(args: argparse.Namespace) -> int:
    config = StoreConfig.for_directory(args.data_dir) if args.data_dir else StoreConfig.from_environment()
    storage = StorageService.open(config)

    if args.command == "trips":
        _print_trips(storage)
    elif args.command == "cards":
        _print_cards(storage, args.trip_id)
    elif args.command == "create-trip":
        trip = storage.create_trip(args.name)
        print(trip.id)
    elif args.command == "add-note":
        if storage.get_trip(args.trip_id) is None:
            raise NotFoundError("Trip", args.trip_id)
        place_id = None
        if args.lat is not None and args.lon is not None:
            place_id = storage.find_or_create_place(args.lat, args.lon, label=args.label).id
        card = storage.create_card(args.trip_id, CardKind.NOTE, place_id=place_id, tags=args.tags, text=args.text)
        print(card.id)
    elif args.command == "activate":
        storage.set_active_trip(args.trip_id)
    elif args.command == "export":
        path = write_bundle_archive(storage, args.trip_id, args.output)
        print(path)
    elif args.command == "import":
        trip = read_bundle_archive(storage, args.archive)
        print(f"{trip.id}  {trip.name}")
    elif args.command == "seed":
        trip = create_sample_trip(storage)
        print(f"{trip.id}  {trip.name}")
    return 0


def cli_entry(argv: Optional[List[str]] = None) -> int:
    """Entry point for console script"""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return run(args)
    except (TokiStoreError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(cli_entry())
