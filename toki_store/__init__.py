"""
Toki - local trip journal store

Trips, deduplicated places, journal cards and media blobs persisted as JSON
collections, with a zip bundle format for moving a trip between devices.
"""

__version__ = "1.0.0"
