"""
Geohash codec

Encodes a (latitude, longitude) pair as a base-32 string by recursive
bisection: even bits split longitude, odd bits split latitude, five bits per
character. Places use 5-character hashes (~4.9km x 4.9km at the equator) as
their deduplication key, so nearby photo locations collapse into one Place.
"""

from typing import Tuple

from toki_store.errors import DecodeError

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
PLACE_HASH_LENGTH = 5

_DECODE_MAP = {char: index for index, char in enumerate(BASE32)}


def encode(lat: float, lon: float, length: int = PLACE_HASH_LENGTH) -> str:
    """
    Encode coordinates into a geohash of exactly `length` characters.

    Values sitting exactly on a bisection midpoint fall into the upper half.
    """
    if length < 0:
        raise ValueError(f"Geohash length must be >= 0, got {length}")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"Longitude out of range: {lon}")

    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    bit_index = 0
    bit = 0
    ch = 0

    while len(chars) < length:
        if bit_index % 2 == 0:
            value, rng = lon, lon_range
        else:
            value, rng = lat, lat_range

        mid = (rng[0] + rng[1]) / 2
        if value >= mid:
            ch |= 1 << (4 - bit)
            rng[0] = mid
        else:
            rng[1] = mid

        bit += 1
        if bit == 5:
            chars.append(BASE32[ch])
            bit = 0
            ch = 0
        bit_index += 1

    return "".join(chars)


def bounds(geohash: str) -> Tuple[float, float, float, float]:
    """
    Bounding box of a geohash cell.

    Returns:
        (min_lat, max_lat, min_lon, max_lon)
    """
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    is_lon = True

    for position, char in enumerate(geohash):
        bits = _DECODE_MAP.get(char)
        if bits is None:
            raise DecodeError(
                f"Invalid geohash character {char!r} at position {position} in {geohash!r}"
            )
        for shift in range(4, -1, -1):
            rng = lon_range if is_lon else lat_range
            mid = (rng[0] + rng[1]) / 2
            if (bits >> shift) & 1:
                rng[0] = mid
            else:
                rng[1] = mid
            is_lon = not is_lon

    return lat_range[0], lat_range[1], lon_range[0], lon_range[1]


def decode(geohash: str) -> Tuple[float, float]:
    """Decode a geohash to the centre (lat, lon) of its cell."""
    min_lat, max_lat, min_lon, max_lon = bounds(geohash)
    return (min_lat + max_lat) / 2, (min_lon + max_lon) / 2
