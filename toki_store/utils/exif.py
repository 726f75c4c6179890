import logging
from datetime import datetime
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image as PILImage, UnidentifiedImageError

from toki_store.models import MediaEXIF

logger = logging.getLogger(__name__)

# IFD pointers and tag ids (EXIF 2.3)
_EXIF_IFD = 0x8769
_GPS_IFD = 0x8825
_TAG_MAKE = 0x010F
_TAG_MODEL = 0x0110
_TAG_DATETIME = 0x0132
_TAG_DATETIME_ORIGINAL = 0x9003
_TAG_ISO = 0x8827
_TAG_FNUMBER = 0x829D
_TAG_EXPOSURE = 0x829A

_EXIF_TIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def _to_degrees(ref, coord) -> Optional[float]:
    if not ref or not coord or len(coord) != 3:
        return None
    d, m, s = (float(part) for part in coord)
    sign = 1 if str(ref).upper() in ("N", "E") else -1
    return sign * (d + m / 60 + s / 3600)


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(str(value).strip("\x00 "), _EXIF_TIME_FORMAT)
    except ValueError:
        return None


def _format_exposure(value) -> Optional[str]:
    if value is None:
        return None
    seconds = float(value)
    if 0 < seconds < 1:
        return f"1/{round(1 / seconds)}"
    return f"{seconds:g}"


def extract_image_metadata(data: bytes) -> Tuple[Optional[int], Optional[int], Optional[MediaEXIF]]:
    """
    Best-effort (width, height, exif) for an image payload.

    Formats Pillow cannot open (HEIC without a plugin, audio) give
    (None, None, None). EXIF is None when the image carries none of the
    fields we keep, or when one of them is malformed.
    """
    try:
        with PILImage.open(BytesIO(data)) as im:
            width, height = im.size
            exif = im.getexif()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"No image metadata extracted: {e}")
        return None, None, None

    try:
        meta = _read_exif(exif)
    except (TypeError, ValueError, ZeroDivisionError) as e:
        logger.warning(f"Ignoring malformed EXIF: {e}")
        meta = None
    return width, height, meta


def _read_exif(exif) -> Optional[MediaEXIF]:
    gps = exif.get_ifd(_GPS_IFD)
    details = exif.get_ifd(_EXIF_IFD)

    make = exif.get(_TAG_MAKE)
    model = exif.get(_TAG_MODEL)
    camera = " ".join(str(part).strip() for part in (make, model) if part) or None

    fnumber = details.get(_TAG_FNUMBER)
    iso = details.get(_TAG_ISO)
    if isinstance(iso, (tuple, list)):
        iso = iso[0] if iso else None

    meta = MediaEXIF(
        lat=_to_degrees(gps.get(1), gps.get(2)),
        lon=_to_degrees(gps.get(3), gps.get(4)),
        timestamp=_parse_timestamp(details.get(_TAG_DATETIME_ORIGINAL) or exif.get(_TAG_DATETIME)),
        camera=camera,
        iso=int(iso) if iso is not None else None,
        aperture=f"f/{float(fnumber):g}" if fnumber is not None else None,
        shutter_speed=_format_exposure(details.get(_TAG_EXPOSURE)),
    )
    return meta if meta.model_dump(exclude_none=True) else None
