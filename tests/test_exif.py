"""
Tests for image metadata extraction
"""

from datetime import datetime, timezone
from io import BytesIO

import pytest
from PIL import Image

from toki_store.utils.exif import extract_image_metadata
from tests.test_fixtures import jpeg_bytes


def _exif(tags) -> bytes:
    exif = Image.Exif()
    for tag, value in tags.items():
        exif[tag] = value
    return exif.tobytes()


class TestExtractImageMetadata:

    def test_dimensions(self):
        width, height, exif = extract_image_metadata(jpeg_bytes(size=(120, 80)))
        assert (width, height) == (120, 80)
        assert exif is None

    def test_camera_and_timestamp(self):
        data = jpeg_bytes(exif=_exif({
            0x010F: "Google",
            0x0110: "Pixel 8",
            0x0132: "2025:04:01 09:30:00",
        }))
        width, height, exif = extract_image_metadata(data)

        assert exif.camera == "Google Pixel 8"
        assert exif.timestamp == datetime(2025, 4, 1, 9, 30, tzinfo=timezone.utc)
        assert exif.lat is None and exif.lon is None

    def test_garbled_timestamp_ignored(self):
        data = jpeg_bytes(exif=_exif({0x0110: "X100V", 0x0132: "yesterday"}))
        _, _, exif = extract_image_metadata(data)
        assert exif.camera == "X100V"
        assert exif.timestamp is None

    def test_png(self):
        buf = BytesIO()
        Image.new("RGBA", (10, 20)).save(buf, format="PNG")
        assert extract_image_metadata(buf.getvalue())[:2] == (10, 20)

    def test_not_an_image(self):
        assert extract_image_metadata(b"definitely not pixels") == (None, None, None)

    def test_empty_payload(self):
        assert extract_image_metadata(b"") == (None, None, None)


class _StubExif(dict):
    """Top-level tags plus sub-IFDs, shaped like PIL.Image.Exif"""

    def __init__(self, tags=None, ifds=None):
        super().__init__(tags or {})
        self.ifds = ifds or {}

    def get_ifd(self, tag):
        return self.ifds.get(tag, {})


class TestMalformedExif:
    """Bad EXIF values drop the EXIF block but keep the image"""

    @pytest.mark.parametrize("ifds", [
        {0x8769: {0x829D: "abc"}},                   # FNumber
        {0x8769: {0x8827: "high"}},                  # ISO
        {0x8769: {0x829A: "fast"}},                  # ExposureTime
        {0x8825: {1: "N", 2: ("x", "y", "z")}},      # GPS latitude
    ])
    def test_dimensions_survive(self, monkeypatch, ifds):
        stub = _StubExif({0x0110: "Pixel 8"}, ifds)
        monkeypatch.setattr(Image.Image, "getexif", lambda self: stub)

        assert extract_image_metadata(jpeg_bytes(size=(40, 30))) == (40, 30, None)

    def test_photo_still_saved(self, storage, monkeypatch):
        stub = _StubExif(ifds={0x8769: {0x829D: "abc"}})
        monkeypatch.setattr(Image.Image, "getexif", lambda self: stub)

        data = jpeg_bytes(size=(40, 30))
        media_id = storage.save_media(data, "image/jpeg")

        media = storage.get_media(media_id)
        assert (media.width, media.height) == (40, 30)
        assert media.exif is None
        assert storage.load_media(media_id) == data
