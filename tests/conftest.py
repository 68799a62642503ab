import io

import pytest
from PIL import Image

from photostore.config import StoreConfig


def _encode(fmt: str, color) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    return _encode("JPEG", (200, 30, 30))


@pytest.fixture
def png_bytes():
    return _encode("PNG", (30, 200, 30))


@pytest.fixture
def store_config(tmp_path):
    return StoreConfig(
        database=str(tmp_path / "gallery.db"),
        photo_dir=str(tmp_path / "photos"),
        location_timeout=0.2,
    )
