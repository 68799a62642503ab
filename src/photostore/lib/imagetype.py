"""Image format detection from the payload bytes.

Looks at the content, not at any file name, using Pillow's format sniffing.
"""
import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

# Pillow format name -> file extension used for stored photos
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "MPO": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "TIFF": "tif",
    "BMP": "bmp",
}


def detect_format(payload: bytes) -> Optional[str]:
    """Return Pillow's format name for ``payload`` (e.g. 'JPEG'), or None if not an image."""
    if not payload:
        return None
    try:
        with Image.open(io.BytesIO(payload)) as img:
            return img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def extension_for(payload: bytes, default: str = "jpg") -> str:
    """Pick the extension to store ``payload`` under.

    Examples:
        >>> extension_for(png_bytes)
        'png'
        >>> extension_for(b"not an image")
        'jpg'
    """
    fmt = detect_format(payload)
    if fmt is None:
        return default
    return FORMAT_EXTENSIONS.get(fmt, fmt.lower())
