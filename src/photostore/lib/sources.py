"""Capture and location sources that do not need a device.

Used by the command line ``add`` command and by tests; a real app plugs its
camera and location APIs into the same two methods.
"""
import asyncio
from pathlib import Path
from typing import Optional

from photostore.errors import CaptureError
from photostore.models.records import Coordinates


class FileCaptureSource:
    """Produces the bytes of an existing image file as if it had just been shot."""

    def __init__(self, path):
        self.path = Path(path)

    async def capture(self) -> bytes:
        try:
            payload = await asyncio.to_thread(self.path.read_bytes)
        except OSError as exc:
            raise CaptureError(f"cannot read {self.path}: {exc}") from exc
        if not payload:
            raise CaptureError(f"{self.path} is empty")
        return payload


class StaticGeolocationSource:
    """Always reports the same fix (or none)."""

    def __init__(self, coordinates=None):
        self.coordinates: Optional[Coordinates] = Coordinates.coerce(coordinates)

    async def current_coordinates(self) -> Optional[Coordinates]:
        return self.coordinates
