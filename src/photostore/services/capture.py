"""Capture and delete flows built on top of the photo repository."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol

from loguru import logger

from photostore.errors import FileSystemError, PersistenceError, PhotoStoreError
from photostore.lib.blobstore import BlobStore
from photostore.lib.imagetype import extension_for
from photostore.lib.sources import FileCaptureSource
from photostore.models.records import Coordinates, PhotoRecord
from photostore.services.repository import PhotoRepository


class CaptureSource(Protocol):
    """Camera-like producer of image payloads."""

    async def capture(self) -> bytes:
        """Return the encoded image; raise CaptureError on failure."""


class GeolocationSource(Protocol):
    """Provider of the device's current position."""

    async def current_coordinates(self) -> Optional[Coordinates]:
        """Return a fix, or None when no location is available."""


class PhotoEventListener(Protocol):
    """Presentation-side hooks fired after capture and delete."""

    def on_capture_completed(self, record: PhotoRecord) -> None:
        """A new record is stored and listable."""

    def on_delete_completed(self, uri: str) -> None:
        """File and record for ``uri`` are gone."""

    def on_delete_failed(self, uri: str, reason: str) -> None:
        """Deleting ``uri`` failed; its record (if any) is still listed."""


@dataclass
class CaptureService:
    """Runs camera -> file -> record and the reverse delete flow.

    The write and the insert are shielded from cancellation: once a payload
    exists the capture is carried through, so dismissing the caller never
    leaves a file without a record.
    """

    repository: PhotoRepository
    blob_store: BlobStore
    source: Optional[CaptureSource] = None
    locator: Optional[GeolocationSource] = None
    location_timeout: float = 10.0
    listeners: list = field(default_factory=list)
    # captures that outlived a cancelled caller; held so they are not collected mid-flight
    _pending: set = field(default_factory=set, repr=False)

    def add_listener(self, listener: PhotoEventListener) -> None:
        self.listeners.append(listener)

    def _notify(self, event: str, *args) -> None:
        for listener in list(self.listeners):
            handler = getattr(listener, event, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                # the store operation already finished; a broken listener must not undo it
                logger.exception("Listener {!r} failed handling {}", listener, event)

    async def locate(self) -> Optional[Coordinates]:
        """Current position, or None on failure or after ``location_timeout`` seconds."""
        if self.locator is None:
            return None
        try:
            coords = await asyncio.wait_for(
                self.locator.current_coordinates(), timeout=self.location_timeout
            )
            return Coordinates.coerce(coords)
        except asyncio.TimeoutError:
            logger.warning("Location lookup timed out after {}s; saving without coordinates", self.location_timeout)
        except Exception as exc:
            logger.warning("Location lookup failed ({}); saving without coordinates", exc)
        return None

    async def _persist(self, payload: bytes, extension: str, coords: Optional[Coordinates]) -> PhotoRecord:
        path = await self.blob_store.write(payload, extension)
        try:
            return await self.repository.insert(path, coords)
        except PhotoStoreError:
            # compensate: a file nobody references would leak silently
            try:
                await self.blob_store.remove(path)
            except FileSystemError as cleanup_exc:
                logger.warning("Could not remove unrecorded file {}: {}", path, cleanup_exc)
            else:
                logger.warning("Removed {} after its record could not be stored", path)
            raise

    async def store_payload(self, payload: bytes, coordinates=None, extension_hint: Optional[str] = None) -> PhotoRecord:
        """Write ``payload``, record it, and notify listeners."""
        extension = extension_hint or extension_for(payload)
        coords = Coordinates.coerce(coordinates)
        task = asyncio.ensure_future(self._persist(payload, extension, coords))
        self._pending.add(task)
        # registered before shielding so listeners hear about the capture before the caller resumes
        task.add_done_callback(self._capture_done)
        return await asyncio.shield(task)

    def _capture_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Capture did not complete: {}", exc)
            return
        self._notify("on_capture_completed", task.result())

    async def wait_pending(self) -> None:
        """Wait for captures still running after their caller was cancelled."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def capture(self, extension_hint: Optional[str] = None) -> PhotoRecord:
        """Take a picture from the configured source and store it.

        CaptureError from the source propagates before anything is written.
        """
        if self.source is None:
            raise RuntimeError("no capture source configured")
        payload = await self.source.capture()
        coords = await self.locate()
        return await self.store_payload(payload, coords, extension_hint)

    async def import_file(self, path, coordinates=None) -> PhotoRecord:
        """Store a copy of an existing image file as a new capture."""
        payload = await FileCaptureSource(path).capture()
        coords = Coordinates.coerce(coordinates) if coordinates is not None else await self.locate()
        return await self.store_payload(payload, coords)

    async def delete(self, uri: str, missing_ok: bool = True) -> int:
        """Delete file and record(s) for ``uri``; listeners hear about either outcome."""
        try:
            removed = await self.repository.delete_by_uri(uri, missing_ok=missing_ok)
        except (FileSystemError, PersistenceError) as exc:
            logger.error("Deleting {} failed: {}", uri, exc)
            self._notify("on_delete_failed", uri, str(exc))
            raise
        self._notify("on_delete_completed", uri)
        return removed
