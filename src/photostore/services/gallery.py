"""Read-only gallery view over the photo store."""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Optional

from loguru import logger

from photostore.errors import MalformedRecordError, PhotoStoreError
from photostore.models.records import Coordinates, PhotoRecord


class GalleryState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class GalleryItem:
    record_id: int
    uri: Optional[str]
    coordinates: Optional[Coordinates] = None
    # Set for placeholders (why the row is unusable) and for entries whose
    # delete failed (shown inline next to the photo).
    error: Optional[str] = None
    placeholder: bool = False

    @classmethod
    def from_record(cls, record: PhotoRecord) -> "GalleryItem":
        try:
            record.validate()
        except MalformedRecordError as exc:
            return cls(record_id=record.id, uri=None, error=str(exc), placeholder=True)
        return cls(record_id=record.id, uri=record.uri, coordinates=record.coordinates)


class GalleryProjection:
    """Ordered snapshot of the store for display.

    ``refresh()`` never raises for store failures: the view goes to FAILED,
    keeps the last good items and exposes the error in ``last_error``.
    Anything else, such as an unknown ``order_by``, also leaves it FAILED but
    propagates.
    Also usable as a PhotoEventListener on CaptureService.
    """

    def __init__(self, repository, order_by: str = "id", descending: bool = False):
        self.repository = repository
        self.order_by = order_by
        self.descending = descending
        self.state = GalleryState.IDLE
        self.items: list[GalleryItem] = []
        self.last_error: Optional[PhotoStoreError] = None
        self.stale = False
        # uri -> reason of the last failed delete, kept across refreshes until a delete succeeds
        self.delete_errors: dict[str, str] = {}

    async def refresh(self) -> list[GalleryItem]:
        self.state = GalleryState.LOADING
        try:
            records = await self.repository.list_all(order_by=self.order_by, descending=self.descending)
        except PhotoStoreError as exc:
            logger.error("Gallery refresh failed: {}", exc)
            self.last_error = exc
            self.state = GalleryState.FAILED
            return self.items
        except Exception:
            self.state = GalleryState.FAILED
            raise
        self.items = [self._with_delete_error(GalleryItem.from_record(r)) for r in records]
        placeholders = sum(1 for item in self.items if item.placeholder)
        if placeholders:
            logger.warning("Gallery contains {} malformed record(s)", placeholders)
        self.last_error = None
        self.stale = False
        self.state = GalleryState.READY
        return self.items

    def _with_delete_error(self, item: GalleryItem) -> GalleryItem:
        reason = self.delete_errors.get(item.uri)
        if reason is None or item.placeholder:
            return item
        return replace(item, error=reason)

    @property
    def uris(self) -> list[str]:
        return [item.uri for item in self.items if not item.placeholder]

    def find(self, uri: str) -> Optional[GalleryItem]:
        for item in self.items:
            if item.uri == uri:
                return item
        return None

    # listener hooks
    def on_capture_completed(self, record: PhotoRecord) -> None:
        self.stale = True

    def on_delete_completed(self, uri: str) -> None:
        self.delete_errors.pop(uri, None)
        self.stale = True

    def on_delete_failed(self, uri: str, reason: str) -> None:
        self.delete_errors[uri] = reason
        self.items = [
            replace(item, error=reason) if item.uri == uri else item
            for item in self.items
        ]
