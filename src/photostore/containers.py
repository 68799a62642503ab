"""Dependency container wiring for the photo store."""

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from photostore.config import StoreConfig
from photostore.lib.blobstore import BlobStore
from photostore.lib.database import ensure_parent_dir, get_engine, get_sessionmaker
from photostore.services.capture import CaptureService, CaptureSource, GeolocationSource
from photostore.services.gallery import GalleryProjection
from photostore.services.reconcile import Reconciler
from photostore.services.repository import PhotoRepository


@dataclass
class PhotoStoreContainer:
    """Holds the single engine and everything built on it.

    Created once at process start; ``close()`` releases the database at shutdown.
    """

    config: StoreConfig
    engine: AsyncEngine
    blob_store: BlobStore
    repository: PhotoRepository
    capture_service: CaptureService
    gallery: GalleryProjection
    reconciler: Reconciler
    closed: bool = field(default=False)

    async def initialize(self, target_version: Optional[int] = None) -> int:
        if target_version is None:
            return await self.repository.initialize()
        return await self.repository.initialize(target_version)

    async def close(self) -> None:
        if not self.closed:
            await self.capture_service.wait_pending()
            await self.engine.dispose()
            self.closed = True

    async def __aenter__(self) -> "PhotoStoreContainer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def build_container(
    config: Optional[StoreConfig] = None,
    source: Optional[CaptureSource] = None,
    locator: Optional[GeolocationSource] = None,
) -> PhotoStoreContainer:
    """Create the default dependency container."""
    resolved = config or StoreConfig()
    ensure_parent_dir(resolved.database)
    engine = get_engine(resolved.database)
    sessions = get_sessionmaker(engine)
    blob_store = BlobStore(resolved.photo_dir)
    repository = PhotoRepository(sessions, engine, blob_store)
    gallery = GalleryProjection(repository)
    capture_service = CaptureService(
        repository=repository,
        blob_store=blob_store,
        source=source,
        locator=locator,
        location_timeout=resolved.location_timeout,
        listeners=[gallery],
    )
    return PhotoStoreContainer(
        config=resolved,
        engine=engine,
        blob_store=blob_store,
        repository=repository,
        capture_service=capture_service,
        gallery=gallery,
        reconciler=Reconciler(repository, blob_store),
    )
