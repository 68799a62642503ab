from typing import Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from photostore.errors import (
    BlobNotFoundError,
    MalformedRecordError,
    PersistenceError,
    RecordNotFoundError,
)
from photostore.lib.blobstore import BlobStore
from photostore.lib.migrations import CURRENT_VERSION, migrate
from photostore.models.photo import Photo
from photostore.models.records import Coordinates, PhotoRecord, entry_from_row

ORDERABLE_COLUMNS = {"id": Photo.id, "uri": Photo.uri}


def _to_record(row) -> PhotoRecord:
    return entry_from_row(row.id, row.uri, row.latitude, row.longitude).to_record()


class PhotoRepository:
    """Owner of the ``photos`` table and its agreement with the files on disk.

    Every method opens its own short session, so a completed call is visible
    to the next one (read-your-writes within the process). A record is only
    inserted for a file the blob store already holds, and a record is only
    removed after its file is gone.
    """

    def __init__(self, sessions: async_sessionmaker, engine: AsyncEngine, blob_store: BlobStore):
        self.sessions = sessions
        self.engine = engine
        self.blob_store = blob_store

    async def initialize(self, target_version: int = CURRENT_VERSION) -> int:
        """Create or migrate the schema; safe to call on every start."""
        version = await migrate(self.engine, target_version)
        logger.info("Photo store ready at schema v{}", version)
        return version

    async def insert(self, uri: str, coordinates=None) -> PhotoRecord:
        """Record a photo whose file has already been written.

        Raises MalformedRecordError for an empty uri, BlobNotFoundError when
        the file is not on disk, and PersistenceError when the insert fails.
        """
        if not uri:
            raise MalformedRecordError("uri must be a non-empty path")
        coords: Optional[Coordinates] = Coordinates.coerce(coordinates)
        if not await self.blob_store.exists(uri):
            raise BlobNotFoundError(f"no file at {uri}; write the photo before recording it")

        photo = Photo(
            uri=uri,
            latitude=coords.latitude if coords else None,
            longitude=coords.longitude if coords else None,
        )
        try:
            async with self.sessions() as session:
                async with session.begin():
                    session.add(photo)
                    await session.flush()
                    record = _to_record(photo)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to record photo {uri}: {exc}") from exc
        logger.info("Recorded photo {} (id={})", uri, record.id)
        return record

    async def list_all(self, order_by: str = "id", descending: bool = False) -> list[PhotoRecord]:
        """Every stored record, ascending by id unless told otherwise.

        Rows with an empty uri come back as records with ``is_malformed`` set;
        rendering decides what to do with them.
        """
        column = ORDERABLE_COLUMNS.get(order_by)
        if column is None:
            raise ValueError(f"cannot order photos by {order_by!r}")
        ordering = column.desc() if descending else column.asc()
        stmt = select(Photo.id, Photo.uri, Photo.latitude, Photo.longitude).order_by(ordering, Photo.id)
        try:
            async with self.sessions() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to list photos: {exc}") from exc
        return [_to_record(row) for row in rows]

    async def get(self, record_id: int) -> Optional[PhotoRecord]:
        try:
            async with self.sessions() as session:
                photo = await session.get(Photo, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load photo {record_id}: {exc}") from exc
        return _to_record(photo) if photo else None

    async def count(self) -> int:
        try:
            async with self.sessions() as session:
                return (await session.execute(select(func.count(Photo.id)))).scalar_one()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to count photos: {exc}") from exc

    async def _ids_for_uri(self, uri: str) -> list[int]:
        try:
            async with self.sessions() as session:
                result = await session.execute(select(Photo.id).where(Photo.uri == uri))
                return list(result.scalars())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to look up {uri}: {exc}") from exc

    async def _remove_file(self, uri: Optional[str]) -> None:
        # An already-missing file is the state we want; anything else aborts
        # the delete before the row is touched.
        if not uri:
            return
        try:
            await self.blob_store.remove(uri)
        except BlobNotFoundError:
            logger.warning("File for {} was already gone; removing record only", uri)

    async def _delete_rows(self, where, label: str) -> int:
        try:
            async with self.sessions() as session:
                async with session.begin():
                    result = await session.execute(delete(Photo).where(where))
                    return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"file for {label} was removed but its record could not be deleted: {exc}"
            ) from exc

    async def delete_by_uri(self, uri: str, missing_ok: bool = True) -> int:
        """Remove the file at ``uri`` and then every record pointing at it.

        Returns the number of records removed. With no matching record this is
        a no-op returning 0, or RecordNotFoundError when ``missing_ok`` is
        false. A FileSystemError from the file removal propagates and leaves
        the records in place.
        """
        ids = await self._ids_for_uri(uri)
        if not ids:
            if missing_ok:
                logger.debug("No photo record for {}; nothing to delete", uri)
                return 0
            raise RecordNotFoundError(f"no photo record for {uri}")

        await self._remove_file(uri)
        removed = await self._delete_rows(Photo.uri == uri, uri)
        logger.info("Deleted photo {} ({} record(s))", uri, removed)
        return removed

    async def delete_by_id(self, record_id: int, missing_ok: bool = True) -> bool:
        """Same file-then-row removal for a single record, addressed by id.

        Other records sharing the uri keep their rows even though the file is
        gone; the reconciliation sweep reports them as dangling.
        """
        record = await self.get(record_id)
        if record is None:
            if missing_ok:
                return False
            raise RecordNotFoundError(f"no photo record with id {record_id}")

        await self._remove_file(record.uri)
        removed = await self._delete_rows(Photo.id == record_id, f"id {record_id}")
        logger.info("Deleted photo record {} ({})", record_id, record.uri)
        return removed > 0
