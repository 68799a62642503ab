import asyncio
from pathlib import Path

import pytest

from photostore.containers import build_container
from photostore.errors import BlobPermissionError, CaptureError, PersistenceError
from photostore.lib.blobstore import BlobStore
from photostore.models.records import Coordinates
from photostore.services.capture import CaptureService
from photostore.services.gallery import GalleryState


class StubCamera:
    def __init__(self, payload=b"", error=None):
        self.payload = payload
        self.error = error

    async def capture(self):
        if self.error:
            raise self.error
        return self.payload


class SlowLocator:
    async def current_coordinates(self):
        await asyncio.sleep(5)
        return Coordinates(1.0, 2.0)


class BrokenLocator:
    async def current_coordinates(self):
        raise OSError("location services disabled")


class FixedLocator:
    async def current_coordinates(self):
        return {"latitude": 37.7, "longitude": -122.4}


class RecordingListener:
    def __init__(self):
        self.events = []

    def on_capture_completed(self, record):
        self.events.append(("captured", record.uri))

    def on_delete_completed(self, uri):
        self.events.append(("deleted", uri))

    def on_delete_failed(self, uri, reason):
        self.events.append(("delete_failed", uri))


def test_capture_writes_file_records_and_notifies(store_config, jpeg_bytes):
    listener = RecordingListener()

    async def scenario():
        c = build_container(store_config, source=StubCamera(jpeg_bytes), locator=FixedLocator())
        async with c:
            await c.initialize()
            c.capture_service.add_listener(listener)
            record = await c.capture_service.capture()
            stale = c.gallery.stale
            items = await c.gallery.refresh()
            return record, stale, items

    record, stale, items = asyncio.run(scenario())
    assert Path(record.uri).read_bytes() == jpeg_bytes
    assert record.uri.endswith(".jpg")
    assert record.coordinates == Coordinates(37.7, -122.4)
    assert listener.events == [("captured", record.uri)]
    assert stale is True
    assert [i.uri for i in items] == [record.uri]


def test_extension_follows_image_format(store_config, png_bytes):
    async def scenario():
        async with build_container(store_config, source=StubCamera(png_bytes)) as c:
            await c.initialize()
            return await c.capture_service.capture()

    assert asyncio.run(scenario()).uri.endswith(".png")


@pytest.mark.parametrize("locator", [SlowLocator(), BrokenLocator(), None])
def test_location_problems_mean_no_coordinates(store_config, jpeg_bytes, locator):
    async def scenario():
        async with build_container(store_config, source=StubCamera(jpeg_bytes), locator=locator) as c:
            await c.initialize()
            return await c.capture_service.capture()

    record = asyncio.run(scenario())
    assert record.coordinates is None
    assert Path(record.uri).exists()


def test_capture_error_writes_nothing(store_config):
    async def scenario():
        camera = StubCamera(error=CaptureError("shutter jammed"))
        async with build_container(store_config, source=camera) as c:
            await c.initialize()
            with pytest.raises(CaptureError):
                await c.capture_service.capture()
            return await c.blob_store.list_files(), await c.repository.count()

    assert asyncio.run(scenario()) == ([], 0)


def test_failed_insert_removes_written_file(store_config, jpeg_bytes):
    async def scenario():
        async with build_container(store_config) as c:
            await c.initialize()

            async def failing_insert(uri, coordinates=None):
                assert Path(uri).exists()
                raise PersistenceError("disk full")

            c.repository.insert = failing_insert
            with pytest.raises(PersistenceError):
                await c.capture_service.store_payload(jpeg_bytes)
            return await c.blob_store.list_files()

    assert asyncio.run(scenario()) == []


def test_cancelled_capture_still_completes(store_config, jpeg_bytes):
    class GatedBlobStore(BlobStore):
        def __init__(self, root):
            super().__init__(root)
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def write(self, payload, extension_hint="jpg"):
            self.started.set()
            await self.release.wait()
            return await super().write(payload, extension_hint)

    listener = RecordingListener()

    async def scenario():
        async with build_container(store_config) as c:
            await c.initialize()
            blob_store = GatedBlobStore(store_config.photo_dir)
            service = CaptureService(c.repository, blob_store, source=StubCamera(jpeg_bytes))
            service.add_listener(listener)
            service.add_listener(c.gallery)
            c.repository.blob_store = blob_store
            task = asyncio.ensure_future(service.capture())
            await blob_store.started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            pending = len(service._pending)
            blob_store.release.set()
            await service.wait_pending()
            return pending, await c.repository.list_all(), c.gallery.stale

    pending, records, stale = asyncio.run(scenario())
    assert pending == 1
    assert len(records) == 1
    assert Path(records[0].uri).exists()
    # the cancelled caller never saw the record, but listeners did
    assert listener.events == [("captured", records[0].uri)]
    assert stale is True


def test_delete_notifies_listeners(store_config, jpeg_bytes):
    listener = RecordingListener()

    async def scenario():
        async with build_container(store_config, source=StubCamera(jpeg_bytes)) as c:
            await c.initialize()
            c.capture_service.add_listener(listener)
            record = await c.capture_service.capture()
            removed = await c.capture_service.delete(record.uri)
            again = await c.capture_service.delete(record.uri)
            return record, removed, again

    record, removed, again = asyncio.run(scenario())
    assert (removed, again) == (1, 0)
    assert listener.events == [
        ("captured", record.uri),
        ("deleted", record.uri),
        ("deleted", record.uri),
    ]


def test_failed_delete_keeps_entry_and_marks_gallery(store_config, jpeg_bytes):
    async def scenario():
        async with build_container(store_config, source=StubCamera(jpeg_bytes)) as c:
            await c.initialize()
            record = await c.capture_service.capture()
            await c.gallery.refresh()

            async def denied(path):
                raise BlobPermissionError(f"not allowed to remove {path}")

            c.blob_store.remove = denied
            with pytest.raises(BlobPermissionError):
                await c.capture_service.delete(record.uri)
            item = c.gallery.find(record.uri)
            await c.gallery.refresh()
            refreshed = c.gallery.find(record.uri)
            return record, item, refreshed, await c.repository.list_all(), c.gallery.state

    record, item, refreshed, records, state = asyncio.run(scenario())
    assert "not allowed" in item.error
    assert refreshed.error == item.error
    assert [r.uri for r in records] == [record.uri]
    assert state is GalleryState.READY


def test_import_file_uses_given_coordinates(store_config, tmp_path, jpeg_bytes):
    source_file = tmp_path / "holiday.jpg"
    source_file.write_bytes(jpeg_bytes)

    async def scenario():
        async with build_container(store_config, locator=BrokenLocator()) as c:
            await c.initialize()
            tagged = await c.capture_service.import_file(source_file, (48.85, 2.35))
            untagged = await c.capture_service.import_file(source_file)
            with pytest.raises(CaptureError):
                await c.capture_service.import_file(tmp_path / "missing.jpg")
            return tagged, untagged

    tagged, untagged = asyncio.run(scenario())
    assert tagged.coordinates == Coordinates(48.85, 2.35)
    assert untagged.coordinates is None
    assert tagged.uri != untagged.uri
    assert source_file.exists()
