import asyncio
from pathlib import Path

import pytest

from photostore.errors import BlobNotFoundError, WriteError
from photostore.lib.blobstore import TEMP_SUFFIX, BlobStore


def test_write_creates_complete_file(tmp_path, jpeg_bytes):
    store = BlobStore(tmp_path / "photos")

    path = asyncio.run(store.write(jpeg_bytes, "jpg"))

    p = Path(path)
    assert p.parent == tmp_path / "photos"
    assert p.suffix == ".jpg"
    assert p.stem.isdigit()
    assert p.read_bytes() == jpeg_bytes
    assert not list((tmp_path / "photos").glob(f"*{TEMP_SUFFIX}"))


def test_names_are_unique_and_increasing(tmp_path):
    store = BlobStore(tmp_path)

    async def scenario():
        return [await store.write(b"x%d" % i, ".JPG") for i in range(5)]

    paths = asyncio.run(scenario())
    stamps = [int(Path(p).stem) for p in paths]
    assert len(set(paths)) == 5
    assert stamps == sorted(stamps)
    assert all(p.endswith(".jpg") for p in paths)


def test_empty_payload_is_rejected(tmp_path):
    store = BlobStore(tmp_path)
    with pytest.raises(WriteError):
        asyncio.run(store.write(b""))


def test_unwritable_root_raises_write_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    store = BlobStore(blocker)
    with pytest.raises(WriteError):
        asyncio.run(store.write(b"data"))


def test_remove_then_remove_again(tmp_path):
    store = BlobStore(tmp_path)

    async def scenario():
        path = await store.write(b"payload")
        assert await store.exists(path)
        await store.remove(path)
        assert not await store.exists(path)
        with pytest.raises(BlobNotFoundError):
            await store.remove(path)

    asyncio.run(scenario())


def test_read_and_list_files(tmp_path):
    store = BlobStore(tmp_path)
    (tmp_path / f"inflight{TEMP_SUFFIX}").write_bytes(b"partial")

    async def scenario():
        a = await store.write(b"a")
        b = await store.write(b"b")
        assert await store.read(a) == b"a"
        return a, b, await store.list_files()

    a, b, files = asyncio.run(scenario())
    assert files == sorted([a, b])


def test_list_files_of_missing_root(tmp_path):
    store = BlobStore(tmp_path / "missing")
    assert asyncio.run(store.list_files()) == []
    assert asyncio.run(store.exists(None)) is False


def test_relative_root_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store = BlobStore("photos")

    path = asyncio.run(store.write(b"x"))

    assert Path(path).is_absolute()
    assert Path(path).parent == tmp_path / "photos"


@pytest.mark.parametrize("hint", ["../jpg", "x/y", "jp g", "j.pg"])
def test_extension_must_be_a_plain_suffix(tmp_path, hint):
    store = BlobStore(tmp_path / "photos")
    with pytest.raises(WriteError):
        asyncio.run(store.write(b"x", hint))
    assert not (tmp_path / "photos").exists()
