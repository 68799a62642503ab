"""File system storage for captured image payloads.

Files are named after the capture time in milliseconds (``1700000000000.jpg``)
and written through a temporary file in the same directory, so a reader sees
either nothing or the complete payload.
"""
from __future__ import annotations

import asyncio
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from photostore.errors import BlobNotFoundError, BlobPermissionError, FileSystemError, WriteError

TEMP_SUFFIX = ".part"


class BlobStore:
    """Writes and removes image files below a single root directory."""

    def __init__(self, root: str | os.PathLike):
        # absolute, so stored uris do not depend on the working directory of later runs
        self.root = Path(os.path.abspath(os.path.expanduser(os.fspath(root))))
        self._last_stamp = 0
        self._name_lock = threading.Lock()

    def _next_stamp(self) -> int:
        # Millisecond stamps, forced strictly increasing so two captures in the
        # same millisecond still get distinct names.
        with self._name_lock:
            stamp = time.time_ns() // 1_000_000
            if stamp <= self._last_stamp:
                stamp = self._last_stamp + 1
            self._last_stamp = stamp
            return stamp

    def _write_sync(self, payload: bytes, extension: str) -> str:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"cannot create photo directory {self.root}: {exc}") from exc

        fd, tmp_name = None, None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, suffix=TEMP_SUFFIX)
            with os.fdopen(fd, "wb") as fh:
                fd = None
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            while True:
                target = self.root / f"{self._next_stamp()}.{extension}"
                if not target.exists():
                    break
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise WriteError(f"cannot write photo to {self.root}: {exc}") from exc
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file {}", tmp_name)
        return str(target)

    async def write(self, payload: bytes, extension_hint: Optional[str] = "jpg") -> str:
        """Persist ``payload`` under a fresh name and return its path."""
        if not payload:
            raise WriteError("refusing to write an empty payload")
        extension = (extension_hint or "jpg").lower().lstrip(".") or "jpg"
        if not extension.isalnum():
            raise WriteError(f"invalid file extension: {extension_hint!r}")
        path = await asyncio.to_thread(self._write_sync, bytes(payload), extension)
        logger.debug("Wrote {} bytes to {}", len(payload), path)
        return path

    @staticmethod
    def _remove_sync(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"file already absent: {path}") from exc
        except PermissionError as exc:
            raise BlobPermissionError(f"not allowed to remove {path}: {exc}") from exc
        except IsADirectoryError as exc:
            raise FileSystemError(f"refusing to remove directory {path}") from exc
        except OSError as exc:
            raise FileSystemError(f"cannot remove {path}: {exc}") from exc

    async def remove(self, path: str) -> None:
        """Delete the file at ``path``.

        Raises BlobNotFoundError when it is already gone; callers that only
        care about the end state may treat that as success.
        """
        await asyncio.to_thread(self._remove_sync, path)
        logger.debug("Removed {}", path)

    async def exists(self, path: Optional[str]) -> bool:
        if not path:
            return False
        return await asyncio.to_thread(os.path.isfile, path)

    async def read(self, path: str) -> bytes:
        try:
            return await asyncio.to_thread(Path(path).read_bytes)
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"file not found: {path}") from exc
        except OSError as exc:
            raise FileSystemError(f"cannot read {path}: {exc}") from exc

    def _list_sync(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            str(p) for p in self.root.iterdir()
            if p.is_file() and not p.name.endswith(TEMP_SUFFIX)
        )

    async def list_files(self) -> list[str]:
        """Finished files under the root; in-flight temporaries are skipped."""
        return await asyncio.to_thread(self._list_sync)
