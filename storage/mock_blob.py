from __future__ import annotations

import asyncio
import io
import logging
import math
import zipfile
import zlib
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import AsyncIterator, BinaryIO, Dict, Optional, Set

from settings import get_settings
from storage.paths import SEPARATOR, build_path

logger = logging.getLogger(__name__)

_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)


class MockBlobContainer:
    """Blob container kept in memory and optionally mirrored under ``root_path``."""

    def __init__(
        self,
        name: str,
        root_path: Optional[Path] = None,
        download_chunks: int = 100,
    ) -> None:
        if download_chunks < 1:
            raise ValueError("download_chunks must be a positive integer.")
        self.name = name
        self.root_path = root_path
        self.download_chunks = download_chunks
        self._blobs: Dict[str, bytes] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def put_blob(self, path: str, data: bytes) -> str:
        key = self._normalize_key(path)
        with self._lock:
            self._blobs[key] = data
            if self.root_path:
                target = self.root_path / key
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
        return key

    async def list_files(self, path: str) -> list[str]:
        """Names of blobs stored directly under ``path``."""
        files, _ = await asyncio.to_thread(self._list_level, path)
        return files

    async def list_folders(self, path: str) -> list[str]:
        """Names of the virtual folders directly under ``path``."""
        _, folders = await asyncio.to_thread(self._list_level, path)
        return folders

    def _list_level(self, path: str) -> tuple[list[str], list[str]]:
        prefix = self._prefix(path)
        if prefix:
            # Rejects relative segments before touching the disk.
            self._normalize_key(path)
        files: Set[str] = set()
        folders: Set[str] = set()

        with self._lock:
            keys = list(self._blobs)
        for key in keys:
            if not key.startswith(prefix):
                continue
            name, separator, _ = key[len(prefix):].partition(SEPARATOR)
            if name:
                (folders if separator else files).add(name)

        if self.root_path:
            directory = self.root_path / prefix
            if directory.is_dir():
                for entry in directory.iterdir():
                    if entry.is_dir():
                        folders.add(entry.name)
                    elif entry.is_file():
                        files.add(entry.name)

        return sorted(files), sorted(folders)

    async def get_file(self, path: str) -> Optional[BinaryIO]:
        key = self._normalize_key(path)
        with self._lock:
            data = self._blobs.get(key)
        if data is None and self.root_path:
            target = self.root_path / key
            if target.is_file():
                data = await asyncio.to_thread(target.read_bytes)
        if data is None:
            return None
        return io.BytesIO(data)

    async def iter_zip_entries(self, path: str) -> AsyncIterator[BinaryIO]:
        """Yield the content of each readable entry of the archive at ``path``.

        The archive is fetched only when the first entry is requested. Entries
        that cannot be opened or decompressed are logged and skipped.
        """
        data = await self.download_parallel(path)
        if data is None:
            return

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                try:
                    with archive.open(info) as handle:
                        payload = handle.read()
                except _ENTRY_ERRORS as exc:
                    logger.warning(
                        "Skipping unreadable archive entry %s",
                        info.filename,
                        extra={"blob_path": path, "reason": str(exc)},
                    )
                    continue
                yield io.BytesIO(payload)

    async def download_parallel(self, path: str) -> Optional[bytes]:
        """Fetch a blob as ``download_chunks`` byte ranges read concurrently."""
        key = self._normalize_key(path)
        size = await asyncio.to_thread(self._size, key)
        if size is None:
            return None
        if size == 0:
            return b""

        chunk_size = max(1, math.ceil(size / self.download_chunks))
        parts = await asyncio.gather(
            *(
                asyncio.to_thread(self._read_range, key, offset, min(chunk_size, size - offset))
                for offset in range(0, size, chunk_size)
            )
        )
        return b"".join(parts)

    def _size(self, key: str) -> Optional[int]:
        with self._lock:
            data = self._blobs.get(key)
        if data is not None:
            return len(data)
        if self.root_path:
            target = self.root_path / key
            if target.is_file():
                return target.stat().st_size
        return None

    def _read_range(self, key: str, offset: int, size: int) -> bytes:
        with self._lock:
            data = self._blobs.get(key)
        if data is not None:
            return data[offset:offset + size]
        assert self.root_path is not None
        with (self.root_path / key).open("rb") as handle:
            handle.seek(offset)
            return handle.read(size)

    @staticmethod
    def _prefix(path: str) -> str:
        normalized = build_path(path)
        return f"{normalized}{SEPARATOR}" if normalized else ""

    @staticmethod
    def _normalize_key(path: str) -> str:
        key = build_path(path)
        if not key:
            raise ValueError("Blob path cannot be empty.")
        if any(segment in {".", ".."} for segment in key.split(SEPARATOR)):
            raise ValueError(f"Blob path {path!r} must not contain relative segments.")
        return key


@lru_cache
def build_default_container(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> MockBlobContainer:
    settings = get_settings()
    container_name = settings.container_name if name is None else name
    container_root = settings.container_root_path if root_path is None else root_path
    path = Path(container_root) if container_root else None
    return MockBlobContainer(
        name=container_name,
        root_path=path,
        download_chunks=settings.download_chunks,
    )
