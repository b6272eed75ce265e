"""Upload sources backed by local files or in-memory payloads."""

from __future__ import annotations

import asyncio
import mimetypes
import os
from pathlib import Path

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or _DEFAULT_CONTENT_TYPE


class FileUploadSource:
    """File on disk. Size and mtime are captured once, at construction."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        content_type: str | None = None,
    ) -> None:
        self._path = Path(path)
        stat = self._path.stat()
        self._size = stat.st_size
        self._last_modified = stat.st_mtime
        self._content_type = content_type or guess_content_type(self._path.name)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._size

    @property
    def content_type(self) -> str:
        return self._content_type

    @property
    def last_modified(self) -> float | None:
        return self._last_modified

    async def read_range(self, start: int, end: int) -> bytes:
        _check_range(start, end, self._size)
        return await asyncio.to_thread(self._read_sync, start, end)

    def _read_sync(self, start: int, end: int) -> bytes:
        with self._path.open("rb") as handle:
            handle.seek(start)
            data = handle.read(end - start)
        if len(data) != end - start:
            raise OSError(
                f"Short read from {self._path}: expected {end - start} bytes, got {len(data)}."
            )
        return data


class BytesUploadSource:
    """In-memory payload, mostly for small uploads and tests."""

    def __init__(
        self,
        name: str,
        payload: bytes,
        *,
        content_type: str | None = None,
        last_modified: float | None = None,
    ) -> None:
        self._name = name
        self._payload = bytes(payload)
        self._content_type = content_type or guess_content_type(name)
        self._last_modified = last_modified

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._payload)

    @property
    def content_type(self) -> str:
        return self._content_type

    @property
    def last_modified(self) -> float | None:
        return self._last_modified

    async def read_range(self, start: int, end: int) -> bytes:
        _check_range(start, end, len(self._payload))
        return self._payload[start:end]


def _check_range(start: int, end: int, size: int) -> None:
    if start < 0 or end < start or end > size:
        raise ValueError(f"Invalid byte range [{start}, {end}) for size {size}.")


__all__ = ["BytesUploadSource", "FileUploadSource", "guess_content_type"]
