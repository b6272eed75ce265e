"""In-memory progress store implementation."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime

from s3browser_upload.domain.entities import PersistedProgress
from s3browser_upload.domain.ports import ProgressStore


class InMemoryProgressStore(ProgressStore):
    """Simple progress store for local development and tests."""

    def __init__(self) -> None:
        self._by_persistence_id: dict[str, PersistedProgress] = {}
        self._lock = asyncio.Lock()

    async def put(self, progress: PersistedProgress) -> PersistedProgress:
        """Persist progress, keeping the original creation time on overwrite."""

        now = datetime.now(tz=UTC)
        async with self._lock:
            existing = self._by_persistence_id.get(progress.persistence_id)
            created_at = progress.created_at
            if existing is not None and existing.created_at is not None:
                created_at = existing.created_at
            stored = replace(
                progress,
                completed_parts=dict(progress.completed_parts),
                created_at=created_at or now,
                updated_at=progress.updated_at or now,
            )
            self._by_persistence_id[progress.persistence_id] = stored
            return stored

    async def get(self, persistence_id: str) -> PersistedProgress | None:
        return self._by_persistence_id.get(persistence_id)

    async def delete(self, persistence_id: str) -> None:
        async with self._lock:
            self._by_persistence_id.pop(persistence_id, None)

    async def find_by_fingerprint(
        self, file_name: str, file_size: int, file_last_modified: float | None
    ) -> PersistedProgress | None:
        for progress in await self.list_pending():
            if (
                progress.file_name == file_name
                and progress.file_size == file_size
                and progress.file_last_modified == file_last_modified
            ):
                return progress
        return None

    async def list_pending(self) -> list[PersistedProgress]:
        """Return stored progress, most recently updated first."""

        async with self._lock:
            entries = list(self._by_persistence_id.values())
        return sorted(entries, key=_recency, reverse=True)


def _recency(progress: PersistedProgress) -> datetime:
    return progress.updated_at or progress.created_at or datetime.min.replace(tzinfo=UTC)


__all__ = ["InMemoryProgressStore"]
