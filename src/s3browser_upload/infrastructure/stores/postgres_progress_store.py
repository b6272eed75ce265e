"""PostgreSQL progress store implementation."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from s3browser_upload.domain.entities import PersistedProgress
from s3browser_upload.domain.errors import ProgressStoreError
from s3browser_upload.domain.ports import ProgressStore

_STORE_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)

_SELECT_COLUMNS = """
    persistence_id,
    transfer_id,
    destination_key,
    total_parts,
    part_size,
    completed_parts,
    file_name,
    file_size,
    file_last_modified,
    content_type,
    created_at,
    updated_at
"""


class PostgresProgressStore(ProgressStore):
    """Resumable progress backed by one PostgreSQL table."""

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def put(self, progress: PersistedProgress) -> PersistedProgress:
        """Upsert progress; `created_at` survives overwrites."""

        completed_json = json.dumps(
            [
                {"partNumber": number, "integrityTag": tag}
                for number, tag in sorted(progress.completed_parts.items())
            ]
        )
        try:
            pool = await self._get_pool()
            row = await pool.fetchrow(
                f"""
                INSERT INTO pending_uploads (
                    persistence_id,
                    transfer_id,
                    destination_key,
                    total_parts,
                    part_size,
                    completed_parts,
                    file_name,
                    file_size,
                    file_last_modified,
                    content_type,
                    created_at,
                    updated_at
                )
                VALUES (
                    $1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9, $10,
                    COALESCE($11, NOW()), COALESCE($12, NOW())
                )
                ON CONFLICT (persistence_id) DO UPDATE
                SET
                    transfer_id = EXCLUDED.transfer_id,
                    destination_key = EXCLUDED.destination_key,
                    total_parts = EXCLUDED.total_parts,
                    part_size = EXCLUDED.part_size,
                    completed_parts = EXCLUDED.completed_parts,
                    file_name = EXCLUDED.file_name,
                    file_size = EXCLUDED.file_size,
                    file_last_modified = EXCLUDED.file_last_modified,
                    content_type = EXCLUDED.content_type,
                    updated_at = EXCLUDED.updated_at
                RETURNING {_SELECT_COLUMNS}
                """,
                progress.persistence_id,
                progress.transfer_id,
                progress.destination_key,
                progress.total_parts,
                progress.part_size,
                completed_json,
                progress.file_name,
                progress.file_size,
                progress.file_last_modified,
                progress.content_type,
                progress.created_at,
                progress.updated_at,
            )
        except _STORE_ERRORS as exc:
            raise ProgressStoreError(
                f"Persisting progress {progress.persistence_id} failed: {exc}"
            ) from exc
        assert row is not None
        return self._to_entity(row)

    async def get(self, persistence_id: str) -> PersistedProgress | None:
        row = await self._fetchrow(
            f"SELECT {_SELECT_COLUMNS} FROM pending_uploads WHERE persistence_id = $1",
            persistence_id,
        )
        if row is None:
            return None
        return self._to_entity(row)

    async def delete(self, persistence_id: str) -> None:
        try:
            pool = await self._get_pool()
            await pool.execute(
                "DELETE FROM pending_uploads WHERE persistence_id = $1",
                persistence_id,
            )
        except _STORE_ERRORS as exc:
            raise ProgressStoreError(
                f"Erasing progress {persistence_id} failed: {exc}"
            ) from exc

    async def find_by_fingerprint(
        self, file_name: str, file_size: int, file_last_modified: float | None
    ) -> PersistedProgress | None:
        row = await self._fetchrow(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM pending_uploads
            WHERE file_name = $1
              AND file_size = $2
              AND file_last_modified IS NOT DISTINCT FROM $3
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            file_name,
            file_size,
            file_last_modified,
        )
        if row is None:
            return None
        return self._to_entity(row)

    async def list_pending(self) -> list[PersistedProgress]:
        """Return stored progress, most recently updated first."""

        try:
            pool = await self._get_pool()
            rows = await pool.fetch(
                f"SELECT {_SELECT_COLUMNS} FROM pending_uploads "
                "ORDER BY updated_at DESC, persistence_id ASC",
            )
        except _STORE_ERRORS as exc:
            raise ProgressStoreError(f"Listing progress failed: {exc}") from exc
        return [self._to_entity(row) for row in rows]

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        try:
            pool = await self._get_pool()
            return await pool.fetchrow(query, *args)
        except _STORE_ERRORS as exc:
            raise ProgressStoreError(f"Reading progress failed: {exc}") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS pending_uploads (
                persistence_id TEXT PRIMARY KEY,
                transfer_id TEXT NOT NULL,
                destination_key TEXT NOT NULL,
                total_parts INTEGER NOT NULL,
                part_size BIGINT NOT NULL,
                completed_parts JSONB NOT NULL DEFAULT '[]'::jsonb,
                file_name TEXT,
                file_size BIGINT,
                file_last_modified DOUBLE PRECISION,
                content_type TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            CREATE INDEX IF NOT EXISTS idx_pending_uploads_fingerprint
                ON pending_uploads (file_name, file_size);
            """
        )

    def _to_entity(self, row: asyncpg.Record) -> PersistedProgress:
        return PersistedProgress(
            persistence_id=str(row["persistence_id"]),
            transfer_id=str(row["transfer_id"]),
            destination_key=str(row["destination_key"]),
            total_parts=int(row["total_parts"]),
            part_size=int(row["part_size"]),
            completed_parts=self._decode_parts(row["completed_parts"]),
            file_name=row["file_name"],
            file_size=None if row["file_size"] is None else int(row["file_size"]),
            file_last_modified=row["file_last_modified"],
            content_type=str(row["content_type"]),
            created_at=self._as_datetime(row["created_at"]),
            updated_at=self._as_datetime(row["updated_at"]),
        )

    def _decode_parts(self, value: object) -> dict[int, str]:
        decoded = json.loads(value) if isinstance(value, str) else value
        if not isinstance(decoded, list):
            raise TypeError(f"Expected list payload for completed_parts, got {type(decoded)!r}.")
        return {int(item["partNumber"]): str(item["integrityTag"]) for item in decoded}

    def _as_datetime(self, value: object) -> datetime | None:
        if value is None or isinstance(value, datetime):
            return value
        raise TypeError(f"Expected optional datetime value, got {type(value)!r}.")


__all__ = ["PostgresProgressStore"]
