"""Ports for the authorization service, part transport, progress store and sources."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from s3browser_upload.domain.entities import CompletedPart, PersistedProgress
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.wire_models import BeginTransferResponse, FinalizeResponse

BytesProgressCallback = Callable[[int], None]


class AuthorizationService(Protocol):
    """Trusted intermediary minting upload grants and finalizing transfers."""

    async def begin_transfer(
        self, key: str, content_type: str, total_size: int
    ) -> BeginTransferResponse:
        """Create a multipart transfer and return its identifier and layout."""

    async def authorize_part(
        self, transfer_id: str, key: str, part_number: int
    ) -> AuthorizationGrant:
        """Return a fresh single-use grant for one part."""

    async def authorize_single(
        self, key: str, content_type: str, total_size: int
    ) -> tuple[str, AuthorizationGrant]:
        """Return canonical key and a single-use grant for a whole-object PUT."""

    async def finalize(
        self, transfer_id: str, key: str, parts: Sequence[CompletedPart]
    ) -> FinalizeResponse:
        """Assemble uploaded parts (ascending part order) into the final object."""

    async def discard(self, transfer_id: str, key: str) -> bool:
        """Release backend resources of an abandoned transfer. Idempotent."""


class PartTransport(Protocol):
    """Executes one authorized upload of one part's bytes."""

    async def transport(
        self,
        grant: AuthorizationGrant,
        data: bytes,
        on_progress: BytesProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Upload `data` to the granted URL and return the integrity tag."""


@runtime_checkable
class ProgressStore(Protocol):
    """Durable key-value store for resumable transfer progress."""

    async def put(self, progress: PersistedProgress) -> PersistedProgress:
        """Create or overwrite progress by persistence id."""

    async def get(self, persistence_id: str) -> PersistedProgress | None:
        """Return progress by persistence id."""

    async def delete(self, persistence_id: str) -> None:
        """Erase progress by persistence id. Missing ids are ignored."""

    async def find_by_fingerprint(
        self, file_name: str, file_size: int, file_last_modified: float | None
    ) -> PersistedProgress | None:
        """Return progress recorded for the same source file, if any."""

    async def list_pending(self) -> list[PersistedProgress]:
        """Return all stored progress, newest first."""


class UploadSource(Protocol):
    """Readable file handed to the orchestrator."""

    @property
    def name(self) -> str:
        """Display name of the source."""

    @property
    def size(self) -> int:
        """Total size in bytes."""

    @property
    def content_type(self) -> str:
        """MIME type used for the destination object."""

    @property
    def last_modified(self) -> float | None:
        """Modification timestamp used to fingerprint resumable uploads."""

    async def read_range(self, start: int, end: int) -> bytes:
        """Return bytes `[start, end)`."""


__all__ = [
    "AuthorizationService",
    "BytesProgressCallback",
    "PartTransport",
    "ProgressStore",
    "UploadSource",
]
