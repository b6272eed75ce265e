"""Server-side authorization of browser uploads against S3."""

from __future__ import annotations

import logging
import posixpath
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    InvalidRequestError,
    PartMismatchError,
    TransferNotFoundError,
)
from s3browser_upload.domain.planning import plan_total_parts
from s3browser_upload.domain.wire_models import (
    BeginTransferResponse,
    DiscardResponse,
    FinalizeResponse,
    GrantResponse,
)
from s3browser_upload.infrastructure.storage import S3MultipartGateway, normalize_etag

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[a-zA-Z0-9\-_./]+$")


def sanitize_key(key: str) -> str:
    """Return the canonical object key or raise `InvalidRequestError`."""

    if not key:
        raise InvalidRequestError("Object key is required.")
    if "\\" in key:
        raise InvalidRequestError("Invalid character in key: backslash not allowed.")
    if key.startswith("/"):
        raise InvalidRequestError("Absolute paths not allowed.")

    normalized = posixpath.normpath(key)
    if normalized.startswith("..") or normalized in {".", ""}:
        raise InvalidRequestError("Directory traversal not allowed.")
    if not _VALID_KEY.match(normalized):
        raise InvalidRequestError("Invalid characters in key.")
    return normalized


@dataclass(slots=True, frozen=True)
class TrackedUpload:
    canonical_key: str
    total_parts: int
    part_size: int
    content_type: str
    total_size: int
    created_at: float


class UploadAuthorizationService:
    """Mint presigned grants for tracked multipart uploads and verify completion."""

    def __init__(
        self,
        gateway: S3MultipartGateway,
        *,
        part_size_bytes: int,
        max_file_size_bytes: int,
        grant_expiry_seconds: int = 900,
        tracker_max_age_seconds: float = 86_400,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if part_size_bytes <= 0:
            raise ValueError("part_size_bytes must be positive.")
        self._gateway = gateway
        self._part_size = part_size_bytes
        self._max_file_size = max_file_size_bytes
        self._grant_expiry_seconds = grant_expiry_seconds
        self._tracker_max_age = tracker_max_age_seconds
        self._clock = clock
        self._tracked: dict[str, TrackedUpload] = {}

    @property
    def active_transfer_count(self) -> int:
        return len(self._tracked)

    def purge_expired(self) -> int:
        """Forget tracked uploads older than the configured maximum age."""

        cutoff = self._clock() - self._tracker_max_age
        expired = [
            transfer_id
            for transfer_id, tracked in self._tracked.items()
            if tracked.created_at < cutoff
        ]
        for transfer_id in expired:
            del self._tracked[transfer_id]
        if expired:
            logger.info("Expired %s tracked upload(s).", len(expired))
        return len(expired)

    async def begin_transfer(
        self, key: str, content_type: str, total_size: int
    ) -> BeginTransferResponse:
        self.purge_expired()
        canonical_key = sanitize_key(key)
        self._check_size(total_size, allow_empty=False)

        transfer_id = await self._gateway.create_multipart_upload(canonical_key, content_type)
        total_parts = plan_total_parts(total_size, self._part_size)
        self._tracked[transfer_id] = TrackedUpload(
            canonical_key=canonical_key,
            total_parts=total_parts,
            part_size=self._part_size,
            content_type=content_type,
            total_size=total_size,
            created_at=self._clock(),
        )
        logger.info(
            "Began multipart upload %s for %s (%s parts).",
            transfer_id,
            canonical_key,
            total_parts,
        )
        return BeginTransferResponse(
            transfer_id=transfer_id,
            canonical_key=canonical_key,
            total_parts=total_parts,
            part_size=self._part_size,
        )

    async def authorize_part(
        self, transfer_id: str, key: str, part_number: int
    ) -> GrantResponse:
        tracked = self._lookup(transfer_id, key)
        if part_number < 1 or part_number > tracked.total_parts:
            raise InvalidRequestError(
                f"Part number {part_number} outside 1..{tracked.total_parts}."
            )

        url = await self._gateway.presign_upload_part(
            tracked.canonical_key,
            transfer_id,
            part_number,
            self._grant_expiry_seconds,
        )
        return GrantResponse(
            url=url,
            part_number=part_number,
            canonical_key=tracked.canonical_key,
            expires_in=self._grant_expiry_seconds,
        )

    async def authorize_single(
        self, key: str, content_type: str, total_size: int
    ) -> GrantResponse:
        canonical_key = sanitize_key(key)
        self._check_size(total_size, allow_empty=True)

        url = await self._gateway.presign_put_object(
            canonical_key,
            content_type,
            self._grant_expiry_seconds,
        )
        return GrantResponse(
            url=url,
            part_number=1,
            canonical_key=canonical_key,
            headers={"Content-Type": content_type},
            expires_in=self._grant_expiry_seconds,
        )

    async def finalize(
        self, transfer_id: str, key: str, parts: Sequence[CompletedPart]
    ) -> FinalizeResponse:
        tracked = self._lookup(transfer_id, key)
        ordered = sorted(parts, key=lambda part: part.part_number)
        claimed = {part.part_number: normalize_etag(part.integrity_tag) for part in ordered}
        if len(claimed) != len(ordered):
            raise InvalidRequestError("Duplicate part numbers in completion request.")
        if set(claimed) != set(range(1, tracked.total_parts + 1)):
            raise PartMismatchError(
                f"Expected parts 1..{tracked.total_parts}, got {sorted(claimed)}."
            )

        recorded = await self._gateway.list_parts(tracked.canonical_key, transfer_id)
        if recorded != claimed:
            missing = sorted(set(claimed) - set(recorded))
            differing = sorted(
                part_number
                for part_number, tag in claimed.items()
                if part_number in recorded and recorded[part_number] != tag
            )
            logger.warning(
                "Part list mismatch for upload %s: missing=%s differing=%s",
                transfer_id,
                missing,
                differing,
            )
            raise PartMismatchError(
                f"Storage recorded different parts (missing={missing}, differing={differing})."
            )

        await self._gateway.complete_multipart_upload(tracked.canonical_key, transfer_id, ordered)
        self._tracked.pop(transfer_id, None)
        logger.info("Completed multipart upload %s for %s.", transfer_id, tracked.canonical_key)
        return FinalizeResponse(confirmed=True, canonical_key=tracked.canonical_key)

    async def discard(self, transfer_id: str, key: str) -> DiscardResponse:
        tracked = self._tracked.pop(transfer_id, None)
        canonical_key = tracked.canonical_key if tracked is not None else sanitize_key(key)
        try:
            await self._gateway.abort_multipart_upload(canonical_key, transfer_id)
        except TransferNotFoundError:
            logger.info("Upload %s already gone; discard acknowledged.", transfer_id)
        else:
            logger.info("Aborted multipart upload %s for %s.", transfer_id, canonical_key)
        return DiscardResponse(acknowledged=True)

    def _lookup(self, transfer_id: str, key: str) -> TrackedUpload:
        self.purge_expired()
        tracked = self._tracked.get(transfer_id)
        if tracked is None:
            raise TransferNotFoundError(f"Upload {transfer_id} not found or expired.")
        if key != tracked.canonical_key:
            raise AuthRejectedError("Key does not match the upload.")
        return tracked

    def _check_size(self, total_size: int, *, allow_empty: bool) -> None:
        if total_size < 0 or (total_size == 0 and not allow_empty):
            raise InvalidRequestError("A valid totalSize is required.")
        if total_size > self._max_file_size:
            raise InvalidRequestError(
                f"File size exceeds maximum of {self._max_file_size} bytes."
            )


__all__ = ["TrackedUpload", "UploadAuthorizationService", "sanitize_key"]
