"""Part upload with bounded retry and a fresh grant per attempt."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from s3browser_upload.domain.entities import PartUploadResult
from s3browser_upload.domain.errors import (
    NetworkError,
    PartUploadFailedError,
    TransferCancelledError,
)
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.options import (
    DEFAULT_MAX_PART_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
)
from s3browser_upload.domain.ports import (
    AuthorizationService,
    BytesProgressCallback,
    PartTransport,
)

logger = logging.getLogger(__name__)

GrantFactory = Callable[[], Awaitable[AuthorizationGrant]]


class RetryingPartUploader:
    """Upload one part, retrying transient failures with exponential backoff.

    Every attempt checks cancellation, requests a new grant and runs the
    transport. Only `NetworkError` is retried; anything else propagates at once.
    """

    def __init__(
        self,
        authorization: AuthorizationService,
        transport: PartTransport,
        *,
        max_attempts: int = DEFAULT_MAX_PART_ATTEMPTS,
        retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS,
        retry_max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS,
        retry_jitter_ratio: float = 0.0,
    ) -> None:
        self._authorization = authorization
        self._transport = transport
        self._max_attempts = max(1, max_attempts)
        self._retry_base_delay_seconds = max(retry_base_delay_seconds, 0.0)
        self._retry_max_delay_seconds = max(
            retry_max_delay_seconds,
            self._retry_base_delay_seconds,
        )
        self._retry_jitter_ratio = max(min(retry_jitter_ratio, 1.0), 0.0)

    async def upload_part(
        self,
        transfer_id: str,
        key: str,
        part_number: int,
        data: bytes,
        on_progress: BytesProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        max_attempts: int | None = None,
    ) -> PartUploadResult:
        """Upload one multipart part and return its integrity tag."""

        async def authorize() -> AuthorizationGrant:
            return await self._authorization.authorize_part(transfer_id, key, part_number)

        return await self._upload_with_retry(
            part_number=part_number,
            authorize=authorize,
            data=data,
            on_progress=on_progress,
            cancel_event=cancel_event,
            max_attempts=max_attempts,
        )

    async def upload_single(
        self,
        key: str,
        content_type: str,
        data: bytes,
        on_progress: BytesProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        max_attempts: int | None = None,
    ) -> tuple[str, PartUploadResult]:
        """Upload a whole object with one PUT; returns canonical key and result."""

        canonical_keys: list[str] = []

        async def authorize() -> AuthorizationGrant:
            canonical_key, grant = await self._authorization.authorize_single(
                key, content_type, len(data)
            )
            canonical_keys.append(canonical_key)
            return grant

        result = await self._upload_with_retry(
            part_number=1,
            authorize=authorize,
            data=data,
            on_progress=on_progress,
            cancel_event=cancel_event,
            max_attempts=max_attempts,
        )
        return canonical_keys[-1], result

    async def _upload_with_retry(
        self,
        *,
        part_number: int,
        authorize: GrantFactory,
        data: bytes,
        on_progress: BytesProgressCallback | None,
        cancel_event: asyncio.Event | None,
        max_attempts: int | None,
    ) -> PartUploadResult:
        attempts_allowed = self._max_attempts if max_attempts is None else max(1, max_attempts)
        last_error: NetworkError | None = None

        for attempt in range(attempts_allowed):
            self._ensure_not_cancelled(cancel_event, part_number)
            if attempt > 0 and on_progress is not None:
                on_progress(0)

            try:
                grant = await authorize()
                integrity_tag = await self._transport.transport(
                    grant,
                    data,
                    on_progress=on_progress,
                    cancel_event=cancel_event,
                )
            except NetworkError as exc:
                last_error = exc
                if attempt + 1 >= attempts_allowed:
                    break
                delay = self.retry_delay(attempt)
                logger.warning(
                    "Part %s attempt %s/%s failed, retrying in %.2fs: %s",
                    part_number,
                    attempt + 1,
                    attempts_allowed,
                    delay,
                    exc,
                )
                await self._backoff(delay, cancel_event, part_number)
                continue

            return PartUploadResult(
                part_number=part_number,
                integrity_tag=integrity_tag,
                attempts=attempt + 1,
            )

        raise PartUploadFailedError(part_number, last_error)

    def retry_delay(self, attempt: int) -> float:
        """Return the backoff after 0-based `attempt`: `base * 2**attempt`, capped."""

        base_delay = self._retry_base_delay_seconds * (2 ** max(attempt, 0))
        capped_delay = min(base_delay, self._retry_max_delay_seconds)
        if self._retry_jitter_ratio > 0:
            jitter_window = capped_delay * self._retry_jitter_ratio
            jitter = random.uniform(-jitter_window, jitter_window)
            capped_delay = max(capped_delay + jitter, self._retry_base_delay_seconds)
        return capped_delay

    async def _backoff(
        self,
        delay: float,
        cancel_event: asyncio.Event | None,
        part_number: int,
    ) -> None:
        """Sleep `delay` seconds, waking early with an error on cancellation."""

        if cancel_event is None:
            await asyncio.sleep(delay)
            return

        self._ensure_not_cancelled(cancel_event, part_number)
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise TransferCancelledError(f"Part {part_number} upload cancelled during backoff.")

    def _ensure_not_cancelled(self, cancel_event: asyncio.Event | None, part_number: int) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise TransferCancelledError(f"Part {part_number} upload cancelled.")


__all__ = ["RetryingPartUploader"]
