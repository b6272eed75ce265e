"""Streams part bytes to presigned storage URLs over HTTP."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import suppress

import httpx

from s3browser_upload.domain.errors import (
    MissingIntegrityTagError,
    NetworkError,
    TransferCancelledError,
)
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.ports import BytesProgressCallback, PartTransport

_DEFAULT_TIMEOUT_SECONDS = 300.0
_DEFAULT_STREAM_CHUNK_BYTES = 256 * 1024


class HttpPartTransporter(PartTransport):
    """PUT one part's bytes to its granted URL and return the ETag."""

    def __init__(
        self,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        stream_chunk_bytes: int = _DEFAULT_STREAM_CHUNK_BYTES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._stream_chunk_bytes = max(1, stream_chunk_bytes)
        self._http = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def close(self) -> None:
        """Release underlying HTTP resources."""

        await self._http.aclose()

    async def transport(
        self,
        grant: AuthorizationGrant,
        data: bytes,
        on_progress: BytesProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Upload `data` and return the storage integrity tag.

        Raises `TransferCancelledError` when `cancel_event` fires mid-request,
        `NetworkError` on transport failures, timeouts or non-2xx answers.
        """

        if cancel_event is not None and cancel_event.is_set():
            raise TransferCancelledError(f"Part {grant.part_number} upload cancelled.")

        headers = grant.headers
        url = grant.consume()
        request_task = asyncio.create_task(
            self._put(url, data, headers, on_progress),
            name=f"part-upload-{grant.part_number}",
        )
        if cancel_event is None:
            response = await request_task
        else:
            response = await self._await_or_cancel(request_task, cancel_event, grant)

        return self._extract_integrity_tag(response, grant.part_number)

    async def _await_or_cancel(
        self,
        request_task: asyncio.Task[httpx.Response],
        cancel_event: asyncio.Event,
        grant: AuthorizationGrant,
    ) -> httpx.Response:
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not cancel_task.done():
                cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
                with suppress(asyncio.CancelledError):
                    await request_task

        if request_task not in done or request_task.cancelled():
            raise TransferCancelledError(f"Part {grant.part_number} upload cancelled.")
        return request_task.result()

    async def _put(
        self,
        url: str,
        data: bytes,
        headers: dict[str, str],
        on_progress: BytesProgressCallback | None,
    ) -> httpx.Response:
        # Presigned PUTs reject chunked transfer encoding.
        request_headers = {**headers, "Content-Length": str(len(data))}
        try:
            response = await self._http.put(
                url,
                content=self._stream(data, on_progress),
                headers=request_headers,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"PUT part timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"PUT part failed: {exc}") from exc

        if not response.is_success:
            text = response.text.strip() or "<no response body>"
            raise NetworkError(
                f"PUT part failed: {response.status_code} {text[:500]}",
                status_code=response.status_code,
            )
        return response

    async def _stream(
        self,
        data: bytes,
        on_progress: BytesProgressCallback | None,
    ) -> AsyncIterator[bytes]:
        sent = 0
        view = memoryview(data)
        for offset in range(0, len(data), self._stream_chunk_bytes):
            chunk = bytes(view[offset : offset + self._stream_chunk_bytes])
            yield chunk
            sent += len(chunk)
            if on_progress is not None:
                on_progress(sent)

    def _extract_integrity_tag(self, response: httpx.Response, part_number: int) -> str:
        etag = response.headers.get("ETag")
        if etag is None or not etag.strip():
            raise MissingIntegrityTagError(
                f"Storage accepted part {part_number} but returned no ETag."
            )
        return etag.strip()


__all__ = ["HttpPartTransporter"]
