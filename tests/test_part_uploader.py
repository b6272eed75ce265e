from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from s3browser_upload.application.services import RetryingPartUploader
from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    NetworkError,
    PartUploadFailedError,
    TransferCancelledError,
)
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.wire_models import BeginTransferResponse, FinalizeResponse


class FakeAuthorization:
    def __init__(self, reject_parts: Sequence[int] = ()) -> None:
        self.part_requests: list[int] = []
        self.single_requests = 0
        self._reject_parts = set(reject_parts)

    async def begin_transfer(
        self, key: str, content_type: str, total_size: int
    ) -> BeginTransferResponse:
        raise NotImplementedError

    async def authorize_part(
        self, transfer_id: str, key: str, part_number: int
    ) -> AuthorizationGrant:
        self.part_requests.append(part_number)
        if part_number in self._reject_parts:
            raise AuthRejectedError("forbidden")
        return AuthorizationGrant(
            f"https://s3/{key}?part={part_number}&n={len(self.part_requests)}", part_number
        )

    async def authorize_single(
        self, key: str, content_type: str, total_size: int
    ) -> tuple[str, AuthorizationGrant]:
        self.single_requests += 1
        return f"canonical/{key}", AuthorizationGrant(f"https://s3/{key}", 1)

    async def finalize(
        self, transfer_id: str, key: str, parts: Sequence[CompletedPart]
    ) -> FinalizeResponse:
        raise NotImplementedError

    async def discard(self, transfer_id: str, key: str) -> bool:
        raise NotImplementedError


class FlakyTransport:
    """Fails the first `failures` attempts with a transient error."""

    def __init__(self, failures: int = 0) -> None:
        self._failures = failures
        self.urls: list[str] = []

    async def transport(self, grant, data, on_progress=None, cancel_event=None):  # type: ignore[no-untyped-def]
        self.urls.append(grant.consume())
        if on_progress is not None:
            on_progress(len(data) // 2)
        if len(self.urls) <= self._failures:
            raise NetworkError("connection reset", status_code=503)
        if on_progress is not None:
            on_progress(len(data))
        return f'"etag-{grant.part_number}"'


def _uploader(authorization, transport, **kwargs) -> RetryingPartUploader:  # type: ignore[no-untyped-def]
    kwargs.setdefault("retry_base_delay_seconds", 0.0)
    kwargs.setdefault("retry_max_delay_seconds", 0.0)
    return RetryingPartUploader(authorization, transport, **kwargs)


def test_transient_failure_is_retried_with_a_fresh_grant() -> None:
    authorization = FakeAuthorization()
    transport = FlakyTransport(failures=1)
    progress: list[int] = []

    result = asyncio.run(
        _uploader(authorization, transport).upload_part(
            "upload-1", "a.bin", 2, b"x" * 10, on_progress=progress.append
        )
    )

    assert result.integrity_tag == '"etag-2"'
    assert result.attempts == 2
    assert result.retries == 1
    assert authorization.part_requests == [2, 2]
    assert len(set(transport.urls)) == 2
    assert progress == [5, 0, 5, 10]


def test_retries_are_bounded() -> None:
    authorization = FakeAuthorization()
    transport = FlakyTransport(failures=100)

    with pytest.raises(PartUploadFailedError) as exc_info:
        asyncio.run(
            _uploader(authorization, transport, max_attempts=3).upload_part(
                "upload-1", "a.bin", 4, b"data"
            )
        )

    assert exc_info.value.part_number == 4
    assert isinstance(exc_info.value.last_error, NetworkError)
    assert len(transport.urls) == 3


def test_auth_rejection_is_not_retried() -> None:
    authorization = FakeAuthorization(reject_parts=[1])
    transport = FlakyTransport()

    with pytest.raises(AuthRejectedError):
        asyncio.run(_uploader(authorization, transport).upload_part("u", "a.bin", 1, b"x"))

    assert authorization.part_requests == [1]
    assert transport.urls == []


def test_cancellation_during_backoff_stops_retrying() -> None:
    authorization = FakeAuthorization()
    transport = FlakyTransport(failures=100)

    async def scenario() -> None:
        cancel_event = asyncio.Event()
        uploader = _uploader(
            authorization,
            transport,
            retry_base_delay_seconds=30.0,
            retry_max_delay_seconds=30.0,
        )
        task = asyncio.create_task(
            uploader.upload_part("u", "a.bin", 1, b"x", cancel_event=cancel_event)
        )
        await asyncio.sleep(0.05)
        cancel_event.set()
        with pytest.raises(TransferCancelledError):
            await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(scenario())

    assert len(transport.urls) == 1


def test_cancelled_before_first_attempt_requests_no_grant() -> None:
    authorization = FakeAuthorization()

    async def scenario() -> None:
        cancel_event = asyncio.Event()
        cancel_event.set()
        await _uploader(authorization, FlakyTransport()).upload_part(
            "u", "a.bin", 1, b"x", cancel_event=cancel_event
        )

    with pytest.raises(TransferCancelledError):
        asyncio.run(scenario())

    assert authorization.part_requests == []


def test_retry_delay_grows_exponentially_and_is_capped() -> None:
    uploader = RetryingPartUploader(
        FakeAuthorization(),
        FlakyTransport(),
        retry_base_delay_seconds=1.0,
        retry_max_delay_seconds=5.0,
    )

    assert [uploader.retry_delay(attempt) for attempt in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_upload_single_returns_canonical_key() -> None:
    authorization = FakeAuthorization()
    transport = FlakyTransport(failures=1)

    canonical_key, result = asyncio.run(
        _uploader(authorization, transport).upload_single("notes.txt", "text/plain", b"hello")
    )

    assert canonical_key == "canonical/notes.txt"
    assert result.part_number == 1
    assert authorization.single_requests == 2
