from __future__ import annotations

import asyncio

import pytest
from fakes import FakeS3Client, client_error

from s3browser_upload.application.services import UploadAuthorizationService
from s3browser_upload.application.services.upload_authorization_service import sanitize_key
from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    InvalidRequestError,
    NetworkError,
    PartMismatchError,
    TransferNotFoundError,
)
from s3browser_upload.infrastructure.storage import S3MultipartGateway

_PART_SIZE = 10


class ManualClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def _service(
    fake: FakeS3Client,
    clock: ManualClock | None = None,
) -> UploadAuthorizationService:
    return UploadAuthorizationService(
        S3MultipartGateway(bucket="bucket-a", s3_client_factory=lambda: fake),
        part_size_bytes=_PART_SIZE,
        max_file_size_bytes=1_000,
        grant_expiry_seconds=600,
        tracker_max_age_seconds=3_600,
        clock=clock or ManualClock(),
    )


@pytest.mark.parametrize(
    ("raw", "canonical"),
    [
        ("report.pdf", "report.pdf"),
        ("docs/./2024/report.pdf", "docs/2024/report.pdf"),
        ("docs//report.pdf", "docs/report.pdf"),
        ("a/b/../c.txt", "a/c.txt"),
    ],
)
def test_sanitize_key_normalizes_paths(raw: str, canonical: str) -> None:
    assert sanitize_key(raw) == canonical


@pytest.mark.parametrize(
    "raw",
    ["", "/etc/passwd", "..", "../secret", "a/../../secret", ".", "a\\b.txt", "white space", "ümlaut"],
)
def test_sanitize_key_rejects_unsafe_keys(raw: str) -> None:
    with pytest.raises(InvalidRequestError):
        sanitize_key(raw)


def test_begin_transfer_tracks_upload_and_plans_parts() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    response = asyncio.run(service.begin_transfer("docs/./a.bin", "video/mp4", 25))

    assert response.transfer_id == "upload-1"
    assert response.canonical_key == "docs/a.bin"
    assert response.total_parts == 3
    assert response.part_size == _PART_SIZE
    assert fake.uploads["upload-1"]["content_type"] == "video/mp4"
    assert service.active_transfer_count == 1


@pytest.mark.parametrize("total_size", [0, -1, 1_001])
def test_begin_transfer_rejects_invalid_sizes(total_size: int) -> None:
    fake = FakeS3Client()

    with pytest.raises(InvalidRequestError):
        asyncio.run(_service(fake).begin_transfer("a.bin", "application/octet-stream", total_size))

    assert fake.uploads == {}


def test_authorize_part_presigns_upload_part() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario():  # type: ignore[no-untyped-def]
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 25)
        return await service.authorize_part(begun.transfer_id, "a.bin", 3)

    grant = asyncio.run(scenario())

    assert grant.part_number == 3
    assert grant.expires_in == 600
    assert fake.presign_calls == [
        (
            "upload_part",
            {"Bucket": "bucket-a", "Key": "a.bin", "UploadId": "upload-1", "PartNumber": 3},
            600,
        )
    ]


def test_authorize_part_validates_part_number_and_key() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario() -> None:
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 25)
        with pytest.raises(InvalidRequestError):
            await service.authorize_part(begun.transfer_id, "a.bin", 4)
        with pytest.raises(InvalidRequestError):
            await service.authorize_part(begun.transfer_id, "a.bin", 0)
        with pytest.raises(AuthRejectedError):
            await service.authorize_part(begun.transfer_id, "other.bin", 1)
        with pytest.raises(TransferNotFoundError):
            await service.authorize_part("unknown", "a.bin", 1)

    asyncio.run(scenario())

    assert fake.presign_calls == []


def test_tracked_uploads_expire() -> None:
    fake = FakeS3Client()
    clock = ManualClock()
    service = _service(fake, clock)

    begun = asyncio.run(service.begin_transfer("a.bin", "application/octet-stream", 25))
    clock.now += 3_601

    with pytest.raises(TransferNotFoundError):
        asyncio.run(service.authorize_part(begun.transfer_id, "a.bin", 1))
    assert service.active_transfer_count == 0


def test_authorize_single_signs_content_type() -> None:
    fake = FakeS3Client()

    grant = asyncio.run(_service(fake).authorize_single("./notes.txt", "text/plain", 0))

    assert grant.canonical_key == "notes.txt"
    assert grant.headers == {"Content-Type": "text/plain"}
    assert fake.presign_calls[0][0] == "put_object"
    assert fake.presign_calls[0][1]["ContentType"] == "text/plain"


def test_finalize_completes_when_parts_match_storage() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario():  # type: ignore[no-untyped-def]
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 25)
        for number in (1, 2, 3):
            fake.record_part(begun.transfer_id, number, f'"etag-{number}"')
        parts = [CompletedPart(number, f'"etag-{number}"') for number in (3, 1, 2)]
        return await service.finalize(begun.transfer_id, "a.bin", parts)

    response = asyncio.run(scenario())

    assert response.confirmed is True
    assert fake.list_calls == 2
    assert fake.completed["upload-1"] == [
        {"PartNumber": 1, "ETag": '"etag-1"'},
        {"PartNumber": 2, "ETag": '"etag-2"'},
        {"PartNumber": 3, "ETag": '"etag-3"'},
    ]
    assert service.active_transfer_count == 0


def test_finalize_rejects_tag_mismatch_and_keeps_tracking() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario() -> None:
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 15)
        fake.record_part(begun.transfer_id, 1, '"etag-1"')
        fake.record_part(begun.transfer_id, 2, '"etag-2"')
        with pytest.raises(PartMismatchError):
            await service.finalize(
                begun.transfer_id,
                "a.bin",
                [CompletedPart(1, '"etag-1"'), CompletedPart(2, '"stale"')],
            )

    asyncio.run(scenario())

    assert fake.completed == {}
    assert service.active_transfer_count == 1


def test_finalize_rejects_incomplete_part_list() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario() -> None:
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 15)
        fake.record_part(begun.transfer_id, 1, '"etag-1"')
        with pytest.raises(PartMismatchError):
            await service.finalize(begun.transfer_id, "a.bin", [CompletedPart(1, '"etag-1"')])

    asyncio.run(scenario())

    assert fake.list_calls == 0


def test_storage_failures_become_network_errors() -> None:
    fake = FakeS3Client()
    fake.complete_error = client_error("InternalError", "CompleteMultipartUpload", 500)
    service = _service(fake)

    async def scenario() -> None:
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 5)
        fake.record_part(begun.transfer_id, 1, '"etag-1"')
        await service.finalize(begun.transfer_id, "a.bin", [CompletedPart(1, '"etag-1"')])

    with pytest.raises(NetworkError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.status_code == 500
    assert service.active_transfer_count == 1


def test_discard_is_idempotent() -> None:
    fake = FakeS3Client()
    service = _service(fake)

    async def scenario() -> None:
        begun = await service.begin_transfer("a.bin", "application/octet-stream", 25)
        first = await service.discard(begun.transfer_id, "a.bin")
        second = await service.discard(begun.transfer_id, "a.bin")
        assert first.acknowledged is True
        assert second.acknowledged is True

    asyncio.run(scenario())

    assert fake.aborted == ["upload-1"]
    assert service.active_transfer_count == 0
