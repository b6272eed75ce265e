from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fakes import FakeS3Client

from s3browser_upload.domain.errors import NetworkError
from s3browser_upload.infrastructure.storage import S3MultipartGateway


class StuckMarkerS3Client(FakeS3Client):
    """Reports truncated listings without a NextPartNumberMarker."""

    def list_parts(
        self, *, Bucket: str, Key: str, UploadId: str, PartNumberMarker: int
    ) -> dict[str, Any]:
        self.list_calls += 1
        return {"Parts": [{"PartNumber": 1, "ETag": '"etag-1"'}], "IsTruncated": True}


def test_list_parts_follows_markers_and_normalizes_etags() -> None:
    fake = FakeS3Client(list_page_size=2)
    gateway = S3MultipartGateway(bucket="bucket-a", s3_client_factory=lambda: fake)

    async def scenario() -> dict[int, str]:
        upload_id = await gateway.create_multipart_upload("a.bin", "application/octet-stream")
        for number in range(1, 6):
            fake.record_part(upload_id, number, f'"etag-{number}"')
        return await gateway.list_parts("a.bin", upload_id)

    recorded = asyncio.run(scenario())

    assert recorded == {number: f"etag-{number}" for number in range(1, 6)}
    assert fake.list_calls == 3


def test_list_parts_rejects_a_marker_that_does_not_advance() -> None:
    fake = StuckMarkerS3Client()
    gateway = S3MultipartGateway(bucket="bucket-a", s3_client_factory=lambda: fake)

    with pytest.raises(NetworkError, match="did not advance"):
        asyncio.run(gateway.list_parts("a.bin", "upload-1"))

    assert fake.list_calls == 1
