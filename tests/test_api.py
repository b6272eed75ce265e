from __future__ import annotations

from collections.abc import Iterator

import pytest
from fakes import FakeS3Client
from fastapi.testclient import TestClient

from s3browser_upload.api.dependencies import get_settings, get_upload_authorization_service
from s3browser_upload.application.services import UploadAuthorizationService
from s3browser_upload.infrastructure.storage import S3MultipartGateway
from s3browser_upload.main import create_app


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, fake_s3: FakeS3Client) -> Iterator[TestClient]:
    monkeypatch.setenv("S3B_UPLOAD_S3_BUCKET", "bucket-a")
    get_upload_authorization_service.cache_clear()
    get_settings.cache_clear()

    service = UploadAuthorizationService(
        S3MultipartGateway(bucket="bucket-a", s3_client_factory=lambda: fake_s3),
        part_size_bytes=10,
        max_file_size_bytes=1_000,
    )
    app = create_app()
    app.dependency_overrides[get_upload_authorization_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client

    get_upload_authorization_service.cache_clear()
    get_settings.cache_clear()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_multipart_flow_over_http(client: TestClient, fake_s3: FakeS3Client) -> None:
    initiated = client.post(
        "/upload/initiate",
        json={"key": "videos/./clip.mp4", "contentType": "video/mp4", "totalSize": 15},
    )
    assert initiated.status_code == 200
    body = initiated.json()
    assert body == {
        "transferId": "upload-1",
        "canonicalKey": "videos/clip.mp4",
        "totalParts": 2,
        "partSize": 10,
    }

    grant = client.post(
        "/upload/part-url",
        json={"transferId": "upload-1", "key": "videos/clip.mp4", "partNumber": 2},
    )
    assert grant.status_code == 200
    assert grant.json()["partNumber"] == 2
    assert grant.json()["url"].startswith("https://s3.example.com/upload_part?")

    fake_s3.record_part("upload-1", 1, '"e1"')
    fake_s3.record_part("upload-1", 2, '"e2"')
    completed = client.post(
        "/upload/complete",
        json={
            "transferId": "upload-1",
            "key": "videos/clip.mp4",
            "parts": [
                {"partNumber": 1, "integrityTag": '"e1"'},
                {"partNumber": 2, "integrityTag": '"e2"'},
            ],
        },
    )
    assert completed.status_code == 200
    assert completed.json() == {"confirmed": True, "canonicalKey": "videos/clip.mp4"}


def test_traversal_key_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/upload/initiate",
        json={"key": "../etc/passwd", "contentType": "text/plain", "totalSize": 5},
    )

    assert response.status_code == 400


def test_unknown_upload_returns_404(client: TestClient) -> None:
    response = client.post(
        "/upload/part-url",
        json={"transferId": "missing", "key": "a.bin", "partNumber": 1},
    )

    assert response.status_code == 404


def test_key_mismatch_returns_403(client: TestClient) -> None:
    client.post(
        "/upload/initiate",
        json={"key": "a.bin", "contentType": "application/octet-stream", "totalSize": 5},
    )

    response = client.post(
        "/upload/part-url",
        json={"transferId": "upload-1", "key": "b.bin", "partNumber": 1},
    )

    assert response.status_code == 403


def test_part_mismatch_returns_409(client: TestClient, fake_s3: FakeS3Client) -> None:
    client.post(
        "/upload/initiate",
        json={"key": "a.bin", "contentType": "application/octet-stream", "totalSize": 5},
    )
    fake_s3.record_part("upload-1", 1, '"stored"')

    response = client.post(
        "/upload/complete",
        json={
            "transferId": "upload-1",
            "key": "a.bin",
            "parts": [{"partNumber": 1, "integrityTag": '"other"'}],
        },
    )

    assert response.status_code == 409


def test_empty_part_list_is_a_validation_error(client: TestClient) -> None:
    response = client.post(
        "/upload/complete",
        json={"transferId": "upload-1", "key": "a.bin", "parts": []},
    )

    assert response.status_code == 422


def test_single_url_and_abort(client: TestClient) -> None:
    single = client.post(
        "/upload/single-url",
        json={"key": "notes.txt", "contentType": "text/plain", "totalSize": 3},
    )
    assert single.status_code == 200
    assert single.json()["canonicalKey"] == "notes.txt"
    assert single.json()["headers"] == {"Content-Type": "text/plain"}

    aborted = client.post("/upload/abort", json={"transferId": "never-started", "key": "a.bin"})
    assert aborted.status_code == 200
    assert aborted.json() == {"acknowledged": True}
