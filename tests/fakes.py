from __future__ import annotations

import threading
from typing import Any

from botocore.exceptions import ClientError


def client_error(code: str, operation: str, status_code: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} raised by fake"},
            "ResponseMetadata": {"HTTPStatusCode": status_code},
        },
        operation,
    )


class FakeS3Client:
    """Thread-safe fake of the S3 multipart and presign operations."""

    def __init__(self, list_page_size: int = 2) -> None:
        self._lock = threading.Lock()
        self._list_page_size = list_page_size
        self._upload_counter = 0
        self.uploads: dict[str, dict[str, Any]] = {}
        self.completed: dict[str, list[dict[str, str | int]]] = {}
        self.aborted: list[str] = []
        self.presign_calls: list[tuple[str, dict[str, Any], int]] = []
        self.list_calls = 0
        self.complete_error: ClientError | None = None

    def record_part(self, upload_id: str, part_number: int, etag: str) -> None:
        with self._lock:
            self.uploads[upload_id]["parts"][part_number] = etag

    def create_multipart_upload(
        self, *, Bucket: str, Key: str, ContentType: str
    ) -> dict[str, Any]:
        with self._lock:
            self._upload_counter += 1
            upload_id = f"upload-{self._upload_counter}"
            self.uploads[upload_id] = {
                "bucket": Bucket,
                "key": Key,
                "content_type": ContentType,
                "parts": {},
            }
        return {"UploadId": upload_id, "Bucket": Bucket, "Key": Key}

    def list_parts(
        self, *, Bucket: str, Key: str, UploadId: str, PartNumberMarker: int
    ) -> dict[str, Any]:
        with self._lock:
            self.list_calls += 1
            upload = self.uploads.get(UploadId)
            if upload is None:
                raise client_error("NoSuchUpload", "ListParts", 404)
            numbers = sorted(number for number in upload["parts"] if number > PartNumberMarker)
            page = numbers[: self._list_page_size]
            response: dict[str, Any] = {
                "Parts": [
                    {"PartNumber": number, "ETag": upload["parts"][number], "Size": 1}
                    for number in page
                ],
                "IsTruncated": len(numbers) > len(page),
            }
            if response["IsTruncated"]:
                response["NextPartNumberMarker"] = page[-1]
            return response

    def complete_multipart_upload(
        self,
        *,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: dict[str, list[dict[str, str | int]]],
    ) -> dict[str, Any]:
        if self.complete_error is not None:
            raise self.complete_error
        with self._lock:
            if UploadId not in self.uploads:
                raise client_error("NoSuchUpload", "CompleteMultipartUpload", 404)
            self.completed[UploadId] = MultipartUpload["Parts"]
            del self.uploads[UploadId]
        return {"Bucket": Bucket, "Key": Key, "ETag": '"final"'}

    def abort_multipart_upload(self, *, Bucket: str, Key: str, UploadId: str) -> dict[str, Any]:
        with self._lock:
            if UploadId not in self.uploads:
                raise client_error("NoSuchUpload", "AbortMultipartUpload", 404)
            del self.uploads[UploadId]
            self.aborted.append(UploadId)
        return {}

    def generate_presigned_url(
        self, ClientMethod: str, Params: dict[str, Any], ExpiresIn: int
    ) -> str:
        with self._lock:
            self.presign_calls.append((ClientMethod, dict(Params), ExpiresIn))
        query = "&".join(f"{name}={value}" for name, value in sorted(Params.items()))
        return f"https://s3.example.com/{ClientMethod}?{query}&X-Amz-Expires={ExpiresIn}"
