"""Async S3 gateway for multipart bookkeeping and presigned upload URLs."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, Protocol, cast

from botocore.exceptions import BotoCoreError, ClientError

from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    InvalidRequestError,
    NetworkError,
    PartMismatchError,
    TransferNotFoundError,
    UploadError,
)

_NOT_FOUND_CODES = frozenset({"NoSuchUpload", "NoSuchKey", "NoSuchBucket"})
_DENIED_CODES = frozenset({"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"})
_MISMATCH_CODES = frozenset({"InvalidPart", "InvalidPartOrder"})
_INVALID_CODES = frozenset({"EntityTooSmall", "EntityTooLarge", "InvalidArgument"})


class S3Client(Protocol):
    """Subset of S3 client operations used by the gateway."""

    def create_multipart_upload(
        self, *, Bucket: str, Key: str, ContentType: str
    ) -> dict[str, Any]:
        """Start multipart upload."""

    def list_parts(
        self, *, Bucket: str, Key: str, UploadId: str, PartNumberMarker: int
    ) -> dict[str, Any]:
        """List parts recorded for a multipart upload."""

    def complete_multipart_upload(
        self,
        *,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: dict[str, list[dict[str, str | int]]],
    ) -> dict[str, Any]:
        """Finalize multipart upload."""

    def abort_multipart_upload(self, *, Bucket: str, Key: str, UploadId: str) -> dict[str, Any]:
        """Abort multipart upload."""

    def generate_presigned_url(
        self, ClientMethod: str, Params: dict[str, Any], ExpiresIn: int
    ) -> str:
        """Presign one client method call."""


def normalize_etag(etag: str) -> str:
    """Strip the quotes S3 puts around ETags."""

    return etag.strip().strip('"')


class S3MultipartGateway:
    """Run blocking S3 calls off the event loop and map client errors."""

    def __init__(
        self,
        bucket: str,
        s3_client_factory: Callable[[], S3Client],
    ) -> None:
        self._bucket = bucket
        self._s3_client_factory = s3_client_factory
        self._client: S3Client | None = None

    @property
    def bucket(self) -> str:
        return self._bucket

    async def create_multipart_upload(self, key: str, content_type: str) -> str:
        response = await self._call(
            "create_multipart_upload",
            Bucket=self._bucket,
            Key=key,
            ContentType=content_type,
        )
        upload_id = response.get("UploadId")
        if not isinstance(upload_id, str) or not upload_id:
            raise NetworkError("create_multipart_upload did not return UploadId")
        return upload_id

    async def presign_upload_part(
        self, key: str, upload_id: str, part_number: int, expires_in: int
    ) -> str:
        return await self._presign(
            "upload_part",
            {
                "Bucket": self._bucket,
                "Key": key,
                "UploadId": upload_id,
                "PartNumber": part_number,
            },
            expires_in,
        )

    async def presign_put_object(self, key: str, content_type: str, expires_in: int) -> str:
        return await self._presign(
            "put_object",
            {"Bucket": self._bucket, "Key": key, "ContentType": content_type},
            expires_in,
        )

    async def list_parts(self, key: str, upload_id: str) -> dict[int, str]:
        """Return part number -> normalized ETag for every recorded part."""

        recorded: dict[int, str] = {}
        marker = 0
        while True:
            response = await self._call(
                "list_parts",
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                PartNumberMarker=marker,
            )
            for part in response.get("Parts", []):
                recorded[int(part["PartNumber"])] = normalize_etag(str(part["ETag"]))
            if not response.get("IsTruncated"):
                return recorded
            next_marker = int(response.get("NextPartNumberMarker", 0))
            if next_marker <= marker:
                raise NetworkError(
                    f"list_parts for upload {upload_id} is truncated but the part "
                    f"marker did not advance past {marker}."
                )
            marker = next_marker

    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: Sequence[CompletedPart]
    ) -> None:
        await self._call(
            "complete_multipart_upload",
            Bucket=self._bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [
                    {"PartNumber": part.part_number, "ETag": part.integrity_tag}
                    for part in parts
                ]
            },
        )

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._call(
            "abort_multipart_upload",
            Bucket=self._bucket,
            Key=key,
            UploadId=upload_id,
        )

    async def _presign(self, client_method: str, params: dict[str, Any], expires_in: int) -> str:
        client = self._get_client()
        try:
            return await asyncio.to_thread(
                client.generate_presigned_url,
                ClientMethod=client_method,
                Params=params,
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, client_method) from exc

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self._get_client(), operation)
        try:
            response = await asyncio.to_thread(method, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise self._translate(exc, operation) from exc
        return cast(dict[str, Any], response)

    def _get_client(self) -> S3Client:
        if self._client is None:
            self._client = self._s3_client_factory()
        return self._client

    def _translate(self, exc: Exception, operation: str) -> UploadError:
        if not isinstance(exc, ClientError):
            return NetworkError(f"{operation} failed: {exc}")

        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = f"{operation} failed: {code} {error.get('Message', '')}".strip()
        if code in _NOT_FOUND_CODES:
            return TransferNotFoundError(message)
        if code in _DENIED_CODES:
            return AuthRejectedError(message)
        if code in _MISMATCH_CODES:
            return PartMismatchError(message)
        if code in _INVALID_CODES:
            return InvalidRequestError(message)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return NetworkError(message, status_code=status if isinstance(status, int) else None)


def build_default_s3_client(
    region: str | None,
    endpoint_url: str | None = None,
) -> S3Client:
    """Create a boto3 S3 client lazily to avoid import-time hard dependency."""

    try:
        import boto3  # type: ignore[import-not-found]
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "boto3 is required for the authorization service. Install project dependencies first."
        ) from exc

    client = boto3.client("s3", region_name=region, endpoint_url=endpoint_url)
    return cast(S3Client, client)


__all__ = ["S3Client", "S3MultipartGateway", "build_default_s3_client", "normalize_etag"]
