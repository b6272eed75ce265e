"""Object storage adapters."""

from s3browser_upload.infrastructure.storage.s3_gateway import (
    S3Client,
    S3MultipartGateway,
    build_default_s3_client,
    normalize_etag,
)

__all__ = ["S3Client", "S3MultipartGateway", "build_default_s3_client", "normalize_etag"]
