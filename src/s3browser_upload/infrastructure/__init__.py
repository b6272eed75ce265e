"""Infrastructure layer public API."""

from s3browser_upload.infrastructure.authorization import HttpAuthorizationClient
from s3browser_upload.infrastructure.runtime import PartScheduler
from s3browser_upload.infrastructure.sources import BytesUploadSource, FileUploadSource
from s3browser_upload.infrastructure.storage import S3MultipartGateway, build_default_s3_client
from s3browser_upload.infrastructure.stores import InMemoryProgressStore, PostgresProgressStore
from s3browser_upload.infrastructure.transport import HttpPartTransporter

__all__ = [
    "BytesUploadSource",
    "FileUploadSource",
    "HttpAuthorizationClient",
    "HttpPartTransporter",
    "InMemoryProgressStore",
    "PartScheduler",
    "PostgresProgressStore",
    "S3MultipartGateway",
    "build_default_s3_client",
]
