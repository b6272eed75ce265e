"""Upload source implementations."""

from s3browser_upload.infrastructure.sources.upload_sources import (
    BytesUploadSource,
    FileUploadSource,
    guess_content_type,
)

__all__ = ["BytesUploadSource", "FileUploadSource", "guess_content_type"]
