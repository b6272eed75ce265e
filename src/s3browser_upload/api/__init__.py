"""HTTP API of the upload authorization service."""

from s3browser_upload.api.router import api_router

__all__ = ["api_router"]
