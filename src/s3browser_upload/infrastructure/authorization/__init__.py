"""Authorization service adapters."""

from s3browser_upload.infrastructure.authorization.client import HttpAuthorizationClient

__all__ = ["HttpAuthorizationClient"]
