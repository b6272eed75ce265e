"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from s3browser_upload.application.services import UploadAuthorizationService
from s3browser_upload.bootstrap import build_upload_authorization_service
from s3browser_upload.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_upload_authorization_service() -> UploadAuthorizationService:
    """Return singleton service graph."""

    return build_upload_authorization_service(get_settings())


__all__ = ["get_settings", "get_upload_authorization_service"]
