"""Route modules public API."""

from s3browser_upload.api.routes.health import router as health_router
from s3browser_upload.api.routes.uploads import router as uploads_router

__all__ = ["health_router", "uploads_router"]
