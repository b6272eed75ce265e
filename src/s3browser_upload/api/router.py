"""Top-level API router composition."""

from fastapi import APIRouter

from s3browser_upload.api.routes import health_router, uploads_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(uploads_router)

__all__ = ["api_router"]
