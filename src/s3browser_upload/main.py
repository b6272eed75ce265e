"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from s3browser_upload import __version__
from s3browser_upload.api import api_router
from s3browser_upload.api.dependencies import get_settings, get_upload_authorization_service

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        """Build singleton dependencies at startup."""

        service = get_upload_authorization_service()
        yield
        if service.active_transfer_count:
            logger.info(
                "Shutting down with %s tracked upload(s) pending.",
                service.active_transfer_count,
            )

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Run local development server."""

    settings = get_settings()
    uvicorn.run(
        "s3browser_upload.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


__all__ = ["app", "create_app", "run"]
