"""Application bootstrap/wiring."""

import logging

from s3browser_upload.application.services import (
    TransferOrchestrator,
    UploadAuthorizationService,
)
from s3browser_upload.config import ProgressStoreBackend, Settings
from s3browser_upload.domain.ports import ProgressStore
from s3browser_upload.infrastructure.authorization import HttpAuthorizationClient
from s3browser_upload.infrastructure.storage import S3MultipartGateway, build_default_s3_client
from s3browser_upload.infrastructure.stores import InMemoryProgressStore, PostgresProgressStore
from s3browser_upload.infrastructure.transport import HttpPartTransporter

logger = logging.getLogger(__name__)


def _build_progress_store(settings: Settings) -> ProgressStore:
    if settings.progress_store_backend == ProgressStoreBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise ValueError(
                "S3B_UPLOAD_POSTGRES_DSN is required when "
                "S3B_UPLOAD_PROGRESS_STORE_BACKEND=postgres."
            )
        return PostgresProgressStore(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
        )
    return InMemoryProgressStore()


def build_transfer_orchestrator(
    settings: Settings,
    progress_store: ProgressStore | None = None,
) -> TransferOrchestrator:
    """Compose the client-side upload engine talking to a remote authorization service."""

    if settings.authorization_endpoint is None:
        raise ValueError("S3B_UPLOAD_AUTHORIZATION_ENDPOINT is required for uploads.")

    options = settings.transfer_options()
    logger.info(
        "Upload engine: part size %s bytes, threshold %s bytes, concurrency %s.",
        options.part_size_bytes,
        options.multipart_threshold_bytes,
        options.concurrency,
    )
    return TransferOrchestrator(
        authorization=HttpAuthorizationClient(
            base_url=settings.authorization_endpoint,
            timeout_seconds=settings.authorization_timeout_seconds,
        ),
        transport=HttpPartTransporter(timeout_seconds=settings.transport_timeout_seconds),
        progress_store=progress_store or _build_progress_store(settings),
        options=options,
    )


def build_upload_authorization_service(
    settings: Settings,
    gateway: S3MultipartGateway | None = None,
) -> UploadAuthorizationService:
    """Compose the server-side authorization service."""

    if gateway is None:
        if settings.s3_bucket is None:
            raise ValueError("S3B_UPLOAD_S3_BUCKET is required for the authorization service.")
        gateway = S3MultipartGateway(
            bucket=settings.s3_bucket,
            s3_client_factory=lambda: build_default_s3_client(
                settings.aws_region,
                settings.s3_endpoint_url,
            ),
        )

    return UploadAuthorizationService(
        gateway,
        part_size_bytes=settings.part_size_bytes,
        max_file_size_bytes=settings.max_file_size_bytes,
        grant_expiry_seconds=settings.grant_expiry_seconds,
        tracker_max_age_seconds=settings.upload_tracker_max_age_seconds,
    )


__all__ = ["build_transfer_orchestrator", "build_upload_authorization_service"]
