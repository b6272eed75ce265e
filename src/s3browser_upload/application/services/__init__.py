"""Application services."""

from s3browser_upload.application.services.part_uploader import RetryingPartUploader
from s3browser_upload.application.services.transfer_orchestrator import (
    TransferControl,
    TransferOrchestrator,
)
from s3browser_upload.application.services.upload_authorization_service import (
    UploadAuthorizationService,
)

__all__ = [
    "RetryingPartUploader",
    "TransferControl",
    "TransferOrchestrator",
    "UploadAuthorizationService",
]
