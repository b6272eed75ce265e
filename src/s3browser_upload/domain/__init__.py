"""Domain public API."""

from s3browser_upload.domain.entities import (
    CompletedPart,
    PartJob,
    PartUploadResult,
    PersistedProgress,
    Transfer,
)
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    GrantAlreadyUsedError,
    InvalidRequestError,
    MissingIntegrityTagError,
    NetworkError,
    PartMismatchError,
    PartUploadFailedError,
    ProgressStoreError,
    TransferCancelledError,
    TransferNotFoundError,
    TransferStateError,
    UploadError,
)
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.monitoring_models import (
    PartFailure,
    PartProgress,
    ProgressCallback,
    TransferOutcome,
    TransferProgressSnapshot,
)
from s3browser_upload.domain.options import TransferOptions
from s3browser_upload.domain.planning import PartRange, plan_ranges, plan_total_parts, range_of
from s3browser_upload.domain.ports import (
    AuthorizationService,
    PartTransport,
    ProgressStore,
    UploadSource,
)
from s3browser_upload.domain.transfer_types import TERMINAL_STATUSES, TransferStatus

__all__ = [
    "AuthRejectedError",
    "AuthorizationGrant",
    "AuthorizationService",
    "CompletedPart",
    "GrantAlreadyUsedError",
    "InvalidRequestError",
    "MissingIntegrityTagError",
    "NetworkError",
    "PartFailure",
    "PartJob",
    "PartMismatchError",
    "PartProgress",
    "PartRange",
    "PartTransport",
    "PartUploadFailedError",
    "PartUploadResult",
    "PersistedProgress",
    "ProgressCallback",
    "ProgressStore",
    "ProgressStoreError",
    "TERMINAL_STATUSES",
    "Transfer",
    "TransferCancelledError",
    "TransferNotFoundError",
    "TransferOptions",
    "TransferOutcome",
    "TransferProgressSnapshot",
    "TransferStateError",
    "TransferStatus",
    "UploadError",
    "UploadSource",
    "plan_ranges",
    "plan_total_parts",
    "range_of",
]
