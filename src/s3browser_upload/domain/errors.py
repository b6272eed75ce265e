"""Domain exceptions for upload transfers."""

from __future__ import annotations


class UploadError(Exception):
    """Base class for upload errors."""


class InvalidRequestError(UploadError):
    """Raised when a transfer request is malformed (size, type or key)."""


class AuthRejectedError(UploadError):
    """Raised when the caller is not permitted to perform an upload operation."""


class TransferNotFoundError(UploadError):
    """Raised when a transfer was discarded or expired on the service side."""


class NetworkError(UploadError):
    """Raised for transient network or server failures. The only retryable error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransferCancelledError(UploadError):
    """Raised when a transfer was cancelled on purpose by its caller."""


class MissingIntegrityTagError(UploadError):
    """Raised when storage accepted bytes but returned no integrity tag."""


class PartUploadFailedError(UploadError):
    """Raised when a part exhausted all of its upload attempts."""

    def __init__(self, part_number: int, last_error: BaseException | None) -> None:
        detail = "no attempt was made" if last_error is None else str(last_error)
        super().__init__(f"Part {part_number} failed: {detail}")
        self.part_number = part_number
        self.last_error = last_error


class PartMismatchError(UploadError):
    """Raised when the service's recorded parts disagree with the caller's at finalize."""


class ProgressStoreError(UploadError):
    """Raised when persisted progress could not be read or written."""


class TransferStateError(UploadError):
    """Raised on an illegal transfer state transition."""


class GrantAlreadyUsedError(UploadError):
    """Raised when a single-use upload grant is consumed twice."""


__all__ = [
    "AuthRejectedError",
    "GrantAlreadyUsedError",
    "InvalidRequestError",
    "MissingIntegrityTagError",
    "NetworkError",
    "PartMismatchError",
    "PartUploadFailedError",
    "ProgressStoreError",
    "TransferCancelledError",
    "TransferNotFoundError",
    "TransferStateError",
    "UploadError",
]
