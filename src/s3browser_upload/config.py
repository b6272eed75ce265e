"""Application settings."""

from enum import StrEnum

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from s3browser_upload.domain.options import MIB, TransferOptions


class ProgressStoreBackend(StrEnum):
    """Available persistence adapters for resumable progress."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "S3 Browser Upload Authorization"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    aws_region: str = "us-east-1"
    s3_bucket: str | None = None
    s3_endpoint_url: str | None = None
    multipart_threshold_mb: int = 10
    part_size_mb: int = 10
    max_file_size_mb: int = 5120
    part_concurrency: int = 3
    max_part_attempts: int = 5
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    retry_jitter_ratio: float = 0.0
    transport_timeout_seconds: float = 300.0
    grant_expiry_seconds: int = 900
    authorization_endpoint: str | None = None
    authorization_timeout_seconds: float = 30.0
    upload_tracker_max_age_seconds: float = 86_400.0
    progress_store_backend: ProgressStoreBackend = ProgressStoreBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10

    @model_validator(mode="after")
    def validate_upload_settings(self) -> "Settings":
        """Ensure transfer tuning and backend-specific settings are valid."""

        if (
            self.progress_store_backend == ProgressStoreBackend.POSTGRES
            and not self.postgres_dsn
        ):
            raise ValueError(
                "S3B_UPLOAD_POSTGRES_DSN is required when "
                "S3B_UPLOAD_PROGRESS_STORE_BACKEND=postgres."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("S3B_UPLOAD_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "S3B_UPLOAD_POSTGRES_POOL_MAX_SIZE must be >= S3B_UPLOAD_POSTGRES_POOL_MIN_SIZE."
            )
        if self.part_size_mb < 1:
            raise ValueError("S3B_UPLOAD_PART_SIZE_MB must be >= 1.")
        if self.multipart_threshold_mb < 1:
            raise ValueError("S3B_UPLOAD_MULTIPART_THRESHOLD_MB must be >= 1.")
        if self.max_file_size_mb < 1:
            raise ValueError("S3B_UPLOAD_MAX_FILE_SIZE_MB must be >= 1.")
        if self.part_concurrency < 1:
            raise ValueError("S3B_UPLOAD_PART_CONCURRENCY must be >= 1.")
        if self.max_part_attempts < 1:
            raise ValueError("S3B_UPLOAD_MAX_PART_ATTEMPTS must be >= 1.")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("S3B_UPLOAD_RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError(
                "S3B_UPLOAD_RETRY_MAX_DELAY_SECONDS must be >= "
                "S3B_UPLOAD_RETRY_BASE_DELAY_SECONDS."
            )
        if not 0 <= self.retry_jitter_ratio <= 1:
            raise ValueError("S3B_UPLOAD_RETRY_JITTER_RATIO must be between 0 and 1.")
        if self.transport_timeout_seconds <= 0:
            raise ValueError("S3B_UPLOAD_TRANSPORT_TIMEOUT_SECONDS must be > 0.")
        if self.authorization_timeout_seconds <= 0:
            raise ValueError("S3B_UPLOAD_AUTHORIZATION_TIMEOUT_SECONDS must be > 0.")
        if self.grant_expiry_seconds < 1:
            raise ValueError("S3B_UPLOAD_GRANT_EXPIRY_SECONDS must be >= 1.")
        if self.upload_tracker_max_age_seconds <= 0:
            raise ValueError("S3B_UPLOAD_UPLOAD_TRACKER_MAX_AGE_SECONDS must be > 0.")
        return self

    @property
    def part_size_bytes(self) -> int:
        return self.transfer_options().part_size_bytes

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * MIB

    def transfer_options(self) -> TransferOptions:
        """Build orchestrator tuning; part size and threshold are clamped to 5 MiB."""

        return TransferOptions.from_megabytes(
            part_size_mb=self.part_size_mb,
            multipart_threshold_mb=self.multipart_threshold_mb,
            concurrency=self.part_concurrency,
            max_part_attempts=self.max_part_attempts,
            retry_base_delay_seconds=self.retry_base_delay_seconds,
            retry_max_delay_seconds=self.retry_max_delay_seconds,
            retry_jitter_ratio=self.retry_jitter_ratio,
        )

    model_config = SettingsConfigDict(env_prefix="S3B_UPLOAD_", extra="ignore")


__all__ = ["ProgressStoreBackend", "Settings"]
