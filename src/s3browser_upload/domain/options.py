"""Explicit transfer tuning passed to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass

MIB = 1024 * 1024
MIN_PART_SIZE_BYTES = 5 * MIB

DEFAULT_PART_SIZE_BYTES = 10 * MIB
DEFAULT_MULTIPART_THRESHOLD_BYTES = 10 * MIB
DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_PART_ATTEMPTS = 5
DEFAULT_RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_RETRY_MAX_DELAY_SECONDS = 30.0


@dataclass(slots=True, frozen=True)
class TransferOptions:
    """Tuning for one orchestrator.

    - `part_size_bytes`: size of every part but the last (10 MiB).
    - `multipart_threshold_bytes`: files at or above this size use multipart (10 MiB).
    - `concurrency`: parts in flight per transfer (3).
    - `max_part_attempts`: total attempts per part, first one included (5).
    - `retry_base_delay_seconds`: backoff after attempt `n` (0-based) is
      `base * 2**n`, capped at `retry_max_delay_seconds` (1s, 30s).
    - `retry_jitter_ratio`: symmetric jitter applied to each backoff (0.0).
    """

    part_size_bytes: int = DEFAULT_PART_SIZE_BYTES
    multipart_threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD_BYTES
    concurrency: int = DEFAULT_CONCURRENCY
    max_part_attempts: int = DEFAULT_MAX_PART_ATTEMPTS
    retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    retry_max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    retry_jitter_ratio: float = 0.0

    def __post_init__(self) -> None:
        if self.part_size_bytes <= 0:
            raise ValueError("part_size_bytes must be > 0.")
        if self.multipart_threshold_bytes <= 0:
            raise ValueError("multipart_threshold_bytes must be > 0.")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1.")
        if self.max_part_attempts < 1:
            raise ValueError("max_part_attempts must be >= 1.")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("retry_base_delay_seconds must be >= 0.")
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError("retry_max_delay_seconds must be >= retry_base_delay_seconds.")
        if not 0.0 <= self.retry_jitter_ratio <= 1.0:
            raise ValueError("retry_jitter_ratio must be within [0, 1].")

    @classmethod
    def from_megabytes(
        cls,
        *,
        part_size_mb: int,
        multipart_threshold_mb: int,
        **kwargs: float,
    ) -> TransferOptions:
        """Build options from MiB settings, clamping to the S3 minimum part size."""

        return cls(
            part_size_bytes=max(MIN_PART_SIZE_BYTES, part_size_mb * MIB),
            multipart_threshold_bytes=max(MIN_PART_SIZE_BYTES, multipart_threshold_mb * MIB),
            **kwargs,  # type: ignore[arg-type]
        )


__all__ = ["MIB", "MIN_PART_SIZE_BYTES", "TransferOptions"]
