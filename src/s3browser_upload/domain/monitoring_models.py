"""Progress and outcome models reported to transfer callers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from s3browser_upload.domain.transfer_types import TransferStatus


@dataclass(slots=True, frozen=True)
class PartProgress:
    """Byte progress of the part whose update produced a snapshot."""

    part_number: int
    loaded: int
    total: int


@dataclass(slots=True, frozen=True)
class TransferProgressSnapshot:
    """Aggregate progress of one transfer."""

    bytes_total: int
    bytes_transferred: int = 0
    completed_parts: int = 0
    total_parts: int = 1
    part: PartProgress | None = None

    @property
    def percent_complete(self) -> float | None:
        """Return completion ratio in percent when total size is known."""

        if self.bytes_total <= 0:
            return None
        ratio = (self.bytes_transferred / self.bytes_total) * 100
        return max(0.0, min(100.0, round(ratio, 2)))


ProgressCallback = Callable[[TransferProgressSnapshot], None]


@dataclass(slots=True, frozen=True)
class PartFailure:
    """Terminal failure of one part after retries."""

    part_number: int
    error: BaseException


@dataclass(slots=True, frozen=True)
class TransferOutcome:
    """Result of driving a transfer until it stops."""

    status: TransferStatus
    destination_key: str
    transfer_id: str | None = None
    persistence_id: str | None = None
    completed_parts: dict[int, str] = field(default_factory=dict)
    failed_parts: dict[int, BaseException] = field(default_factory=dict)
    retries: dict[int, int] = field(default_factory=dict)
    error: BaseException | None = None

    @property
    def resumable(self) -> bool:
        """Whether persisted progress was kept for a later resume."""

        return (
            self.persistence_id is not None
            and self.status in {TransferStatus.FAILED, TransferStatus.PAUSED}
        )


__all__ = [
    "PartFailure",
    "PartProgress",
    "ProgressCallback",
    "TransferOutcome",
    "TransferProgressSnapshot",
]
