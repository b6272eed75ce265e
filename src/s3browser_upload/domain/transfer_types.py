"""Transfer status and transition helpers."""

from enum import StrEnum

from s3browser_upload.domain.errors import TransferStateError


class TransferStatus(StrEnum):
    """Lifecycle states of one transfer."""

    PLANNED = "PLANNED"
    AUTHORIZING = "AUTHORIZING"
    TRANSPORTING = "TRANSPORTING"
    PAUSED = "PAUSED"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset(
    {TransferStatus.COMPLETED, TransferStatus.ABORTED, TransferStatus.FAILED}
)

# Resumed transfers skip AUTHORIZING and go straight to TRANSPORTING.
_ALLOWED_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PLANNED: frozenset(
        {TransferStatus.AUTHORIZING, TransferStatus.TRANSPORTING}
    ),
    TransferStatus.AUTHORIZING: frozenset(
        {TransferStatus.TRANSPORTING, TransferStatus.ABORTED, TransferStatus.FAILED}
    ),
    TransferStatus.TRANSPORTING: frozenset(
        {
            TransferStatus.FINALIZING,
            TransferStatus.PAUSED,
            TransferStatus.ABORTED,
            TransferStatus.FAILED,
        }
    ),
    TransferStatus.FINALIZING: frozenset({TransferStatus.COMPLETED, TransferStatus.FAILED}),
    TransferStatus.PAUSED: frozenset(),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.ABORTED: frozenset(),
    TransferStatus.FAILED: frozenset(),
}


def ensure_transition(current: TransferStatus, target: TransferStatus) -> None:
    """Raise when moving from `current` to `target` is not a legal transition."""

    if target not in _ALLOWED_TRANSITIONS[current]:
        raise TransferStateError(f"Illegal transfer transition {current} -> {target}.")


__all__ = ["TERMINAL_STATUSES", "TransferStatus", "ensure_transition"]
