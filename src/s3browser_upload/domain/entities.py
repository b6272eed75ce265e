"""Domain entities."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from s3browser_upload.domain.errors import TransferStateError
from s3browser_upload.domain.planning import PartRange, plan_total_parts
from s3browser_upload.domain.transfer_types import TransferStatus, ensure_transition


@dataclass(slots=True, frozen=True)
class CompletedPart:
    """A part accepted by storage, identified by its integrity tag."""

    part_number: int
    integrity_tag: str


@dataclass(slots=True)
class Transfer:
    """Mutable representation of one upload in progress."""

    destination_key: str
    total_size: int
    part_size: int
    content_type: str = "application/octet-stream"
    transfer_id: str | None = None
    persistence_id: str | None = None
    status: TransferStatus = TransferStatus.PLANNED
    completed_parts: dict[int, str] = field(default_factory=dict)

    @property
    def total_parts(self) -> int:
        return plan_total_parts(self.total_size, self.part_size)

    @property
    def is_fully_uploaded(self) -> bool:
        return len(self.completed_parts) == self.total_parts

    def transition(self, target: TransferStatus) -> None:
        """Move to `target`, enforcing the lifecycle state machine."""

        ensure_transition(self.status, target)
        self.status = target

    def pending_part_numbers(self) -> list[int]:
        """Return part numbers not yet completed, ascending."""

        return [
            part_number
            for part_number in range(1, self.total_parts + 1)
            if part_number not in self.completed_parts
        ]

    def record_completed_part(self, part_number: int, integrity_tag: str) -> None:
        """Append one completed part. A part is never recorded twice."""

        if part_number < 1 or part_number > self.total_parts:
            raise TransferStateError(
                f"Part number {part_number} is outside 1..{self.total_parts}."
            )
        if part_number in self.completed_parts:
            raise TransferStateError(f"Part {part_number} was already completed.")
        self.completed_parts[part_number] = integrity_tag

    def sorted_completed_parts(self) -> list[CompletedPart]:
        """Return completed parts in ascending part-number order."""

        return [
            CompletedPart(part_number=number, integrity_tag=tag)
            for number, tag in sorted(self.completed_parts.items())
        ]


@dataclass(slots=True, frozen=True)
class PersistedProgress:
    """Durable subset of a transfer needed to resume after a restart."""

    persistence_id: str
    transfer_id: str
    destination_key: str
    total_parts: int
    part_size: int
    completed_parts: dict[int, str] = field(default_factory=dict)
    file_name: str | None = None
    file_size: int | None = None
    file_last_modified: float | None = None
    content_type: str = "application/octet-stream"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def with_completed_part(self, part_number: int, integrity_tag: str) -> PersistedProgress:
        """Return a copy including one more completed part."""

        completed = dict(self.completed_parts)
        completed[part_number] = integrity_tag
        return replace(self, completed_parts=completed)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible mapping."""

        return {
            "persistenceId": self.persistence_id,
            "transferId": self.transfer_id,
            "destinationKey": self.destination_key,
            "totalParts": self.total_parts,
            "partSize": self.part_size,
            "completedParts": [
                {"partNumber": number, "integrityTag": tag}
                for number, tag in sorted(self.completed_parts.items())
            ],
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileLastModified": self.file_last_modified,
            "contentType": self.content_type,
            "createdAt": None if self.created_at is None else self.created_at.isoformat(),
            "updatedAt": None if self.updated_at is None else self.updated_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PersistedProgress:
        """Rebuild from `to_payload` output."""

        created_at = payload.get("createdAt")
        updated_at = payload.get("updatedAt")
        return cls(
            persistence_id=str(payload["persistenceId"]),
            transfer_id=str(payload["transferId"]),
            destination_key=str(payload["destinationKey"]),
            total_parts=int(payload["totalParts"]),
            part_size=int(payload["partSize"]),
            completed_parts={
                int(item["partNumber"]): str(item["integrityTag"])
                for item in payload.get("completedParts", [])
            },
            file_name=payload.get("fileName"),
            file_size=payload.get("fileSize"),
            file_last_modified=payload.get("fileLastModified"),
            content_type=payload.get("contentType") or "application/octet-stream",
            created_at=None if created_at is None else datetime.fromisoformat(created_at),
            updated_at=None if updated_at is None else datetime.fromisoformat(updated_at),
        )


@dataclass(slots=True, frozen=True)
class PartJob:
    """Ephemeral unit of work handed to a scheduler worker."""

    part_number: int
    byte_range: PartRange
    cancel_event: asyncio.Event


@dataclass(slots=True, frozen=True)
class PartUploadResult:
    """Terminal success of one part upload."""

    part_number: int
    integrity_tag: str
    attempts: int = 1

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


__all__ = [
    "CompletedPart",
    "PartJob",
    "PartUploadResult",
    "PersistedProgress",
    "Transfer",
]
