"""Bounded worker pool that drives pending parts to a terminal outcome."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field

from s3browser_upload.domain.entities import PartJob, PartUploadResult
from s3browser_upload.domain.errors import TransferCancelledError
from s3browser_upload.domain.monitoring_models import (
    PartFailure,
    PartProgress,
    ProgressCallback,
    TransferProgressSnapshot,
)
from s3browser_upload.domain.planning import PartRange

logger = logging.getLogger(__name__)

PartProgressReporter = Callable[[int], None]
PartWorker = Callable[[PartJob, PartProgressReporter], Awaitable[PartUploadResult]]
RangeResolver = Callable[[int], PartRange]


@dataclass(slots=True)
class SchedulerReport:
    """Terminal outcomes of one scheduler run."""

    succeeded: list[int] = field(default_factory=list)
    failed: list[PartFailure] = field(default_factory=list)
    results: dict[int, PartUploadResult] = field(default_factory=dict)
    interrupted: list[int] = field(default_factory=list)
    unclaimed: list[int] = field(default_factory=list)
    cancelled: bool = False


class ProgressAggregator:
    """Sum of per-part loaded bytes. Only the scheduler mutates it."""

    def __init__(
        self,
        bytes_total: int,
        total_parts: int,
        baseline_bytes: int = 0,
        baseline_parts: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._bytes_total = bytes_total
        self._total_parts = total_parts
        self._baseline_bytes = baseline_bytes
        self._completed_parts = baseline_parts
        self._loaded: dict[int, int] = {}
        self._on_progress = on_progress

    @property
    def bytes_transferred(self) -> int:
        return self._baseline_bytes + sum(self._loaded.values())

    def snapshot(self, part: PartProgress | None = None) -> TransferProgressSnapshot:
        return TransferProgressSnapshot(
            bytes_total=self._bytes_total,
            bytes_transferred=self.bytes_transferred,
            completed_parts=self._completed_parts,
            total_parts=self._total_parts,
            part=part,
        )

    def report_initial(self) -> None:
        self._emit(self.snapshot())

    def update(self, byte_range: PartRange, loaded: int) -> None:
        clamped = max(0, min(loaded, byte_range.length))
        self._loaded[byte_range.part_number] = clamped
        self._emit(
            self.snapshot(
                PartProgress(
                    part_number=byte_range.part_number,
                    loaded=clamped,
                    total=byte_range.length,
                )
            )
        )

    def complete(self, byte_range: PartRange) -> None:
        self._loaded[byte_range.part_number] = byte_range.length
        self._completed_parts += 1
        self._emit(self.snapshot())

    def reset(self, byte_range: PartRange) -> None:
        self._loaded.pop(byte_range.part_number, None)
        self._emit(self.snapshot())

    def _emit(self, snapshot: TransferProgressSnapshot) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(snapshot)
        except Exception:
            logger.exception("Progress callback failed.")


class PartScheduler:
    """Fan pending parts out to at most `concurrency` concurrent workers.

    Workers share one cursor over the pending part numbers; each claims the
    next part, drives it to success or terminal failure, then claims again.
    Once `cancel_event` is set no further part is claimed.
    """

    def __init__(self, concurrency: int) -> None:
        self._concurrency = max(1, concurrency)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def run(
        self,
        pending_part_numbers: Iterable[int],
        worker: PartWorker,
        *,
        resolve_range: RangeResolver,
        cancel_event: asyncio.Event,
        aggregator: ProgressAggregator | None = None,
    ) -> SchedulerReport:
        """Run every pending part and return succeeded/failed outcomes."""

        pending = list(dict.fromkeys(pending_part_numbers))
        report = SchedulerReport()
        if not pending:
            report.cancelled = cancel_event.is_set()
            return report

        cursor = iter(pending)
        claimed: set[int] = set()
        worker_count = min(self._concurrency, len(pending))
        await asyncio.gather(
            *[
                self._work(
                    cursor=cursor,
                    claimed=claimed,
                    worker=worker,
                    resolve_range=resolve_range,
                    cancel_event=cancel_event,
                    aggregator=aggregator,
                    report=report,
                )
                for _ in range(worker_count)
            ]
        )

        report.unclaimed = [number for number in pending if number not in claimed]
        report.cancelled = cancel_event.is_set()
        return report

    async def _work(
        self,
        *,
        cursor: Iterator[int],
        claimed: set[int],
        worker: PartWorker,
        resolve_range: RangeResolver,
        cancel_event: asyncio.Event,
        aggregator: ProgressAggregator | None,
        report: SchedulerReport,
    ) -> None:
        while not cancel_event.is_set():
            part_number = next(cursor, None)
            if part_number is None:
                return
            claimed.add(part_number)

            byte_range = resolve_range(part_number)
            job = PartJob(
                part_number=part_number,
                byte_range=byte_range,
                cancel_event=cancel_event,
            )

            def report_progress(loaded: int, byte_range: PartRange = byte_range) -> None:
                if aggregator is not None:
                    aggregator.update(byte_range, loaded)

            try:
                result = await worker(job, report_progress)
            except TransferCancelledError as exc:
                if aggregator is not None:
                    aggregator.reset(byte_range)
                if cancel_event.is_set():
                    report.interrupted.append(part_number)
                else:
                    report.failed.append(PartFailure(part_number=part_number, error=exc))
                continue
            except Exception as exc:  # noqa: BLE001
                if aggregator is not None:
                    aggregator.reset(byte_range)
                report.failed.append(PartFailure(part_number=part_number, error=exc))
                continue

            if aggregator is not None:
                aggregator.complete(byte_range)
            report.succeeded.append(part_number)
            report.results[part_number] = result


__all__ = [
    "PartProgressReporter",
    "PartScheduler",
    "PartWorker",
    "ProgressAggregator",
    "SchedulerReport",
]
