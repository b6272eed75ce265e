"""Transfer lifecycle orchestration: plan, resume, transport, finalize or discard."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from s3browser_upload.application.services.part_uploader import RetryingPartUploader
from s3browser_upload.domain.entities import PartJob, PartUploadResult, PersistedProgress, Transfer
from s3browser_upload.domain.errors import (
    InvalidRequestError,
    ProgressStoreError,
    TransferStateError,
    UploadError,
)
from s3browser_upload.domain.monitoring_models import ProgressCallback, TransferOutcome
from s3browser_upload.domain.options import TransferOptions
from s3browser_upload.domain.planning import PartRange, plan_total_parts, range_of
from s3browser_upload.domain.ports import (
    AuthorizationService,
    PartTransport,
    ProgressStore,
    UploadSource,
)
from s3browser_upload.domain.transfer_types import TransferStatus
from s3browser_upload.infrastructure.runtime import (
    PartProgressReporter,
    PartScheduler,
    PartWorker,
    ProgressAggregator,
    SchedulerReport,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransferControl:
    """Caller-side handle to stop a running transfer.

    `pause` keeps persisted progress so the transfer can be resumed later;
    `abort` discards the transfer on the service and erases its progress.
    Single-PUT uploads persist nothing, so either call ends them as ABORTED.
    """

    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    abandon: bool = True

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def pause(self) -> None:
        self.abandon = False
        self.cancel_event.set()

    def abort(self) -> None:
        self.abandon = True
        self.cancel_event.set()


@dataclass(slots=True)
class _TransferRun:
    """Mutable state of one orchestrated transfer."""

    transfer: Transfer
    source: UploadSource
    control: TransferControl
    progress: PersistedProgress | None = None
    persist_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class TransferOrchestrator:
    """Own a transfer's state machine and its persisted resume state.

    Files below the multipart threshold take a single-PUT path; larger files
    are split into parts uploaded concurrently and finalized once every part
    is durably recorded. Only this class decides between finalize, fail,
    pause and discard.
    """

    def __init__(
        self,
        authorization: AuthorizationService,
        transport: PartTransport,
        progress_store: ProgressStore,
        options: TransferOptions | None = None,
        *,
        scheduler: PartScheduler | None = None,
        uploader: RetryingPartUploader | None = None,
    ) -> None:
        self._authorization = authorization
        self._progress_store = progress_store
        self._options = options or TransferOptions()
        self._scheduler = scheduler or PartScheduler(self._options.concurrency)
        self._uploader = uploader or RetryingPartUploader(
            authorization,
            transport,
            max_attempts=self._options.max_part_attempts,
            retry_base_delay_seconds=self._options.retry_base_delay_seconds,
            retry_max_delay_seconds=self._options.retry_max_delay_seconds,
            retry_jitter_ratio=self._options.retry_jitter_ratio,
        )

    @property
    def options(self) -> TransferOptions:
        return self._options

    async def upload(
        self,
        source: UploadSource,
        destination_key: str,
        *,
        resume: PersistedProgress | None = None,
        control: TransferControl | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TransferOutcome:
        """Upload `source` to `destination_key`, resuming from `resume` when given.

        Returns the outcome for COMPLETED, FAILED, PAUSED and ABORTED transfers.
        Errors while beginning a new multipart transfer are raised.
        """

        control = control or TransferControl()
        if resume is None and source.size < self._options.multipart_threshold_bytes:
            return await self._upload_single(source, destination_key, control, on_progress)
        return await self._upload_multipart(
            source, destination_key, resume, control, on_progress
        )

    async def find_resumable(self, source: UploadSource) -> PersistedProgress | None:
        """Return persisted progress recorded for the same source file, if any."""

        return await self._progress_store.find_by_fingerprint(
            source.name, source.size, source.last_modified
        )

    async def discard(self, progress: PersistedProgress) -> None:
        """Abandon a paused or failed transfer and erase its persisted state."""

        await self._discard_quietly(progress.transfer_id, progress.destination_key)
        await self._progress_store.delete(progress.persistence_id)
        logger.info(
            "Discarded transfer %s for '%s'.", progress.transfer_id, progress.destination_key
        )

    async def _upload_single(
        self,
        source: UploadSource,
        destination_key: str,
        control: TransferControl,
        on_progress: ProgressCallback | None,
    ) -> TransferOutcome:
        transfer = Transfer(
            destination_key=destination_key,
            total_size=source.size,
            part_size=max(source.size, 1),
            content_type=source.content_type,
        )
        run = _TransferRun(transfer=transfer, source=source, control=control)
        transfer.transition(TransferStatus.AUTHORIZING)
        if control.cancelled:
            transfer.transition(TransferStatus.ABORTED)
            return self._outcome(run)

        async def upload_whole_object(
            job: PartJob, report_progress: PartProgressReporter
        ) -> PartUploadResult:
            data = await source.read_range(job.byte_range.start, job.byte_range.end)
            canonical_key, result = await self._uploader.upload_single(
                transfer.destination_key,
                transfer.content_type,
                data,
                on_progress=report_progress,
                cancel_event=job.cancel_event,
            )
            transfer.destination_key = canonical_key
            return result

        transfer.transition(TransferStatus.TRANSPORTING)
        report = await self._run_scheduler(run, upload_whole_object, on_progress)

        if report.cancelled:
            transfer.transition(TransferStatus.ABORTED)
            logger.info(
                "Single upload to '%s' cancelled (pause=%s); nothing to resume.",
                transfer.destination_key,
                not control.abandon,
            )
            return self._outcome(run, report)
        if report.failed:
            transfer.transition(TransferStatus.FAILED)
            logger.warning(
                "Single upload to '%s' failed: %s",
                transfer.destination_key,
                report.failed[0].error,
            )
            return self._outcome(run, report, error=report.failed[0].error)

        transfer.transition(TransferStatus.FINALIZING)
        transfer.record_completed_part(1, report.results[1].integrity_tag)
        transfer.transition(TransferStatus.COMPLETED)
        logger.info("Uploaded '%s' with a single PUT.", transfer.destination_key)
        return self._outcome(run, report)

    async def _upload_multipart(
        self,
        source: UploadSource,
        destination_key: str,
        resume: PersistedProgress | None,
        control: TransferControl,
        on_progress: ProgressCallback | None,
    ) -> TransferOutcome:
        if resume is not None:
            run = self._run_from_resume(source, resume, control)
            run.transfer.transition(TransferStatus.TRANSPORTING)
            logger.info(
                "Resuming transfer %s for '%s' with %s/%s parts completed.",
                run.transfer.transfer_id,
                run.transfer.destination_key,
                len(run.transfer.completed_parts),
                run.transfer.total_parts,
            )
        else:
            run = _TransferRun(
                transfer=Transfer(
                    destination_key=destination_key,
                    total_size=source.size,
                    part_size=self._options.part_size_bytes,
                    content_type=source.content_type,
                ),
                source=source,
                control=control,
            )
            run.transfer.transition(TransferStatus.AUTHORIZING)
            if control.cancelled:
                run.transfer.transition(TransferStatus.ABORTED)
                return self._outcome(run)
            await self._begin(run)
            run.transfer.transition(TransferStatus.TRANSPORTING)

        report = await self._run_scheduler(run, self._part_worker(run), on_progress)
        return await self._settle(run, report)

    async def _begin(self, run: _TransferRun) -> None:
        """Create the transfer on the service and persist empty progress."""

        transfer = run.transfer
        try:
            begun = await self._authorization.begin_transfer(
                transfer.destination_key, transfer.content_type, transfer.total_size
            )
        except UploadError:
            transfer.transition(TransferStatus.FAILED)
            raise

        transfer.transfer_id = begun.transfer_id
        transfer.destination_key = begun.canonical_key
        transfer.part_size = begun.part_size
        expected_parts = plan_total_parts(transfer.total_size, begun.part_size)
        if begun.total_parts != expected_parts:
            transfer.transition(TransferStatus.FAILED)
            await self._discard_quietly(begun.transfer_id, begun.canonical_key)
            raise InvalidRequestError(
                f"Service planned {begun.total_parts} parts, expected {expected_parts}."
            )

        now = datetime.now(tz=UTC)
        progress = PersistedProgress(
            persistence_id=uuid4().hex,
            transfer_id=begun.transfer_id,
            destination_key=begun.canonical_key,
            total_parts=begun.total_parts,
            part_size=begun.part_size,
            file_name=run.source.name,
            file_size=transfer.total_size,
            file_last_modified=run.source.last_modified,
            content_type=transfer.content_type,
            created_at=now,
            updated_at=now,
        )
        try:
            run.progress = await self._progress_store.put(progress)
        except ProgressStoreError:
            transfer.transition(TransferStatus.FAILED)
            await self._discard_quietly(begun.transfer_id, begun.canonical_key)
            raise
        transfer.persistence_id = run.progress.persistence_id
        logger.info(
            "Began transfer %s for '%s' (%s parts of %s bytes).",
            begun.transfer_id,
            begun.canonical_key,
            begun.total_parts,
            begun.part_size,
        )

    def _run_from_resume(
        self,
        source: UploadSource,
        resume: PersistedProgress,
        control: TransferControl,
    ) -> _TransferRun:
        if resume.file_size is not None and resume.file_size != source.size:
            raise InvalidRequestError(
                f"Source size {source.size} does not match persisted size {resume.file_size}."
            )
        expected_parts = plan_total_parts(source.size, resume.part_size)
        if resume.total_parts != expected_parts:
            raise InvalidRequestError(
                f"Persisted transfer has {resume.total_parts} parts, expected {expected_parts}."
            )
        out_of_range = sorted(
            number for number in resume.completed_parts if not 1 <= number <= expected_parts
        )
        if out_of_range:
            raise InvalidRequestError(
                f"Persisted parts {out_of_range} are outside 1..{expected_parts}."
            )

        transfer = Transfer(
            destination_key=resume.destination_key,
            total_size=source.size,
            part_size=resume.part_size,
            content_type=resume.content_type,
            transfer_id=resume.transfer_id,
            persistence_id=resume.persistence_id,
            completed_parts=dict(resume.completed_parts),
        )
        return _TransferRun(transfer=transfer, source=source, control=control, progress=resume)

    def _part_worker(self, run: _TransferRun) -> PartWorker:
        transfer = run.transfer
        transfer_id = transfer.transfer_id
        assert transfer_id is not None

        async def upload_part(
            job: PartJob, report_progress: PartProgressReporter
        ) -> PartUploadResult:
            data = await run.source.read_range(job.byte_range.start, job.byte_range.end)
            result = await self._uploader.upload_part(
                transfer_id,
                transfer.destination_key,
                job.part_number,
                data,
                on_progress=report_progress,
                cancel_event=job.cancel_event,
            )
            await self._record_part(run, result)
            return result

        return upload_part

    async def _record_part(self, run: _TransferRun, result: PartUploadResult) -> None:
        """Persist a completed part, then acknowledge it in memory."""

        assert run.progress is not None
        async with run.persist_lock:
            updated = replace(
                run.progress.with_completed_part(result.part_number, result.integrity_tag),
                updated_at=datetime.now(tz=UTC),
            )
            run.progress = await self._progress_store.put(updated)
            run.transfer.record_completed_part(result.part_number, result.integrity_tag)

    async def _run_scheduler(
        self,
        run: _TransferRun,
        worker: PartWorker,
        on_progress: ProgressCallback | None,
    ) -> SchedulerReport:
        transfer = run.transfer
        baseline_bytes = sum(
            range_of(number, transfer.total_size, transfer.part_size).length
            for number in transfer.completed_parts
        )
        aggregator = ProgressAggregator(
            bytes_total=transfer.total_size,
            total_parts=transfer.total_parts,
            baseline_bytes=baseline_bytes,
            baseline_parts=len(transfer.completed_parts),
            on_progress=on_progress,
        )
        aggregator.report_initial()

        def resolve_range(part_number: int) -> PartRange:
            return range_of(part_number, transfer.total_size, transfer.part_size)

        return await self._scheduler.run(
            transfer.pending_part_numbers(),
            worker,
            resolve_range=resolve_range,
            cancel_event=run.control.cancel_event,
            aggregator=aggregator,
        )

    async def _settle(self, run: _TransferRun, report: SchedulerReport) -> TransferOutcome:
        """Decide between abort, pause, fail and finalize after transport."""

        transfer = run.transfer
        assert transfer.transfer_id is not None

        if report.cancelled:
            if run.control.abandon:
                await self._abort(run)
            else:
                transfer.transition(TransferStatus.PAUSED)
                logger.info(
                    "Paused transfer %s with %s/%s parts completed.",
                    transfer.transfer_id,
                    len(transfer.completed_parts),
                    transfer.total_parts,
                )
            return self._outcome(run, report)

        if report.failed:
            transfer.transition(TransferStatus.FAILED)
            logger.warning(
                "Transfer %s failed on parts %s; progress kept for resume.",
                transfer.transfer_id,
                sorted(failure.part_number for failure in report.failed),
            )
            return self._outcome(run, report, error=report.failed[0].error)

        if not transfer.is_fully_uploaded:
            transfer.transition(TransferStatus.FAILED)
            error = TransferStateError(
                f"Transfer {transfer.transfer_id} has "
                f"{len(transfer.completed_parts)}/{transfer.total_parts} parts completed."
            )
            return self._outcome(run, report, error=error)

        transfer.transition(TransferStatus.FINALIZING)
        try:
            await self._authorization.finalize(
                transfer.transfer_id,
                transfer.destination_key,
                transfer.sorted_completed_parts(),
            )
        except UploadError as exc:
            transfer.transition(TransferStatus.FAILED)
            logger.warning(
                "Finalizing transfer %s failed; progress kept for inspection: %s",
                transfer.transfer_id,
                exc,
            )
            return self._outcome(run, report, error=exc)

        transfer.transition(TransferStatus.COMPLETED)
        await self._forget_progress(run)
        logger.info(
            "Completed transfer %s for '%s'.", transfer.transfer_id, transfer.destination_key
        )
        return self._outcome(run, report)

    async def _abort(self, run: _TransferRun) -> None:
        transfer = run.transfer
        transfer.transition(TransferStatus.ABORTED)
        assert transfer.transfer_id is not None
        await self._discard_quietly(transfer.transfer_id, transfer.destination_key)
        await self._forget_progress(run)
        logger.info(
            "Aborted transfer %s for '%s'.", transfer.transfer_id, transfer.destination_key
        )

    async def _discard_quietly(self, transfer_id: str, key: str) -> None:
        """Discard a transfer; failures are logged since it is abandoned anyway."""

        try:
            await self._authorization.discard(transfer_id, key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Discarding transfer %s failed: %s", transfer_id, exc)

    async def _forget_progress(self, run: _TransferRun) -> None:
        persistence_id = run.transfer.persistence_id
        if persistence_id is None:
            return
        try:
            await self._progress_store.delete(persistence_id)
        except ProgressStoreError as exc:
            logger.warning("Erasing progress %s failed: %s", persistence_id, exc)
        run.transfer.persistence_id = None
        run.progress = None

    def _outcome(
        self,
        run: _TransferRun,
        report: SchedulerReport | None = None,
        error: BaseException | None = None,
    ) -> TransferOutcome:
        transfer = run.transfer
        failed_parts: dict[int, BaseException] = {}
        retries: dict[int, int] = {}
        if report is not None:
            failed_parts = {failure.part_number: failure.error for failure in report.failed}
            retries = {
                number: result.retries
                for number, result in report.results.items()
                if result.retries > 0
            }
        return TransferOutcome(
            status=transfer.status,
            destination_key=transfer.destination_key,
            transfer_id=transfer.transfer_id,
            persistence_id=transfer.persistence_id,
            completed_parts=dict(transfer.completed_parts),
            failed_parts=failed_parts,
            retries=retries,
            error=error,
        )


__all__ = ["TransferControl", "TransferOrchestrator"]
