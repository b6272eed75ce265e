"""Shared runtime utilities for transfer execution."""

from s3browser_upload.infrastructure.runtime.part_scheduler import (
    PartProgressReporter,
    PartScheduler,
    PartWorker,
    ProgressAggregator,
    SchedulerReport,
)

__all__ = [
    "PartProgressReporter",
    "PartScheduler",
    "PartWorker",
    "ProgressAggregator",
    "SchedulerReport",
]
