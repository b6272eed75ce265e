"""Progress store implementations."""

from s3browser_upload.infrastructure.stores.in_memory_progress_store import (
    InMemoryProgressStore,
)
from s3browser_upload.infrastructure.stores.postgres_progress_store import (
    PostgresProgressStore,
)

__all__ = ["InMemoryProgressStore", "PostgresProgressStore"]
