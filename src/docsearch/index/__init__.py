"""Index construction, persistence and build supervision."""
from __future__ import annotations

from .builder import BuildProgress, BuildResult, IndexBuilder, SkippedDocument, run_with_timeout
from .jobs import BuildJobManager, BuildState, BuildStatus, get_job_manager, reset_job_manager
from .models import IndexEntry, SearchIndex, deserialize_index, serialize_index
from .store import (
    DriveIndexStore,
    InMemoryIndexStore,
    IndexStore,
    format_build_time,
    get_index_store,
    reset_index_store_cache,
)

__all__ = [
    "BuildJobManager",
    "BuildProgress",
    "BuildResult",
    "BuildState",
    "BuildStatus",
    "DriveIndexStore",
    "InMemoryIndexStore",
    "IndexBuilder",
    "IndexEntry",
    "IndexStore",
    "SearchIndex",
    "SkippedDocument",
    "deserialize_index",
    "format_build_time",
    "get_index_store",
    "get_job_manager",
    "reset_index_store_cache",
    "reset_job_manager",
    "run_with_timeout",
    "serialize_index",
]
