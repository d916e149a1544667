"""Durable storage of the single search index blob and its build time."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Protocol

from ..config import get_settings
from ..drive import DriveClient, parse_timestamp
from ..errors import IndexNotFoundError, MetadataNotFoundError, UpstreamUnavailableError
from ..telemetry import traced_duration
from .models import SearchIndex, deserialize_index, serialize_index

LOGGER = logging.getLogger(__name__)


def format_build_time(timestamp: datetime) -> str:
    """Render a build time as an ISO-8601 UTC string with a ``Z`` suffix."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class IndexStore(Protocol):
    """Persistence contract for the index blob and the build metadata."""

    def save(self, index: SearchIndex, *, build_time: Optional[datetime] = None) -> None:
        ...

    def load(self) -> SearchIndex:
        ...

    def save_build_time(self, timestamp: datetime) -> None:
        ...

    def load_build_time(self) -> datetime:
        ...


class DriveIndexStore:
    """Keep the index as one named JSON file in Drive.

    The build time lives in the description of that same file so that a
    single upload replaces both records.
    """

    def __init__(self, drive: DriveClient, *, file_name: Optional[str] = None) -> None:
        self.drive = drive
        self.file_name = file_name or get_settings().index_file_name

    def save(self, index: SearchIndex, *, build_time: Optional[datetime] = None) -> None:
        content = serialize_index(index)
        description = format_build_time(build_time) if build_time is not None else None
        existing = self.drive.find_file_by_name(self.file_name)
        if existing and existing.get("id"):
            self.drive.update_file(existing["id"], content, description=description)
            LOGGER.info("Updated index file %s in place (%s bytes)", existing["id"], len(content))
        else:
            created = self.drive.create_file(self.file_name, content, description=description)
            LOGGER.info("Created index file %s (%s bytes)", created.get("id"), len(content))

    def load(self) -> SearchIndex:
        existing = self.drive.find_file_by_name(self.file_name)
        if not existing or not existing.get("id"):
            raise IndexNotFoundError("Search index not found. Please build it first.")
        with traced_duration("index.download", logger=LOGGER, file_id=existing["id"]):
            raw = self.drive.download(existing["id"])
        try:
            return deserialize_index(raw)
        except ValueError as exc:
            raise UpstreamUnavailableError("Stored search index is not valid JSON", cause=exc) from exc

    def save_build_time(self, timestamp: datetime) -> None:
        existing = self.drive.find_file_by_name(self.file_name)
        if not existing or not existing.get("id"):
            raise IndexNotFoundError("Cannot record a build time before the index exists")
        self.drive.update_file(existing["id"], description=format_build_time(timestamp))

    def load_build_time(self) -> datetime:
        existing = self.drive.find_file_by_name(self.file_name)
        timestamp = parse_timestamp((existing or {}).get("description"))
        if timestamp is None:
            raise MetadataNotFoundError("No index build time has been recorded")
        return timestamp


class InMemoryIndexStore:
    """Process-local store used for development and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blob: Optional[bytes] = None
        self._build_time: Optional[datetime] = None

    def save(self, index: SearchIndex, *, build_time: Optional[datetime] = None) -> None:
        blob = serialize_index(index)
        with self._lock:
            self._blob = blob
            if build_time is not None:
                self._build_time = build_time

    def load(self) -> SearchIndex:
        with self._lock:
            blob = self._blob
        if blob is None:
            raise IndexNotFoundError("Search index not found. Please build it first.")
        return deserialize_index(blob)

    def load_raw(self) -> Optional[bytes]:
        with self._lock:
            return self._blob

    def save_build_time(self, timestamp: datetime) -> None:
        with self._lock:
            self._build_time = timestamp

    def load_build_time(self) -> datetime:
        with self._lock:
            timestamp = self._build_time
        if timestamp is None:
            raise MetadataNotFoundError("No index build time has been recorded")
        return timestamp


@lru_cache()
def _shared_memory_store() -> InMemoryIndexStore:
    return InMemoryIndexStore()


def get_index_store(drive: DriveClient) -> IndexStore:
    """Return the configured index store for the given Drive session."""

    backend = get_settings().index_store
    if backend == "memory":
        return _shared_memory_store()
    if backend == "drive":
        return DriveIndexStore(drive)
    raise ValueError(f"Unsupported INDEX_STORE backend: {backend!r}")


def reset_index_store_cache() -> None:
    """Clear the shared in-memory store (primarily for testing)."""

    _shared_memory_store.cache_clear()  # type: ignore[attr-defined]
