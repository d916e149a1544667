"""Batch construction of the search index from the user's Drive documents."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Protocol, TypeVar

from ..config import Settings, get_settings
from ..drive import SourceDocument
from ..errors import (
    DriveFileNotFoundError,
    ExtractionError,
    UnauthorizedError,
    UnsupportedFormatError,
    UpstreamUnavailableError,
)
from ..extract import DocumentFormat, DocumentTextExtractor, ExtractedPage
from ..logging_config import AUDIT_LOGGER_NAME
from ..telemetry import emit_build_event, emit_file_event
from .models import IndexEntry, SearchIndex
from .store import IndexStore

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

T = TypeVar("T")


class DocumentSource(Protocol):
    """The part of the storage client the builder depends on."""

    def iter_source_documents(self) -> Iterable[SourceDocument]:
        ...

    def download(self, file_id: str) -> bytes:
        ...


@dataclass(frozen=True, slots=True)
class BuildProgress:
    current: int
    total: int
    message: str


@dataclass(frozen=True, slots=True)
class SkippedDocument:
    document_id: str
    name: str
    reason: str


@dataclass(slots=True)
class BuildResult:
    """Summary of a completed build."""

    indexed_count: int
    scanned_count: int
    build_time: datetime
    duration_seconds: float
    skipped: List[SkippedDocument] = field(default_factory=list)


ProgressCallback = Callable[[BuildProgress], None]


def run_with_timeout(func: Callable[[], T], timeout: Optional[float]) -> T:
    """Run ``func`` in a daemon thread and give up waiting after ``timeout`` seconds.

    A worker that overruns is abandoned and raises ``TimeoutError`` here. The
    thread is a daemon, so a parser that never returns does not keep the
    interpreter alive once the build is over.
    """

    outcome: dict = {}

    def target() -> None:
        try:
            outcome["value"] = func()
        except BaseException as error:  # re-raised in the caller's thread
            outcome["error"] = error

    worker = threading.Thread(target=target, name="docsearch-file", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise TimeoutError(f"gave up after {timeout}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


class IndexBuilder:
    """Rebuild the whole index from the current set of source documents."""

    def __init__(
        self,
        source: DocumentSource,
        store: IndexStore,
        *,
        extractor: DocumentTextExtractor | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source = source
        self.store = store
        self.extractor = extractor or DocumentTextExtractor()
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def build(self, on_progress: ProgressCallback | None = None, *, job_id: str | None = None) -> BuildResult:
        """Extract every eligible document and replace the persisted index.

        Listing and persistence failures abort the build and leave the previous
        index in place. Failures for a single document only skip that document.
        """

        started = time.perf_counter()
        report = on_progress or (lambda _progress: None)

        documents = self._unique(self.source.iter_source_documents())
        total = len(documents)
        emit_build_event("build.start", job_id=job_id, total=total)
        report(BuildProgress(current=0, total=total, message=f"Found {total} files to process."))

        index: SearchIndex = {}
        skipped: List[SkippedDocument] = []
        for position, document in enumerate(documents, start=1):
            file_started = time.perf_counter()
            pages, reason = self._process(document)
            duration_ms = (time.perf_counter() - file_started) * 1000.0

            if pages:
                index[document.id] = IndexEntry(name=document.name, pages=pages)
                message = f"Indexed {document.name} ({len(pages)} pages)"
                emit_file_event(
                    file_id=document.id,
                    file_name=document.name,
                    outcome="indexed",
                    job_id=job_id,
                    pages=len(pages),
                    size_bytes=document.size,
                    duration_ms=duration_ms,
                )
            else:
                reason = reason or "no extractable text"
                skipped.append(SkippedDocument(document_id=document.id, name=document.name, reason=reason))
                message = f"Skipped {document.name}: {reason}"
                emit_file_event(
                    file_id=document.id,
                    file_name=document.name,
                    outcome="skipped",
                    job_id=job_id,
                    size_bytes=document.size,
                    duration_ms=duration_ms,
                    reason=reason,
                )
            report(BuildProgress(current=position, total=total, message=message))

        build_time = self._clock()
        self.store.save(index, build_time=build_time)

        duration = time.perf_counter() - started
        emit_build_event(
            "build.complete",
            job_id=job_id,
            duration_ms=duration * 1000.0,
            indexed=len(index),
            scanned=total,
            skipped=len(skipped),
        )
        AUDIT_LOGGER.info(
            {
                "event": "index_build",
                "job_id": job_id,
                "indexed": len(index),
                "scanned": total,
                "skipped": len(skipped),
                "duration_ms": round(duration * 1000.0, 3),
            }
        )
        return BuildResult(
            indexed_count=len(index),
            scanned_count=total,
            build_time=build_time,
            duration_seconds=duration,
            skipped=skipped,
        )

    def _unique(self, documents: Iterable[SourceDocument]) -> List[SourceDocument]:
        seen: set[str] = set()
        unique: List[SourceDocument] = []
        for document in documents:
            if document.id in seen:
                continue
            seen.add(document.id)
            unique.append(document)
        return unique

    def _process(self, document: SourceDocument) -> tuple[List[ExtractedPage], Optional[str]]:
        try:
            pages = run_with_timeout(
                lambda: self._extract_document(document),
                self.settings.build_file_timeout_seconds,
            )
        except UnauthorizedError:
            raise
        except TimeoutError:
            LOGGER.warning(
                "Timed out after %.1fs processing %s", self.settings.build_file_timeout_seconds, document.name
            )
            return [], "timed out"
        except UnsupportedFormatError as error:
            LOGGER.info("Skipping %s: %s", document.name, error)
            return [], "unsupported format"
        except (ExtractionError, UpstreamUnavailableError) as error:
            LOGGER.warning("Skipping %s due to error: %s", document.name, error)
            return [], str(error)
        except Exception as error:  # parser crashes must not abort the build
            LOGGER.exception("Unexpected error while processing %s", document.name)
            return [], f"{type(error).__name__}: {error}"
        return pages, None

    def _extract_document(self, document: SourceDocument) -> List[ExtractedPage]:
        document_format = DocumentFormat.from_mime_type(document.mime_type)
        content = self._download(document)
        return self.extractor.extract(content, document_format)

    def _download(self, document: SourceDocument) -> bytes:
        attempts = self.settings.build_fetch_attempts
        attempt = 1
        while True:
            try:
                return self.source.download(document.id)
            except DriveFileNotFoundError:
                raise
            except UpstreamUnavailableError as error:
                if attempt >= attempts:
                    raise
                LOGGER.info(
                    "Download of %s failed (attempt %s/%s): %s", document.name, attempt, attempts, error
                )
                attempt += 1
