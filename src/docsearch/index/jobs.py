"""Supervision of background index builds and their status records."""
from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from ..errors import BuildInProgressError
from ..telemetry import emit_build_event, emit_exception
from .builder import BuildProgress, BuildResult, ProgressCallback

LOGGER = logging.getLogger(__name__)

BuildRunner = Callable[[ProgressCallback, str], BuildResult]


class BuildState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class BuildStatus:
    """Last written state of one build run."""

    job_id: Optional[str]
    state: BuildState
    message: str = ""
    progress: Optional[int] = None
    total: Optional[int] = None
    indexed_count: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in (BuildState.COMPLETE, BuildState.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.state.value,
            "message": self.message,
            "progress": self.progress,
            "total": self.total,
            "indexed_count": self.indexed_count,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class BuildJobManager:
    """Run builds one at a time on a dedicated worker thread.

    Every run gets a job id and a status record that the worker overwrites as
    it goes; readers always see the latest complete write.
    """

    def __init__(self, *, max_history: int = 20) -> None:
        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="docsearch-build")
        self._jobs: "OrderedDict[str, BuildStatus]" = OrderedDict()
        self._futures: Dict[str, Future] = {}
        self._latest: Optional[str] = None
        self._max_history = max_history

    def start(self, run_build: BuildRunner) -> BuildStatus:
        """Queue a build and return its initial status.

        Raises :class:`BuildInProgressError` when a build is still processing.
        """

        with self._lock:
            running = self._running_job_id()
            if running is not None:
                raise BuildInProgressError(running)

            job_id = uuid.uuid4().hex
            now = _utcnow()
            self._jobs[job_id] = BuildStatus(
                job_id=job_id,
                state=BuildState.PROCESSING,
                message="Index build started.",
                progress=0,
                started_at=now,
                updated_at=now,
                version=1,
            )
            self._latest = job_id
            self._trim_history()
            self._futures[job_id] = self._executor.submit(self._run, job_id, run_build)
            LOGGER.info("Queued index build %s", job_id)
            return replace(self._jobs[job_id])

    def status(self, job_id: Optional[str] = None) -> BuildStatus:
        """Return the status of ``job_id`` or of the latest run; ``KeyError`` for unknown ids."""

        with self._lock:
            if job_id is None:
                job_id = self._latest
                if job_id is None:
                    return BuildStatus(job_id=None, state=BuildState.IDLE, message="No index build has run yet.")
            return replace(self._jobs[job_id])

    def wait(self, job_id: str, timeout: Optional[float] = None) -> BuildStatus:
        """Block until the run finishes (or ``timeout`` elapses) and return its status."""

        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            wait_for_futures([future], timeout=timeout)
        return self.status(job_id)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # Worker side -----------------------------------------------------------
    def _run(self, job_id: str, run_build: BuildRunner) -> BuildResult:
        try:
            result = run_build(lambda progress: self._on_progress(job_id, progress), job_id)
        except Exception as error:
            self._on_failure(job_id, error)
            raise
        self._on_success(job_id, result)
        return result

    def _on_progress(self, job_id: str, progress: BuildProgress) -> None:
        self._update(job_id, progress=progress.current, total=progress.total, message=progress.message)

    def _on_success(self, job_id: str, result: BuildResult) -> None:
        self._update(
            job_id,
            state=BuildState.COMPLETE,
            progress=result.scanned_count,
            total=result.scanned_count,
            indexed_count=result.indexed_count,
            message=f"Successfully indexed {result.indexed_count} files.",
            finished_at=_utcnow(),
        )

    def _on_failure(self, job_id: str, error: Exception) -> None:
        emit_exception(module=__name__, error=error, job_id=job_id)
        emit_build_event("build.error", job_id=job_id, level="error", error=str(error))
        self._update(
            job_id,
            state=BuildState.ERROR,
            message=f"Index build failed: {error}",
            finished_at=_utcnow(),
        )

    def _update(self, job_id: str, **changes: Any) -> None:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                return
            self._jobs[job_id] = replace(current, updated_at=_utcnow(), version=current.version + 1, **changes)

    def _running_job_id(self) -> Optional[str]:
        for job_id, status in self._jobs.items():
            if status.state is BuildState.PROCESSING:
                return job_id
        return None

    def _trim_history(self) -> None:
        while len(self._jobs) > self._max_history:
            oldest = next(iter(self._jobs))
            if oldest == self._latest:
                break
            self._jobs.pop(oldest)
            self._futures.pop(oldest, None)


@lru_cache()
def get_job_manager() -> BuildJobManager:
    """Return the process-wide build job manager."""

    return BuildJobManager()


def reset_job_manager() -> None:
    """Shut down and forget the cached manager (primarily for testing)."""

    if get_job_manager.cache_info().currsize:  # type: ignore[attr-defined]
        get_job_manager().shutdown()
    get_job_manager.cache_clear()  # type: ignore[attr-defined]
