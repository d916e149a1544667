"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import socket
import sys
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("docsearch.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "DRIVE_API_BASE",
    "DRIVE_UPLOAD_BASE",
    "DRIVE_TIMEOUT_SECONDS",
    "INDEX_FILE_NAME",
    "INDEX_STORE",
    "SEARCH_PAGE_SIZE",
    "BUILD_FILE_TIMEOUT_SECONDS",
    "BUILD_FETCH_ATTEMPTS",
    "ENVIRONMENT",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    job_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if job_id:
        event["job_id"] = job_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(LOGGER, "app.startup", details=details, pid=os.getpid(), hostname=socket.gethostname())


def emit_build_event(
    step: str,
    *,
    job_id: str | None = None,
    level: str = "info",
    duration_ms: float | None = None,
    exc: BaseException | None = None,
    **details: Any,
) -> None:
    log_event(LOGGER, step, level=level, job_id=job_id, duration_ms=duration_ms, exc=exc, details=details)


def emit_file_event(
    *,
    file_id: str,
    file_name: str,
    outcome: str,
    job_id: str | None = None,
    pages: int | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    reason: str | None = None,
) -> None:
    details = {
        "file_id": file_id,
        "file": file_name,
        "outcome": outcome,
        "pages": pages,
        "size_bytes": size_bytes,
        "reason": reason,
    }
    level = "info" if outcome == "indexed" else "warning"
    log_event(LOGGER, "build.file", level=level, job_id=job_id, duration_ms=duration_ms, details=details)


def emit_search_event(*, query: str, page: int, total_results: int, duration_ms: float) -> None:
    details = {"query_length": len(query), "page": page, "total_results": total_results}
    log_event(LOGGER, "search.query", duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    job_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        job_id=job_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_app_startup_event",
    "emit_build_event",
    "emit_exception",
    "emit_file_event",
    "emit_search_event",
    "log_event",
    "traced_duration",
]
