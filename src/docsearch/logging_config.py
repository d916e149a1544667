"""JSON logging for the service and the build audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from .config import Settings, get_settings

AUDIT_LOGGER_NAME = "docsearch.index.audit"
AUDIT_LOG_FILE_NAME = "build_audit.log"

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """One JSON object per line.

    Dict messages (the shape ``telemetry.log_event`` and the build audit use)
    are merged into the top level; anything else lands under ``message``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: Dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "module": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        elif record.getMessage():
            payload["message"] = record.getMessage()
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def audit_log_path(settings: Settings) -> Path:
    return Path(settings.log_dir) / AUDIT_LOG_FILE_NAME


def _audit_handler(settings: Settings) -> Dict[str, Any]:
    path = audit_log_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.FileHandler",
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def configure_logging(settings: Settings | None = None, *, verbose: bool = False) -> Path:
    """Send JSON logs to stderr and build audit records to their own file.

    Returns the path of the audit log. ``verbose`` lowers the root level to
    DEBUG regardless of ``LOG_LEVEL``.
    """

    settings = settings or get_settings()
    audit = _audit_handler(settings)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "json"},
                "build_audit": audit,
            },
            "root": {"level": "DEBUG" if verbose else settings.log_level, "handlers": ["console"]},
            "loggers": {AUDIT_LOGGER_NAME: {"level": "INFO", "handlers": ["build_audit"], "propagate": False}},
        }
    )
    return Path(audit["filename"])
