"""Advisory freshness check of the index against the current Drive contents."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from .drive import SourceDocument


class IndexStatus(str, Enum):
    CHECKING = "checking"
    UPTODATE = "uptodate"
    OUTDATED = "outdated"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class IndexStatusInfo:
    status: IndexStatus
    message: str
    last_build_time: Optional[datetime] = None
    latest_modified_time: Optional[datetime] = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_status(current_files: Iterable[SourceDocument], last_build_time: Optional[datetime]) -> IndexStatusInfo:
    """Classify the index as up to date, outdated or absent.

    ``last_build_time`` is ``None`` when no build has been recorded. Files
    without a modification time do not take part in the comparison.
    """

    if last_build_time is None:
        return IndexStatusInfo(status=IndexStatus.NONE, message="No search index has been built yet.")

    built = _as_utc(last_build_time)
    modified = [_as_utc(document.modified_time) for document in current_files if document.modified_time]
    latest = max(modified, default=None)
    changed = sum(1 for value in modified if value > built)

    if latest is not None and latest > built:
        noun = "file has" if changed == 1 else "files have"
        return IndexStatusInfo(
            status=IndexStatus.OUTDATED,
            message=f"{changed} {noun} changed since the index was built. Rebuild to include them.",
            last_build_time=built,
            latest_modified_time=latest,
        )
    return IndexStatusInfo(
        status=IndexStatus.UPTODATE,
        message="The search index is up to date.",
        last_build_time=built,
        latest_modified_time=latest,
    )
