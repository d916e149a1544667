"""Case-insensitive substring search over the persisted index."""
from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TypeVar

from .config import Settings, get_settings
from .index.models import SearchIndex
from .index.store import IndexStore
from .telemetry import emit_search_event

LOGGER = logging.getLogger(__name__)

ELLIPSIS = "..."

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One matching page of one document."""

    document_id: str
    name: str
    page_number: int
    snippet: str


@dataclass(slots=True)
class SearchPage:
    results: List[SearchResult] = field(default_factory=list)
    total_pages: int = 0
    total_results: int = 0
    page: int = 1


def make_snippet(content: str, query: str, radius: int = 50) -> str:
    """Return the text around the first match of ``query`` wrapped in ellipses.

    The window is clipped purely by character offset and clamped to the
    bounds of ``content``. An empty string is returned when there is no match.
    """

    return _window(content, compile_query(query).search(content), radius)


def compile_query(query: str) -> re.Pattern[str]:
    """Case-insensitive literal pattern; match offsets index the original text."""

    return re.compile(re.escape(query), re.IGNORECASE)


def _window(content: str, match: Optional[re.Match[str]], radius: int) -> str:
    if match is None:
        return ""
    start = max(0, match.start() - radius)
    end = min(len(content), match.end() + radius)
    return f"{ELLIPSIS}{content[start:end]}{ELLIPSIS}"


def find_matches(index: SearchIndex, query: str, *, radius: int = 50) -> List[SearchResult]:
    """Return one result per matching page, in index order then page order."""

    pattern = compile_query(query)
    results: List[SearchResult] = []
    for document_id, entry in index.items():
        for page in entry.pages:
            match = pattern.search(page.content)
            if match is None:
                continue
            results.append(
                SearchResult(
                    document_id=document_id,
                    name=entry.name,
                    page_number=page.page_number,
                    snippet=_window(page.content, match, radius),
                )
            )
    return results


def total_pages_for(count: int, page_size: int) -> int:
    return math.ceil(count / page_size) if count else 0


def paginate(items: Sequence[T], page: int, page_size: int) -> List[T]:
    """Return the 1-based ``page`` of ``items``; pages past the end are empty."""

    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


class QueryEngine:
    """Load the index on every query and scan it for the query string."""

    def __init__(self, store: IndexStore, *, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    def search(self, query: str, page: int = 1) -> SearchPage:
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        if page < 1:
            raise ValueError("page must be >= 1")

        started = time.perf_counter()
        index = self.store.load()
        matches = find_matches(index, query, radius=self.settings.snippet_radius)
        page_size = self.settings.search_page_size
        result = SearchPage(
            results=paginate(matches, page, page_size),
            total_pages=total_pages_for(len(matches), page_size),
            total_results=len(matches),
            page=page,
        )
        emit_search_event(
            query=query,
            page=page,
            total_results=len(matches),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        LOGGER.debug("Search over %s documents returned %s matches", len(index), len(matches))
        return result
