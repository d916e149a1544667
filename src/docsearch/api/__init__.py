"""HTTP routers of the document search service."""
from __future__ import annotations

from .files import router as files_router
from .index import router as index_router
from .search import router as search_router

__all__ = ["files_router", "index_router", "search_router"]
