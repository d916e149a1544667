"""API router exposing keyword search over the index."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from ..index import IndexStore
from ..search import QueryEngine, SearchResult
from .deps import get_store

router = APIRouter(tags=["search"])


class SearchResultItem(BaseModel):
    """Individual matching page returned by a search."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    page_number: int = Field(..., alias="pageNumber")
    snippet: str


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: list[SearchResultItem]
    total_pages: int = Field(..., alias="totalPages")
    total_results: int = Field(..., alias="totalResults")
    page: int


def _serialise_result(result: SearchResult) -> SearchResultItem:
    return SearchResultItem(
        id=result.document_id,
        name=result.name,
        page_number=result.page_number,
        snippet=result.snippet,
    )


@router.get("/search", response_model=SearchResponse)
def search_documents(
    q: Optional[str] = Query(None, description="Text to look for in the indexed documents."),
    page: int = Query(1, ge=1, description="1-based page of results."),
    store: IndexStore = Depends(get_store),
) -> SearchResponse:
    """Return one result per matching document page, ten per page."""

    if q is None or not q.strip():
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")

    result = QueryEngine(store).search(q, page)
    return SearchResponse(
        results=[_serialise_result(item) for item in result.results],
        total_pages=result.total_pages,
        total_results=result.total_results,
        page=result.page,
    )
