"""Persisted shape of the search index."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from ..extract.models import ExtractedPage

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexEntry:
    """Extracted pages of one document, keyed in the index by document id."""

    name: str
    pages: List[ExtractedPage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "pages": [page.to_dict() for page in self.pages]}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "IndexEntry":
        pages = [ExtractedPage.from_dict(page) for page in payload.get("pages") or []]
        return cls(name=str(payload.get("name") or ""), pages=pages)


# Insertion order is the result order of every query.
SearchIndex = Dict[str, IndexEntry]


def serialize_index(index: SearchIndex) -> bytes:
    """Encode the index as compact UTF-8 JSON, preserving document order."""

    payload = {document_id: entry.to_dict() for document_id, entry in index.items() if entry.pages}
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def deserialize_index(raw: bytes | str | Mapping[str, Any]) -> SearchIndex:
    """Decode an index blob, dropping entries that have no pages."""

    payload = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
    if not isinstance(payload, Mapping):
        raise ValueError("Search index payload must be a JSON object")

    index: SearchIndex = {}
    for document_id, entry_payload in payload.items():
        if not isinstance(entry_payload, Mapping):
            LOGGER.warning("Skipping malformed index entry for %s", document_id)
            continue
        entry = IndexEntry.from_dict(entry_payload)
        if not entry.pages:
            continue
        index[str(document_id)] = entry
    return index
