"""Data models produced by the text extractors."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ExtractedPage:
    """Text extracted from one page of a source document.

    Non-paginated formats (Word documents and slide decks) always produce a
    single page numbered 1.
    """

    page_number: int
    content: str

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")

    def to_dict(self) -> dict[str, Any]:
        return {"pageNumber": self.page_number, "content": self.content}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ExtractedPage":
        return cls(page_number=int(payload["pageNumber"]), content=str(payload.get("content") or ""))
