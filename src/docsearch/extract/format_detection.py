"""Mapping between storage content types and the supported document formats."""
from __future__ import annotations

from enum import Enum

from ..errors import UnsupportedFormatError

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    PPTX = "pptx"

    @property
    def mime_type(self) -> str:
        return _FORMAT_TO_MIME[self]

    @classmethod
    def from_mime_type(cls, mime_type: str | None) -> "DocumentFormat":
        """Return the format for a content type or raise :class:`UnsupportedFormatError`."""

        if mime_type:
            detected = _MIME_TO_FORMAT.get(mime_type.split(";", 1)[0].strip().lower())
            if detected is not None:
                return detected
        raise UnsupportedFormatError(f"Unsupported content type: {mime_type!r}")


_FORMAT_TO_MIME = {
    DocumentFormat.PDF: PDF_MIME_TYPE,
    DocumentFormat.DOCX: DOCX_MIME_TYPE,
    DocumentFormat.PPTX: PPTX_MIME_TYPE,
}
_MIME_TO_FORMAT = {mime: fmt for fmt, mime in _FORMAT_TO_MIME.items()}

SUPPORTED_MIME_TYPES: tuple[str, ...] = (PDF_MIME_TYPE, DOCX_MIME_TYPE, PPTX_MIME_TYPE)
