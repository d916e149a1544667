"""Text extraction for the document formats that can be indexed."""
from __future__ import annotations

from typing import List

from .extractors import DocumentTextExtractor, DocxExtractor, PDFExtractor, PptxExtractor
from .format_detection import (
    DOCX_MIME_TYPE,
    PDF_MIME_TYPE,
    PPTX_MIME_TYPE,
    SUPPORTED_MIME_TYPES,
    DocumentFormat,
)
from .models import ExtractedPage

_DEFAULT_EXTRACTOR = DocumentTextExtractor()


def extract_text(content: bytes, content_type: DocumentFormat | str) -> List[ExtractedPage]:
    """Extract ordered pages using the default extractor."""

    return _DEFAULT_EXTRACTOR.extract(content, content_type)


__all__ = [
    "DOCX_MIME_TYPE",
    "PDF_MIME_TYPE",
    "PPTX_MIME_TYPE",
    "SUPPORTED_MIME_TYPES",
    "DocumentFormat",
    "DocumentTextExtractor",
    "DocxExtractor",
    "ExtractedPage",
    "PDFExtractor",
    "PptxExtractor",
    "extract_text",
]
