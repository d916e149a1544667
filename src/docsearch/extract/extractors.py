"""Extractors for supported document types."""
from __future__ import annotations

import html
import io
import logging
import re
import xml.etree.ElementTree as ET
import zipfile
from typing import Callable, Dict, List

from docx import Document as load_docx
from pdfminer.high_level import extract_pages
from pdfminer.layout import LTTextContainer
from PyPDF2 import PdfReader

from ..errors import ExtractionError
from .format_detection import DocumentFormat
from .models import ExtractedPage

LOGGER = logging.getLogger(__name__)

_WORD_NAMESPACE = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
_XML_TAG_RE = re.compile(r"<[^>]*>")
_SLIDE_PREFIX = "ppt/slides/"


def _join_runs(runs: List[str]) -> str:
    return " ".join(part for part in (run.strip() for run in runs) if part)


class PDFExtractor:
    """Extract per-page text from PDF documents."""

    def extract(self, data: bytes) -> List[ExtractedPage]:
        """Return one page per PDF page, or an empty list when the document has no text."""

        try:
            pages = self._extract_with_pypdf2(data)
        except Exception as error:
            LOGGER.warning("PyPDF2 failed to parse PDF (%s); falling back to pdfminer", error)
            try:
                pages = self._extract_with_pdfminer(data)
            except Exception as fallback_error:
                raise ExtractionError("Unable to parse PDF document", cause=fallback_error) from fallback_error

        if not any(page.content.strip() for page in pages):
            LOGGER.info("PDF with %s pages contains no extractable text", len(pages))
            return []
        return pages

    def _extract_with_pypdf2(self, data: bytes) -> List[ExtractedPage]:
        reader = PdfReader(io.BytesIO(data))
        pages: List[ExtractedPage] = []
        for index, page in enumerate(reader.pages, start=1):
            runs: List[str] = []

            def _collect(text, *_args) -> None:
                if text:
                    runs.append(text)

            try:
                returned = page.extract_text(visitor_text=_collect) or ""
            except Exception as error:  # pragma: no cover - depends on the PDF content stream
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                runs, returned = [], ""
            text = _join_runs(runs) if runs else _join_runs(returned.splitlines())
            pages.append(ExtractedPage(page_number=index, content=text))
        return pages

    def _extract_with_pdfminer(self, data: bytes) -> List[ExtractedPage]:
        pages: List[ExtractedPage] = []
        for index, layout in enumerate(extract_pages(io.BytesIO(data)), start=1):
            runs = [element.get_text() for element in layout if isinstance(element, LTTextContainer)]
            pages.append(ExtractedPage(page_number=index, content=_join_runs(runs)))
        return pages


class DocxExtractor:
    """Extract text from Microsoft Word documents."""

    def extract(self, data: bytes) -> List[ExtractedPage]:
        try:
            document = load_docx(io.BytesIO(data))
        except Exception as error:
            LOGGER.warning("python-docx failed to parse DOCX content (%s); attempting fallback", error)
            return [ExtractedPage(page_number=1, content=self._fallback_extract(data))]

        text_parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text]
        seen_cells = set()
        for table in document.tables:
            for row in table.rows:
                for cell in row.cells:
                    # merged cells are returned once per spanned grid column
                    if cell._tc in seen_cells:
                        continue
                    seen_cells.add(cell._tc)
                    text_parts.extend(paragraph.text for paragraph in cell.paragraphs if paragraph.text)
        return [ExtractedPage(page_number=1, content="\n\n".join(text_parts))]

    def _fallback_extract(self, data: bytes) -> str:
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                xml_bytes = archive.read("word/document.xml")
            root = ET.fromstring(xml_bytes)
        except (zipfile.BadZipFile, KeyError, ET.ParseError) as error:
            raise ExtractionError("Unable to read DOCX document", cause=error) from error

        paragraphs = []
        for paragraph in root.iter(f"{_WORD_NAMESPACE}p"):
            text = "".join(node.text for node in paragraph.iter(f"{_WORD_NAMESPACE}t") if node.text)
            if text:
                paragraphs.append(text)
        return "\n\n".join(paragraphs)


class PptxExtractor:
    """Extract the text of every slide of a PowerPoint deck as a single page."""

    def extract(self, data: bytes) -> List[ExtractedPage]:
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                slide_names = [
                    name for name in archive.namelist() if name.startswith(_SLIDE_PREFIX) and name.endswith(".xml")
                ]
                fragments: List[str] = []
                for name in slide_names:
                    xml_text = archive.read(name).decode("utf-8", errors="replace")
                    fragments.extend(html.unescape(fragment) for fragment in _XML_TAG_RE.split(xml_text))
        except zipfile.BadZipFile as error:
            raise ExtractionError("Unable to open PPTX archive", cause=error) from error

        LOGGER.debug("Read %s slide parts from PPTX archive", len(slide_names))
        return [ExtractedPage(page_number=1, content=_join_runs(fragments))]


class DocumentTextExtractor:
    """Dispatch extraction to the handler registered for each document format."""

    def __init__(self) -> None:
        self.pdf_extractor = PDFExtractor()
        self.docx_extractor = DocxExtractor()
        self.pptx_extractor = PptxExtractor()
        self._handlers: Dict[DocumentFormat, Callable[[bytes], List[ExtractedPage]]] = {
            DocumentFormat.PDF: self.pdf_extractor.extract,
            DocumentFormat.DOCX: self.docx_extractor.extract,
            DocumentFormat.PPTX: self.pptx_extractor.extract,
        }

    def extract(self, content: bytes, content_type: DocumentFormat | str) -> List[ExtractedPage]:
        """Extract ordered pages from ``content``.

        ``content_type`` is either a :class:`DocumentFormat` or a MIME type.
        Unknown MIME types raise :class:`~docsearch.errors.UnsupportedFormatError`
        and parser failures raise :class:`~docsearch.errors.ExtractionError`.
        """

        document_format = (
            content_type if isinstance(content_type, DocumentFormat) else DocumentFormat.from_mime_type(content_type)
        )
        return self._handlers[document_format](content)
