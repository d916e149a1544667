import io
import zipfile

import pytest

from docsearch.errors import ExtractionError, UnsupportedFormatError
from docsearch.extract import (
    DOCX_MIME_TYPE,
    PDF_MIME_TYPE,
    PPTX_MIME_TYPE,
    DocumentFormat,
    ExtractedPage,
    extract_text,
)
from docsearch.extract import extractors


def _build_pdf(*page_texts: str) -> bytes:
    """Assemble a small PDF with one Helvetica text run per page and a valid xref table."""

    count = len(page_texts)
    kids = " ".join(f"{4 + 2 * index} 0 R" for index in range(count))
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {count} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for index, text in enumerate(page_texts):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 300 300] "
                f"/Contents {5 + 2 * index} 0 R /Resources << /Font << /F1 3 0 R >> >> >>"
            ).encode()
        )
        stream = f"BT /F1 12 Tf 20 150 Td ({text}) Tj ET".encode()
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    output = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(output))
        output += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(output)
    output += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        output += b"%010d 00000 n \n" % offset
    output += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
    return bytes(output)


def _build_docx(*paragraphs: str, merged_cell: str | None = None) -> bytes:
    docx_mod = pytest.importorskip("docx", reason="python-docx is required for DOCX tests")
    document = docx_mod.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if merged_cell is not None:
        table = document.add_table(rows=1, cols=2)
        merged = table.cell(0, 0).merge(table.cell(0, 1))
        merged.text = merged_cell
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class _StubPage:
    def __init__(self, runs):
        self._runs = runs

    def extract_text(self, visitor_text=None):
        for run in self._runs:
            visitor_text(run, None, None, None, None)
        return "".join(self._runs)


class _StubReader:
    pages: list = []

    def __init__(self, _stream):
        pass


def test_pdf_pages_are_numbered_in_document_order() -> None:
    pages = extract_text(_build_pdf("Hello PDF", "Second page"), PDF_MIME_TYPE)

    assert [page.page_number for page in pages] == [1, 2]
    assert "Hello" in pages[0].content and "PDF" in pages[0].content
    assert "Second" in pages[1].content


def test_pdf_text_runs_are_joined_with_single_spaces(monkeypatch: pytest.MonkeyPatch) -> None:
    class Reader(_StubReader):
        pages = [_StubPage(["Quarterly", "  ", "report\n", "2024"]), _StubPage(["Appendix"])]

    monkeypatch.setattr(extractors, "PdfReader", Reader)

    pages = extractors.PDFExtractor().extract(b"%PDF-stub")

    assert pages == [
        ExtractedPage(page_number=1, content="Quarterly report 2024"),
        ExtractedPage(page_number=2, content="Appendix"),
    ]


def test_pdf_without_any_text_yields_no_pages(monkeypatch: pytest.MonkeyPatch) -> None:
    class Reader(_StubReader):
        pages = [_StubPage([]), _StubPage(["   "])]

    monkeypatch.setattr(extractors, "PdfReader", Reader)

    assert extractors.PDFExtractor().extract(b"%PDF-stub") == []


def test_pdf_falls_back_to_pdfminer_when_pypdf2_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    pytest.importorskip("pdfminer.high_level", reason="pdfminer.six is required for PDF extraction tests")

    def broken_reader(_stream):
        raise ValueError("cannot parse")

    monkeypatch.setattr(extractors, "PdfReader", broken_reader)

    pages = extractors.PDFExtractor().extract(_build_pdf("Hello PDF"))

    assert len(pages) == 1
    assert pages[0].page_number == 1
    assert "Hello PDF" in pages[0].content


def test_unreadable_pdf_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError):
        extract_text(b"definitely not a pdf", PDF_MIME_TYPE)


def test_docx_paragraphs_form_a_single_page() -> None:
    pages = extract_text(_build_docx("First paragraph", "Second paragraph"), DOCX_MIME_TYPE)

    assert pages == [ExtractedPage(page_number=1, content="First paragraph\n\nSecond paragraph")]


def test_docx_merged_table_cells_are_read_once() -> None:
    pages = extract_text(_build_docx("Intro", merged_cell="Merged cell text"), DOCX_MIME_TYPE)

    assert len(pages) == 1
    assert pages[0].content.startswith("Intro")
    assert pages[0].content.count("Merged cell text") == 1


def test_docx_falls_back_to_raw_document_xml() -> None:
    document_xml = (
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        "<w:body><w:p><w:r><w:t>Hello </w:t></w:r><w:r><w:t>fallback</w:t></w:r></w:p>"
        "<w:p><w:r><w:t>Second</w:t></w:r></w:p></w:body></w:document>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/document.xml", document_xml)

    pages = extract_text(buffer.getvalue(), DOCX_MIME_TYPE)

    assert pages == [ExtractedPage(page_number=1, content="Hello fallback\n\nSecond")]


def test_corrupt_docx_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError):
        extract_text(b"not a zip archive", DOCX_MIME_TYPE)


def test_pptx_slides_are_flattened_into_one_page(make_pptx) -> None:
    deck = make_pptx("Quarterly &amp; Annual", "Revenue grew")

    pages = extract_text(deck, PPTX_MIME_TYPE)

    assert pages == [ExtractedPage(page_number=1, content="Quarterly & Annual Revenue grew")]


def test_corrupt_pptx_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError):
        extract_text(b"PK-but-not-really", PPTX_MIME_TYPE)


@pytest.mark.parametrize("mime_type", ["text/plain", "image/png", "", None])
def test_unsupported_content_types_are_rejected(mime_type) -> None:
    with pytest.raises(UnsupportedFormatError):
        extract_text(b"payload", mime_type)


def test_mime_type_parameters_and_case_are_ignored() -> None:
    assert DocumentFormat.from_mime_type("Application/PDF; charset=binary") is DocumentFormat.PDF
    assert DocumentFormat.DOCX.mime_type == DOCX_MIME_TYPE


def test_page_numbers_start_at_one() -> None:
    with pytest.raises(ValueError):
        ExtractedPage(page_number=0, content="x")
