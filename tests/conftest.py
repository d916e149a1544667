"""Shared fixtures and lightweight Drive doubles for the test-suite."""
from __future__ import annotations

import io
import os
import tempfile
import zipfile
from typing import Callable, Dict, Iterable, List, Optional

import pytest

# The application configures its file handlers on import.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="docsearch-logs-"))

from docsearch.config import reset_settings_cache  # noqa: E402
from docsearch.drive import DriveFilePage, SourceDocument  # noqa: E402
from docsearch.errors import DriveFileNotFoundError  # noqa: E402
from docsearch.extract import PPTX_MIME_TYPE  # noqa: E402
from docsearch.index import reset_index_store_cache, reset_job_manager  # noqa: E402


class FakeDrive:
    """In-memory stand-in for :class:`docsearch.drive.DriveClient`."""

    def __init__(
        self,
        documents: Iterable[SourceDocument] = (),
        contents: Optional[Dict[str, bytes]] = None,
        failures: Optional[Dict[str, List[Exception]]] = None,
    ) -> None:
        self.documents = list(documents)
        self.contents = dict(contents or {})
        self.failures = {key: list(value) for key, value in (failures or {}).items()}
        self.list_error: Optional[Exception] = None
        self.downloads: List[str] = []
        self.list_calls: List[dict] = []
        self.closed = False

    def __enter__(self) -> "FakeDrive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    def iter_source_documents(self):
        if self.list_error is not None:
            raise self.list_error
        yield from self.documents

    def download(self, file_id: str) -> bytes:
        self.downloads.append(file_id)
        pending = self.failures.get(file_id)
        if pending:
            raise pending.pop(0)
        if file_id not in self.contents:
            raise DriveFileNotFoundError(f"Drive file {file_id} was not found")
        return self.contents[file_id]

    def list_files_page(self, **kwargs) -> DriveFilePage:
        self.list_calls.append(kwargs)
        if self.list_error is not None:
            raise self.list_error
        return DriveFilePage(files=list(self.documents), next_page_token="next-token")

    def get_file(self, file_id: str) -> SourceDocument:
        for document in self.documents:
            if document.id == file_id:
                return document
        raise DriveFileNotFoundError(f"Drive file {file_id} was not found")

    def find_file_by_name(self, name: str):
        return None


def build_pptx(*slides: str) -> bytes:
    """Return a minimal slide deck archive with one ``<a:t>`` run per slide."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        for number, text in enumerate(slides, start=1):
            archive.writestr(
                f"ppt/slides/slide{number}.xml",
                f'<p:sld xmlns:p="p" xmlns:a="a"><p:cSld><a:t>{text}</a:t></p:cSld></p:sld>',
            )
            archive.writestr(f"ppt/slides/_rels/slide{number}.xml.rels", "<Relationships/>")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("INDEX_STORE", "memory")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("STATUS_POLL_INTERVAL_SECONDS", "0.01")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    reset_settings_cache()
    reset_index_store_cache()
    reset_job_manager()
    yield
    from docsearch.main import app

    app.dependency_overrides.clear()
    reset_job_manager()
    reset_index_store_cache()
    reset_settings_cache()


@pytest.fixture
def fake_drive_factory() -> Callable[..., FakeDrive]:
    return FakeDrive


@pytest.fixture
def make_pptx() -> Callable[..., bytes]:
    return build_pptx


@pytest.fixture
def pptx_document() -> Callable[..., SourceDocument]:
    def _make(document_id: str, name: str, **kwargs) -> SourceDocument:
        return SourceDocument(id=document_id, name=name, mime_type=PPTX_MIME_TYPE, **kwargs)

    return _make
