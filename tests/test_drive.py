import json
from datetime import datetime, timezone

import httpx
import pytest

from docsearch.config import Settings
from docsearch.drive import (
    SUPPORTED_FILES_QUERY,
    DriveClient,
    SourceDocument,
    escape_query_value,
    parse_timestamp,
)
from docsearch.errors import DriveFileNotFoundError, UnauthorizedError, UpstreamUnavailableError
from docsearch.extract import PDF_MIME_TYPE


def _client(handler) -> DriveClient:
    transport = httpx.MockTransport(handler)
    return DriveClient("secret-token", settings=Settings(), client=httpx.Client(transport=transport))


def _file(file_id: str, name: str, modified: str = "2024-01-01T10:00:00.000Z") -> dict:
    return {"id": file_id, "name": name, "mimeType": PDF_MIME_TYPE, "modifiedTime": modified, "size": "42"}


def test_listing_follows_continuation_tokens() -> None:
    seen_tokens = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url.params["q"] == SUPPORTED_FILES_QUERY
        token = request.url.params.get("pageToken")
        seen_tokens.append(token)
        if token is None:
            return httpx.Response(200, json={"files": [_file("a", "A.pdf")], "nextPageToken": "page-2"})
        return httpx.Response(200, json={"files": [_file("b", "B.pdf")]})

    documents = _client(handler).list_all_source_documents()

    assert [document.id for document in documents] == ["a", "b"]
    assert seen_tokens == [None, "page-2"]
    assert documents[0].modified_time == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert documents[0].size == 42


def test_supported_files_query_excludes_trash_and_other_types() -> None:
    assert "trashed = false" in SUPPORTED_FILES_QUERY
    assert f"mimeType='{PDF_MIME_TYPE}'" in SUPPORTED_FILES_QUERY
    assert "image/" not in SUPPORTED_FILES_QUERY


def test_name_filter_is_escaped_and_ordering_forwarded() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(request.url.params)
        return httpx.Response(200, json={"files": [], "nextPageToken": "more"})

    page = _client(handler).list_files_page(name_filter="O'Brien", page_size=10, order_by="createdTime desc")

    assert captured["q"].endswith("and name contains 'O\\'Brien'")
    assert captured["pageSize"] == "10"
    assert captured["orderBy"] == "createdTime desc"
    assert page.files == []
    assert page.next_page_token == "more"


def test_download_returns_raw_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/files/abc")
        assert request.url.params["alt"] == "media"
        return httpx.Response(200, content=b"%PDF-bytes")

    assert _client(handler).download("abc") == b"%PDF-bytes"


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_credentials_raise_unauthorized(status_code: int) -> None:
    client = _client(lambda request: httpx.Response(status_code, json={"error": "denied"}))

    with pytest.raises(UnauthorizedError):
        client.list_files_page()


def test_missing_file_raises_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, json={"error": "missing"}))

    with pytest.raises(DriveFileNotFoundError):
        client.get_file("gone")


def test_server_errors_raise_upstream_unavailable() -> None:
    client = _client(lambda request: httpx.Response(503, text="unavailable"))

    with pytest.raises(UpstreamUnavailableError) as excinfo:
        client.list_files_page()
    assert not isinstance(excinfo.value, DriveFileNotFoundError)


def test_transport_errors_raise_upstream_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailableError):
        _client(handler).download("abc")


def test_blank_token_is_rejected_before_any_request() -> None:
    with pytest.raises(UnauthorizedError):
        DriveClient("   ", settings=Settings())


def test_create_file_uploads_metadata_and_content_together() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        captured["content_type"] = request.headers["Content-Type"]
        captured["body"] = request.content
        return httpx.Response(200, json={"id": "new-id", "name": "search_index.json"})

    created = _client(handler).create_file("search_index.json", b'{"a":1}', description="2024-01-01T00:00:00Z")

    assert created["id"] == "new-id"
    assert captured["method"] == "POST"
    assert captured["path"] == "/upload/drive/v3/files"
    assert captured["params"]["uploadType"] == "multipart"
    assert captured["content_type"].startswith("multipart/related; boundary=")
    assert b'"description": "2024-01-01T00:00:00Z"' in captured["body"]
    assert b'{"a":1}' in captured["body"]


def test_update_file_without_content_patches_metadata_only() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "idx", "description": "2024-02-02T00:00:00Z"})

    _client(handler).update_file("idx", description="2024-02-02T00:00:00Z")

    assert captured["method"] == "PATCH"
    assert captured["url"].startswith("https://www.googleapis.com/drive/v3/files/idx")
    assert captured["body"] == {"description": "2024-02-02T00:00:00Z"}


def test_find_file_by_name_returns_first_match_or_none() -> None:
    responses = iter(
        [
            httpx.Response(200, json={"files": [{"id": "idx", "name": "search_index.json", "description": "t"}]}),
            httpx.Response(200, json={"files": []}),
        ]
    )
    client = _client(lambda request: next(responses))

    assert client.find_file_by_name("search_index.json")["id"] == "idx"
    assert client.find_file_by_name("search_index.json") is None


def test_source_document_round_trips_api_payload() -> None:
    document = SourceDocument.from_api(_file("a", "A.pdf"))

    assert SourceDocument.from_api(document.to_api()) == document


def test_helpers() -> None:
    assert escape_query_value("a\\b'c") == "a\\\\b\\'c"
    assert parse_timestamp(None) is None
    assert parse_timestamp("not a time") is None
