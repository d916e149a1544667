"""Thin Google Drive v3 REST client covering what indexing and search need."""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional

import httpx

from .config import Settings, get_settings
from .errors import DriveFileNotFoundError, UnauthorizedError, UpstreamUnavailableError
from .extract import SUPPORTED_MIME_TYPES

LOGGER = logging.getLogger(__name__)

FILE_FIELDS = "id, name, mimeType, modifiedTime, createdTime, size"
SUPPORTED_FILES_QUERY = (
    "(" + " or ".join(f"mimeType='{mime}'" for mime in SUPPORTED_MIME_TYPES) + ") and trashed = false"
)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as returned by Drive (``2024-01-01T10:00:00.000Z``)."""

    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        LOGGER.warning("Ignoring unparsable timestamp %r", value)
        return None


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside a single-quoted Drive query string."""

    return value.replace("\\", "\\\\").replace("'", "\\'")


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """A file stored in Drive that is eligible for indexing."""

    id: str
    name: str
    mime_type: str
    modified_time: Optional[datetime] = None
    created_time: Optional[datetime] = None
    size: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "SourceDocument":
        size = payload.get("size")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or payload["id"]),
            mime_type=str(payload.get("mimeType") or ""),
            modified_time=parse_timestamp(payload.get("modifiedTime")),
            created_time=parse_timestamp(payload.get("createdTime")),
            size=int(size) if size not in (None, "") else None,
        )

    def to_api(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "name": self.name, "mimeType": self.mime_type}
        if self.modified_time is not None:
            payload["modifiedTime"] = self.modified_time.isoformat()
        if self.created_time is not None:
            payload["createdTime"] = self.created_time.isoformat()
        if self.size is not None:
            payload["size"] = str(self.size)
        return payload


@dataclass(slots=True)
class DriveFilePage:
    """One page of a file listing."""

    files: List[SourceDocument] = field(default_factory=list)
    next_page_token: Optional[str] = None


class DriveClient:
    """Authorised access to the Drive files API for a single bearer token."""

    def __init__(
        self,
        access_token: str,
        *,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if not access_token or not access_token.strip():
            raise UnauthorizedError("A bearer access token is required")
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self.settings.drive_timeout_seconds)
        self._headers = {"Authorization": f"Bearer {access_token.strip()}"}

    def __enter__(self) -> "DriveClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # Listing -----------------------------------------------------------------
    def list_files_page(
        self,
        *,
        page_token: Optional[str] = None,
        name_filter: Optional[str] = None,
        page_size: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> DriveFilePage:
        """Return one page of supported, non-trashed files."""

        query = SUPPORTED_FILES_QUERY
        if name_filter:
            query += f" and name contains '{escape_query_value(name_filter)}'"
        params: Dict[str, Any] = {
            "q": query,
            "fields": f"nextPageToken, files({FILE_FIELDS})",
            "pageSize": page_size or self.settings.drive_list_page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        if order_by:
            params["orderBy"] = order_by

        payload = self._request_json("GET", f"{self.settings.drive_api_base}/files", params=params)
        files = [SourceDocument.from_api(item) for item in payload.get("files") or [] if item.get("id")]
        return DriveFilePage(files=files, next_page_token=payload.get("nextPageToken") or None)

    def iter_source_documents(self) -> Iterator[SourceDocument]:
        """Yield every supported document, following continuation tokens until exhausted."""

        page_token: Optional[str] = None
        pages_read = 0
        while True:
            page = self.list_files_page(page_token=page_token)
            pages_read += 1
            yield from page.files
            page_token = page.next_page_token
            if not page_token:
                break
        LOGGER.debug("Listed supported documents across %s pages", pages_read)

    def list_all_source_documents(self) -> List[SourceDocument]:
        return list(self.iter_source_documents())

    # Single files ------------------------------------------------------------
    def get_file(self, file_id: str) -> SourceDocument:
        payload = self._request_json(
            "GET",
            f"{self.settings.drive_api_base}/files/{file_id}",
            params={"fields": FILE_FIELDS},
            file_id=file_id,
        )
        return SourceDocument.from_api(payload)

    def download(self, file_id: str) -> bytes:
        """Fetch the raw bytes of a file."""

        response = self._request(
            "GET",
            f"{self.settings.drive_api_base}/files/{file_id}",
            params={"alt": "media"},
            file_id=file_id,
        )
        return response.content

    def find_file_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Return ``{id, name, description}`` of the first non-trashed file called ``name``."""

        payload = self._request_json(
            "GET",
            f"{self.settings.drive_api_base}/files",
            params={
                "q": f"name='{escape_query_value(name)}' and trashed = false",
                "fields": "files(id, name, description, modifiedTime)",
                "pageSize": 1,
            },
        )
        files = payload.get("files") or []
        return files[0] if files else None

    # Uploads -----------------------------------------------------------------
    def create_file(
        self,
        name: str,
        content: bytes,
        *,
        mime_type: str = "application/json",
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": name, "mimeType": mime_type}
        if description is not None:
            metadata["description"] = description
        body, content_type = _multipart_related(metadata, content, mime_type)
        return self._request_json(
            "POST",
            f"{self.settings.drive_upload_base}/files",
            params={"uploadType": "multipart", "fields": "id, name, description"},
            content=body,
            headers={"Content-Type": content_type},
        )

    def update_file(
        self,
        file_id: str,
        content: Optional[bytes] = None,
        *,
        mime_type: str = "application/json",
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace the content and/or description of an existing file in place."""

        metadata: Dict[str, Any] = {}
        if description is not None:
            metadata["description"] = description
        if content is None:
            return self._request_json(
                "PATCH",
                f"{self.settings.drive_api_base}/files/{file_id}",
                params={"fields": "id, name, description"},
                json=metadata,
                file_id=file_id,
            )

        body, content_type = _multipart_related(metadata, content, mime_type)
        return self._request_json(
            "PATCH",
            f"{self.settings.drive_upload_base}/files/{file_id}",
            params={"uploadType": "multipart", "fields": "id, name, description"},
            content=body,
            headers={"Content-Type": content_type},
            file_id=file_id,
        )

    # Transport ---------------------------------------------------------------
    def _request(self, method: str, url: str, *, file_id: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        headers = dict(self._headers)
        headers.update(kwargs.pop("headers", None) or {})
        try:
            response = self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Drive API request failed: {exc}", cause=exc) from exc

        if response.status_code in (401, 403):
            raise UnauthorizedError(f"Drive API rejected the credential ({response.status_code})")
        if response.status_code == 404 and file_id is not None:
            raise DriveFileNotFoundError(f"Drive file {file_id} was not found")
        if response.is_error:
            raise UpstreamUnavailableError(
                f"Drive API responded with {response.status_code} for {method} {url}"
            )
        return response

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError("Drive API returned a non-JSON payload", cause=exc) from exc


def _multipart_related(metadata: Mapping[str, Any], content: bytes, mime_type: str) -> tuple[bytes, str]:
    boundary = f"docsearch-{uuid.uuid4().hex}"
    body = b"".join(
        [
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(dict(metadata)).encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {mime_type}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--\r\n".encode(),
        ]
    )
    return body, f"multipart/related; boundary={boundary}"


__all__ = [
    "DriveClient",
    "DriveFilePage",
    "SUPPORTED_FILES_QUERY",
    "SourceDocument",
    "escape_query_value",
    "parse_timestamp",
]
