"""Passthrough listing of the user's indexable Drive files."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..drive import DriveClient, SourceDocument
from .deps import get_app_settings, get_drive_client

router = APIRouter(prefix="/files", tags=["files"])


class FileItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    mime_type: str = Field(..., alias="mimeType")
    modified_time: Optional[datetime] = Field(None, alias="modifiedTime")
    created_time: Optional[datetime] = Field(None, alias="createdTime")
    size: Optional[int] = None


class FileListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: list[FileItem]
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


def _serialise_file(document: SourceDocument) -> FileItem:
    return FileItem(
        id=document.id,
        name=document.name,
        mime_type=document.mime_type,
        modified_time=document.modified_time,
        created_time=document.created_time,
        size=document.size,
    )


@router.get("", response_model=FileListResponse)
def list_files(
    page_token: Optional[str] = Query(None, alias="pageToken"),
    q: Optional[str] = Query(None, description="Filter on file names."),
    drive: DriveClient = Depends(get_drive_client),
    settings: Settings = Depends(get_app_settings),
) -> FileListResponse:
    """Return one page of PDF, Word and PowerPoint files, newest first."""

    page = drive.list_files_page(
        page_token=page_token,
        name_filter=q.strip() if q else None,
        page_size=settings.files_page_size,
        order_by="createdTime desc",
    )
    return FileListResponse(
        files=[_serialise_file(document) for document in page.files],
        next_page_token=page.next_page_token,
    )


@router.get("/{file_id}", response_model=FileItem)
def get_file(file_id: str, drive: DriveClient = Depends(get_drive_client)) -> FileItem:
    """Return the metadata of a single file."""

    return _serialise_file(drive.get_file(file_id))
