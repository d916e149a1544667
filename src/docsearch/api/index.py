"""API router for building the index and reporting on its state."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..drive import DriveClient
from ..errors import MetadataNotFoundError
from ..index import (
    BuildJobManager,
    BuildResult,
    BuildState,
    BuildStatus,
    IndexBuilder,
    IndexStore,
    format_build_time,
    get_index_store,
)
from ..index.builder import ProgressCallback
from ..staleness import check_status
from .deps import (
    DriveFactory,
    get_access_token,
    get_app_settings,
    get_drive_client,
    get_drive_factory,
    get_manager,
    get_store,
)

router = APIRouter(tags=["index"])


class BuildStatusResponse(BaseModel):
    """Status record of an index build run."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(None, alias="jobId")
    status: BuildState
    message: str = ""
    progress: Optional[int] = None
    total: Optional[int] = None
    indexed_count: Optional[int] = Field(None, alias="indexedCount")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    finished_at: Optional[datetime] = Field(None, alias="finishedAt")


class MetadataResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_build_time: str = Field(..., alias="lastBuildTime")


class FreshnessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    message: str
    last_build_time: Optional[str] = Field(None, alias="lastBuildTime")
    latest_modified_time: Optional[str] = Field(None, alias="latestModifiedTime")


def _serialise_status(status: BuildStatus) -> BuildStatusResponse:
    return BuildStatusResponse.model_validate(status.to_dict())


def _lookup_status(manager: BuildJobManager, job_id: Optional[str]) -> BuildStatus:
    try:
        return manager.status(job_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown build job: {job_id}") from exc


@router.post("/index/build", status_code=202, response_model=BuildStatusResponse)
def start_index_build(
    token: str = Depends(get_access_token),
    drive_factory: DriveFactory = Depends(get_drive_factory),
    manager: BuildJobManager = Depends(get_manager),
) -> BuildStatusResponse:
    """Start a full rebuild of the index in the background."""

    def run_build(on_progress: ProgressCallback, job_id: str) -> BuildResult:
        drive = drive_factory(token)
        try:
            builder = IndexBuilder(drive, get_index_store(drive))
            return builder.build(on_progress, job_id=job_id)
        finally:
            drive.close()

    return _serialise_status(manager.start(run_build))


@router.get("/index/status", response_model=BuildStatusResponse, dependencies=[Depends(get_access_token)])
def index_build_status(
    job_id: Optional[str] = Query(None, alias="jobId"),
    manager: BuildJobManager = Depends(get_manager),
) -> BuildStatusResponse:
    """Report the latest (or the requested) build run."""

    return _serialise_status(_lookup_status(manager, job_id))


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


@router.get("/index/events", dependencies=[Depends(get_access_token)])
async def index_build_events(
    job_id: Optional[str] = Query(None, alias="jobId"),
    manager: BuildJobManager = Depends(get_manager),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """Stream build progress as server-sent events until the run finishes."""

    initial = _lookup_status(manager, job_id)
    tracked_job = initial.job_id

    async def event_generator() -> AsyncIterator[str]:
        last_version: Optional[int] = None
        while True:
            try:
                status = manager.status(tracked_job) if tracked_job else initial
            except KeyError:
                dropped = BuildStatusResponse(
                    job_id=tracked_job,
                    status=BuildState.ERROR,
                    message=f"Build job {tracked_job} is no longer tracked.",
                )
                yield _sse(BuildState.ERROR.value, dropped.model_dump(mode="json", by_alias=True))
                break
            if status.version != last_version:
                last_version = status.version
                event = status.state.value if status.is_terminal else "progress"
                if status.state is BuildState.IDLE:
                    event = "idle"
                yield _sse(event, _serialise_status(status).model_dump(mode="json", by_alias=True))
            if status.is_terminal or status.state is BuildState.IDLE:
                break
            await asyncio.sleep(settings.status_poll_interval_seconds)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/metadata", response_model=MetadataResponse)
def index_metadata(store: IndexStore = Depends(get_store)) -> MetadataResponse:
    """Return the time of the last successful build."""

    return MetadataResponse(last_build_time=format_build_time(store.load_build_time()))


@router.get("/index/freshness", response_model=FreshnessResponse)
def index_freshness(
    drive: DriveClient = Depends(get_drive_client),
    store: IndexStore = Depends(get_store),
) -> FreshnessResponse:
    """Compare the newest Drive modification time with the last build time."""

    try:
        last_build_time = store.load_build_time()
    except MetadataNotFoundError:
        last_build_time = None
    info = check_status(drive.iter_source_documents(), last_build_time)
    return FreshnessResponse(
        status=info.status.value,
        message=info.message,
        last_build_time=format_build_time(info.last_build_time) if info.last_build_time else None,
        latest_modified_time=format_build_time(info.latest_modified_time) if info.latest_modified_time else None,
    )

