import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from docsearch.api import files_router, index_router, search_router
from docsearch.config import get_settings
from docsearch.errors import (
    BuildInProgressError,
    DriveFileNotFoundError,
    ExtractionError,
    IndexNotFoundError,
    MetadataNotFoundError,
    UnauthorizedError,
    UnsupportedFormatError,
    UpstreamUnavailableError,
)
from docsearch.index import reset_job_manager
from docsearch.logging_config import configure_logging
from docsearch.telemetry import emit_app_startup_event, emit_exception

configure_logging(get_settings())

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Document Search API")
app.include_router(index_router)
app.include_router(search_router)
app.include_router(files_router)


@app.on_event("startup")
async def _startup() -> None:
    emit_app_startup_event()


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop accepting queued builds when the server goes down."""

    reset_job_manager()


def _error_response(status_code: int, exc: Exception, **extra: object) -> JSONResponse:
    content: dict[str, object] = {"detail": str(exc)}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(UnauthorizedError)
async def _unauthorized(_request: Request, exc: UnauthorizedError) -> JSONResponse:
    response = _error_response(401, exc)
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(IndexNotFoundError)
async def _index_not_found(_request: Request, exc: IndexNotFoundError) -> JSONResponse:
    return _error_response(404, exc)


@app.exception_handler(MetadataNotFoundError)
async def _metadata_not_found(_request: Request, exc: MetadataNotFoundError) -> JSONResponse:
    return _error_response(404, exc)


@app.exception_handler(DriveFileNotFoundError)
async def _file_not_found(_request: Request, exc: DriveFileNotFoundError) -> JSONResponse:
    return _error_response(404, exc)


@app.exception_handler(BuildInProgressError)
async def _build_in_progress(_request: Request, exc: BuildInProgressError) -> JSONResponse:
    return _error_response(409, exc, jobId=exc.job_id)


@app.exception_handler(UnsupportedFormatError)
async def _unsupported_format(_request: Request, exc: UnsupportedFormatError) -> JSONResponse:
    return _error_response(415, exc)


@app.exception_handler(ExtractionError)
async def _extraction_failed(_request: Request, exc: ExtractionError) -> JSONResponse:
    return _error_response(422, exc)


@app.exception_handler(UpstreamUnavailableError)
async def _upstream_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    emit_exception(module=f"{__name__}.{request.url.path}", error=exc)
    return _error_response(502, exc)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness check used by container orchestrators."""
    return "ok"


@app.get("/debug/settings")
def debug_settings() -> dict[str, object]:
    """Expose the resolved configuration in development environments only."""

    settings = get_settings()
    if settings.is_production:
        raise HTTPException(status_code=404, detail="Not found")
    return asdict(settings)
