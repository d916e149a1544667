"""Error taxonomy shared by the indexing and search components."""
from __future__ import annotations


class DocSearchError(RuntimeError):
    """Base class for all errors raised by the service."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class UnauthorizedError(DocSearchError):
    """Raised when the bearer credential is missing, invalid or expired."""


class UnsupportedFormatError(DocSearchError):
    """Raised for content types outside of PDF, DOCX and PPTX."""


class ExtractionError(DocSearchError):
    """Raised when a single document cannot be parsed or decoded."""


class IndexNotFoundError(DocSearchError):
    """Raised when no search index has been built yet."""


class MetadataNotFoundError(DocSearchError):
    """Raised when no build timestamp has been recorded yet."""


class UpstreamUnavailableError(DocSearchError):
    """Raised when the remote storage API is unreachable or failing."""


class DriveFileNotFoundError(UpstreamUnavailableError):
    """Raised when the storage API reports that a single file does not exist."""


class BuildInProgressError(DocSearchError):
    """Raised when a build is requested while another one is still running."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Index build {job_id} is already running")
        self.job_id = job_id


__all__ = [
    "BuildInProgressError",
    "DocSearchError",
    "DriveFileNotFoundError",
    "ExtractionError",
    "IndexNotFoundError",
    "MetadataNotFoundError",
    "UnauthorizedError",
    "UnsupportedFormatError",
    "UpstreamUnavailableError",
]
