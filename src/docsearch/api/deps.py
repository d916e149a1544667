"""Request-scoped dependencies shared by the routers."""
from __future__ import annotations

from typing import Callable, Iterator, Optional

from fastapi import Depends, Header

from ..config import Settings, get_settings
from ..drive import DriveClient
from ..errors import UnauthorizedError
from ..index import BuildJobManager, IndexStore, get_index_store, get_job_manager

DriveFactory = Callable[[str], DriveClient]


def get_access_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Extract the bearer token from the ``Authorization`` header."""

    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Authorization header must use the Bearer scheme")
    return token.strip()


def get_drive_factory() -> DriveFactory:
    """Return the callable that opens a Drive session for a token."""

    return DriveClient


def get_drive_client(
    token: str = Depends(get_access_token),
    factory: DriveFactory = Depends(get_drive_factory),
) -> Iterator[DriveClient]:
    drive = factory(token)
    try:
        yield drive
    finally:
        drive.close()


def get_store(drive: DriveClient = Depends(get_drive_client)) -> IndexStore:
    return get_index_store(drive)


def get_manager() -> BuildJobManager:
    return get_job_manager()


def get_app_settings() -> Settings:
    return get_settings()
