"""
FastAPI dependency injection providers.

Services are built once by the application lifespan and kept on
``app.state``; these providers hand them to route handlers, together with
database sessions, the authenticated user id, and device access checks.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.config import DashboardSettings
from dashboard.src.devices import normalize_device_id
from dashboard.src.services.coordinator import FetchCoordinator
from dashboard.src.services.readings import LatestReadingService
from dashboard.src.services.registrations import has_access


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session from the app's session factory.

    Yields:
        AsyncSession: An async SQLAlchemy session, closed after the request.
    """
    async with request.app.state.session_factory() as session:
        yield session


async def get_user_id(request: Request) -> str:
    """Return the user id of the request's bearer token (401 otherwise)."""
    return await request.app.state.auth.verify(request)


def get_settings(request: Request) -> DashboardSettings:
    return request.app.state.settings


def get_coordinator(request: Request) -> FetchCoordinator:
    return request.app.state.coordinator


def get_readings(request: Request) -> LatestReadingService:
    return request.app.state.readings


DbSession = Annotated[AsyncSession, Depends(get_db)]
UserId = Annotated[str, Depends(get_user_id)]
Settings = Annotated[DashboardSettings, Depends(get_settings)]
Coordinator = Annotated[FetchCoordinator, Depends(get_coordinator)]
Readings = Annotated[LatestReadingService, Depends(get_readings)]


async def check_device_access(
    db: AsyncSession,
    settings: DashboardSettings,
    user_id: str,
    device_id: str,
) -> str:
    """Validate a device id and the user's access to it.

    Returns:
        str: The device id exactly as supplied.

    Raises:
        HTTPException: 400 if the id is malformed, 403 if the user has no
            active registration for it.
    """
    try:
        normalize_device_id(device_id, settings.controller_device_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not await has_access(db, user_id, device_id, settings.controller_device_id):
        raise HTTPException(
            status_code=403,
            detail="Device is not registered to the authenticated user.",
        )
    return device_id


async def authorized_device(
    db: DbSession,
    settings: Settings,
    user_id: UserId,
    device_id: Annotated[str, Query(description="Device identifier (e.g. 0x440).")],
) -> str:
    """Dependency resolving the ``device_id`` query parameter for the user."""
    return await check_device_access(db, settings, user_id, device_id)


AuthorizedDevice = Annotated[str, Depends(authorized_device)]
