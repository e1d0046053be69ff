"""
Cache status and invalidation endpoints.

GET /v1/cache reports whether a device/range is cached or loading;
DELETE /v1/cache invalidates with the coordinator's scoping rules. Without a
``device_id`` both endpoints act on the devices visible to the caller (their
active registrations plus the shared controller), so one user never sees or
clears another user's battery ids.

Clearing a device also drops its cached latest reading.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Scope unfiltered status and clears to the caller's devices

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.api.deps import (
    Coordinator,
    DbSession,
    Readings,
    Settings,
    UserId,
    check_device_access,
)
from dashboard.src.config import DashboardSettings
from dashboard.src.models import DEFAULT_TIME_RANGE, TimeRange
from dashboard.src.services.coordinator import device_of_key
from dashboard.src.services.registrations import list_user_batteries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["cache"])


async def _visible_devices(
    db: AsyncSession, settings: DashboardSettings, user_id: str
) -> set[str]:
    """Return the normalised ids of every device the user may see."""
    devices = {settings.controller_device_id}
    devices.update(r.battery_id for r in await list_user_batteries(db, user_id))
    return devices


@router.get("/cache")
async def cache_status(
    db: DbSession,
    settings: Settings,
    user_id: UserId,
    coordinator: Coordinator,
    device_id: Annotated[str | None, Query()] = None,
    time_range: Annotated[TimeRange, Query()] = DEFAULT_TIME_RANGE,
) -> dict[str, Any]:
    """Return the cache state of one key, or a summary of the caller's keys."""
    if device_id is None:
        visible = await _visible_devices(db, settings, user_id)
        return {
            "cached_keys": [
                k for k in coordinator.cached_keys() if device_of_key(k) in visible
            ],
            "in_flight_keys": [
                k for k in coordinator.in_flight_keys() if device_of_key(k) in visible
            ],
        }

    await check_device_access(db, settings, user_id, device_id)
    return {
        "device_id": device_id,
        "time_range": time_range,
        "cached": coordinator.get_cached_data(device_id, time_range) is not None,
        "loading": coordinator.is_loading(device_id, time_range),
    }


@router.delete("/cache")
async def clear_cache(
    db: DbSession,
    settings: Settings,
    user_id: UserId,
    coordinator: Coordinator,
    readings: Readings,
    device_id: Annotated[str | None, Query()] = None,
    time_range: Annotated[TimeRange | None, Query()] = None,
) -> dict[str, Any]:
    """Invalidate cached series.

    Both parameters clear one entry and ``device_id`` alone clears every
    range of that device. Without ``device_id`` the same rule is applied to
    each device visible to the caller.
    """
    if device_id is not None:
        await check_device_access(db, settings, user_id, device_id)
        devices = {device_id}
    else:
        devices = await _visible_devices(db, settings, user_id)

    for device in sorted(devices):
        coordinator.clear_cache(device, time_range)
        await readings.invalidate(device)

    logger.info(
        "Cache cleared by %s (device_id=%s, time_range=%s, devices=%d)",
        user_id,
        device_id,
        time_range,
        len(devices),
    )
    return {"cleared": True, "device_id": device_id, "time_range": time_range}
