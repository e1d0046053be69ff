"""
GET /v1/series endpoint for reshaped BMS telemetry.

Returns the structured series of a device for a time range through the
shared fetch coordinator, so concurrent requests for the same device and
range share one compute invocation and repeated requests hit the cache.
Controller data is returned as delivered by the compute function.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Type time_range as TimeRange; validation is left to FastAPI

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query

from dashboard.src.api.deps import AuthorizedDevice, Coordinator
from dashboard.src.clients.compute import ComputeError
from dashboard.src.models import DEFAULT_TIME_RANGE, TimeRange

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["series"])


@router.get("/series")
async def get_series(
    coordinator: Coordinator,
    device_id: AuthorizedDevice,
    time_range: Annotated[
        TimeRange, Query(description="One of 1min, 5min, 1hour, 8hours, 1day, 7days, 1month.")
    ] = DEFAULT_TIME_RANGE,
    force: Annotated[bool, Query(description="Bypass cache and in-flight request.")] = False,
) -> dict[str, Any]:
    """Return the structured series of a device.

    Args:
        coordinator: Shared fetch coordinator.
        device_id: Device identifier, checked against the user's registrations.
        time_range: Time range literal.
        force: Re-fetch even when cached or already loading.

    Returns:
        dict: ``device_id``, ``time_range`` and the shaped ``data``.

    Raises:
        HTTPException: 502 if the compute function fails. Unknown time
            ranges fail request validation with 422.
    """
    try:
        data = await coordinator.fetch_data(device_id, time_range, force=force)
    except ComputeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return {"device_id": device_id, "time_range": time_range, "data": data}
