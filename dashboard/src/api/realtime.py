"""
GET /v1/realtime endpoint for the latest reading of a device.

Returns the newest telemetry row, decoded, with its health alerts. Served
from a short-lived Redis cache in front of the compute function.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging

from fastapi import APIRouter, HTTPException

from dashboard.src.api.deps import AuthorizedDevice, Readings
from dashboard.src.clients.compute import ComputeError
from dashboard.src.models import LatestReading

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["realtime"])


@router.get("/realtime", response_model=LatestReading)
async def realtime(readings: Readings, device_id: AuthorizedDevice) -> LatestReading:
    """Return the most recent reading of a device.

    Raises:
        HTTPException: 404 if the device has no data, 502 if the compute
            function fails.
    """
    try:
        reading = await readings.get_latest(device_id)
    except ComputeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if reading is None:
        raise HTTPException(
            status_code=404,
            detail=f"No data found for device_id '{device_id}'.",
        )
    return reading
