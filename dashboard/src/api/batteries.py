"""
Battery registration endpoints.

- POST /v1/batteries: register a battery for the authenticated user.
- GET /v1/batteries: list the user's active registrations.
- GET /v1/batteries/options: selector entries for the user's batteries.
- DELETE /v1/batteries/{registration_id}: deactivate a registration.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import datetime
import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from dashboard.src.api.deps import DbSession, UserId
from dashboard.src.services.registrations import (
    RegistrationError,
    battery_options,
    deactivate_battery,
    list_user_batteries,
    register_battery,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["batteries"])


# ---------------------------------------------------------------------------
# Pydantic request/response models
# ---------------------------------------------------------------------------


class BatteryIn(BaseModel):
    """Registration request body."""

    serial_number: str
    battery_id: str
    nickname: str = ""


class BatteryOut(BaseModel):
    """A stored registration.

    Attributes:
        registration_id: Registration primary key.
        serial_number: Battery serial number.
        battery_id: Normalised device id.
        nickname: Display name, empty when unset.
        is_active: Whether the registration is active.
        registered_at: Creation time (UTC).
    """

    registration_id: int
    serial_number: str
    battery_id: str
    nickname: str
    is_active: bool
    registered_at: datetime.datetime


def _to_out(registration: Any) -> BatteryOut:
    return BatteryOut(
        registration_id=registration.id,
        serial_number=registration.serial_number,
        battery_id=registration.battery_id,
        nickname=registration.nickname,
        is_active=registration.is_active,
        registered_at=registration.registered_at,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/batteries", status_code=201, response_model=BatteryOut)
async def create_battery(body: BatteryIn, db: DbSession, user_id: UserId) -> BatteryOut:
    """Register a battery.

    Raises:
        HTTPException: 400 if the request is invalid or a duplicate.
    """
    try:
        registration = await register_battery(
            db, user_id, body.serial_number, body.battery_id, body.nickname
        )
    except RegistrationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _to_out(registration)


@router.get("/batteries", response_model=list[BatteryOut])
async def get_batteries(db: DbSession, user_id: UserId) -> list[BatteryOut]:
    """List the user's active registrations."""
    return [_to_out(r) for r in await list_user_batteries(db, user_id)]


@router.get("/batteries/options")
async def get_battery_options(db: DbSession, user_id: UserId) -> list[dict[str, Any]]:
    """Return selector entries (``value``, ``label``, ...) for the user."""
    return await battery_options(db, user_id)


@router.delete("/batteries/{registration_id}", response_model=BatteryOut)
async def delete_battery(
    registration_id: int, db: DbSession, user_id: UserId
) -> BatteryOut:
    """Deactivate one of the user's registrations.

    Raises:
        HTTPException: 404 if the user has no such active registration.
    """
    registration = await deactivate_battery(db, user_id, registration_id)
    if registration is None:
        raise HTTPException(
            status_code=404,
            detail=f"Registration {registration_id} not found.",
        )
    return _to_out(registration)
