"""
Battery registration service.

Links users to the BMS devices they may view. Battery ids are validated as
hexadecimal and stored in normalised ``0x`` form; removal is a soft delete.
The pack controller is shared and never needs a registration.

Public API:
- register_battery: create an active registration.
- list_user_batteries: active registrations of a user.
- deactivate_battery: soft-delete one of the user's registrations.
- has_access: whether a user may view a device.
- battery_options: selector entries for the user's active batteries.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Add tag_id to battery options

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.src.db.models import BatteryRegistration
from dashboard.src.devices import (
    DEFAULT_CONTROLLER_ID,
    is_controller,
    is_valid_battery_id,
    normalize_device_id,
    table_tag_id,
)

logger = logging.getLogger(__name__)


class RegistrationError(ValueError):
    """Raised when a registration request is invalid."""


async def register_battery(
    session: AsyncSession,
    user_id: str,
    serial_number: str,
    battery_id: str,
    nickname: str = "",
) -> BatteryRegistration:
    """Register a battery for a user.

    Args:
        session: Async database session.
        user_id: Owner of the registration.
        serial_number: Battery serial number.
        battery_id: Hexadecimal device id, ``0x`` optional.
        nickname: Optional display name.

    Returns:
        BatteryRegistration: The committed registration.

    Raises:
        RegistrationError: If a field is missing, the battery id is not
            hexadecimal, or the user already has this battery registered.
    """
    serial_number = serial_number.strip()
    battery_id = battery_id.strip()
    nickname = nickname.strip()

    if not serial_number or not battery_id:
        raise RegistrationError("Serial number and battery ID are required")
    if not is_valid_battery_id(battery_id):
        raise RegistrationError(
            "Battery ID must be a hexadecimal value (e.g. 0x440 or 440)"
        )
    normalized = normalize_device_id(battery_id)

    existing = await session.execute(
        select(BatteryRegistration.id).where(
            BatteryRegistration.user_id == user_id,
            BatteryRegistration.battery_id == normalized,
            BatteryRegistration.is_active.is_(True),
        )
    )
    if existing.first() is not None:
        raise RegistrationError(f"Battery {normalized} is already registered")

    registration = BatteryRegistration(
        user_id=user_id,
        serial_number=serial_number,
        battery_id=normalized,
        nickname=nickname,
        is_active=True,
    )
    session.add(registration)
    await session.commit()
    await session.refresh(registration)
    logger.info("Registered battery %s for user %s", normalized, user_id)
    return registration


async def list_user_batteries(
    session: AsyncSession, user_id: str
) -> list[BatteryRegistration]:
    """Return the active registrations of a user, oldest first."""
    result = await session.execute(
        select(BatteryRegistration)
        .where(
            BatteryRegistration.user_id == user_id,
            BatteryRegistration.is_active.is_(True),
        )
        .order_by(BatteryRegistration.registered_at, BatteryRegistration.id)
    )
    return list(result.scalars().all())


async def deactivate_battery(
    session: AsyncSession, user_id: str, registration_id: int
) -> BatteryRegistration | None:
    """Soft-delete one of a user's registrations.

    Returns:
        The deactivated registration, or None if the user has no active
        registration with that id.
    """
    result = await session.execute(
        select(BatteryRegistration).where(
            BatteryRegistration.id == registration_id,
            BatteryRegistration.user_id == user_id,
            BatteryRegistration.is_active.is_(True),
        )
    )
    registration = result.scalar_one_or_none()
    if registration is None:
        return None

    registration.is_active = False
    await session.commit()
    logger.info(
        "Deactivated registration %d (%s) for user %s",
        registration_id,
        registration.battery_id,
        user_id,
    )
    return registration


async def has_access(
    session: AsyncSession,
    user_id: str,
    device_id: str,
    controller_id: str = DEFAULT_CONTROLLER_ID,
) -> bool:
    """Return True if the user may view *device_id*.

    The controller is visible to every user; BMS devices need an active
    registration. Malformed ids are never accessible.
    """
    if is_controller(device_id, controller_id):
        return True
    try:
        normalized = normalize_device_id(device_id, controller_id)
    except ValueError:
        return False

    result = await session.execute(
        select(BatteryRegistration.id).where(
            BatteryRegistration.user_id == user_id,
            BatteryRegistration.battery_id == normalized,
            BatteryRegistration.is_active.is_(True),
        )
    )
    return result.first() is not None


async def battery_options(session: AsyncSession, user_id: str) -> list[dict[str, Any]]:
    """Return selector entries for the user's active batteries.

    ``tag_id`` is the ``BAT-`` form used by the telemetry tables.
    """
    return [
        {
            "value": registration.battery_id,
            "tag_id": table_tag_id(registration.battery_id),
            "label": registration.nickname or registration.battery_id,
            "serial_number": registration.serial_number,
            "registration_id": registration.id,
            "registered_at": registration.registered_at.isoformat(),
        }
        for registration in await list_user_batteries(session, user_id)
    ]
