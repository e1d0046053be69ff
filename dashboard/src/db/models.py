"""
SQLAlchemy ORM models for the dashboard database.

Defines the BatteryRegistration model linking users to the BMS devices they
may view. Registrations are soft-deleted via ``is_active``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import datetime

from sqlalchemy import Boolean, DateTime, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all dashboard ORM models."""

    pass


class BatteryRegistration(Base):
    """A user's registration of one battery.

    Attributes:
        id: Surrogate primary key.
        user_id: Owner, as resolved from the bearer token.
        serial_number: Battery serial number as entered by the user.
        battery_id: Normalised device id (``0x440``).
        nickname: Optional display name; empty when unset.
        is_active: False once the registration has been removed.
        registered_at: Creation time in UTC.
    """

    __tablename__ = "battery_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    serial_number: Mapped[str] = mapped_column(Text, nullable=False)
    battery_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    nickname: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    registered_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.datetime.now(datetime.UTC),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        """Return string representation of the BatteryRegistration."""
        return (
            f"BatteryRegistration(id={self.id!r}, user_id={self.user_id!r}, "
            f"battery_id={self.battery_id!r}, is_active={self.is_active!r})"
        )
