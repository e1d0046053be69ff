"""
Device identifier normalisation.

BMS devices are identified by a hexadecimal suffix that callers supply in
several spellings: ``"0x440"``, ``"440"``, ``"BAT-0x440"``. The pack controller
uses a fixed literal (``"0700"`` by default). Cache keys, subscriber sets and
polling loops all use the normalised ``0x``-prefixed lowercase form, while
user-facing messages keep whatever form the caller supplied.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re

TAG_PREFIX: str = "BAT-"
"""Prefix of the telemetry table partition key (``TagID``)."""

DEFAULT_CONTROLLER_ID: str = "0700"
"""Fixed literal identifying the pack controller."""

_HEX_RE = re.compile(r"^(0[xX])?([0-9a-fA-F]+)$")


def _strip_tag(raw: str) -> str:
    value = raw.strip()
    if value.upper().startswith(TAG_PREFIX):
        value = value[len(TAG_PREFIX) :]
    return value


def is_controller(raw: str, controller_id: str = DEFAULT_CONTROLLER_ID) -> bool:
    """Return True if *raw* names the pack controller."""
    return _strip_tag(raw) == controller_id


def is_valid_battery_id(raw: str) -> bool:
    """Return True if *raw* is a hexadecimal battery id (``0x`` optional)."""
    return _HEX_RE.match(_strip_tag(raw)) is not None


def normalize_device_id(raw: str, controller_id: str = DEFAULT_CONTROLLER_ID) -> str:
    """Return the canonical form of a device identifier.

    Args:
        raw: Caller-supplied identifier (``"BAT-0x440"``, ``"0x440"``, ``"440"``).
        controller_id: Literal identifying the pack controller.

    Returns:
        The controller literal unchanged, or ``"0x"`` followed by the
        lowercase hex digits of a battery id.

    Raises:
        ValueError: If *raw* is neither the controller literal nor hexadecimal.
    """
    value = _strip_tag(raw)
    if value == controller_id:
        return value
    match = _HEX_RE.match(value)
    if match is None:
        raise ValueError(
            f"Device id '{raw}' must be hexadecimal (e.g. 0x440 or 440) "
            f"or the controller id '{controller_id}'"
        )
    return "0x" + match.group(2).lower()


def table_tag_id(raw: str, controller_id: str = DEFAULT_CONTROLLER_ID) -> str:
    """Return the telemetry table key of a device (``"BAT-0x440"``)."""
    return f"{TAG_PREFIX}{normalize_device_id(raw, controller_id)}"
