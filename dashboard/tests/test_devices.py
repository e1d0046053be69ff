"""
Unit tests for device identifier normalisation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest

from dashboard.src.devices import (
    is_controller,
    is_valid_battery_id,
    normalize_device_id,
    table_tag_id,
)


class TestNormalizeDeviceId:
    """Identifiers normalise to the 0x-prefixed lowercase form."""

    @pytest.mark.parametrize("raw", ["0x440", "440", "BAT-0x440", " 0X440 ", "bat-440"])
    def test_battery_spellings(self, raw: str) -> None:
        """Every accepted spelling of a battery id normalises identically."""
        assert normalize_device_id(raw) == "0x440"

    def test_hex_digits_lowercased(self) -> None:
        """Hex digits are lowercased."""
        assert normalize_device_id("0xABC") == "0xabc"

    def test_controller_kept_verbatim(self) -> None:
        """The controller literal is not treated as hex."""
        assert normalize_device_id("0700") == "0700"
        assert normalize_device_id("BAT-0700") == "0700"

    def test_custom_controller(self) -> None:
        """A configured controller id is recognised."""
        assert normalize_device_id("0800", controller_id="0800") == "0800"
        assert normalize_device_id("0700", controller_id="0800") == "0x0700"

    @pytest.mark.parametrize("raw", ["", "0x", "xyz", "0x44g", "BAT-"])
    def test_invalid_ids_rejected(self, raw: str) -> None:
        """Non-hex identifiers raise ValueError."""
        with pytest.raises(ValueError, match="hexadecimal"):
            normalize_device_id(raw)


class TestHelpers:
    """Predicates and the table key helper."""

    def test_is_controller(self) -> None:
        """Only the controller literal is the controller."""
        assert is_controller("0700")
        assert not is_controller("0x440")

    def test_is_valid_battery_id(self) -> None:
        """Hex ids with or without 0x are valid battery ids."""
        assert is_valid_battery_id("0x440")
        assert is_valid_battery_id("440")
        assert not is_valid_battery_id("battery-one")

    def test_table_tag_id(self) -> None:
        """Table keys carry the BAT- prefix."""
        assert table_tag_id("440") == "BAT-0x440"
        assert table_tag_id("0700") == "BAT-0700"
