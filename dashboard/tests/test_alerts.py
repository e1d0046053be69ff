"""
Unit tests for reading health alerts.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dashboard.src.decoder import decode_sample
from dashboard.src.services.alerts import evaluate_alerts

HEALTHY = {
    "MinimumCellVoltage": {"N": "3.30"},
    "MaximumCellVoltage": {"N": "3.34"},
    "MaxCellTemp": {"N": "28"},
    "TotalCurrent": {"N": "-12.5"},
}


def _messages(row: dict) -> list[str]:
    return [a.message for a in evaluate_alerts(decode_sample(row))]


class TestEvaluateAlerts:
    """Threshold checks against the row's own limits."""

    def test_healthy_row(self) -> None:
        """Nominal readings raise nothing."""
        assert _messages(HEALTHY) == []

    def test_undervoltage_default_threshold(self) -> None:
        """Min cell at 2.8 V triggers undervoltage (and an imbalance)."""
        row = {**HEALTHY, "MinimumCellVoltage": {"N": "2.8"}}
        assert _messages(row) == ["Undervoltage", "Imbalance: 540mV"]

    def test_row_threshold_overrides_default(self) -> None:
        """A threshold reported by the row takes precedence."""
        row = {**HEALTHY, "CellThresholdOverVoltage": {"N": "3.33"}}
        assert _messages(row) == ["Overvoltage"]

    def test_zero_threshold_falls_back_to_default(self) -> None:
        """A 0 threshold is treated as unset."""
        row = {**HEALTHY, "TempThresholdOverTemp": {"N": "0"}}
        assert _messages(row) == []

    def test_over_temp_is_critical(self) -> None:
        """Over temperature is the only critical alert."""
        alerts = evaluate_alerts(decode_sample({**HEALTHY, "MaxCellTemp": {"N": "61"}}))
        assert [(a.type, a.message) for a in alerts] == [("critical", "Over temp")]

    def test_high_current_either_direction(self) -> None:
        """Charge and discharge current both count."""
        assert _messages({**HEALTHY, "TotalCurrent": {"N": "-80"}}) == ["High current"]
        assert _messages({**HEALTHY, "TotalCurrent": {"N": "95"}}) == ["High current"]

    def test_imbalance_is_info(self) -> None:
        """A spread over 100 mV is reported in millivolts."""
        row = {
            **HEALTHY,
            "MinimumCellVoltage": {"N": "3.20"},
            "MaximumCellVoltage": {"N": "3.35"},
        }
        alerts = evaluate_alerts(decode_sample(row))
        assert [(a.type, a.message) for a in alerts] == [("info", "Imbalance: 150mV")]

    def test_empty_row_reports_undervoltage(self) -> None:
        """Missing readings count as 0 V, which is under the limit."""
        assert _messages({}) == ["Undervoltage"]
