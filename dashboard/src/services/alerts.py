"""
Health alerts for a single decoded BMS reading.

Each check compares a reading against the threshold reported in the same row,
falling back to the pack's nominal limit when the row carries none (or
reports 0). Missing readings count as 0.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dashboard.src.decoder import DecodedSample
from dashboard.src.models import Alert

DEFAULT_UNDER_VOLTAGE: float = 2.8
DEFAULT_OVER_VOLTAGE: float = 3.65
DEFAULT_OVER_TEMP: float = 60.0
DEFAULT_OVER_CURRENT: float = 80.0
IMBALANCE_LIMIT_V: float = 0.1


def _reading(sample: DecodedSample, name: str) -> float:
    return sample.number(name) or 0.0


def _threshold(sample: DecodedSample, name: str, default: float) -> float:
    return sample.number(name) or default


def evaluate_alerts(sample: DecodedSample) -> list[Alert]:
    """Return the alerts raised by one reading, in a fixed order.

    Checks undervoltage, overvoltage, over temperature, high current and
    cell imbalance (max minus min cell voltage above 0.1 V).
    """
    alerts: list[Alert] = []
    min_cell = _reading(sample, "MinimumCellVoltage")
    max_cell = _reading(sample, "MaximumCellVoltage")

    if min_cell <= _threshold(sample, "CellThresholdUnderVoltage", DEFAULT_UNDER_VOLTAGE):
        alerts.append(Alert(type="warning", message="Undervoltage"))

    if max_cell >= _threshold(sample, "CellThresholdOverVoltage", DEFAULT_OVER_VOLTAGE):
        alerts.append(Alert(type="warning", message="Overvoltage"))

    max_temp = _reading(sample, "MaxCellTemp")
    if max_temp >= _threshold(sample, "TempThresholdOverTemp", DEFAULT_OVER_TEMP):
        alerts.append(Alert(type="critical", message="Over temp"))

    current = abs(_reading(sample, "TotalCurrent"))
    if current >= _threshold(sample, "PackThresholdOverCurrent", DEFAULT_OVER_CURRENT):
        alerts.append(Alert(type="warning", message="High current"))

    delta = max_cell - min_cell
    if delta > IMBALANCE_LIMIT_V:
        alerts.append(Alert(type="info", message=f"Imbalance: {delta * 1000:.0f}mV"))

    return alerts
