"""
Pydantic models for reshaped BMS telemetry and coordinator events.

Defines the StructuredSeries returned by the reshaper (two nodes of per-channel
series plus last-sample snapshot summaries), the ProgressEvent delivered to
progress subscribers, and the LatestReading served by the realtime endpoint.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, Field

from dashboard.src.fields import CELLS_PER_NODE, NODE_COUNT, node_name

# ---------------------------------------------------------------------------
# Time ranges
# ---------------------------------------------------------------------------

TimeRange = Literal["1min", "5min", "1hour", "8hours", "1day", "7days", "1month"]

VALID_TIME_RANGES: frozenset[str] = frozenset(get_args(TimeRange))

DEFAULT_TIME_RANGE: TimeRange = "7days"


# ---------------------------------------------------------------------------
# Structured series
# ---------------------------------------------------------------------------


class NodeSeries(BaseModel):
    """Per-channel series of one BMS node.

    Attributes:
        cell_voltages: Exactly 14 channel series in cell order. Each holds
            the valid voltage readings of that channel in time order; series
            lengths may differ between channels.
        temperatures: Sensor label (``Temp00``..``Temp09``) to time-ordered
            valid readings. A label only exists once a valid reading was seen.
    """

    cell_voltages: list[list[float]] = Field(
        default_factory=lambda: [[] for _ in range(CELLS_PER_NODE)]
    )
    temperatures: dict[str, list[float]] = Field(default_factory=dict)


class PackSnapshot(BaseModel):
    """Pack-level scalars taken from the last sample of a batch."""

    total_batt_voltage: float = 0.0
    total_load_voltage: float = 0.0
    total_current: float = 0.0
    num_parallel_nodes: float = 0.0
    num_nodes: float = 0.0
    threshold_over_current: float = 0.0
    modes: float = 0.0
    serial_number: str | None = None
    state: str | None = None
    events: str | None = None


class CellSummary(BaseModel):
    """Cell voltage extremes and thresholds from the last sample."""

    max_cell_voltage: float = 0.0
    min_cell_voltage: float = 0.0
    max_cell_voltage_cell_no: float = 0.0
    min_cell_voltage_cell_no: float = 0.0
    max_cell_voltage_node: float = 0.0
    min_cell_voltage_node: float = 0.0
    threshold_over_voltage: float = 0.0
    threshold_under_voltage: float = 0.0
    critical_over_volt_threshold: float = 0.0
    critical_under_volt_threshold: float = 0.0
    balance_threshold_voltage: float = 0.0


class TemperatureSummary(BaseModel):
    """Temperature extremes, their node locations and thresholds."""

    max_cell_temp: float = 0.0
    min_cell_temp: float = 0.0
    max_cell_temp_node: float = 0.0
    min_cell_temp_node: float = 0.0
    threshold_over_temp: float = 0.0
    threshold_under_temp: float = 0.0


class StateOfChargeSummary(BaseModel):
    """State-of-charge scalars from the last sample."""

    soc_percent: float = 0.0
    soc_ah: float = 0.0
    balance_soc_percent: float = 0.0
    balance_soc_ah: float = 0.0


def _default_nodes() -> dict[str, NodeSeries]:
    return {node_name(n): NodeSeries() for n in range(NODE_COUNT)}


class StructuredSeries(BaseModel):
    """Reshaped BMS telemetry for one device and time range.

    Created fresh per fetch; never mutated incrementally across fetches.

    Attributes:
        nodes: ``Node0`` and ``Node1`` channel series.
        pack: Pack snapshot (last sample only).
        cell: Cell voltage summary (last sample only).
        temperature: Temperature summary (last sample only).
        soc: State-of-charge summary (last sample only).
        sample_count: Number of rows that were reshaped (after sampling).
        error: Set when the collaborator returned no rows.
    """

    nodes: dict[str, NodeSeries] = Field(default_factory=_default_nodes)
    pack: PackSnapshot = Field(default_factory=PackSnapshot)
    cell: CellSummary = Field(default_factory=CellSummary)
    temperature: TemperatureSummary = Field(default_factory=TemperatureSummary)
    soc: StateOfChargeSummary = Field(default_factory=StateOfChargeSummary)
    sample_count: int = 0
    error: str | None = None


# ---------------------------------------------------------------------------
# Coordinator events
# ---------------------------------------------------------------------------

ProgressStatus = Literal["starting", "processing", "completed", "error"]


class ProgressEvent(BaseModel):
    """Progress notification delivered to progress subscribers.

    Attributes:
        status: Lifecycle stage of the fetch.
        message: Human readable message for the UI.
        progress: Percentage 0-100. Intermediate values are synthetic UI
            feedback and do not reflect collaborator progress.
    """

    status: ProgressStatus
    message: str
    progress: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Latest reading
# ---------------------------------------------------------------------------


class Alert(BaseModel):
    """A health alert derived from a single reading."""

    type: Literal["info", "warning", "critical"]
    message: str


class LatestReading(BaseModel):
    """Most recent decoded row of a device plus its health alerts.

    Attributes:
        device_id: Normalised device identifier.
        timestamp: Epoch seconds of the row (0 when absent).
        values: Numeric fields of the row.
        labels: Text fields of the row.
        alerts: Alerts evaluated against the row's own thresholds.
    """

    device_id: str
    timestamp: float
    values: dict[str, float]
    labels: dict[str, str]
    alerts: list[Alert]
