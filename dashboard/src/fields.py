"""
BMS telemetry field map -- single source of truth.

Defines the flat field names of one BMS telemetry row (as stored in the
``CAN_BMS_Data_Optimized`` table) and how they map onto the reshaped
dashboard structures. A row carries per-cell voltages and per-sensor
temperatures for two nodes, plus pack-level scalars.

Per-channel fields follow a fixed naming pattern::

    Node{NN}Cell{CC}   cell voltage, NN = node index, CC = channel 00..13
    Node{NN}Temp{TT}   temperature, TT = sensor slot 00..09

Snapshot fields are read from a single row only (the chronologically last
one in a batch) and are grouped by the summary model they populate.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

NODE_COUNT: int = 2
"""Number of nodes per BMS device."""

CELLS_PER_NODE: int = 14
"""Fixed number of cell-voltage channels per node."""

TEMP_SENSORS_PER_NODE: int = 10
"""Maximum number of temperature sensor slots per node."""

TIMESTAMP_FIELD: str = "Timestamp"
"""Epoch-seconds sort key of every row."""


def node_name(node: int) -> str:
    """Return the output name of a node (``Node0``, ``Node1``)."""
    return f"Node{node}"


def cell_field(node: int, channel: int) -> str:
    """Return the row field name of a cell voltage channel."""
    return f"Node{node:02d}Cell{channel:02d}"


def temp_label(slot: int) -> str:
    """Return the output label of a temperature sensor slot."""
    return f"Temp{slot:02d}"


def temp_field(node: int, slot: int) -> str:
    """Return the row field name of a temperature sensor slot."""
    return f"Node{node:02d}{temp_label(slot)}"


# ---------------------------------------------------------------------------
# Snapshot field definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SnapshotField:
    """Mapping of one row field onto a summary model attribute.

    Attributes:
        field: Row field name (e.g. ``"TotalBattVoltage"``).
        attr: Attribute name on the target summary model.
        text: True when the value is a label (serial number, state) rather
            than a number. Text fields default to ``None``, numbers to 0;
            a text field sent tagged as a number is rendered as text.
    """

    field: str
    attr: str
    text: bool = False


PACK_FIELDS: tuple[SnapshotField, ...] = (
    SnapshotField("TotalBattVoltage", "total_batt_voltage"),
    SnapshotField("TotalLoadVoltage", "total_load_voltage"),
    SnapshotField("TotalCurrent", "total_current"),
    SnapshotField("PackNumParallelNodes", "num_parallel_nodes"),
    SnapshotField("PackNumNodes", "num_nodes"),
    SnapshotField("PackThresholdOverCurrent", "threshold_over_current"),
    SnapshotField("PackModes", "modes"),
    SnapshotField("SerialNumber", "serial_number", text=True),
    SnapshotField("State", "state", text=True),
    SnapshotField("Events", "events", text=True),
)

CELL_FIELDS: tuple[SnapshotField, ...] = (
    SnapshotField("MaximumCellVoltage", "max_cell_voltage"),
    SnapshotField("MinimumCellVoltage", "min_cell_voltage"),
    SnapshotField("MaximumCellVoltageCellNo", "max_cell_voltage_cell_no"),
    SnapshotField("MinimumCellVoltageCellNo", "min_cell_voltage_cell_no"),
    SnapshotField("MaximumCellVoltageNode", "max_cell_voltage_node"),
    SnapshotField("MinimumCellVoltageNode", "min_cell_voltage_node"),
    SnapshotField("CellThresholdOverVoltage", "threshold_over_voltage"),
    SnapshotField("CellThresholdUnderVoltage", "threshold_under_voltage"),
    SnapshotField("CellCriticalOverVoltThreshold", "critical_over_volt_threshold"),
    SnapshotField("CellCriticalUnderVoltThreshold", "critical_under_volt_threshold"),
    SnapshotField("CellBalanceThresholdVoltage", "balance_threshold_voltage"),
)

TEMPERATURE_FIELDS: tuple[SnapshotField, ...] = (
    SnapshotField("MaxCellTemp", "max_cell_temp"),
    SnapshotField("MinCellTemp", "min_cell_temp"),
    SnapshotField("MaxCellTempNode", "max_cell_temp_node"),
    SnapshotField("MinCellTempNode", "min_cell_temp_node"),
    SnapshotField("TempThresholdOverTemp", "threshold_over_temp"),
    SnapshotField("TempThresholdUnderTemp", "threshold_under_temp"),
)

SOC_FIELDS: tuple[SnapshotField, ...] = (
    SnapshotField("SOCPercent", "soc_percent"),
    SnapshotField("SOCAh", "soc_ah"),
    SnapshotField("BalanceSOCPercent", "balance_soc_percent"),
    SnapshotField("BalanceSOCAh", "balance_soc_ah"),
)
