"""
Unit tests for the time-series reshaper.

Tests verify:
- Snapshot scalars come from the chronologically last row.
- Zero and absent channel readings are excluded from series.
- Temperature sensor keys only appear once a valid reading exists.
- Empty input yields the fully defaulted structure.
- Progressive sampling spreads over the whole input.
- Collaborator results are unwrapped and empty results are flagged.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from typing import Any

import pytest

from dashboard.src.decoder import decode_sample
from dashboard.src.services.reshaper import (
    NO_DATA_ERROR,
    extract_rows,
    is_valid_reading,
    progressive_subsample,
    reshape_samples,
    sampling_step,
    shape_bms_result,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _row(ts: float, **fields: Any) -> dict[str, Any]:
    """Build a DynamoDB-style row with numeric fields wrapped in {"N": ...}."""
    row: dict[str, Any] = {"Timestamp": {"N": str(ts)}}
    for name, value in fields.items():
        row[name] = {"S": value} if isinstance(value, str) else {"N": str(value)}
    return row


# ---------------------------------------------------------------------------
# Ordering and snapshots
# ---------------------------------------------------------------------------


class TestOrdering:
    """Rows are sorted before series and snapshots are built."""

    def test_snapshot_from_latest_timestamp(self) -> None:
        """Snapshot scalars come from the Timestamp 3 row in any input order."""
        rows = [
            _row(3, TotalBattVoltage=53.3, SOCPercent=80, State="BMS_STATE_ALL_ENABLED"),
            _row(1, TotalBattVoltage=51.1, SOCPercent=60, State="BMS_STATE_OFF"),
            _row(2, TotalBattVoltage=52.2, SOCPercent=70),
        ]
        series = reshape_samples(rows)
        assert series.pack.total_batt_voltage == 53.3
        assert series.pack.state == "BMS_STATE_ALL_ENABLED"
        assert series.soc.soc_percent == 80

    def test_series_in_time_order(self) -> None:
        """Channel series follow timestamp order, not input order."""
        rows = [
            _row(2, Node00Cell00=3.32),
            _row(1, Node00Cell00=3.31),
            _row(3, Node00Cell00=3.33),
        ]
        series = reshape_samples(rows)
        assert series.nodes["Node0"].cell_voltages[0] == [3.31, 3.32, 3.33]

    def test_missing_timestamp_sorts_first(self) -> None:
        """A row without Timestamp is treated as the oldest."""
        rows = [_row(5, TotalCurrent=12.5), {"TotalCurrent": {"N": "99"}}]
        assert reshape_samples(rows).pack.total_current == 12.5

    def test_snapshot_fields_absent_in_last_row_default(self) -> None:
        """Snapshot fields missing from the last row are 0, not carried over."""
        rows = [_row(1, MaxCellTemp=31.5), _row(2, MinCellTemp=22.0)]
        series = reshape_samples(rows)
        assert series.temperature.max_cell_temp == 0.0
        assert series.temperature.min_cell_temp == 22.0

    def test_equal_timestamps_keep_input_order(self) -> None:
        """Rows sharing a timestamp keep their relative input order."""
        rows = [
            {"Timestamp": 5, "Node00Cell00": 3.1, "TotalCurrent": 1.0},
            {"Timestamp": 5, "Node00Cell00": 3.2, "TotalCurrent": 2.0},
            {"Timestamp": 4, "Node00Cell00": 3.0},
        ]
        series = reshape_samples(rows)
        assert series.nodes["Node0"].cell_voltages[0] == [3.0, 3.1, 3.2]
        assert series.pack.total_current == 2.0

    def test_plain_primitive_rows(self) -> None:
        """Untagged rows reshape the same way as wrapped ones."""
        rows = [
            {"Timestamp": 2, "Node00Cell00": 3.35, "State": "BMS_STATE_ALL_ENABLED"},
            {"Timestamp": 1, "Node00Cell00": 0, "Node01Temp03": 24.5},
            {"Timestamp": "3", "Node00Cell00": "3.4", "TotalBattVoltage": 53},
        ]
        series = reshape_samples(rows)
        assert series.nodes["Node0"].cell_voltages[0] == [3.35, 3.4]
        assert series.nodes["Node1"].temperatures == {"Temp03": [24.5]}
        assert series.pack.total_batt_voltage == 53.0
        assert series.pack.state is None

    def test_numeric_tagged_identifiers_in_snapshot(self) -> None:
        """SerialNumber and Events sent as {"N": ...} still reach the snapshot."""
        rows = [
            {
                "Timestamp": {"N": "1"},
                "SerialNumber": {"N": "12345678"},
                "Events": {"N": "3"},
                "State": {"S": "BMS_STATE_ALL_ENABLED"},
            }
        ]
        pack = reshape_samples(rows).pack
        assert pack.serial_number == "12345678"
        assert pack.events == "3"
        assert pack.state == "BMS_STATE_ALL_ENABLED"


# ---------------------------------------------------------------------------
# Channel series
# ---------------------------------------------------------------------------


class TestChannelSeries:
    """Per-channel series accumulation."""

    def test_zero_reading_excluded(self) -> None:
        """A reading of exactly 0 contributes no entry."""
        series = reshape_samples([_row(1, Node00Cell00=0)])
        assert series.nodes["Node0"].cell_voltages[0] == []

    def test_small_positive_reading_kept(self) -> None:
        """A reading of 0.001 is kept unrounded."""
        series = reshape_samples([_row(1, Node00Cell00=0.001)])
        assert series.nodes["Node0"].cell_voltages[0] == [0.001]

    def test_negative_and_absent_readings_excluded(self) -> None:
        """Negative and missing readings are both dropped."""
        series = reshape_samples([_row(1, Node01Cell13=-1.0), _row(2)])
        assert series.nodes["Node1"].cell_voltages[13] == []

    def test_channels_have_independent_lengths(self) -> None:
        """Channels grow independently; all 14 always exist."""
        rows = [
            _row(1, Node00Cell00=3.3, Node00Cell01=3.4),
            _row(2, Node00Cell00=3.31),
        ]
        node = reshape_samples(rows).nodes["Node0"]
        assert len(node.cell_voltages) == 14
        assert node.cell_voltages[0] == [3.3, 3.31]
        assert node.cell_voltages[1] == [3.4]
        assert node.cell_voltages[2] == []

    def test_temperature_keys_are_dynamic(self) -> None:
        """Only sensors with a valid reading get a key."""
        rows = [
            _row(1, Node01Temp00=24.5, Node01Temp05=0),
            _row(2, Node01Temp00=25.0, Node00Temp09=21.0),
        ]
        series = reshape_samples(rows)
        assert series.nodes["Node1"].temperatures == {"Temp00": [24.5, 25.0]}
        assert "Temp05" not in series.nodes["Node1"].temperatures
        assert series.nodes["Node0"].temperatures == {"Temp09": [21.0]}

    def test_is_valid_reading(self) -> None:
        """Only strictly positive readings are valid."""
        assert is_valid_reading(0.001)
        assert not is_valid_reading(0)
        assert not is_valid_reading(None)
        assert not is_valid_reading(-3.2)


# ---------------------------------------------------------------------------
# Degenerate input
# ---------------------------------------------------------------------------


class TestDegenerateInput:
    """Empty and malformed batches never raise."""

    def test_empty_input(self) -> None:
        """No rows yields the fully defaulted structure."""
        series = reshape_samples([])
        assert set(series.nodes) == {"Node0", "Node1"}
        for node in series.nodes.values():
            assert node.cell_voltages == [[] for _ in range(14)]
            assert node.temperatures == {}
        assert series.pack.total_batt_voltage == 0.0
        assert series.pack.state is None
        assert series.cell.max_cell_voltage == 0.0
        assert series.soc.soc_ah == 0.0
        assert series.sample_count == 0
        assert series.error is None

    def test_malformed_rows_ignored(self) -> None:
        """Non-mapping rows and junk values contribute nothing."""
        rows = ["junk", None, {"Timestamp": {"N": "1"}, "Node00Cell00": {"N": "bad"}}]
        series = reshape_samples(rows)
        assert series.nodes["Node0"].cell_voltages[0] == []
        assert series.sample_count == 3


# ---------------------------------------------------------------------------
# Progressive sampling
# ---------------------------------------------------------------------------


class TestProgressiveSampling:
    """Every-Nth sub-sampling over the whole input."""

    def test_sampling_step(self) -> None:
        """Step is 1 at or under the threshold, ceil(n/threshold) above."""
        assert sampling_step(2000) == 1
        assert sampling_step(2001) == 2
        assert sampling_step(5000) == 3

    def test_5000_rows_spread_over_full_span(self) -> None:
        """5000 rows keep ceil(5000/3) rows spanning head to tail."""
        rows = [_row(i, Node00Cell00=i + 1) for i in range(5000)]
        series = reshape_samples(rows, progressive=True)
        expected = math.ceil(5000 / math.ceil(5000 / 2000))
        channel = series.nodes["Node0"].cell_voltages[0]
        assert series.sample_count == expected == 1667
        assert len(channel) == expected
        assert channel[0] == 1
        assert channel[-1] == 4999

    def test_small_batch_untouched(self) -> None:
        """Batches under the threshold are not sampled."""
        rows = [_row(i, Node00Cell00=3.3) for i in range(10)]
        assert reshape_samples(rows, progressive=True).sample_count == 10

    def test_subsample_keeps_first_row(self) -> None:
        """Selection starts at index 0."""
        samples = [decode_sample(_row(i)) for i in range(10)]
        kept = progressive_subsample(samples, threshold=4)
        assert [s.timestamp for s in kept] == [0, 3, 6, 9]

    def test_non_progressive_keeps_everything(self) -> None:
        """Without progressive mode large batches are kept whole."""
        rows = [_row(i, Node00Cell00=3.3) for i in range(2500)]
        assert reshape_samples(rows).sample_count == 2500


# ---------------------------------------------------------------------------
# Collaborator results
# ---------------------------------------------------------------------------


class TestShapeBmsResult:
    """Unwrapping and empty-result handling."""

    @pytest.mark.parametrize(
        "result",
        [
            [_row(1, Node00Cell00=3.3)],
            {"items": [_row(1, Node00Cell00=3.3)]},
            {"Items": [_row(1, Node00Cell00=3.3)]},
        ],
    )
    def test_row_containers(self, result: object) -> None:
        """Rows are found in a list or under items/Items."""
        series = shape_bms_result(result)
        assert series.nodes["Node0"].cell_voltages[0] == [3.3]
        assert series.error is None

    @pytest.mark.parametrize("result", [[], {"items": []}, {"other": 1}, "text"])
    def test_no_rows_flagged(self, result: object) -> None:
        """A result without rows is the defaulted structure with an error."""
        series = shape_bms_result(result)
        assert series.error == NO_DATA_ERROR
        assert series.sample_count == 0

    def test_extract_rows_prefers_list(self) -> None:
        """A bare list is returned unchanged."""
        rows = [{"a": 1}]
        assert extract_rows(rows) is rows

    def test_progressive_flag_passed_through(self) -> None:
        """Progressive settings reach the reshaper."""
        rows = [_row(i, Node00Cell00=3.3) for i in range(30)]
        assert shape_bms_result(rows, progressive=True, threshold=10).sample_count == 10
