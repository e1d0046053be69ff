"""
Time-series reshaper for wide-format BMS telemetry rows.

Turns a batch of raw rows (one row per sampling tick, dozens of flat numeric
fields) into a :class:`~dashboard.src.models.StructuredSeries`: per-node,
per-channel voltage series, per-sensor temperature series, and snapshot
summaries taken from the chronologically last row only.

Pipeline:
1. Decode every row at the boundary (:func:`~dashboard.src.decoder.decode_sample`).
2. Stable-sort ascending by ``Timestamp`` (missing -> 0).
3. Optionally sub-sample every Nth row in progressive mode.
4. Append valid channel readings; extract snapshot scalars from the last row.

This is a pure module: no I/O, no side effects beyond debug logging, and it
never raises on malformed rows.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from dashboard.src.decoder import DecodedSample, decode_sample
from dashboard.src.fields import (
    CELL_FIELDS,
    CELLS_PER_NODE,
    NODE_COUNT,
    PACK_FIELDS,
    SOC_FIELDS,
    TEMP_SENSORS_PER_NODE,
    TEMPERATURE_FIELDS,
    SnapshotField,
    cell_field,
    node_name,
    temp_field,
    temp_label,
)
from dashboard.src.models import (
    CellSummary,
    NodeSeries,
    PackSnapshot,
    StateOfChargeSummary,
    StructuredSeries,
    TemperatureSummary,
)

logger = logging.getLogger(__name__)

PROGRESSIVE_THRESHOLD: int = 2000
"""Row count above which progressive mode sub-samples the batch."""

NO_DATA_ERROR: str = "No data found"

_ROW_KEYS: tuple[str, ...] = ("items", "Items")


# ---------------------------------------------------------------------------
# Reading validity
# ---------------------------------------------------------------------------


def is_valid_reading(value: float | None) -> bool:
    """Return True if a channel reading should be appended to its series.

    Only strictly positive values count. A literal 0 is indistinguishable
    from an unwired sensor and is dropped together with absent values.
    """
    return value is not None and value > 0


# ---------------------------------------------------------------------------
# Ordering and sampling
# ---------------------------------------------------------------------------


def sort_samples(samples: Iterable[DecodedSample]) -> list[DecodedSample]:
    """Stable-sort decoded samples ascending by timestamp."""
    return sorted(samples, key=lambda s: s.timestamp)


def sampling_step(count: int, threshold: int = PROGRESSIVE_THRESHOLD) -> int:
    """Return the sub-sampling stride for *count* rows (1 = keep all)."""
    if count <= threshold:
        return 1
    return math.ceil(count / threshold)


def progressive_subsample(
    samples: Sequence[DecodedSample],
    threshold: int = PROGRESSIVE_THRESHOLD,
) -> list[DecodedSample]:
    """Keep every Nth sample so at most about *threshold* rows remain.

    Selection starts at index 0 and spans the whole input, so the subset
    covers the full time range rather than only its head.
    """
    step = sampling_step(len(samples), threshold)
    if step == 1:
        return list(samples)
    return list(samples[::step])


# ---------------------------------------------------------------------------
# Snapshot extraction
# ---------------------------------------------------------------------------


def _snapshot(
    model: type[BaseModel],
    specs: Sequence[SnapshotField],
    sample: DecodedSample,
) -> Any:
    """Build a summary model from one sample; absent fields keep defaults."""
    values: dict[str, object] = {}
    for spec in specs:
        value = sample.label(spec.field) if spec.text else sample.number(spec.field)
        if value is not None:
            values[spec.attr] = value
    return model(**values)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reshape_samples(
    items: Iterable[object],
    *,
    progressive: bool = False,
    threshold: int = PROGRESSIVE_THRESHOLD,
) -> StructuredSeries:
    """Reshape raw telemetry rows into a :class:`StructuredSeries`.

    Args:
        items: Raw rows in any order. Non-mapping rows decode to empty
            samples and contribute nothing but their position.
        progressive: Sub-sample batches larger than *threshold* before
            reshaping. Snapshot scalars then come from the last row of the
            subset, which may differ from the true last row.
        threshold: Progressive sampling threshold.

    Returns:
        The structured series. An empty input yields the fully defaulted
        structure (14 empty channels per node, no temperature keys, all
        scalars 0).
    """
    samples = sort_samples(decode_sample(item) for item in items)
    total = len(samples)
    if progressive:
        samples = progressive_subsample(samples, threshold)
        logger.debug(
            "Progressive sampling kept %d/%d rows (step=%d)",
            len(samples),
            total,
            sampling_step(total, threshold),
        )

    nodes = {node_name(n): NodeSeries() for n in range(NODE_COUNT)}
    for sample in samples:
        for n in range(NODE_COUNT):
            node = nodes[node_name(n)]
            for channel in range(CELLS_PER_NODE):
                value = sample.number(cell_field(n, channel))
                if is_valid_reading(value):
                    node.cell_voltages[channel].append(value)
            for slot in range(TEMP_SENSORS_PER_NODE):
                value = sample.number(temp_field(n, slot))
                if is_valid_reading(value):
                    node.temperatures.setdefault(temp_label(slot), []).append(value)

    last = samples[-1] if samples else DecodedSample()
    logger.debug("Reshaped %d rows into %d nodes", len(samples), len(nodes))

    return StructuredSeries(
        nodes=nodes,
        pack=_snapshot(PackSnapshot, PACK_FIELDS, last),
        cell=_snapshot(CellSummary, CELL_FIELDS, last),
        temperature=_snapshot(TemperatureSummary, TEMPERATURE_FIELDS, last),
        soc=_snapshot(StateOfChargeSummary, SOC_FIELDS, last),
        sample_count=len(samples),
    )


def extract_rows(result: object) -> list[object]:
    """Return the raw rows of a BMS collaborator result.

    Accepts a bare list of rows, or a mapping holding the list under
    ``items`` / ``Items``. Anything else yields no rows.
    """
    if isinstance(result, list):
        return result
    if isinstance(result, Mapping):
        for key in _ROW_KEYS:
            rows = result.get(key)
            if isinstance(rows, list):
                return rows
    return []


def shape_bms_result(
    result: object,
    *,
    progressive: bool = False,
    threshold: int = PROGRESSIVE_THRESHOLD,
) -> StructuredSeries:
    """Reshape a BMS collaborator result, flagging empty batches.

    Args:
        result: Raw collaborator payload (see :func:`extract_rows`).
        progressive: Passed through to :func:`reshape_samples`.
        threshold: Passed through to :func:`reshape_samples`.

    Returns:
        The structured series; ``error`` is set to ``"No data found"`` when
        the payload held no rows.
    """
    rows = extract_rows(result)
    if not rows:
        logger.warning("Collaborator result contained no rows")
        return StructuredSeries(error=NO_DATA_ERROR)
    return reshape_samples(rows, progressive=progressive, threshold=threshold)
