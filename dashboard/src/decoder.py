"""
Boundary decoder for raw BMS telemetry rows.

Raw rows arrive from the compute collaborator as flat mappings whose values
use one of two shapes: a plain primitive (``3.31``, ``"3.31"``,
``"BMS_STATE_ALL_ENABLED"``) or a one-key DynamoDB-style wrapper tagging the
type (``{"N": "3.31"}``, ``{"S": "..."}``). Every value is decoded exactly
once, here, into a tagged :data:`WireValue`, and each row becomes a
:class:`DecodedSample` holding plain ``float`` and ``str`` maps. Nothing
downstream inspects wire shapes.

Values that cannot be decoded (NaN, infinities, booleans, nested lists,
unknown wrapper tags, malformed wrappers) are dropped: they are treated as
absent, never raised.

This is a pure module: no I/O, no clock.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Render numeric-tagged values through DecodedSample.label

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from dashboard.src.fields import TIMESTAMP_FIELD

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tagged wire values
# ---------------------------------------------------------------------------

NUMBER_TAG: str = "N"
TEXT_TAG: str = "S"


@dataclass(frozen=True, slots=True)
class NumberValue:
    """A decoded numeric field value."""

    value: float


@dataclass(frozen=True, slots=True)
class TextValue:
    """A decoded text field value."""

    value: str


WireValue = NumberValue | TextValue


def _parse_number(raw: object) -> float | None:
    """Parse a finite float from a number or numeric string, else None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def decode_value(raw: object) -> WireValue | None:
    """Decode one raw field value into a tagged :data:`WireValue`.

    Args:
        raw: The value as delivered on the wire.

    Returns:
        :class:`NumberValue` for numbers, numeric strings and ``{"N": ...}``
        wrappers; :class:`TextValue` for other strings and ``{"S": ...}``
        wrappers; ``None`` when the value carries no usable reading.
    """
    if isinstance(raw, Mapping):
        if len(raw) != 1:
            return None
        ((tag, inner),) = raw.items()
        if tag == NUMBER_TAG:
            number = _parse_number(inner)
            return NumberValue(number) if number is not None else None
        if tag == TEXT_TAG and isinstance(inner, str):
            return TextValue(inner)
        return None

    if isinstance(raw, str):
        try:
            float(raw.strip())
        except ValueError:
            return TextValue(raw)
        number = _parse_number(raw)
        # "NaN" / "inf" parse as floats but carry no reading
        return NumberValue(number) if number is not None else None

    number = _parse_number(raw)
    return NumberValue(number) if number is not None else None


# ---------------------------------------------------------------------------
# Decoded rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DecodedSample:
    """A telemetry row after boundary decoding.

    Attributes:
        timestamp: Epoch seconds used as sort key; 0 when missing or
            unparseable.
        numbers: Numeric fields by row field name.
        texts: Text fields by row field name.
    """

    timestamp: float = 0.0
    numbers: Mapping[str, float] = field(default_factory=dict)
    texts: Mapping[str, str] = field(default_factory=dict)

    def number(self, name: str) -> float | None:
        """Return a numeric field, or None when absent."""
        return self.numbers.get(name)

    def text(self, name: str) -> str | None:
        """Return a text field, or None when absent."""
        return self.texts.get(name)

    def label(self, name: str) -> str | None:
        """Return a field as text, rendering numeric values when needed.

        Identifiers such as ``SerialNumber`` arrive tagged as numbers;
        integral values render without a trailing ``.0``.
        """
        text = self.texts.get(name)
        if text is not None:
            return text
        number = self.numbers.get(name)
        if number is None:
            return None
        return str(int(number)) if number.is_integer() else str(number)


def decode_sample(item: object) -> DecodedSample:
    """Decode one raw row into a :class:`DecodedSample`.

    Args:
        item: The raw row. Anything that is not a mapping decodes to an
            empty sample.

    Returns:
        The decoded sample. Undecodable fields are omitted.
    """
    if not isinstance(item, Mapping):
        logger.debug("Ignoring non-mapping row of type %s", type(item).__name__)
        return DecodedSample()

    numbers: dict[str, float] = {}
    texts: dict[str, str] = {}
    for name, raw in item.items():
        decoded = decode_value(raw)
        if isinstance(decoded, NumberValue):
            numbers[str(name)] = decoded.value
        elif isinstance(decoded, TextValue):
            texts[str(name)] = decoded.value

    return DecodedSample(
        timestamp=numbers.get(TIMESTAMP_FIELD, 0.0),
        numbers=numbers,
        texts=texts,
    )
