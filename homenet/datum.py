"""Typed measurement values and their compact text encoding.

A ``Datum`` is a single observation: a tagged scalar value, a unit and a
UTC timestamp. On the wire it is rendered as::

    <value>@<unit>@<rfc3339 timestamp>

for example ``21.5@°C@2024-05-01T12:00:00+00:00``.

Decoding tries Bool, then Int, then Float. The decimal point is the only
thing telling an integer from a float, so floats whose natural form reads
back as an integer are always written with a trailing ``.0``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

DatumValue = Union[bool, int, float]

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


class ParseError(ValueError):
    """Raised when text cannot be decoded into the expected type."""

    def __init__(self, text: str, expected: str, detail: str | None = None) -> None:
        message = f"cannot parse {text!r} as {expected}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.text = text
        self.expected = expected


class ValueKind(str, Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"

    @classmethod
    def of(cls, value: DatumValue) -> "ValueKind":
        # bool is a subclass of int, so it must be checked first
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, int):
            return cls.INT
        if isinstance(value, float):
            return cls.FLOAT
        raise TypeError(f"unsupported datum value type: {type(value).__name__}")


class DatumUnit(Enum):
    UNITLESS = ""
    POWERED_ON = "⏼"
    DEGREES_C = "°C"

    @property
    def symbol(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "DatumUnit":
        for unit in cls:
            if unit.value == text:
                return unit
        raise ParseError(text, "DatumUnit")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True, eq=False)
class Datum:
    """An immutable, timestamped measurement.

    Two datums are equal only when their values have the same kind, so
    ``Datum(1)`` and ``Datum(1.0)`` differ even though ``1 == 1.0``.
    """

    value: DatumValue
    unit: DatumUnit = DatumUnit.UNITLESS
    timestamp: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        ValueKind.of(self.value)
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("Datum timestamp must be timezone-aware")
        object.__setattr__(self, "timestamp", self.timestamp.astimezone(timezone.utc))

    @property
    def kind(self) -> ValueKind:
        return ValueKind.of(self.value)

    @property
    def is_numeric(self) -> bool:
        return self.kind is not ValueKind.BOOL

    def as_float(self) -> float | None:
        """Numeric value of the datum, or None for booleans.

        Integers too large for a float map to +/- infinity.
        """
        if not self.is_numeric:
            return None
        try:
            return float(self.value)
        except OverflowError:
            # ints beyond float range read as infinite
            return math.inf if self.value > 0 else -math.inf

    def _key(self) -> tuple:
        return (self.kind, self.value, self.unit, self.timestamp)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Datum):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return encode(self)

    def as_dict(self) -> dict[str, object]:
        return {
            "value": self.value,
            "kind": self.kind.value,
            "unit": self.unit.symbol,
            "timestamp": self.timestamp.isoformat(),
        }


def encode_value(value: DatumValue) -> str:
    kind = ValueKind.of(value)
    if kind is ValueKind.BOOL:
        return "true" if value else "false"
    if kind is ValueKind.INT:
        return str(value)

    text = repr(value)
    if _INT_PATTERN.fullmatch(text):
        text = f"{text}.0"
    return text


def decode_value(text: str) -> DatumValue:
    """Decode a scalar, trying Bool, then Int, then Float."""
    if text == "true":
        return True
    if text == "false":
        return False
    if _INT_PATTERN.fullmatch(text):
        try:
            return int(text)
        except ValueError as exc:
            # CPython caps str -> int conversion length
            raise ParseError(text, "DatumValue", str(exc)) from exc
    if text and text == text.strip() and "_" not in text:
        try:
            return float(text)
        except ValueError:
            pass
    raise ParseError(text, "DatumValue", "expected bool, int or float")


def encode_timestamp(timestamp: datetime) -> str:
    return timestamp.astimezone(timezone.utc).isoformat()


def decode_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp.

    Accepts a ``Z`` suffix and nanosecond fractions, which are truncated to
    microseconds.
    """
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ParseError(text, "timestamp", str(exc)) from exc
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ParseError(text, "timestamp", "missing UTC offset")
    return parsed.astimezone(timezone.utc)


def encode(datum: Datum) -> str:
    return "@".join(
        (encode_value(datum.value), datum.unit.symbol, encode_timestamp(datum.timestamp))
    )


def decode(text: str) -> Datum:
    """Parse the ``value@unit@timestamp`` form produced by :func:`encode`.

    Raises:
        ParseError: If the text does not have exactly three fields or any
            field fails to parse.
    """
    pieces = text.split("@")
    if len(pieces) != 3:
        raise ParseError(text, "Datum", f"expected 3 '@'-separated fields, got {len(pieces)}")

    value_text, unit_text, timestamp_text = pieces
    return Datum(
        value=decode_value(value_text),
        unit=DatumUnit.parse(unit_text),
        timestamp=decode_timestamp(timestamp_text),
    )


def is_finite(datum: Datum) -> bool:
    value = datum.as_float()
    return value is not None and math.isfinite(value)
