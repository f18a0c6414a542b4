"""
Wire data types exchanged with the encryption engine.

This module provides:
- DataType: Closed set of wire data types
- Value-based type detection with narrowest-storage tie-breaking
- Default index sets per data type
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

# Integer ranges (inclusive)
SMALL_INT_MIN: int = -32768
SMALL_INT_MAX: int = 32767
INT_MIN: int = -2147483648
INT_MAX: int = 2147483647

# Single precision float range
REAL_MAX: float = 3.4e38
REAL_MIN: float = 1.18e-38

# Tolerance for the single precision round trip
REAL_EPSILON: float = 1.0e-7
REAL_MAX_FRACTION_DIGITS: int = 7


class DataType(Enum):
    """Wire data type (matches the engine's cast_as values)."""

    TEXT = "text"
    BOOLEAN = "boolean"
    SMALL_INT = "small_int"  # 16-bit
    INT = "int"  # 32-bit
    BIG_INT = "big_int"  # 64-bit
    REAL = "real"  # Single precision
    DOUBLE = "double"  # Double precision
    DATE = "date"
    JSONB = "jsonb"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def try_from(cls, value: Any) -> Optional[DataType]:
        """Parse a wire string, returning None when it is not recognized."""
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_value(cls, value: Any) -> Optional[DataType]:
        """
        Detect the data type of a Python value.

        Args:
            value: Value to detect

        Returns:
            Detected DataType, or None when the value is not supported
        """
        if isinstance(value, str):
            return cls.TEXT

        # bool is a subclass of int, so it must be checked first
        if isinstance(value, bool):
            return cls.BOOLEAN

        if isinstance(value, int):
            return cls.from_integer(value)

        if isinstance(value, float):
            return cls.from_float(value)

        if isinstance(value, date):
            return cls.DATE

        if isinstance(value, (Mapping, list, tuple)):
            return cls.JSONB

        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return cls.JSONB

        return None

    @classmethod
    def from_integer(cls, value: int) -> DataType:
        """Select the narrowest integer type containing the value."""
        if SMALL_INT_MIN <= value <= SMALL_INT_MAX:
            return cls.SMALL_INT

        if INT_MIN <= value <= INT_MAX:
            return cls.INT

        return cls.BIG_INT

    @classmethod
    def from_float(cls, value: float) -> DataType:
        """
        Select REAL or DOUBLE based on precision requirements.

        The checks run in order: zero, single precision range, fractional
        digit count, then a decimal round trip.
        """
        if value == 0.0:
            return cls.REAL

        if _exceeds_real_range(value):
            return cls.DOUBLE

        if _requires_double_precision(value):
            return cls.DOUBLE

        return cls.REAL

    @property
    def is_integer(self) -> bool:
        return self in (DataType.SMALL_INT, DataType.INT, DataType.BIG_INT)

    @property
    def is_float(self) -> bool:
        return self in (DataType.REAL, DataType.DOUBLE)

    def default_indexes(self) -> Dict[str, Any]:
        """
        Get the index set requested when the caller gives none.

        Returns:
            Fresh mapping of index name to (empty) index settings
        """
        if self is DataType.TEXT:
            return {"unique": {}, "ore": {}}

        if self is DataType.BOOLEAN:
            return {"unique": {}}

        if self is DataType.JSONB:
            return {}

        # Integers, floats and dates
        return {"ore": {}}


def _exceeds_real_range(value: float) -> bool:
    abs_value = abs(value)
    return abs_value > REAL_MAX or abs_value < REAL_MIN


def _requires_double_precision(value: float) -> bool:
    trimmed = ("%.8f" % value).rstrip("0").rstrip(".")

    if "." in trimmed:
        precision = len(trimmed.split(".", 1)[1])
        if precision > REAL_MAX_FRACTION_DIGITS:
            return True

    return not _can_be_represented_as_real(value)


def _can_be_represented_as_real(value: float) -> bool:
    # Round trip through a 14 significant digit decimal string
    round_tripped = float("%.14G" % value)
    return abs(round_tripped - value) < REAL_EPSILON
