"""
Conversion between Python values and the engine's string representation.

This module provides:
- detect_type: Data type detection for encryption
- to_string / from_string: Bidirectional value conversion per wire data type
- to_json / from_json: JSON helpers for JSONB values and engine payloads
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Union

from .data_type import DataType
from .errors import DataConversionError

JsonStructure = Union[Dict[str, Any], List[Any]]


def detect_type(value: Any) -> Optional[DataType]:
    """Detect the data type of a value for encryption processing."""
    return DataType.from_value(value)


def to_string(value: Any, cast_as: str) -> str:
    """
    Convert a value to its string representation for encryption.

    Args:
        value: Value to convert
        cast_as: Wire data type to convert as

    Returns:
        String representation sent to the engine

    Raises:
        DataConversionError: If cast_as is not a wire data type or conversion fails
    """
    data_type = _parse_cast_as(cast_as)

    try:
        if data_type is DataType.TEXT:
            return str(value)
        if data_type is DataType.BOOLEAN:
            return "true" if _to_bool(value) else "false"
        if data_type.is_integer:
            return str(_to_integer(value))
        if data_type.is_float:
            return repr(float(value))
        if data_type is DataType.DATE:
            return _format_date(_to_datetime(value))
        # JSONB
        return to_json(from_json(value) if isinstance(value, str) else value)
    except DataConversionError:
        raise
    except Exception as e:
        raise DataConversionError(f"Data conversion failed: [{e}].", reason=str(e)) from e


def from_string(value: str, cast_as: str) -> Any:
    """
    Convert a decrypted string back to a Python value.

    Boolean decoding is lenient: only the exact string "true" is True, any
    other input (including malformed input) decodes to False.

    Args:
        value: String returned by the engine
        cast_as: Wire data type to convert as

    Returns:
        Value in its Python type

    Raises:
        DataConversionError: If cast_as is not a wire data type or conversion fails
    """
    data_type = _parse_cast_as(cast_as)

    try:
        if data_type is DataType.TEXT:
            return value
        if data_type is DataType.BOOLEAN:
            return value == "true"
        if data_type.is_integer:
            return int(value)
        if data_type.is_float:
            return float(value)
        if data_type is DataType.DATE:
            return _parse_date(value)
        # JSONB
        return from_json(value)
    except DataConversionError:
        raise
    except Exception as e:
        raise DataConversionError(f"Data conversion failed: [{e}].", reason=str(e)) from e


def to_json(value: Any) -> str:
    """
    Encode a mapping, sequence or dataclass instance as compact JSON.

    Raises:
        DataConversionError: If the value is not structured data or encoding fails
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    elif isinstance(value, Mapping):
        value = dict(value)
    elif isinstance(value, tuple):
        value = list(value)

    if not isinstance(value, (dict, list)):
        type_name = type(value).__name__
        raise DataConversionError(
            f"The [{type_name}] type cannot be converted to JSON. "
            "Only mappings and sequences are supported.",
            type=type_name,
        )

    try:
        return json.dumps(value, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise DataConversionError(f"JSON encoding failed: [{e}].", reason=str(e)) from e


def from_json(value: Union[str, bytes]) -> JsonStructure:
    """
    Decode JSON text that must contain an object or array at its root.

    Raises:
        DataConversionError: If decoding fails or the root is a scalar
    """
    try:
        result = json.loads(value)
    except (TypeError, ValueError) as e:
        raise DataConversionError(f"JSON decoding failed: [{e}].", reason=str(e)) from e

    if not isinstance(result, (dict, list)):
        raise DataConversionError("The JSON must decode to an object or array, not a primitive value.")

    return result


def _parse_cast_as(cast_as: str) -> DataType:
    data_type = DataType.try_from(cast_as)
    if data_type is None:
        raise DataConversionError(
            f"The 'cast_as' data type [{cast_as}] is not supported.", cast_as=cast_as
        )
    return data_type


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value == "true"
    return bool(value)


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeError(f"cannot convert {type(value).__name__} value {value!r} to an integer")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        value = _parse_date(value)
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time(), tzinfo=timezone.utc)

    if not isinstance(value, datetime):
        raise TypeError(f"cannot convert {type(value).__name__} to a date")

    # Naive values are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _format_date(value: datetime) -> str:
    # YYYY-MM-DDTHH:MM:SS.ffffff+HH:MM
    return value.isoformat(timespec="microseconds")


def _parse_date(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
