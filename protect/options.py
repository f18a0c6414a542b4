"""
Resolution of caller options against type-derived defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .data_type import DataType


@dataclass(frozen=True)
class ResolvedOptions:
    """Fully resolved options for one field or column."""

    cast_as: str  # Wire data type
    indexes: Dict[str, Any] = field(default_factory=dict)
    context: Optional[Dict[str, Any]] = None
    skip: bool = False


def resolve_options(options: Mapping[str, Any], data_type: Optional[DataType]) -> ResolvedOptions:
    """
    Apply defaults to validated options.

    Unsupported values (data_type None) always resolve to a skipped text
    entry with no indexes and no context, whatever the caller asked for.

    Args:
        options: Validated options
        data_type: Detected data type, or None for unsupported values

    Returns:
        ResolvedOptions with defaults applied
    """
    if data_type is None:
        return ResolvedOptions(cast_as=DataType.TEXT.value, indexes={}, context=None, skip=True)

    cast_as = options.get("cast_as")
    indexes = options.get("indexes")
    context = options.get("context")

    return ResolvedOptions(
        cast_as=map_cast_as(cast_as, data_type) if cast_as is not None else data_type.value,
        # An explicit empty mapping disables indexing
        indexes=dict(indexes) if indexes is not None else data_type.default_indexes(),
        # An empty context is the same as no context
        context=dict(context) if context else None,
        skip=options.get("skip", False),
    )


def map_cast_as(cast_as: str, detected: DataType) -> str:
    """Map a ``cast_as`` option to the wire data type for the detected type."""
    if cast_as == "string":
        return DataType.TEXT.value
    if cast_as == "bool":
        return DataType.BOOLEAN.value
    if cast_as == "int":
        return detected.value if detected.is_integer else DataType.INT.value
    if cast_as == "float":
        return detected.value if detected.is_float else DataType.REAL.value
    if cast_as == "date":
        return DataType.DATE.value
    if cast_as == "array":
        return DataType.JSONB.value
    return DataType.TEXT.value


def resolve_entry_options(
    validated_options: Mapping[Any, Mapping[str, Any]],
    key: Any,
    name: str,
    data_type: Optional[DataType],
) -> ResolvedOptions:
    """
    Resolve the options of one bulk entry.

    Options are looked up by the validated name first, then by the caller's
    original key.
    """
    entry_options = validated_options.get(name)
    if entry_options is None:
        entry_options = validated_options.get(key, {})
    return resolve_options(entry_options, data_type)
