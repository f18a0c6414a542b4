"""
Engine configuration built before any data operation.

The encrypt config tells the engine, per table and column, which data type
to cast plaintexts to and which indexes to compute:

    {"v": 2, "tables": {table: {column: {"cast_as": ..., "indexes": {...}}}}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from .options import ResolvedOptions

ENCRYPT_CONFIG_VERSION: int = 2


@dataclass(frozen=True)
class FieldConfig:
    """Cast type and index set for one table column."""

    table: str
    column: str
    cast_as: str
    indexes: Dict[str, Any] = field(default_factory=dict)


def build_field_config(table: str, column: str, resolved: ResolvedOptions) -> FieldConfig:
    return FieldConfig(
        table=table,
        column=column,
        cast_as=resolved.cast_as,
        indexes=resolved.indexes,
    )


def build_encrypt_config(field_configs: Iterable[FieldConfig]) -> Dict[str, Any]:
    """
    Group field configs by table then column.

    Empty index settings are always emitted as JSON objects, never arrays;
    the engine rejects ``[]`` where it expects index settings.

    Args:
        field_configs: Field configurations (may be empty)

    Returns:
        Encrypt config ready to be serialized with ``to_json``
    """
    tables: Dict[str, Dict[str, Any]] = {}

    for field_config in field_configs:
        indexes = {
            name: {} if _is_empty_sequence(settings) else settings
            for name, settings in field_config.indexes.items()
        }
        tables.setdefault(field_config.table, {})[field_config.column] = {
            "cast_as": field_config.cast_as,
            "indexes": indexes,
        }

    return {"v": ENCRYPT_CONFIG_VERSION, "tables": tables}


def _is_empty_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and not value
