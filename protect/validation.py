"""
Validation of caller input and encrypted envelopes.

All functions are pure: they either return a validated shape or raise
ValidationError. Invalid input is never coerced.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .data_type import DataType
from .errors import ValidationError

CAST_AS_TYPES = ("string", "bool", "int", "float", "date", "array")


# =============================================================================
# Validated Shapes
# =============================================================================


@dataclass(frozen=True)
class ValidatedField:
    """A ``table.column`` field split into its validated parts."""

    table: str
    column: str

    @property
    def field(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class ValidatedValue:
    """A plaintext value and its detected data type (None when unsupported)."""

    value: Any
    data_type: Optional[DataType]


@dataclass(frozen=True)
class ValidatedEnvelope:
    """The parts of an envelope needed for decryption."""

    ciphertext: str
    data_type: DataType
    table: str
    column: str


@dataclass(frozen=True)
class ValidatedEntry:
    """A bulk entry keyed by the caller's original key."""

    key: Any
    name: str
    item: Any


# =============================================================================
# Names and Fields
# =============================================================================


def validate_table_name(table: Any) -> str:
    """Validate and trim a table name."""
    if not isinstance(table, str):
        raise ValidationError(
            f"The table name must be a string, [{_type_name(table)}] given."
        )

    validated = table.strip()
    if not validated:
        raise ValidationError("The table name cannot be empty.")

    return validated


def validate_column_name(column: Any) -> str:
    """Validate and trim a column name."""
    if not isinstance(column, str):
        raise ValidationError(
            f"The column name must be a string, [{_type_name(column)}] given."
        )

    validated = column.strip()
    if not validated:
        raise ValidationError("The column name cannot be empty.")

    return validated


def validate_field(field: Any) -> ValidatedField:
    """
    Validate a field of the form ``table.column``.

    Raises:
        ValidationError: If the field is not a string, does not contain exactly
            one separator, or either part is invalid
    """
    if not isinstance(field, str):
        raise ValidationError(f"The field must be a string, [{_type_name(field)}] given.")

    parts = field.split(".")
    if len(parts) != 2:
        raise ValidationError(
            f"The field [{field}] must use the format [table.column].", field=field
        )

    return ValidatedField(
        table=validate_table_name(parts[0]),
        column=validate_column_name(parts[1]),
    )


# =============================================================================
# Values and Options
# =============================================================================


def validate_value(value: Any, strict: bool = False) -> ValidatedValue:
    """
    Detect the data type of a value.

    Args:
        value: Value to validate
        strict: Raise for unsupported values instead of returning data_type None

    Raises:
        ValidationError: If strict and the value type is not supported
    """
    data_type = DataType.from_value(value)

    if data_type is None and strict:
        raise ValidationError(
            f"The [{_type_name(value)}] data type is not supported for encryption.",
            type=_type_name(value),
        )

    return ValidatedValue(value=value, data_type=data_type)


def validate_cast_as(cast_as: Any, attribute: str) -> str:
    """Validate a ``cast_as`` option value."""
    if not isinstance(cast_as, str):
        raise ValidationError(
            f"The 'cast_as' option for attribute [{attribute}] must be a string.",
            attribute=attribute,
        )

    if cast_as not in CAST_AS_TYPES:
        raise ValidationError(
            f"The [{cast_as}] 'cast_as' value is not supported.",
            attribute=attribute,
            cast_as=cast_as,
        )

    return cast_as


def validate_options(
    options: Any, allowed_keys: Iterable[str], attribute: str = "options"
) -> Dict[str, Any]:
    """
    Validate and extract the allowed option keys.

    Keys outside ``allowed_keys`` and keys set to None are ignored.

    Args:
        options: Options mapping (None is treated as empty)
        allowed_keys: Option keys the operation accepts
        attribute: Column or field the options belong to, used in messages

    Returns:
        Validated options restricted to the allowed keys
    """
    if options is None:
        return {}

    if not isinstance(options, Mapping):
        raise ValidationError(
            f"The options for attribute [{attribute}] must be a mapping.",
            attribute=attribute,
        )

    validated: Dict[str, Any] = {}

    for key in allowed_keys:
        option = options.get(key)
        if option is None:
            continue

        if key == "cast_as":
            validate_cast_as(option, attribute)
        elif key == "indexes" and not isinstance(option, Mapping):
            raise ValidationError(
                f"The 'indexes' option for attribute [{attribute}] must be a mapping.",
                attribute=attribute,
            )
        elif key == "context" and not isinstance(option, Mapping):
            raise ValidationError(
                f"The 'context' option for attribute [{attribute}] must be a mapping.",
                attribute=attribute,
            )
        elif key == "skip" and not isinstance(option, bool):
            raise ValidationError(
                f"The 'skip' option for attribute [{attribute}] must be a boolean.",
                attribute=attribute,
            )

        validated[key] = option

    return validated


def validate_bulk_options(
    options: Any, allowed_keys: Iterable[str]
) -> Dict[str, Dict[str, Any]]:
    """Validate options keyed by column or field name."""
    if options is None:
        return {}

    if not isinstance(options, Mapping):
        raise ValidationError("The bulk options must be a mapping of names to options.")

    allowed = tuple(allowed_keys)
    return {
        name: validate_options(name_options, allowed, str(name))
        for name, name_options in options.items()
    }


# =============================================================================
# Envelopes
# =============================================================================


def validate_envelope(envelope: Any) -> ValidatedEnvelope:
    """
    Validate the structure of an encrypted envelope.

    Missing, wrong-type and unrecognized values are reported as distinct errors.
    """
    if not isinstance(envelope, Mapping):
        raise ValidationError(
            f"The envelope must be a mapping, [{_type_name(envelope)}] given."
        )

    ciphertext = envelope.get("c")
    if ciphertext is None:
        raise ValidationError("The envelope is missing the ciphertext.")
    if not isinstance(ciphertext, str):
        raise ValidationError("The envelope ciphertext must be a string.")

    data_type_value = envelope.get("dt")
    if data_type_value is None:
        raise ValidationError("The envelope is missing the data type.")
    if not isinstance(data_type_value, str):
        raise ValidationError("The envelope data type must be a string.")

    data_type = DataType.try_from(data_type_value)
    if data_type is None:
        raise ValidationError(
            f"The envelope data type [{data_type_value}] is not supported.",
            data_type=data_type_value,
        )

    identifier = envelope.get("i")
    if not isinstance(identifier, Mapping):
        identifier = {}

    if identifier.get("t") is None:
        raise ValidationError("The envelope is missing the table identifier.")
    table = validate_table_name(identifier["t"])

    if identifier.get("c") is None:
        raise ValidationError("The envelope is missing the column identifier.")
    column = validate_column_name(identifier["c"])

    return ValidatedEnvelope(
        ciphertext=ciphertext,
        data_type=data_type,
        table=table,
        column=column,
    )


def validate_table_match(entries: Iterable[ValidatedEntry], expected_table: str) -> None:
    """
    Check every envelope was encrypted for the expected table.

    Raises:
        ValidationError: Naming the column and both tables on the first mismatch
    """
    for entry in entries:
        envelope_table = entry.item.table
        if envelope_table != expected_table:
            raise ValidationError(
                f"The column [{entry.name}] data was encrypted for table "
                f"[{envelope_table}] but expected table [{expected_table}].",
                column=entry.name,
                expected_table=expected_table,
                envelope_table=envelope_table,
            )


# =============================================================================
# Bulk Entries
# =============================================================================


def validate_encrypt_attributes(attributes: Any) -> List[ValidatedEntry]:
    """Validate column names and detect value types for bulk encryption."""
    return _validate_entries(
        attributes,
        "attributes",
        validate_column_name,
        lambda value: validate_value(value),
    )


def validate_decrypt_attributes(attributes: Any) -> List[ValidatedEntry]:
    """Validate column names and envelopes for bulk decryption."""
    return _validate_entries(
        attributes,
        "attributes",
        validate_column_name,
        validate_envelope,
    )


def validate_fields(fields: Any) -> List[ValidatedEntry]:
    """
    Validate ``table.column`` keys and values for search term creation.

    Entry names are the normalized field; unsupported values raise.
    """
    return _validate_entries(
        fields,
        "fields",
        lambda field: validate_field(field).field,
        lambda value: validate_value(value, strict=True),
    )


def _validate_entries(entries, label, validate_name, validate_item) -> List[ValidatedEntry]:
    if not isinstance(entries, Mapping):
        raise ValidationError(
            f"The {label} must be a mapping, [{_type_name(entries)}] given."
        )

    validated = []
    seen = set()

    for key, item in entries.items():
        name = validate_name(key)
        if name in seen:
            raise ValidationError(f"The name [{name}] appears more than once.", name=name)
        seen.add(name)

        validated.append(ValidatedEntry(key=key, name=name, item=validate_item(item)))

    return validated


def _type_name(value: Any) -> str:
    return "None" if value is None else type(value).__name__
