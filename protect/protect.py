"""
Encryption, decryption and search term operations for table columns.

This module provides:
- Protect: Main API for single and bulk operations
- BatchItem: One unit of work in a bulk engine call

Operation flow:
1. Validate input and options
2. Resolve options against the detected data types
3. Build the encrypt config
4. Convert values to their wire strings
5. Create one engine client, make exactly one engine call, free the client
6. Convert results back and merge them into the caller's structure

Bulk calls rely on positional correspondence: the engine returns results in
the order items were submitted, and each item remembers the key it came
from. Skipped entries never reach the engine and are returned unchanged.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from .converter import from_json, from_string, to_json, to_string
from .encrypt_config import FieldConfig, build_encrypt_config, build_field_config
from .engine import Engine
from .errors import (
    DataConversionError,
    DecryptError,
    EncryptError,
    ProtectError,
    SearchTermError,
    ValidationError,
)
from .options import resolve_entry_options, resolve_options
from .settings import ProtectSettings, load_engine
from .validation import (
    validate_bulk_options,
    validate_decrypt_attributes,
    validate_encrypt_attributes,
    validate_envelope,
    validate_field,
    validate_fields,
    validate_options,
    validate_table_match,
    validate_table_name,
    validate_value,
)

logger = logging.getLogger(__name__)

# Option keys accepted by each operation
ENCRYPT_OPTIONS = ("cast_as", "indexes", "context")
DECRYPT_OPTIONS = ("cast_as", "context")
ENCRYPT_ATTRIBUTES_OPTIONS = ("cast_as", "indexes", "context", "skip")
DECRYPT_ATTRIBUTES_OPTIONS = ("cast_as", "context", "skip")
SEARCH_TERM_OPTIONS = ("cast_as", "indexes", "context")


@dataclass(frozen=True)
class BatchItem:
    """
    One item of a bulk engine call.

    ``key`` is the caller's original key the result is merged back into;
    ``cast_as`` converts a decrypted result back. Neither is sent to the engine.
    """

    key: Any
    column: str
    table: Optional[str] = None
    plaintext: Optional[str] = None
    ciphertext: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    cast_as: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Engine-facing representation of the item."""
        if self.ciphertext is not None:
            return {"ciphertext": self.ciphertext, "context": self.context}

        return {
            "plaintext": self.plaintext,
            "column": self.column,
            "table": self.table,
            "context": self.context,
        }


class Protect:
    """
    Field-level encryption service.

    Holds no state between calls apart from the engine it talks to. Every
    public operation creates its own engine client and frees it before
    returning, whichever way the operation ends.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[ProtectSettings] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            engine: Engine to use (default: loaded from settings)
            settings: Settings used to load the engine (default: from the environment)
        """
        if engine is None:
            engine = load_engine(settings if settings is not None else ProtectSettings.from_env())
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Get the engine."""
        return self._engine

    # =========================================================================
    # Single Operations
    # =========================================================================

    def encrypt(
        self, field: str, value: Any, options: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Encrypt a value for a table column.

        Args:
            field: Table and column in ``table.column`` format
            value: Value to encrypt
            options: ``cast_as``, ``indexes`` and ``context``

        Returns:
            Encrypted envelope

        Raises:
            ValidationError: If the field, value or options are invalid
            DataConversionError: If the value cannot be converted
            EncryptError: If the engine fails to encrypt
        """
        validated_field = validate_field(field)
        validated_value = validate_value(value, strict=True)
        validated_options = validate_options(options, ENCRYPT_OPTIONS, validated_field.field)

        resolved = resolve_options(validated_options, validated_value.data_type)

        encrypt_config = build_encrypt_config(
            [build_field_config(validated_field.table, validated_field.column, resolved)]
        )
        plaintext = to_string(validated_value.value, resolved.cast_as)

        logger.debug("Encrypting [%s] as %s", validated_field.field, resolved.cast_as)

        with self._client(encrypt_config, EncryptError, "Encryption failed") as client:
            result_json = self._engine.encrypt(
                client,
                plaintext,
                validated_field.column,
                validated_field.table,
                _context_json(resolved.context),
            )
            return from_json(result_json)

    def decrypt(
        self, envelope: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """
        Decrypt an envelope to its original value.

        Args:
            envelope: Encrypted envelope
            options: ``cast_as`` and ``context``

        Returns:
            Decrypted value in its Python type

        Raises:
            ValidationError: If the envelope or options are invalid
            DecryptError: If the engine fails to decrypt (including a context mismatch)
            DataConversionError: If the plaintext cannot be converted back
        """
        validated_envelope = validate_envelope(envelope)
        validated_options = validate_options(
            options,
            DECRYPT_OPTIONS,
            f"{validated_envelope.table}.{validated_envelope.column}",
        )

        resolved = resolve_options(validated_options, validated_envelope.data_type)

        logger.debug(
            "Decrypting [%s.%s] as %s",
            validated_envelope.table,
            validated_envelope.column,
            resolved.cast_as,
        )

        with self._client(build_encrypt_config([]), DecryptError, "Decryption failed") as client:
            plaintext = self._engine.decrypt(
                client, validated_envelope.ciphertext, _context_json(resolved.context)
            )

        return from_string(plaintext, resolved.cast_as)

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def encrypt_attributes(
        self,
        table: str,
        attributes: Mapping[str, Any],
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Encrypt several columns of one table in a single engine call.

        Skipped columns and values of unsupported types are left as they are.

        Args:
            table: Table name
            attributes: Values keyed by column name
            options: Options keyed by column name (``cast_as``, ``indexes``,
                ``context``, ``skip``)

        Returns:
            Attributes in their original order, encrypted columns replaced by envelopes

        Raises:
            ValidationError: If the input is invalid or the engine returns the
                wrong number of results
            DataConversionError: If a value cannot be converted
            EncryptError: If the engine fails to encrypt
        """
        validated_table = validate_table_name(table)
        entries = validate_encrypt_attributes(attributes)

        if not entries:
            return {}

        validated_options = validate_bulk_options(options, ENCRYPT_ATTRIBUTES_OPTIONS)

        field_configs: List[FieldConfig] = []
        items: List[BatchItem] = []

        for entry in entries:
            resolved = resolve_entry_options(
                validated_options, entry.key, entry.name, entry.item.data_type
            )
            if resolved.skip:
                continue

            field_configs.append(build_field_config(validated_table, entry.name, resolved))
            items.append(
                BatchItem(
                    key=entry.key,
                    column=entry.name,
                    table=validated_table,
                    plaintext=to_string(entry.item.value, resolved.cast_as),
                    context=resolved.context,
                )
            )

        logger.debug(
            "Encrypting %d attributes for table [%s] (%d skipped)",
            len(items),
            validated_table,
            len(entries) - len(items),
        )

        if not items:
            return dict(attributes)

        with self._client(
            build_encrypt_config(field_configs), EncryptError, "Attribute encryption failed"
        ) as client:
            results = from_json(self._engine.encrypt_bulk(client, _items_json(items)))

        _check_result_count(results, items, "encryption")

        merged = dict(attributes)
        for item, envelope in zip(items, results):
            merged[item.key] = envelope

        return merged

    def decrypt_attributes(
        self,
        table: str,
        attributes: Mapping[str, Mapping[str, Any]],
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Decrypt several columns of one table in a single engine call.

        Every envelope must have been encrypted for ``table``. Skipped columns
        keep their envelope.

        Args:
            table: Table name
            attributes: Envelopes keyed by column name
            options: Options keyed by column name (``cast_as``, ``context``, ``skip``)

        Returns:
            Attributes in their original order with decrypted values

        Raises:
            ValidationError: If the input is invalid, an envelope belongs to
                another table or the engine returns the wrong number of results
            DecryptError: If the engine fails to decrypt
            DataConversionError: If a plaintext cannot be converted back
        """
        validated_table = validate_table_name(table)
        entries = validate_decrypt_attributes(attributes)

        if not entries:
            return {}

        validate_table_match(entries, validated_table)
        validated_options = validate_bulk_options(options, DECRYPT_ATTRIBUTES_OPTIONS)

        items: List[BatchItem] = []

        for entry in entries:
            resolved = resolve_entry_options(
                validated_options, entry.key, entry.name, entry.item.data_type
            )
            if resolved.skip:
                continue

            items.append(
                BatchItem(
                    key=entry.key,
                    column=entry.name,
                    ciphertext=entry.item.ciphertext,
                    context=resolved.context,
                    cast_as=resolved.cast_as,
                )
            )

        logger.debug(
            "Decrypting %d attributes for table [%s] (%d skipped)",
            len(items),
            validated_table,
            len(entries) - len(items),
        )

        if not items:
            return dict(attributes)

        with self._client(
            build_encrypt_config([]), DecryptError, "Attribute decryption failed"
        ) as client:
            results = from_json(self._engine.decrypt_bulk(client, _items_json(items)))

        _check_result_count(results, items, "decryption")

        merged = dict(attributes)
        for item, plaintext in zip(items, results):
            merged[item.key] = from_string(plaintext, item.cast_as)

        return merged

    def create_search_terms(
        self,
        fields: Mapping[str, Any],
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Create search terms for querying encrypted columns without decrypting.

        Args:
            fields: Values to search for keyed by ``table.column``
            options: Options keyed by ``table.column`` (``cast_as``, ``indexes``, ``context``)

        Returns:
            Search terms keyed by the normalized ``table.column``

        Raises:
            ValidationError: If a field or value is invalid or the engine
                returns the wrong number of results
            DataConversionError: If a value cannot be converted
            SearchTermError: If the engine fails to create the terms
        """
        entries = validate_fields(fields)

        if not entries:
            return {}

        validated_options = validate_bulk_options(options, SEARCH_TERM_OPTIONS)

        field_configs: List[FieldConfig] = []
        items: List[BatchItem] = []

        for entry in entries:
            validated_field = validate_field(entry.name)
            resolved = resolve_entry_options(
                validated_options, entry.key, entry.name, entry.item.data_type
            )

            field_configs.append(
                build_field_config(validated_field.table, validated_field.column, resolved)
            )
            items.append(
                BatchItem(
                    key=entry.name,
                    column=validated_field.column,
                    table=validated_field.table,
                    plaintext=to_string(entry.item.value, resolved.cast_as),
                    context=resolved.context,
                )
            )

        logger.debug("Creating %d search terms", len(items))

        with self._client(
            build_encrypt_config(field_configs), SearchTermError, "Search term creation failed"
        ) as client:
            results = from_json(self._engine.create_search_terms(client, _items_json(items)))

        _check_result_count(results, items, "search term")

        return {item.key: term for item, term in zip(items, results)}

    # =========================================================================
    # Client Lifecycle
    # =========================================================================

    @contextmanager
    def _client(
        self,
        encrypt_config: Dict[str, Any],
        error_class: Callable[..., ProtectError],
        message: str,
    ) -> Iterator[Any]:
        """
        Create an engine client for the duration of one engine call.

        The client is freed on every exit path. Validation and conversion
        errors pass through unchanged; any other failure is raised as
        ``error_class``.
        """
        client = None
        try:
            client = self._engine.new_client(to_json(encrypt_config))
            logger.debug("Created engine client")
            yield client
        except (ValidationError, DataConversionError):
            raise
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning("%s: %s", message, reason)
            raise error_class(f"{message}: [{reason}].", reason=reason) from e
        finally:
            if client is not None:
                self._engine.free_client(client)
                logger.debug("Freed engine client")


def _context_json(context: Optional[Mapping[str, Any]]) -> Optional[str]:
    return to_json(context) if context else None


def _items_json(items: Sequence[BatchItem]) -> str:
    return to_json([item.to_payload() for item in items])


def _check_result_count(results: Any, items: Sequence[BatchItem], operation: str) -> None:
    actual = len(results) if isinstance(results, list) else None
    if actual != len(items):
        raise ValidationError(
            f"The {operation} result count does not match the submitted item count.",
            expected=len(items),
            actual=actual,
        )
