"""
In-process engine for development and testing.

This module provides:
- LocalEngine: Engine implementation backed by AES-256-GCM
- LocalClient: Client handle holding the encrypt config and the data key

Format:
- Ciphertext is base64 of the AEAD blob: nonce(12) || ciphertext || tag(16)
- The encryption context is bound as Additional Authenticated Data, so
  decrypting with a different context fails

Note: LocalEngine computes no searchable indexes. The index payloads of its
envelopes and search terms (hm, ob, bf, sv) are always null. Use an engine
backed by the real cryptographic service when indexes are needed.
"""

from __future__ import annotations

import base64
import binascii
import json
import secrets
from typing import Any, Dict, List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .engine import Engine, EngineError
from .errors import ConfigError
from .settings import ProtectSettings

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)

ENVELOPE_VERSION: int = 2
_HKDF_INFO: bytes = b"protect-local-engine-v1"


class LocalClient:
    """
    Client handle created per operation.

    Holds the parsed encrypt config and the data key. The key is zeroed
    (best-effort) when the client is freed.
    """

    __slots__ = ("tables", "_key", "closed")

    def __init__(self, tables: Dict[str, Dict[str, Any]], key: bytes) -> None:
        self.tables = tables
        self._key = bytearray(key)
        self.closed = False

    def column_config(self, table: str, column: str) -> Dict[str, Any]:
        """Get the config of a column, which must be present in the encrypt config."""
        try:
            return self.tables[table][column]
        except KeyError:
            raise EngineError(f"Column [{table}.{column}] is not configured for this client")

    def cipher(self) -> AESGCM:
        if self.closed:
            raise EngineError("Client has been freed")
        return AESGCM(bytes(self._key))

    def close(self) -> None:
        for i in range(len(self._key)):
            self._key[i] = 0
        self.closed = True

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return f"LocalClient(tables={sorted(self.tables)!r}, key=[REDACTED])"


class LocalEngine(Engine):
    """
    AES-256-GCM engine running in the current process.

    The data key is derived with HKDF-SHA256 from the configured client key,
    so every client built from the same settings can decrypt the others'
    ciphertexts.
    """

    def __init__(self, settings: Optional[ProtectSettings] = None) -> None:
        """
        Initialize the engine.

        Args:
            settings: Settings carrying CS_CLIENT_KEY (default: loaded from the environment)

        Raises:
            ConfigError: If no client key is configured
        """
        settings = settings if settings is not None else ProtectSettings.from_env()
        if not settings.client_key:
            raise ConfigError("CS_CLIENT_KEY must be set to use the local engine")

        self._key = _derive_key(settings.client_key)

    # =========================================================================
    # Client Lifecycle
    # =========================================================================

    def new_client(self, config_json: str) -> LocalClient:
        try:
            config = json.loads(config_json)
        except ValueError as e:
            raise EngineError(f"Invalid encrypt config: {e}")

        if not isinstance(config, dict) or config.get("v") != 2:
            raise EngineError("Unsupported encrypt config version")

        tables = config.get("tables")
        if not isinstance(tables, dict):
            raise EngineError("Encrypt config is missing the tables")

        for table, columns in tables.items():
            for column, column_config in columns.items():
                if not isinstance(column_config.get("indexes"), dict):
                    raise EngineError(f"Indexes of [{table}.{column}] must be an object")

        return LocalClient(tables, self._key)

    def free_client(self, client: LocalClient) -> None:
        client.close()

    # =========================================================================
    # Single Operations
    # =========================================================================

    def encrypt(
        self,
        client: LocalClient,
        plaintext: str,
        column: str,
        table: str,
        context_json: Optional[str] = None,
    ) -> str:
        context = _load_context(context_json)
        return json.dumps(self._encrypt_one(client, plaintext, column, table, context))

    def decrypt(
        self, client: LocalClient, ciphertext: str, context_json: Optional[str] = None
    ) -> str:
        return self._decrypt_one(client, ciphertext, _load_context(context_json))

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def encrypt_bulk(self, client: LocalClient, items_json: str) -> str:
        envelopes = [
            self._encrypt_one(
                client,
                item["plaintext"],
                item["column"],
                item["table"],
                item.get("context"),
            )
            for item in _load_items(items_json)
        ]
        return json.dumps(envelopes)

    def decrypt_bulk(self, client: LocalClient, items_json: str) -> str:
        plaintexts = [
            self._decrypt_one(client, item["ciphertext"], item.get("context"))
            for item in _load_items(items_json)
        ]
        return json.dumps(plaintexts)

    def create_search_terms(self, client: LocalClient, items_json: str) -> str:
        terms = []
        for item in _load_items(items_json):
            client.column_config(item["table"], item["column"])
            terms.append(
                {
                    "hm": None,
                    "ob": None,
                    "bf": None,
                    "sv": None,
                    "i": {"t": item["table"], "c": item["column"]},
                }
            )
        return json.dumps(terms)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _encrypt_one(
        client: LocalClient,
        plaintext: str,
        column: str,
        table: str,
        context: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        column_config = client.column_config(table, column)

        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = client.cipher().encrypt(nonce, plaintext.encode("utf-8"), _aad(context))

        return {
            "k": "ct",
            "c": base64.standard_b64encode(nonce + sealed).decode("ascii"),
            "dt": column_config["cast_as"],
            "hm": None,
            "ob": None,
            "bf": None,
            "sv": None,
            "i": {"t": table, "c": column},
            "v": ENVELOPE_VERSION,
        }

    @staticmethod
    def _decrypt_one(
        client: LocalClient, ciphertext: str, context: Optional[Dict[str, Any]]
    ) -> str:
        try:
            blob = base64.standard_b64decode(ciphertext.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as e:
            raise EngineError(f"Base64 decode error: {e}")

        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise EngineError("Invalid ciphertext length")

        try:
            plaintext = client.cipher().decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], _aad(context))
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise EngineError("Decryption failed")

        return plaintext.decode("utf-8")


def _derive_key(client_key: str) -> bytes:
    try:
        material = bytes.fromhex(client_key)
    except ValueError:
        material = client_key.encode("utf-8")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=AES_256_KEY_SIZE,
        salt=None,
        info=_HKDF_INFO,
    )
    return hkdf.derive(material)


def _aad(context: Optional[Dict[str, Any]]) -> bytes:
    if not context:
        return b""
    return json.dumps(context, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _load_context(context_json: Optional[str]) -> Optional[Dict[str, Any]]:
    if context_json is None:
        return None
    try:
        context = json.loads(context_json)
    except ValueError as e:
        raise EngineError(f"Invalid context: {e}")
    if not isinstance(context, dict):
        raise EngineError("Context must be a JSON object")
    return context


def _load_items(items_json: str) -> List[Dict[str, Any]]:
    try:
        items = json.loads(items_json)
    except ValueError as e:
        raise EngineError(f"Invalid items payload: {e}")
    if not isinstance(items, list):
        raise EngineError("Items payload must be a JSON array")
    return items
