"""
Contract of the cryptographic engine.

The engine performs encryption, decryption and search term derivation. This
package only configures it: a client is created from an encrypt config,
used for exactly one call, then freed. All payloads are UTF-8 JSON text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from .errors import ProtectError


class EngineError(ProtectError):
    """The engine rejected a request or failed while serving it."""

    pass


class Engine(ABC):
    """
    Abstract engine interface.

    Handles are opaque to callers; an engine may return any object.
    """

    @abstractmethod
    def new_client(self, config_json: str) -> Any:
        """Create a client for the given encrypt config."""
        ...

    @abstractmethod
    def free_client(self, client: Any) -> None:
        """Release a client returned by new_client."""
        ...

    @abstractmethod
    def encrypt(
        self,
        client: Any,
        plaintext: str,
        column: str,
        table: str,
        context_json: Optional[str] = None,
    ) -> str:
        """Encrypt one plaintext, returning the envelope as JSON."""
        ...

    @abstractmethod
    def decrypt(self, client: Any, ciphertext: str, context_json: Optional[str] = None) -> str:
        """Decrypt one ciphertext, returning the plaintext string."""
        ...

    @abstractmethod
    def encrypt_bulk(self, client: Any, items_json: str) -> str:
        """Encrypt a JSON array of items, returning envelopes in the same order."""
        ...

    @abstractmethod
    def decrypt_bulk(self, client: Any, items_json: str) -> str:
        """Decrypt a JSON array of items, returning plaintexts in the same order."""
        ...

    @abstractmethod
    def create_search_terms(self, client: Any, items_json: str) -> str:
        """Create search terms for a JSON array of items, in the same order."""
        ...
