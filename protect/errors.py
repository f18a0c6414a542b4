"""
Exception classes for protect operations.

Every error carries a human-readable message plus a ``context`` dict with the
structured details (offending column, expected vs. actual counts, engine
reason) needed for programmatic handling.
"""

from __future__ import annotations

from typing import Any


class ProtectError(Exception):
    """Base exception for all protect operations."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(ProtectError):
    """Caller input, envelope or batch result failed validation."""

    pass


class DataConversionError(ProtectError):
    """Value could not be converted to or from its wire representation."""

    pass


class EncryptError(ProtectError):
    """The engine failed to encrypt."""

    pass


class DecryptError(ProtectError):
    """The engine failed to decrypt."""

    pass


class SearchTermError(ProtectError):
    """The engine failed to create search terms."""

    pass


class ConfigError(ProtectError):
    """Configuration error."""

    pass
