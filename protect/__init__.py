"""
Protect

Field-level, searchable encryption for table columns. Protect detects how
each value should be represented, builds the configuration the encryption
engine needs, and turns engine results back into Python values.

Quick Start
-----------
```python
from protect import Protect

protect = Protect()  # Engine and credentials from the environment / .env

envelope = protect.encrypt("users.email", "john@example.com")
email = protect.decrypt(envelope)

encrypted = protect.encrypt_attributes(
    "users",
    {"email": "john@example.com", "age": 29, "notes": None},
    {"email": {"context": {"tag": ["pii"]}}},
)
row = protect.decrypt_attributes(
    "users", encrypted, {"email": {"context": {"tag": ["pii"]}}}
)

terms = protect.create_search_terms({"users.email": "john@example.com"})
```

Key Features
------------
- **Type Detection**: Narrowest wire type per value (small_int/int/big_int, real/double)
- **Default Indexes**: Unique and ORE indexes requested per data type, overridable
- **Bulk Operations**: One engine call per batch with order-preserving merges
- **Skip**: Leave selected columns untouched in bulk operations
- **Context Binding**: Bind tenant or purpose context into encryption
- **Scoped Clients**: One engine client per operation, always freed
"""

__version__ = "0.1.0"

# =============================================================================
# Data Type Exports
# =============================================================================

from .data_type import DataType

# =============================================================================
# Conversion Exports
# =============================================================================

from .converter import detect_type, from_json, from_string, to_json, to_string

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    ConfigError,
    DataConversionError,
    DecryptError,
    EncryptError,
    ProtectError,
    SearchTermError,
    ValidationError,
)

# =============================================================================
# Engine Exports
# =============================================================================

from .engine import Engine, EngineError
from .local_engine import LocalEngine
from .settings import ProtectSettings, load_engine

# =============================================================================
# Service Exports (Primary API)
# =============================================================================

from .encrypt_config import FieldConfig, build_encrypt_config
from .options import ResolvedOptions, resolve_options
from .protect import BatchItem, Protect

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Data types
    "DataType",
    # Conversion
    "detect_type",
    "to_string",
    "from_string",
    "to_json",
    "from_json",
    # Errors
    "ProtectError",
    "ValidationError",
    "DataConversionError",
    "EncryptError",
    "DecryptError",
    "SearchTermError",
    "ConfigError",
    # Engine
    "Engine",
    "EngineError",
    "LocalEngine",
    "ProtectSettings",
    "load_engine",
    # Service (Primary API)
    "Protect",
    "BatchItem",
    "FieldConfig",
    "ResolvedOptions",
    "build_encrypt_config",
    "resolve_options",
]
