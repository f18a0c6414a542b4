"""
Environment configuration.

Settings are read from the process environment after loading an optional
``.env`` file:

- CS_WORKSPACE_CRN, CS_CLIENT_ID, CS_CLIENT_KEY, CS_CLIENT_ACCESS_KEY:
  engine credentials
- PROTECT_ENGINE: ``module:attribute`` path of the engine factory
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .engine import Engine
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENGINE: str = "protect.local_engine:LocalEngine"


@dataclass(frozen=True)
class ProtectSettings:
    """Engine selection and credentials."""

    workspace_crn: Optional[str] = None
    client_id: Optional[str] = None
    client_key: Optional[str] = None
    client_access_key: Optional[str] = None
    engine: str = DEFAULT_ENGINE

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> ProtectSettings:
        """
        Load settings from the environment.

        Variables already set in the environment take precedence over the
        ``.env`` file.

        Args:
            env_file: Path of a .env file (default: search from the working directory)

        Returns:
            ProtectSettings instance
        """
        load_dotenv(env_file)

        return cls(
            workspace_crn=_env("CS_WORKSPACE_CRN"),
            client_id=_env("CS_CLIENT_ID"),
            client_key=_env("CS_CLIENT_KEY"),
            client_access_key=_env("CS_CLIENT_ACCESS_KEY"),
            engine=_env("PROTECT_ENGINE") or DEFAULT_ENGINE,
        )

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return (
            f"ProtectSettings(workspace_crn={self.workspace_crn!r}, "
            f"client_id={self.client_id!r}, client_key=[REDACTED], "
            f"client_access_key=[REDACTED], engine={self.engine!r})"
        )


def load_engine(settings: ProtectSettings) -> Engine:
    """
    Import the configured engine factory and build an engine.

    The factory is called with the settings and must return an Engine.

    Raises:
        ConfigError: If the path is malformed, cannot be imported or does not
            produce an Engine
    """
    module_name, sep, attribute = settings.engine.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(
            f"Invalid engine path [{settings.engine}]: expected 'module:attribute'.",
            engine=settings.engine,
        )

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigError(
            f"Failed to load engine [{settings.engine}]: {e}", engine=settings.engine
        ) from e

    engine = factory(settings)
    if not isinstance(engine, Engine):
        raise ConfigError(
            f"Engine factory [{settings.engine}] returned {type(engine).__name__}, not an Engine.",
            engine=settings.engine,
        )

    logger.debug("Loaded engine %s", settings.engine)
    return engine


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None
