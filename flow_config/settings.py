"""
Environment settings (``flow_config.settings``).

The only place environment variables are read.  Hosts call
``EngineSettings.from_env()`` once at startup and pass the values on.

=============================  ===============================  ===========
Variable                       Meaning                          Default
=============================  ===============================  ===========
APPROVAL_FLOW_DATABASE_URL     SQLAlchemy database URL          ``sqlite:///approval_flows.db``
APPROVAL_FLOW_LOG_LEVEL        Level for the flow_kernel logs   ``INFO``
APPROVAL_FLOW_SQL_ECHO         Log every SQL statement          ``false``
APPROVAL_FLOW_CONFIG_DIR       Directory of YAML flow files     ``flow_config/sets``
=============================  ===============================  ===========
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_DATABASE_URL = "sqlite:///approval_flows.db"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class EngineSettings:
    """Host settings for the approval flow services."""

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    sql_echo: bool = False
    config_dir: Path | None = None

    def __post_init__(self) -> None:
        level = self.log_level.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        """Read settings from ``environ`` (defaults to ``os.environ``).

        Raises:
            ValueError: on an unknown log level.
        """
        env = os.environ if environ is None else environ
        config_dir = env.get("APPROVAL_FLOW_CONFIG_DIR")
        return cls(
            database_url=env.get("APPROVAL_FLOW_DATABASE_URL") or DEFAULT_DATABASE_URL,
            log_level=env.get("APPROVAL_FLOW_LOG_LEVEL") or "INFO",
            sql_echo=(env.get("APPROVAL_FLOW_SQL_ECHO") or "").strip().lower() in _TRUE_VALUES,
            config_dir=Path(config_dir) if config_dir else None,
        )
