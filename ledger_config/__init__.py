"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``LedgerConfig`` built from
    a YAML document (``sets/default.yaml`` unless a path is given).

Invariants enforced:
    - Single entrypoint: services receive values from the returned
      LedgerConfig and never read YAML or environment variables themselves.
    - ``DATABASE_URL`` in the environment overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema violations.

Audit relevance:
    Every call emits a ``LEDGER_CONFIG_TRACE`` log entry with the source
    path and checksum of the configuration in force.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

from ledger_config.loader import load_config
from ledger_config.schema import (
    AccountTemplate,
    ChartTemplate,
    DatabaseConfig,
    LedgerConfig,
    PostingConfig,
)
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "get_active_config",
    "LedgerConfig",
    "DatabaseConfig",
    "PostingConfig",
    "ChartTemplate",
    "AccountTemplate",
    "DEFAULT_CONFIG_PATH",
]


def get_active_config(config_path: Path | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML document to load.  Defaults to
            ``ledger_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the document does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    env_url = os.environ.get("DATABASE_URL")
    if env_url:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=env_url),
        )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": config.checksum,
            "chart_count": len(config.charts),
            "default_chart": config.default_chart,
            "database_url_from_env": bool(env_url),
        },
    )
    return config
