"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables.

Architecture position:
    Configuration -- sits beside ``ledger_kernel``.  The kernel's services
    receive plain values (or a LedgerSettings instance) from their caller;
    they never import this package themselves, except the coordinator's
    default and the command-line scripts.

Failure modes:
    - ``FileNotFoundError`` -- the selected settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful call emits a ``ledger_config_loaded`` log entry with
    the source path and the settings checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, parse_settings
from ledger_config.schema import (
    ConcurrencySettings,
    DatabaseSettings,
    LedgerRules,
    LedgerSettings,
    LoggingSettings,
    ReferenceSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: ``config_path``, then ``$LEDGER_CONFIG``,
    then the packaged ``sets/default.yaml``.  ``$DATABASE_URL`` overrides
    ``database.url`` whichever file is used.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    data = load_yaml_file(path)
    settings = parse_settings(
        data,
        source=str(path),
        database_url=os.environ.get(DATABASE_URL_ENV),
    )

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_source": str(path),
            "checksum": compute_checksum(settings),
            "dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings


__all__ = [
    "get_active_settings",
    "compute_checksum",
    "LedgerSettings",
    "DatabaseSettings",
    "ReferenceSettings",
    "ConcurrencySettings",
    "LedgerRules",
    "LoggingSettings",
    "DEFAULT_CONFIG_PATH",
]
