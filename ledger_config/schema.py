"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses describing the effective ledger settings.  Parsing and
range validation live in ``ledger_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class ReferenceSettings:
    """Reference allocation.  ``sequence_width`` 3 means 999 per day."""

    sequence_width: int = 3
    max_attempts: int = 3


@dataclass(frozen=True)
class ConcurrencySettings:
    """Retry budget for serialization and lock conflicts."""

    max_retries: int = 1
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class LedgerRules:
    money_tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    """The complete effective configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    references: ReferenceSettings = field(default_factory=ReferenceSettings)
    concurrency: ConcurrencySettings = field(default_factory=ConcurrencySettings)
    ledger: LedgerRules = field(default_factory=LedgerRules)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str | None = None
