"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Callers go through
``ledger_config.get_active_settings()``; this module is its tooling.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections or keys are rejected rather than ignored.
* ``compute_checksum`` is deterministic for identical settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or unknown values  -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    ConcurrencySettings,
    DatabaseSettings,
    LedgerRules,
    LedgerSettings,
    LoggingSettings,
    ReferenceSettings,
)

_SECTIONS = {
    "database": DatabaseSettings,
    "references": ReferenceSettings,
    "concurrency": ConcurrencySettings,
    "ledger": LedgerRules,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_settings(
    data: dict[str, Any],
    source: str | None = None,
    database_url: str | None = None,
) -> LedgerSettings:
    """
    Build LedgerSettings from a raw mapping.

    Args:
        data: Parsed YAML.
        source: File the data came from, recorded on the result.
        database_url: Overrides ``database.url`` when given.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    sections: dict[str, Any] = {}
    for name, cls in _SECTIONS.items():
        raw = data.get(name) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{name}: must be a mapping")
        allowed = set(cls.__dataclass_fields__)
        extra = set(raw) - allowed
        if extra:
            raise ValueError(f"{name}: unknown keys {sorted(extra)}")
        sections[name] = raw

    db = dict(sections["database"])
    if database_url:
        db["url"] = database_url

    settings = LedgerSettings(
        database=DatabaseSettings(**db),
        references=ReferenceSettings(**sections["references"]),
        concurrency=ConcurrencySettings(**sections["concurrency"]),
        ledger=LedgerRules(
            **{
                k: _to_decimal(f"ledger.{k}", v)
                for k, v in sections["ledger"].items()
            }
        ),
        logging=LoggingSettings(**sections["logging"]),
        source=source,
    )
    validate_settings(settings)
    return settings


def validate_settings(settings: LedgerSettings) -> None:
    """Range checks; raises ValueError naming the offending key."""
    if not settings.database.url:
        raise ValueError("database.url: must not be empty")
    if settings.database.pool_size < 1:
        raise ValueError("database.pool_size: must be >= 1")
    if settings.database.max_overflow < 0:
        raise ValueError("database.max_overflow: must be >= 0")
    if not 1 <= settings.references.sequence_width <= 6:
        raise ValueError("references.sequence_width: must be between 1 and 6")
    if settings.references.max_attempts < 1:
        raise ValueError("references.max_attempts: must be >= 1")
    if settings.concurrency.max_retries < 0:
        raise ValueError("concurrency.max_retries: must be >= 0")
    if settings.concurrency.backoff_seconds < 0:
        raise ValueError("concurrency.backoff_seconds: must be >= 0")
    if settings.ledger.money_tolerance < 0:
        raise ValueError("ledger.money_tolerance: must be >= 0")
    if not isinstance(logging.getLevelName(str(settings.logging.level).upper()), int):
        raise ValueError(f"logging.level: unknown level {settings.logging.level!r}")


def compute_checksum(settings: LedgerSettings) -> str:
    """
    SHA-256 of the canonical JSON form of ``settings``.

    ``source`` is excluded so the same values loaded from two paths match.
    """
    data = asdict(settings)
    data.pop("source", None)
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _to_decimal(key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key}: not a number: {value!r}") from exc
