"""
Human-readable reference numbers: ``<PREFIX>-<YYYYMMDD>-<NNN>``.

Formatting and parsing only; allocation (the locked per-day counter) lives
in ``ledger_kernel.services.reference_allocator``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

DEFAULT_SEQUENCE_WIDTH = 3

_REFERENCE_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<day>\d{8})-(?P<seq>\d+)$")


class ReferencePrefix(str, Enum):
    PURCHASE_ORDER = "PO"
    PAYMENT = "PAY"


@dataclass(frozen=True)
class ParsedReference:
    prefix: str
    day: date
    sequence: int


def max_sequence(width: int = DEFAULT_SEQUENCE_WIDTH) -> int:
    """Largest suffix representable in ``width`` digits (999 for 3)."""
    return 10**width - 1


def day_key(day: date) -> str:
    return day.strftime("%Y%m%d")


def counter_name(prefix: ReferencePrefix | str, day: date) -> str:
    """Name of the per-day counter row, e.g. ``PO-20260115``."""
    return f"{_prefix_value(prefix)}-{day_key(day)}"


def format_reference(
    prefix: ReferencePrefix | str,
    day: date,
    sequence: int,
    width: int = DEFAULT_SEQUENCE_WIDTH,
) -> str:
    """
    Render a reference.

    Raises:
        ValueError: If ``sequence`` does not fit in ``width`` digits.
    """
    if not 1 <= sequence <= max_sequence(width):
        raise ValueError(
            f"Sequence {sequence} out of range 1..{max_sequence(width)}"
        )
    return f"{counter_name(prefix, day)}-{sequence:0{width}d}"


def parse_reference(reference: str) -> ParsedReference:
    """
    Split a reference into its parts.

    Raises:
        ValueError: If the string is not a well-formed reference.
    """
    match = _REFERENCE_RE.match(reference)
    if match is None:
        raise ValueError(f"Malformed reference: {reference!r}")
    day = datetime.strptime(match.group("day"), "%Y%m%d").date()
    return ParsedReference(
        prefix=match.group("prefix"),
        day=day,
        sequence=int(match.group("seq")),
    )


def _prefix_value(prefix: ReferencePrefix | str) -> str:
    return prefix.value if isinstance(prefix, ReferencePrefix) else prefix
