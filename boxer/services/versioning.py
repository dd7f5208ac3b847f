"""Version sequencing: dotted numeric versions such as ``1.0`` or ``2.3.7``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from boxer.core.errors import InvalidVersionFormat
from boxer.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from boxer.services.ledger import Ledger

__all__ = ["current_version", "next_version", "parse_version"]


def _is_number(segment: str) -> bool:
    return segment.isascii() and segment.isdecimal()


def parse_version(version: str) -> tuple[int, ...] | None:
    """Parse ``"1.10"`` into ``(1, 10)``; None if any segment is not numeric."""
    parts = version.split(".")
    if not all(_is_number(p) for p in parts):
        return None
    return tuple(int(p) for p in parts)


def current_version(ledger: Ledger, default_major: int) -> str:
    """Active version of the ledger, or ``<default_major>.0`` if there is none."""
    active = ledger.active_version()
    if active is not None:
        return active
    return f"{default_major}.0"


def next_version(version: str) -> Result[str, InvalidVersionFormat]:
    """Increment the last segment, without carry: ``1.9`` becomes ``1.10``."""
    head, sep, last = version.rpartition(".")
    if not _is_number(last):
        return Err(InvalidVersionFormat(version))
    return Ok(f"{head}{sep}{int(last) + 1}")
