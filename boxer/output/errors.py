"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from boxer.core.errors import (
    BoxerError,
    ChecksumFailed,
    ErrorCode,
    InvalidInput,
    InvalidVersionFormat,
    MetadataWriteFailed,
    MissingArgument,
    MissingRequiredConfig,
    PackagingFailed,
)
from boxer.output.console import Style

if TYPE_CHECKING:
    from boxer.output.console import ConsoleProtocol

__all__ = ["print_boxer_error", "boxer_error_exit_code"]


def print_boxer_error(error: BoxerError, console: ConsoleProtocol) -> None:
    """Print an error with its hint, if any."""
    console.error(error.message)
    match error:
        case MissingRequiredConfig(hint=hint) if hint:
            console.print(f"hint: {hint}", Style.DIM)
        case PackagingFailed(returncode=0, reason=None):
            console.print(
                "hint: make sure vm-name matches the name of an existing VM in your provider",
                Style.DIM,
            )
        case _:
            pass


def boxer_error_exit_code(error: BoxerError) -> int:
    """Get exit code for an error."""
    match error:
        case MissingRequiredConfig() | MissingArgument():
            return int(ErrorCode.USER_ERROR)
        case InvalidInput() | InvalidVersionFormat():
            return int(ErrorCode.CONFIG_ERROR)
        case PackagingFailed():
            return int(ErrorCode.PACKAGE_ERROR)
        case ChecksumFailed() | MetadataWriteFailed():
            return int(ErrorCode.IO_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.USER_ERROR)
