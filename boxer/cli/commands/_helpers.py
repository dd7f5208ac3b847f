"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from boxer.core.errors import BoxerError, MissingArgument
from boxer.output.errors import boxer_error_exit_code, print_boxer_error

if TYPE_CHECKING:
    from boxer.cli.context import CLIContext


def exit_with_error(error: BoxerError, ctx: CLIContext) -> NoReturn:
    """Print the error and exit with its mapped code."""
    print_boxer_error(error, ctx.console)
    raise typer.Exit(code=boxer_error_exit_code(error))


def looks_like_flag(value: str) -> bool:
    return value.startswith("--")


def require_values(ctx: CLIContext, values: dict[str, str | None]) -> None:
    """Reject option values that are really the next flag.

    ``--base --verbose`` would otherwise use "--verbose" as the base name.
    """
    for option, value in values.items():
        if value is not None and looks_like_flag(value):
            exit_with_error(MissingArgument(option), ctx)
