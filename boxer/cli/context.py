from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from boxer.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    work_dir: Path
    console: ConsoleProtocol


def build_context(*, verbose: bool = False) -> CLIContext:
    return CLIContext(
        work_dir=Path.cwd(),
        console=RichConsole(verbose=verbose),
    )
