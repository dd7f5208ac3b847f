"""Subprocess execution with Result-based error handling.

The packager streams its own progress to the terminal, so output is not
captured; only the exit status is inspected. No timeout is applied: packaging
a VM can take arbitrarily long and is supervised by the operator.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from boxer.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run_silent"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: The exit code of the process (-1 if it could not start).
        stderr: Error details when the process could not be started.
    """

    command: tuple[str, ...]
    returncode: int
    stderr: str = ""

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
) -> Result[None, ProcessError]:
    """Execute a command, letting its output stream to the terminal.

    Returns:
        Ok(None) on exit status 0, Err(ProcessError) otherwise.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            check=False,
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stderr=str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command=tuple(cmd), returncode=proc.returncode))

    return Ok(None)
