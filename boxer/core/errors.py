"""Error codes and error payloads.

Every expected failure is a frozen dataclass returned inside ``Err(...)``.
The CLI maps each payload to one of the stable ``ErrorCode`` exit statuses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

__all__ = [
    "ErrorCode",
    "MissingRequiredConfig",
    "MissingArgument",
    "InvalidInput",
    "InvalidVersionFormat",
    "PackagingFailed",
    "ChecksumFailed",
    "MetadataWriteFailed",
    "ConfigError",
    "LedgerError",
    "BoxerError",
]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 1: User error (missing flags or values)
    - 2: Config error (malformed config, metadata or version)
    - 3: Package error (packager failed or produced nothing)
    - 5: I/O error (copy, checksum or metadata write failed)
    """

    USER_ERROR = 1
    CONFIG_ERROR = 2
    PACKAGE_ERROR = 3
    IO_ERROR = 5


@dataclass(frozen=True, slots=True)
class MissingRequiredConfig:
    """No config file is in use and no base name was given."""

    message: str
    hint: str | None = "Pass --base NAME or provide a boxer.json"


@dataclass(frozen=True, slots=True)
class MissingArgument:
    option: str

    @property
    def message(self) -> str:
        return f"Missing argument for {self.option}"


@dataclass(frozen=True, slots=True)
class InvalidInput:
    """A config or metadata file exists but cannot be used."""

    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"{self.path}: {self.reason}"


@dataclass(frozen=True, slots=True)
class InvalidVersionFormat:
    version: str

    @property
    def message(self) -> str:
        return f"Cannot bump version '{self.version}': last segment is not a non-negative integer"


@dataclass(frozen=True, slots=True)
class PackagingFailed:
    """The packager exited non-zero, exited zero without writing its output,
    or never ran (``reason`` says why)."""

    command: tuple[str, ...]
    returncode: int
    output: Path
    reason: str | None = None

    @property
    def message(self) -> str:
        cmd = " ".join(self.command)
        if self.reason is not None:
            return f"packaging not run ({self.reason}), command: {cmd}"
        if self.returncode != 0:
            return f"packaging failed, exit code={self.returncode} from command: {cmd}"
        return (
            f"packaging seems to have failed; expected output file ({self.output}) does not exist"
        )


@dataclass(frozen=True, slots=True)
class ChecksumFailed:
    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Unable to checksum {self.path}: {self.reason}"


@dataclass(frozen=True, slots=True)
class MetadataWriteFailed:
    path: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Unable to write metadata {self.path}: {self.reason}"


ConfigError = MissingRequiredConfig | InvalidInput

LedgerError = InvalidInput | MetadataWriteFailed

BoxerError = (
    MissingRequiredConfig
    | MissingArgument
    | InvalidInput
    | InvalidVersionFormat
    | PackagingFailed
    | ChecksumFailed
    | MetadataWriteFailed
)
