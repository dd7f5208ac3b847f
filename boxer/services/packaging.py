"""Release cycle: version, package, checksum, record.

One run moves through four stages, each taking a ``RunContext`` and returning
a new one (or an error):

1. ``configure``: current version from the ledger (or ``<major>.0``)
2. ``apply_bump``: optionally advance the version
3. ``build_artifact``: run the packager once to produce the box file
4. ``finalize``: copy to the versioned file name, checksum, append to the
   ledger and persist it

The ledger is only changed after the checksum is known, and only persisted
after that change, so metadata.json never points at a box that does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import urlsplit

from boxer.core.config import BoxerConfig
from boxer.core.errors import BoxerError, ChecksumFailed, InvalidVersionFormat, PackagingFailed
from boxer.core.result import Err, Ok, Result
from boxer.output.console import ConsoleProtocol
from boxer.platform.files import copy_replacing, sha1_file
from boxer.platform.process import ProcessError, run_silent
from boxer.services.ledger import Ledger, ProviderRecord, save_ledger
from boxer.services.template import resolve_url
from boxer.services.versioning import current_version, next_version

__all__ = [
    "Packager",
    "PackagingOptions",
    "PackagingService",
    "ReleaseOutcome",
    "RunContext",
    "VagrantPackager",
    "apply_bump",
    "build_artifact",
    "configure",
    "finalize",
    # Defaults
    "CHECKSUM_TYPE",
    "DEFAULT_METADATA_FILE",
    "DEFAULT_OUTPUT_FILE",
    "DEFAULT_PROVIDER",
    "DEFAULT_VAGRANT",
]

DEFAULT_PROVIDER = "virtualbox"
DEFAULT_VAGRANT = "vagrant"
DEFAULT_OUTPUT_FILE = "package.box"
DEFAULT_METADATA_FILE = "metadata.json"
CHECKSUM_TYPE = "sha1"


class Packager(Protocol):
    """External tool that turns a base VM into a box file."""

    def command(self, base: str, output: Path) -> list[str]: ...

    def package(self, base: str, output: Path, cwd: Path) -> Result[None, ProcessError]: ...


@dataclass(frozen=True, slots=True)
class VagrantPackager:
    """``vagrant package --base NAME --output FILE``."""

    executable: str = DEFAULT_VAGRANT

    def command(self, base: str, output: Path) -> list[str]:
        return [self.executable, "package", "--base", base, "--output", str(output)]

    def package(self, base: str, output: Path, cwd: Path) -> Result[None, ProcessError]:
        return run_silent(self.command(base, output), cwd=cwd)


@dataclass(frozen=True, slots=True)
class PackagingOptions:
    """Per-run file locations and packaging policy.

    Relative paths are resolved against ``work_dir``.
    """

    work_dir: Path
    output_file: Path = Path(DEFAULT_OUTPUT_FILE)
    metadata_file: Path = Path(DEFAULT_METADATA_FILE)
    keep_package: bool = False
    provider: str = DEFAULT_PROVIDER

    @property
    def output_path(self) -> Path:
        return self.work_dir / self.output_file

    @property
    def metadata_path(self) -> Path:
        return self.work_dir / self.metadata_file


@dataclass(frozen=True, slots=True)
class RunContext:
    """State of one release cycle.

    The URL and file name are derived from the version on every access, so a
    bumped context can never carry a stale URL.
    """

    config: BoxerConfig
    ledger: Ledger
    version: str
    options: PackagingOptions

    @property
    def url(self) -> str:
        return resolve_url(
            self.config.url_template,
            name=self.config.vm_name,
            version=self.version,
            provider=self.options.provider,
        )

    @property
    def versioned_filename(self) -> str:
        """Last path segment of the download URL, e.g. ``web-1.0-virtualbox.box``."""
        return PurePosixPath(urlsplit(self.url).path).name

    def with_version(self, version: str) -> RunContext:
        return replace(self, version=version)


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    version: str
    url: str
    artifact: Path
    checksum: str
    metadata_path: Path
    ledger: Ledger


def configure(config: BoxerConfig, ledger: Ledger, options: PackagingOptions) -> RunContext:
    return RunContext(
        config=config,
        ledger=ledger,
        version=current_version(ledger, config.major_version),
        options=options,
    )


def apply_bump(ctx: RunContext, *, bump: bool) -> Result[RunContext, InvalidVersionFormat]:
    if not bump:
        return Ok(ctx)
    return next_version(ctx.version).map(ctx.with_version)


def build_artifact(
    ctx: RunContext,
    packager: Packager,
    console: ConsoleProtocol,
) -> Result[RunContext, PackagingFailed]:
    """Produce the box file, invoking the packager at most once."""
    output = ctx.options.output_path
    cmd = tuple(packager.command(ctx.config.vm_name, output))

    if ctx.options.keep_package and output.exists():
        console.info(f"Keeping existing package {output}")
        return Ok(ctx)

    try:
        # vagrant refuses to overwrite an existing output file
        output.unlink(missing_ok=True)
    except OSError as e:
        return Err(
            PackagingFailed(
                command=cmd,
                returncode=-1,
                output=output,
                reason=f"cannot remove stale package: {e}",
            )
        )

    console.debug(f"EXEC: {' '.join(cmd)}")
    result = packager.package(ctx.config.vm_name, output, ctx.options.work_dir)
    if isinstance(result, Err):
        failure = result.error
        # returncode -1: the packager could not be started
        reason = f"cannot start packager: {failure.stderr}" if failure.returncode == -1 else None
        return Err(
            PackagingFailed(command=cmd, returncode=failure.returncode, output=output, reason=reason)
        )

    # vagrant may exit 0 without writing anything (e.g. unknown base VM)
    if not output.exists():
        return Err(PackagingFailed(command=cmd, returncode=0, output=output))

    return Ok(ctx)


def finalize(ctx: RunContext, console: ConsoleProtocol) -> Result[ReleaseOutcome, BoxerError]:
    """Checksum the versioned artifact, record it and persist the ledger."""
    filename = ctx.versioned_filename
    if not filename:
        return Err(ChecksumFailed(Path(ctx.url), "cannot derive a file name from the URL"))

    artifact = ctx.options.work_dir / filename
    try:
        copy_replacing(ctx.options.output_path, artifact)
        checksum = sha1_file(artifact)
    except OSError as e:
        return Err(ChecksumFailed(artifact, str(e)))

    console.debug(f"PACKAGE LOCATION: {artifact.resolve()}")

    record = ProviderRecord(
        name=ctx.options.provider,
        url=ctx.url,
        checksum_type=CHECKSUM_TYPE,
        checksum=checksum,
    )
    ledger = ctx.ledger.add_provider_record(ctx.version, record)

    saved = save_ledger(ledger, ctx.options.metadata_path)
    if isinstance(saved, Err):
        return saved
    console.debug(f"METADATA LOCATION: {saved.value.resolve()}")

    return Ok(
        ReleaseOutcome(
            version=ctx.version,
            url=ctx.url,
            artifact=artifact,
            checksum=checksum,
            metadata_path=saved.value,
            ledger=ledger,
        )
    )


class PackagingService:
    """Runs one release cycle for a configured box."""

    def __init__(
        self,
        *,
        config: BoxerConfig,
        ledger: Ledger,
        options: PackagingOptions,
        packager: Packager,
        console: ConsoleProtocol,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._options = options
        self._packager = packager
        self._console = console

    def plan(self, *, bump: bool) -> Result[RunContext, InvalidVersionFormat]:
        """Version and URL the run would use, without side effects."""
        ctx = configure(self._config, self._ledger, self._options)
        return apply_bump(ctx, bump=bump)

    def run(self, *, bump: bool) -> Result[ReleaseOutcome, BoxerError]:
        planned = self.plan(bump=bump)
        if isinstance(planned, Err):
            return planned

        built = build_artifact(planned.value, self._packager, self._console)
        if isinstance(built, Err):
            return built

        return finalize(built.value, self._console)
