"""Package command - build a box and record it in the metadata ledger."""

from __future__ import annotations

from pathlib import Path

import typer

from boxer.cli.commands._helpers import exit_with_error, require_values
from boxer.cli.context import build_context
from boxer.core.config import (
    DEFAULT_CONFIG_FILE,
    ConfigOverrides,
    config_path_from_option,
    resolve_config,
)
from boxer.core.errors import ErrorCode
from boxer.core.result import Err, Ok
from boxer.output.console import Style
from boxer.services.ledger import load_ledger
from boxer.services.packaging import (
    DEFAULT_METADATA_FILE,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_VAGRANT,
    PackagingOptions,
    PackagingService,
    VagrantPackager,
)


def package(
    verbose: bool = typer.Option(False, "--verbose", help="Print commands and file locations"),
    vagrant: str = typer.Option(
        DEFAULT_VAGRANT, "--vagrant", help="Path to the vagrant executable"
    ),
    output_file: str = typer.Option(
        DEFAULT_OUTPUT_FILE, "--vagrant-output-file", help="File vagrant package writes"
    ),
    bump_version: bool = typer.Option(False, "--bump-version", help="Release the next version"),
    keep_package: bool = typer.Option(
        False, "--keep-package", help="Reuse an existing output file instead of repackaging"
    ),
    config_file: str = typer.Option(
        DEFAULT_CONFIG_FILE,
        "--config-file",
        help="Boxer config file ('default' to use built-in defaults only)",
    ),
    metadata_file: str = typer.Option(
        DEFAULT_METADATA_FILE, "--metadata-file", help="Metadata ledger to update"
    ),
    base: str | None = typer.Option(None, "--base", help="Name of the base VM", show_default=False),
    boxer_id: str | None = typer.Option(
        None, "--boxer-id", help="Ledger identifier (defaults to the VM name)", show_default=False
    ),
    url: str | None = typer.Option(
        None, "--url", help="Full download URL template", show_default=False
    ),
    url_prefix: str | None = typer.Option(
        None, "--url-prefix", help="Download URL prefix", show_default=False
    ),
    url_suffix: str | None = typer.Option(
        None, "--url-suffix", help="Download URL suffix template", show_default=False
    ),
    major_version: str | None = typer.Option(
        None, "--major-version", help="Major version when the ledger is empty", show_default=False
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Print version and URL without packaging"
    ),
) -> None:
    """Package the base VM, checksum it and record the release."""
    ctx = build_context(verbose=verbose)

    require_values(
        ctx,
        {
            "--vagrant": vagrant,
            "--vagrant-output-file": output_file,
            "--config-file": config_file,
            "--metadata-file": metadata_file,
            "--base": base,
            "--boxer-id": boxer_id,
            "--url": url,
            "--url-prefix": url_prefix,
            "--url-suffix": url_suffix,
            "--major-version": major_version,
        },
    )

    major: int | None = None
    if major_version is not None:
        if not (major_version.isascii() and major_version.isdecimal()):
            ctx.console.error(
                f"--major-version must be a non-negative integer, got '{major_version}'"
            )
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        major = int(major_version)

    overrides = ConfigOverrides(
        base=base,
        boxer_id=boxer_id,
        url=url,
        url_prefix=url_prefix,
        url_suffix=url_suffix,
        major_version=major,
    )
    config_path = config_path_from_option(config_file)

    match resolve_config(config_path, overrides, work_dir=ctx.work_dir):
        case Err(error):
            exit_with_error(error, ctx)
        case Ok(resolution):
            pass
    for warning in resolution.warnings:
        ctx.console.warning(warning)
    config = resolution.config

    options = PackagingOptions(
        work_dir=ctx.work_dir,
        output_file=Path(output_file),
        metadata_file=Path(metadata_file),
        keep_package=keep_package,
    )

    match load_ledger(options.metadata_path, config.boxer_id):
        case Err(error):
            exit_with_error(error, ctx)
        case Ok(loaded):
            pass
    for warning in loaded.warnings:
        ctx.console.warning(warning)

    service = PackagingService(
        config=config,
        ledger=loaded.ledger,
        options=options,
        packager=VagrantPackager(executable=vagrant),
        console=ctx.console,
    )

    if dry_run:
        match service.plan(bump=bump_version):
            case Err(error):
                exit_with_error(error, ctx)
            case Ok(planned):
                ctx.console.print(f"version: {planned.version}")
                ctx.console.print(f"url: {planned.url}")
                ctx.console.print(f"file: {planned.versioned_filename}", Style.DIM)
        return

    match service.run(bump=bump_version):
        case Err(error):
            exit_with_error(error, ctx)
        case Ok(outcome):
            ctx.console.success(f"{config.boxer_id} {outcome.version}: {outcome.artifact.name}")
            ctx.console.print(f"{outcome.url} (sha1 {outcome.checksum})", Style.DIM)
