from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from boxer.core.config import BoxerConfig
from boxer.core.errors import (
    ChecksumFailed,
    InvalidVersionFormat,
    MetadataWriteFailed,
    PackagingFailed,
)
from boxer.core.result import Err, Ok, Result
from boxer.output.console import MockConsole
from boxer.platform.process import ProcessError
from boxer.services.ledger import ACTIVE_VERSION_KEY, Ledger, ProviderRecord
from boxer.services.packaging import (
    PackagingOptions,
    PackagingService,
    RunContext,
    VagrantPackager,
    apply_bump,
    build_artifact,
    configure,
    finalize,
)

BOX_BYTES = b"vagrant box payload"
CONFIG = BoxerConfig(
    vm_name="web",
    major_version=1,
    url_template="http://x/{name}-{version}-{provider}.box",
    boxer_id="web",
)


@dataclass
class FakePackager:
    """Stands in for vagrant: optionally writes the output, returns a status."""

    payload: bytes | None = BOX_BYTES
    returncode: int = 0
    calls: list[tuple[str, Path, Path]] = field(default_factory=list)

    def command(self, base: str, output: Path) -> list[str]:
        return ["vagrant", "package", "--base", base, "--output", str(output)]

    def package(self, base: str, output: Path, cwd: Path) -> Result[None, ProcessError]:
        self.calls.append((base, output, cwd))
        if self.payload is not None:
            output.write_bytes(self.payload)
        if self.returncode != 0:
            return Err(ProcessError(tuple(self.command(base, output)), self.returncode))
        return Ok(None)


def _ledger_with(version: str) -> Ledger:
    record = ProviderRecord("virtualbox", f"http://x/web-{version}-virtualbox.box", "sha1", "old")
    return Ledger.empty("web").add_provider_record(version, record)


def _service(
    tmp_path: Path,
    *,
    ledger: Ledger | None = None,
    packager: FakePackager | None = None,
    keep_package: bool = False,
    console: MockConsole | None = None,
) -> PackagingService:
    return PackagingService(
        config=CONFIG,
        ledger=ledger or Ledger.empty("web"),
        options=PackagingOptions(work_dir=tmp_path, keep_package=keep_package),
        packager=packager or FakePackager(),
        console=console or MockConsole(),
    )


class TestRunContext:
    def test_configure_empty_ledger(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))

        assert ctx.version == "1.0"
        assert ctx.url == "http://x/web-1.0-virtualbox.box"
        assert ctx.versioned_filename == "web-1.0-virtualbox.box"

    def test_url_follows_version(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))
        bumped = ctx.with_version("1.7")

        assert bumped.url == "http://x/web-1.7-virtualbox.box"
        assert ctx.url == "http://x/web-1.0-virtualbox.box"

    def test_versioned_filename_ignores_query(self, tmp_path: Path) -> None:
        config = BoxerConfig("web", 0, "https://cdn/boxes/{name}.box?v={version}", "web")
        ctx = configure(config, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))
        assert ctx.versioned_filename == "web.box"

    def test_frozen(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))
        with pytest.raises(AttributeError):
            ctx.version = "9.9"  # type: ignore[misc]


class TestApplyBump:
    def test_no_bump_keeps_context(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, _ledger_with("2.3"), PackagingOptions(work_dir=tmp_path))
        assert apply_bump(ctx, bump=False) == Ok(ctx)

    def test_bump_recomputes_url(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, _ledger_with("2.3"), PackagingOptions(work_dir=tmp_path))
        result = apply_bump(ctx, bump=True)

        assert isinstance(result, Ok)
        assert result.value.version == "2.4"
        assert result.value.url == "http://x/web-2.4-virtualbox.box"

    def test_bump_invalid_version(self, tmp_path: Path) -> None:
        ledger = Ledger(boxer_id="web", document={ACTIVE_VERSION_KEY: "1.x", "versions": []})
        ctx = configure(CONFIG, ledger, PackagingOptions(work_dir=tmp_path))

        assert apply_bump(ctx, bump=True) == Err(InvalidVersionFormat("1.x"))


class TestBuildArtifact:
    def _ctx(self, tmp_path: Path, *, keep_package: bool = False) -> RunContext:
        options = PackagingOptions(work_dir=tmp_path, keep_package=keep_package)
        return configure(CONFIG, Ledger.empty("web"), options)

    def test_invokes_packager_once(self, tmp_path: Path) -> None:
        packager = FakePackager()
        console = MockConsole()
        result = build_artifact(self._ctx(tmp_path), packager, console)

        assert isinstance(result, Ok)
        assert packager.calls == [("web", tmp_path / "package.box", tmp_path)]
        assert console.find("EXEC: vagrant package --base web --output")

    def test_removes_stale_output_first(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").write_bytes(b"stale")
        packager = FakePackager(payload=None)

        result = build_artifact(self._ctx(tmp_path), packager, MockConsole())

        # The stale file was deleted and nothing replaced it.
        assert isinstance(result, Err)
        assert not (tmp_path / "package.box").exists()

    def test_keep_package_skips_packager_when_output_exists(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").write_bytes(b"existing")
        packager = FakePackager()

        result = build_artifact(self._ctx(tmp_path, keep_package=True), packager, MockConsole())

        assert isinstance(result, Ok)
        assert packager.calls == []
        assert (tmp_path / "package.box").read_bytes() == b"existing"

    def test_keep_package_without_output_packages(self, tmp_path: Path) -> None:
        packager = FakePackager()
        result = build_artifact(self._ctx(tmp_path, keep_package=True), packager, MockConsole())

        assert isinstance(result, Ok)
        assert len(packager.calls) == 1

    def test_nonzero_exit_fails(self, tmp_path: Path) -> None:
        result = build_artifact(self._ctx(tmp_path), FakePackager(returncode=1), MockConsole())

        assert isinstance(result, Err)
        assert isinstance(result.error, PackagingFailed)
        assert result.error.returncode == 1

    def test_stale_output_not_removable_fails_without_running(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").mkdir()
        (tmp_path / "package.box" / "keep").write_bytes(b"x")
        packager = FakePackager()

        result = build_artifact(self._ctx(tmp_path), packager, MockConsole())

        assert isinstance(result, Err)
        assert result.error.reason is not None
        assert "cannot remove stale package" in result.error.message
        assert "exit code" not in result.error.message
        assert packager.calls == []

    def test_packager_that_cannot_start_reports_reason(self, tmp_path: Path) -> None:
        class MissingVagrant(FakePackager):
            def package(self, base: str, output: Path, cwd: Path) -> Result[None, ProcessError]:
                cmd = tuple(self.command(base, output))
                return Err(ProcessError(cmd, -1, stderr="No such file or directory"))

        console = MockConsole()
        result = build_artifact(self._ctx(tmp_path), MissingVagrant(), console)

        assert isinstance(result, Err)
        assert "cannot start packager: No such file or directory" in result.error.message
        assert "exit code" not in result.error.message
        assert not console.find("No such file")

    def test_zero_exit_without_output_fails(self, tmp_path: Path) -> None:
        result = build_artifact(self._ctx(tmp_path), FakePackager(payload=None), MockConsole())

        assert isinstance(result, Err)
        assert result.error == PackagingFailed(
            command=("vagrant", "package", "--base", "web", "--output", str(tmp_path / "package.box")),
            returncode=0,
            output=tmp_path / "package.box",
        )


class TestFinalize:
    def test_records_checksum_and_persists(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").write_bytes(BOX_BYTES)
        ctx = configure(CONFIG, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))

        result = finalize(ctx, MockConsole())

        assert isinstance(result, Ok)
        sha1 = hashlib.sha1(BOX_BYTES).hexdigest()
        assert result.value.checksum == sha1
        assert result.value.artifact == tmp_path / "web-1.0-virtualbox.box"
        assert result.value.artifact.read_bytes() == BOX_BYTES

        saved = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
        assert saved == {
            "name": "web",
            "versions": [
                {
                    "version": "1.0",
                    "providers": [
                        {
                            "name": "virtualbox",
                            "url": "http://x/web-1.0-virtualbox.box",
                            "checksum_type": "sha1",
                            "checksum": sha1,
                        }
                    ],
                }
            ],
            ACTIVE_VERSION_KEY: "1.0",
        }

    def test_missing_artifact_fails_without_writing(self, tmp_path: Path) -> None:
        ctx = configure(CONFIG, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))

        result = finalize(ctx, MockConsole())

        assert isinstance(result, Err)
        assert isinstance(result.error, ChecksumFailed)
        assert not (tmp_path / "metadata.json").exists()

    def test_url_without_file_name_fails(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").write_bytes(BOX_BYTES)
        config = BoxerConfig("web", 1, "http://x/", "web")
        ctx = configure(config, Ledger.empty("web"), PackagingOptions(work_dir=tmp_path))

        result = finalize(ctx, MockConsole())

        assert isinstance(result, Err)
        assert isinstance(result.error, ChecksumFailed)

    def test_metadata_write_failure(self, tmp_path: Path) -> None:
        (tmp_path / "package.box").write_bytes(BOX_BYTES)
        (tmp_path / "blocker").write_text("", encoding="utf-8")
        options = PackagingOptions(work_dir=tmp_path, metadata_file=Path("blocker/metadata.json"))
        ctx = configure(CONFIG, Ledger.empty("web"), options)

        result = finalize(ctx, MockConsole())

        assert isinstance(result, Err)
        assert isinstance(result.error, MetadataWriteFailed)


class TestPackagingService:
    def test_scenario_first_release(self, tmp_path: Path) -> None:
        service = _service(tmp_path)

        planned = service.plan(bump=False)
        assert isinstance(planned, Ok)
        assert planned.value.version == "1.0"
        assert planned.value.url == "http://x/web-1.0-virtualbox.box"

        result = service.run(bump=False)
        assert isinstance(result, Ok)
        assert result.value.ledger.active_version() == "1.0"

    def test_scenario_bump_from_active_version(self, tmp_path: Path) -> None:
        service = _service(tmp_path, ledger=_ledger_with("2.3"))

        result = service.run(bump=True)

        assert isinstance(result, Ok)
        assert result.value.version == "2.4"
        assert result.value.url == "http://x/web-2.4-virtualbox.box"
        assert (tmp_path / "web-2.4-virtualbox.box").exists()
        saved = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
        assert [v["version"] for v in saved["versions"]] == ["2.3", "2.4"]
        assert saved[ACTIVE_VERSION_KEY] == "2.4"

    def test_scenario_silent_packager_failure_leaves_metadata(self, tmp_path: Path) -> None:
        metadata = tmp_path / "metadata.json"
        metadata.write_text('{"name": "web", "versions": []}', encoding="utf-8")
        packager = FakePackager(payload=None)
        service = _service(tmp_path, packager=packager)

        result = service.run(bump=True)

        assert isinstance(result, Err)
        assert isinstance(result.error, PackagingFailed)
        assert len(packager.calls) == 1
        assert metadata.read_text(encoding="utf-8") == '{"name": "web", "versions": []}'

    def test_invalid_version_stops_before_packaging(self, tmp_path: Path) -> None:
        ledger = Ledger(boxer_id="web", document={ACTIVE_VERSION_KEY: "beta", "versions": []})
        packager = FakePackager()

        result = _service(tmp_path, ledger=ledger, packager=packager).run(bump=True)

        assert result == Err(InvalidVersionFormat("beta"))
        assert packager.calls == []

    def test_repackaging_same_version_appends(self, tmp_path: Path) -> None:
        first = _service(tmp_path).run(bump=False)
        assert isinstance(first, Ok)

        second = _service(tmp_path, ledger=first.value.ledger).run(bump=False)
        assert isinstance(second, Ok)

        entry = second.value.ledger.entry("1.0")
        assert entry is not None
        assert len(entry.providers) == 2

    def test_verbose_locations_reported(self, tmp_path: Path) -> None:
        console = MockConsole()
        result = _service(tmp_path, console=console).run(bump=False)

        assert isinstance(result, Ok)
        assert console.find("PACKAGE LOCATION:")
        assert console.find("METADATA LOCATION:")


def test_vagrant_packager_command() -> None:
    packager = VagrantPackager(executable="/opt/vagrant/bin/vagrant")
    assert packager.command("my vm", Path("out.box")) == [
        "/opt/vagrant/bin/vagrant",
        "package",
        "--base",
        "my vm",
        "--output",
        "out.box",
    ]
