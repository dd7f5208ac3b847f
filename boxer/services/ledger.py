"""Release ledger: the persisted ``metadata.json`` of one box family.

The document is a Vagrant box catalog with one extra top-level key recording
which version is current:

    {
      "name": "web",
      "active_version": "1.1",
      "versions": [
        {"version": "1.0", "providers": [
          {"name": "virtualbox", "url": "...", "checksum_type": "sha1", "checksum": "..."}
        ]}
      ]
    }

The parsed document is kept verbatim so that keys this module does not know
about survive a read-modify-write cycle. Records are only ever appended.

There is no inter-process locking: two runs writing the same file at the same
time can lose one of the updates.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path

from boxer.core.errors import InvalidInput, LedgerError, MetadataWriteFailed
from boxer.core.result import Err, Ok, Result
from boxer.core.structured import StrDict, as_obj_list, as_str_dict, get_str
from boxer.platform.files import atomic_write_text
from boxer.services.versioning import parse_version

__all__ = [
    "Ledger",
    "LedgerLoad",
    "ProviderRecord",
    "VersionEntry",
    "load_ledger",
    "save_ledger",
    "ACTIVE_VERSION_KEY",
]

ACTIVE_VERSION_KEY = "active_version"
_NAME_KEY = "name"
_VERSIONS_KEY = "versions"
_VERSION_KEY = "version"
_PROVIDERS_KEY = "providers"


@dataclass(frozen=True, slots=True)
class ProviderRecord:
    """Download metadata of one artifact for one provider."""

    name: str
    url: str
    checksum_type: str
    checksum: str

    def to_dict(self) -> StrDict:
        return {
            "name": self.name,
            "url": self.url,
            "checksum_type": self.checksum_type,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: StrDict) -> ProviderRecord:
        return cls(
            name=get_str(data, "name") or "",
            url=get_str(data, "url") or "",
            checksum_type=get_str(data, "checksum_type") or "",
            checksum=get_str(data, "checksum") or "",
        )


@dataclass(frozen=True, slots=True)
class VersionEntry:
    version: str
    providers: tuple[ProviderRecord, ...] = ()


def _entries(document: StrDict) -> list[StrDict]:
    items = as_obj_list(document.get(_VERSIONS_KEY)) or []
    return [e for e in map(as_str_dict, items) if e is not None]


def _providers(entry: StrDict) -> list[StrDict]:
    items = as_obj_list(entry.get(_PROVIDERS_KEY)) or []
    return [p for p in map(as_str_dict, items) if p is not None]


@dataclass(frozen=True, slots=True)
class Ledger:
    """Immutable view over a ledger document.

    ``add_provider_record`` returns a new Ledger; the original is left as is.
    """

    boxer_id: str
    document: StrDict = field(default_factory=dict)

    @classmethod
    def empty(cls, boxer_id: str) -> Ledger:
        return cls(boxer_id=boxer_id, document={_NAME_KEY: boxer_id, _VERSIONS_KEY: []})

    def versions(self) -> tuple[VersionEntry, ...]:
        """Version entries in document order (not semantic order)."""
        out: list[VersionEntry] = []
        for entry in _entries(self.document):
            version = entry.get(_VERSION_KEY)
            if not isinstance(version, str):
                continue
            providers = tuple(ProviderRecord.from_dict(p) for p in _providers(entry))
            out.append(VersionEntry(version=version, providers=providers))
        return tuple(out)

    def entry(self, version: str) -> VersionEntry | None:
        for e in self.versions():
            if e.version == version:
                return e
        return None

    def active_version(self) -> str | None:
        """The version currently marked as current.

        The stored ``active_version`` is returned verbatim. Catalogs written by
        other tools lack it; then the highest numeric version is used.
        """
        stored = self.document.get(ACTIVE_VERSION_KEY)
        if isinstance(stored, str) and stored:
            return stored

        best: tuple[tuple[int, ...], str] | None = None
        for e in self.versions():
            key = parse_version(e.version)
            if key is None:
                continue
            if best is None or key > best[0]:
                best = (key, e.version)
        return best[1] if best is not None else None

    def add_provider_record(self, version: str, record: ProviderRecord) -> Ledger:
        """Append ``record`` to ``version`` and mark that version current."""
        document = copy.deepcopy(self.document)
        document.setdefault(_NAME_KEY, self.boxer_id)

        versions = as_obj_list(document.get(_VERSIONS_KEY))
        if versions is None:
            versions = []
            document[_VERSIONS_KEY] = versions

        target: StrDict | None = None
        for entry in versions:
            entry_dict = as_str_dict(entry)
            if entry_dict is not None and entry_dict.get(_VERSION_KEY) == version:
                target = entry_dict
                break
        if target is None:
            target = {_VERSION_KEY: version, _PROVIDERS_KEY: []}
            versions.append(target)

        providers = as_obj_list(target.get(_PROVIDERS_KEY))
        if providers is None:
            providers = []
            target[_PROVIDERS_KEY] = providers
        providers.append(record.to_dict())

        document[ACTIVE_VERSION_KEY] = version
        return Ledger(boxer_id=self.boxer_id, document=document)

    def to_json(self) -> str:
        return json.dumps(self.document, indent=2) + "\n"


@dataclass(frozen=True, slots=True)
class LedgerLoad:
    ledger: Ledger
    warnings: tuple[str, ...] = ()


def _validate(document: StrDict, path: Path) -> InvalidInput | None:
    active = document.get(ACTIVE_VERSION_KEY)
    if active is not None and not isinstance(active, str):
        return InvalidInput(path, f"{ACTIVE_VERSION_KEY} must be a string")

    if _VERSIONS_KEY not in document:
        return None
    versions = as_obj_list(document[_VERSIONS_KEY])
    if versions is None:
        return InvalidInput(path, f"{_VERSIONS_KEY} must be a list")

    seen: set[str] = set()
    for i, item in enumerate(versions):
        entry = as_str_dict(item)
        if entry is None:
            return InvalidInput(path, f"{_VERSIONS_KEY}[{i}] must be an object")
        version = entry.get(_VERSION_KEY)
        if not isinstance(version, str) or not version:
            return InvalidInput(path, f"{_VERSIONS_KEY}[{i}] has no {_VERSION_KEY} string")
        if version in seen:
            return InvalidInput(path, f"duplicate version {version}")
        seen.add(version)

        if _PROVIDERS_KEY not in entry:
            continue
        providers = as_obj_list(entry[_PROVIDERS_KEY])
        if providers is None or not all(as_str_dict(p) is not None for p in providers):
            return InvalidInput(
                path, f"{_PROVIDERS_KEY} of version {version} must be a list of objects"
            )
    return None


def load_ledger(path: Path, boxer_id: str) -> Result[LedgerLoad, InvalidInput]:
    """Load a ledger; a missing file yields an empty ledger and a warning."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Ok(
            LedgerLoad(
                ledger=Ledger.empty(boxer_id),
                warnings=(f"No metadata file {path}, starting a new one",),
            )
        )
    except (OSError, UnicodeDecodeError) as e:
        return Err(InvalidInput(path, f"cannot read metadata: {e}"))

    try:
        data_obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(InvalidInput(path, f"invalid JSON: {e}"))

    document = as_str_dict(data_obj)
    if document is None:
        return Err(InvalidInput(path, "metadata must be a JSON object"))

    problem = _validate(document, path)
    if problem is not None:
        return Err(problem)

    warnings: list[str] = []
    name = document.get(_NAME_KEY)
    if isinstance(name, str) and name != boxer_id:
        warnings.append(f"{path} belongs to '{name}', not boxer id '{boxer_id}'")

    ledger = Ledger(boxer_id=boxer_id, document=document)
    return Ok(LedgerLoad(ledger=ledger, warnings=tuple(warnings)))


def save_ledger(ledger: Ledger, path: Path) -> Result[Path, LedgerError]:
    """Persist the full ledger atomically."""
    try:
        atomic_write_text(path, ledger.to_json())
    except OSError as e:
        return Err(MetadataWriteFailed(path, str(e)))
    return Ok(path)
