"""Typed configuration loading and merging.

The effective configuration of a run is built from three layers, highest
precedence first:

1. explicit command-line overrides (``ConfigOverrides``)
2. the optional ``boxer.json`` file (``FileConfig``)
3. built-in defaults (module constants below)

A missing config file is not an error: the run falls back to defaults and a
warning is reported. Without a config file the base name must come from
``--base``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError, InvalidInput, MissingRequiredConfig
from .result import Err, Ok, Result
from .structured import as_str_dict, get_int, get_str

__all__ = [
    "BoxerConfig",
    "ConfigOverrides",
    "ConfigResolution",
    "FileConfig",
    "config_path_from_option",
    "merge_config",
    "parse_config",
    "read_config_file",
    "resolve_config",
    # Defaults
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_MAJOR_VERSION",
    "DEFAULT_URL_PREFIX",
    "DEFAULT_URL_SUFFIX",
    "NO_CONFIG_FILE",
]

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_CONFIG_FILE = "boxer.json"
# Passing this as --config-file means "use defaults, do not read a file".
NO_CONFIG_FILE = "default"

DEFAULT_URL_PREFIX = "http://localhost/"
DEFAULT_URL_SUFFIX = "{name}-{version}-{provider}.box"
DEFAULT_MAJOR_VERSION = 0

_KEY_VM_NAME = "vm-name"
_KEY_VERSION = "version"
_KEY_URL_TEMPLATE = "url-template"
_KEY_URL_PREFIX = "download-url-prefix"
_KEY_BOXER_ID = "boxer-id"

_KNOWN_KEYS = frozenset(
    {_KEY_VM_NAME, _KEY_VERSION, _KEY_URL_TEMPLATE, _KEY_URL_PREFIX, _KEY_BOXER_ID}
)


@dataclass(frozen=True, slots=True)
class BoxerConfig:
    """Effective configuration of one run. Never mutated after resolution."""

    vm_name: str
    major_version: int
    url_template: str
    boxer_id: str


@dataclass(frozen=True, slots=True)
class ConfigOverrides:
    """Values given explicitly on the command line (None means "not given")."""

    base: str | None = None
    boxer_id: str | None = None
    url: str | None = None
    url_prefix: str | None = None
    url_suffix: str | None = None
    major_version: int | None = None


@dataclass(frozen=True, slots=True)
class FileConfig:
    """Validated contents of a ``boxer.json`` file."""

    vm_name: str
    version: int | None = None
    url_template: str | None = None
    download_url_prefix: str | None = None
    boxer_id: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigResolution:
    config: BoxerConfig
    warnings: tuple[str, ...] = ()


def config_path_from_option(value: str | None) -> Path | None:
    """Translate the --config-file option into a path (None: no config file)."""
    if value is None or value == NO_CONFIG_FILE:
        return None
    return Path(value)


def parse_config(data: Mapping[str, object], path: Path) -> Result[FileConfig, InvalidInput]:
    """Validate a decoded config document."""
    unknown = sorted(k for k in data if k not in _KNOWN_KEYS)
    if unknown:
        return Err(InvalidInput(path, f"unknown config keys: {', '.join(unknown)}"))

    vm_name = get_str(data, _KEY_VM_NAME)
    if vm_name is None:
        return Err(InvalidInput(path, f"must define {_KEY_VM_NAME}"))

    version: int | None = None
    if _KEY_VERSION in data:
        version = get_int(data, _KEY_VERSION)
        if version is None or version < 0:
            return Err(InvalidInput(path, f"{_KEY_VERSION} must be a non-negative integer"))

    url_template = get_str(data, _KEY_URL_TEMPLATE)
    url_prefix = get_str(data, _KEY_URL_PREFIX)
    if url_template is None and url_prefix is None:
        return Err(
            InvalidInput(path, f"neither {_KEY_URL_TEMPLATE} nor {_KEY_URL_PREFIX} is defined")
        )
    if url_template is not None and url_prefix is not None:
        return Err(
            InvalidInput(path, f"define only one of {_KEY_URL_TEMPLATE} or {_KEY_URL_PREFIX}")
        )

    return Ok(
        FileConfig(
            vm_name=vm_name,
            version=version,
            url_template=url_template,
            download_url_prefix=url_prefix,
            boxer_id=get_str(data, _KEY_BOXER_ID),
        )
    )


def read_config_file(path: Path) -> Result[FileConfig | None, InvalidInput]:
    """Read and validate a config file.

    Returns:
        Ok(FileConfig) when the file is valid, Ok(None) when it does not
        exist, Err(InvalidInput) when it exists but cannot be used.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Ok(None)
    except (OSError, UnicodeDecodeError) as e:
        return Err(InvalidInput(path, f"cannot read config: {e}"))

    try:
        data_obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(InvalidInput(path, f"invalid JSON: {e}"))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(InvalidInput(path, "must contain a JSON object configuration"))
    return parse_config(data, path)


def _url_template(file_cfg: FileConfig | None, overrides: ConfigOverrides) -> str:
    suffix = overrides.url_suffix if overrides.url_suffix is not None else DEFAULT_URL_SUFFIX
    if overrides.url is not None:
        return overrides.url
    if overrides.url_prefix is not None:
        return overrides.url_prefix + suffix
    if file_cfg is not None and file_cfg.url_template is not None:
        return file_cfg.url_template
    if file_cfg is not None and file_cfg.download_url_prefix is not None:
        return file_cfg.download_url_prefix + suffix
    return DEFAULT_URL_PREFIX + suffix


def merge_config(
    file_cfg: FileConfig | None,
    overrides: ConfigOverrides,
) -> Result[BoxerConfig, MissingRequiredConfig]:
    """Merge file values and overrides into the effective configuration."""
    vm_name = overrides.base or (file_cfg.vm_name if file_cfg is not None else None)
    if not vm_name:
        return Err(
            MissingRequiredConfig(
                "Must set --base parameter when not using boxer.json configuration"
            )
        )

    major = overrides.major_version
    if major is None and file_cfg is not None:
        major = file_cfg.version
    if major is None:
        major = DEFAULT_MAJOR_VERSION

    # Unless configured otherwise, the boxer id is the vm name.
    boxer_id = overrides.boxer_id or (file_cfg.boxer_id if file_cfg is not None else None)

    return Ok(
        BoxerConfig(
            vm_name=vm_name,
            major_version=major,
            url_template=_url_template(file_cfg, overrides),
            boxer_id=boxer_id or vm_name,
        )
    )


def resolve_config(
    path: Path | None,
    overrides: ConfigOverrides,
    *,
    work_dir: Path | None = None,
) -> Result[ConfigResolution, ConfigError]:
    """Build the effective configuration for a run.

    Args:
        path: Config file to read, or None to use defaults only.
        overrides: Explicit command-line values.
        work_dir: Directory a relative path is resolved against (default: cwd).

    Returns:
        Ok(ConfigResolution) with any warnings, or Err(ConfigError).
    """
    warnings: list[str] = []
    file_cfg: FileConfig | None = None

    if path is not None:
        base_dir = work_dir if work_dir is not None else Path.cwd()
        read = read_config_file(base_dir / path)
        if isinstance(read, Err):
            return read
        file_cfg = read.value
        if file_cfg is None:
            warnings.append(f"No {path} (current dir: {base_dir}), using default")

    merged = merge_config(file_cfg, overrides)
    if isinstance(merged, Err):
        return merged
    return Ok(ConfigResolution(config=merged.value, warnings=tuple(warnings)))
