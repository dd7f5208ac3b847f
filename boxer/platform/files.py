"""Filesystem helpers."""

from __future__ import annotations

import hashlib
import os
import shutil
import stat
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "copy_replacing", "sha1_file"]

_CHUNK_SIZE = 1024 * 1024


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace.

    A reader never sees a half-written file: either the old content or the new.
    An existing file keeps its permission bits; a new one gets the usual
    umask-derived mode rather than mkstemp's 0600.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = _target_mode(path)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        pass
    # The umask can only be read by setting it.
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def copy_replacing(src: Path, dst: Path) -> None:
    """Copy src to dst, removing any existing dst first.

    Copying a file onto itself is a no-op.
    """
    if dst.exists() and src.resolve() == dst.resolve():
        return
    dst.unlink(missing_ok=True)
    shutil.copyfile(src, dst)


def sha1_file(path: Path) -> str:
    h = hashlib.sha1()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()
