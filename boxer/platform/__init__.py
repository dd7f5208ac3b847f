"""Platform adapters: subprocesses and filesystem primitives."""

from .files import atomic_write_text, copy_replacing, sha1_file
from .process import ProcessError, run_silent

__all__ = [
    # files
    "atomic_write_text",
    "copy_replacing",
    "sha1_file",
    # process
    "ProcessError",
    "run_silent",
]
