"""Download URL templates.

Templates use ``{name}``, ``{version}`` and ``{provider}`` placeholders, e.g.
``http://boxes.example.com/{name}-{version}-{provider}.box``.
"""

from __future__ import annotations

import re

__all__ = ["resolve_url"]

_TOKEN_RE = re.compile(r"\{(name|version|provider)\}")


def resolve_url(template: str, *, name: str, version: str, provider: str) -> str:
    """Substitute placeholders in a single pass.

    Substituted values are never rescanned, so a name containing ``{version}``
    stays literal. Any other ``{...}`` text is left untouched.
    """
    values = {"name": name, "version": version, "provider": provider}
    return _TOKEN_RE.sub(lambda m: values[m.group(1)], template)
