"""tempodeck: persistent, ordered metronome profiles."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__", "PRODUCT_NAME"]

PRODUCT_NAME = "tempodeck"


def _version_from_pyproject() -> str | None:
    """Read `[project].version` from a source checkout, if there is one."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        in_project = False
        for line in pyproject.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                in_project = stripped == "[project]"
                continue
            if in_project:
                match = re.match(r'^version\s*=\s*"([^"]+)"\s*$', stripped)
                if match:
                    return match.group(1)
        return None
    return None


_source_version = _version_from_pyproject()
if _source_version is not None:
    __version__ = _source_version
else:
    try:
        __version__ = version(PRODUCT_NAME)
    except PackageNotFoundError:
        __version__ = "0+unknown"
