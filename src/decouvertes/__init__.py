"""Leitner-box flashcard engine driven from the command line."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _source_tree_version() -> str | None:
    """Read [project].version from pyproject.toml when running from a checkout."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject.is_file():
        return None
    with pyproject.open("rb") as handle:
        project = tomllib.load(handle).get("project", {})
    if project.get("name") != "decouvertes":
        return None
    found = project.get("version")
    return found if isinstance(found, str) else None


__version__ = _source_tree_version() or ""
if not __version__:
    try:
        __version__ = version("decouvertes")
    except PackageNotFoundError:
        __version__ = "0+unknown"
