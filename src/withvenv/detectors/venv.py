"""
conventional venv directory detectors.
"""

from __future__ import annotations

from pathlib import Path

from ..models import DetectionResult, SearchContext
from .utils import find_dominating_venv


def _dir_name(search: SearchContext, index: int) -> str | None:
    names = search.config.dir_names
    return names[index] if index < len(names) else None


def _detect_named(search: SearchContext, start: Path, name: str | None) -> DetectionResult | None:
    if not name:
        return None

    venv_path = find_dominating_venv(start, name, search.config.python_name)
    if venv_path is None:
        return None

    return DetectionResult(venv_path=venv_path, label=name)


def detect_dot_venv(search: SearchContext) -> DetectionResult | None:
    """detect a venv under the primary conventional name (".venv") upward from the base dir."""
    return _detect_named(search, search.base_dir, _dir_name(search, 0))


def detect_venv(search: SearchContext) -> DetectionResult | None:
    """detect a venv under the alternate conventional name ("venv") upward from the base dir."""
    return _detect_named(search, search.base_dir, _dir_name(search, 1))


def detect_in(search: SearchContext, start: Path) -> DetectionResult | None:
    """
    run every conventional-name search rooted at `start`, primary name first.

    arguments:
        `search: SearchContext`
            search configuration
        `start: Path`
            directory to walk upward from

    returns: `DetectionResult | None`
        first match, or none
    """
    for name in search.config.dir_names:
        if result := _detect_named(search, start, name):
            return result
    return None
