"""
resolution status reporting for withvenv.

provides the snapshot that editors and the cli display, including the
short "lighter" string shown in a mode line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, final

from packaging.version import InvalidVersion, Version

from .models import ResolutionState

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class ResolutionStatus:
    """
    what is currently known about a context's virtual environment.

    attributes:
        `state: ResolutionState`
            unset, not found, or found
        `venv_path: Path | None`
            venv directory when found
        `label: str | None`
            what matched during the last search
        `overridden: bool`
            whether an explicit override decided the result
        `python_version: Version | None`
            interpreter version recorded in the venv's pyvenv.cfg
    """

    state: ResolutionState
    venv_path: Path | None = None
    label: str | None = None
    overridden: bool = False
    python_version: Version | None = None

    def lighter(self) -> str:
        """
        short mode-line text for this status.

        returns: `str`
            `venv[<label>]`, `venv[override]`, `venv[-]` or `venv[?]`
        """
        if self.state is ResolutionState.UNSET:
            return "venv[?]"
        if self.state is ResolutionState.NOT_FOUND:
            return "venv[-]"
        if self.overridden:
            return "venv[override]"
        return f"venv[{self.label or '?'}]"

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "venv_path": str(self.venv_path) if self.venv_path else None,
            "label": self.label,
            "overridden": self.overridden,
            "python_version": str(self.python_version) if self.python_version else None,
            "lighter": self.lighter(),
        }


def read_python_version(venv_path: Path) -> Version | None:
    """
    read the interpreter version from a venv's pyvenv.cfg.

    both the `version` key written by venv and the `version_info` key
    written by virtualenv and uv are understood.

    arguments:
        `venv_path: Path`
            path to the virtual environment

    returns: `Version | None`
        parsed version, or none if the file or key is missing or invalid
    """
    pyvenv_cfg = venv_path.joinpath("pyvenv.cfg")

    try:
        content = pyvenv_cfg.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        key, sep, value = line.partition("=")
        if not sep or key.strip() not in ("version", "version_info"):
            continue
        try:
            return Version(value.strip())
        except InvalidVersion:
            # virtualenv writes e.g. "3.12.1.final.0"
            logger.debug("unparseable version in %s: %s", pyvenv_cfg, value.strip())
            continue

    return None
