"""
models for withvenv.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, final

if TYPE_CHECKING:
    from .activation import Environment
    from .config import Config


class ResolutionState(Enum):
    """
    state of a cached virtual environment resolution.

    attributes:
        `UNSET: str`
            no search has been performed yet
        `NOT_FOUND: str`
            a search was performed and nothing applies
        `FOUND: str`
            a virtual environment directory was found
    """

    UNSET = "unset"
    NOT_FOUND = "not_found"
    FOUND = "found"


class ToolType(Enum):
    """
    labels recorded by the built-in detection strategies.
    """

    PIPENV = "pipenv"
    POETRY = "poetry"
    DOT_VENV = ".venv"
    VENV = "venv"
    PROJECT_ROOT = "project-root"


@final
@dataclass(frozen=True)
class VenvPath:
    """
    result of resolving a virtual environment for a context.

    kept distinct from a bare `None` so that a cached negative result
    can be told apart from "never searched".

    attributes:
        `state: ResolutionState`
            whether a search happened and what it found
        `path: Path | None`
            the venv directory, set only when `state` is `FOUND`
    """

    state: ResolutionState
    path: Path | None = None

    @classmethod
    def unset(cls) -> VenvPath:
        return cls(ResolutionState.UNSET)

    @classmethod
    def not_found(cls) -> VenvPath:
        return cls(ResolutionState.NOT_FOUND)

    @classmethod
    def found(cls, path: str | Path) -> VenvPath:
        return cls(ResolutionState.FOUND, Path(path))

    @property
    def is_found(self) -> bool:
        return self.state is ResolutionState.FOUND

    @property
    def is_resolved(self) -> bool:
        """whether a search (or override) has produced a value."""
        return self.state is not ResolutionState.UNSET


@final
@dataclass(frozen=True)
class DetectionResult:
    """
    a successful match from a detection strategy.

    attributes:
        `venv_path: Path`
            path to the virtual environment directory
        `label: str`
            human-readable description of what matched (e.g. "poetry")
    """

    venv_path: Path
    label: str


@final
@dataclass(frozen=True)
class SearchContext:
    """
    what a detection strategy gets to look at.

    attributes:
        `base_dir: Path`
            directory the search starts from
        `environment: Environment`
            environment used for executable lookup and tool subprocesses
        `config: Config`
            active configuration
    """

    base_dir: Path
    environment: Environment
    config: Config
