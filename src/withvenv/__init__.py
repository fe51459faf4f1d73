"""
withvenv: run python work with a project's virtual environment activated.

withvenv finds the virtual environment that belongs to a directory (via
pipenv, poetry, a conventional `.venv`/`venv` directory, or the project
root), overlays `PATH`, `VIRTUAL_ENV` and `PYTHONHOME` for the duration of
a block, and restores the previous environment afterwards.

functions:
    `def activate_and_run(venv_path, work, environment=None) -> T`
        call `work` with a known venv activated
    `def activated(venv_path, environment=None)`
        context manager form of `activate_and_run`
    `def always_with_venv(fn=None, *, session=None, base_dir=None)`
        decorator that activates the resolved venv around every call

classes:
    `WithVenv` - resolve-then-activate session with a per-context cache
    `StrategyRegistry` - ordered, named detection strategies
    `WrapRegistry` - installs and removes venv wrappers on attributes
"""

from __future__ import annotations

from .activation import (
    Environment,
    EnvironmentSnapshot,
    ProcessEnvironment,
    activate_and_run,
    activated,
    get_process_environment,
)
from .config import Config
from .core import ContextStore, ResolutionContext, Resolver, StrategyRegistry, WithVenv
from .models import DetectionResult, ResolutionState, SearchContext, ToolType, VenvPath
from .project import find_project_root
from .status import ResolutionStatus
from .wrapping import WrapRegistry, always_with_venv

__version__ = "0.1.0"
__all__ = [
    "Config",
    "ContextStore",
    "DetectionResult",
    "Environment",
    "EnvironmentSnapshot",
    "ProcessEnvironment",
    "ResolutionContext",
    "ResolutionState",
    "ResolutionStatus",
    "Resolver",
    "SearchContext",
    "StrategyRegistry",
    "ToolType",
    "VenvPath",
    "WithVenv",
    "WrapRegistry",
    "activate_and_run",
    "activated",
    "always_with_venv",
    "find_project_root",
    "get_process_environment",
]
