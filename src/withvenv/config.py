"""
configuration loading for withvenv.

this module handles loading and validation of configuration from
pyproject.toml, .withvenv.toml, and environment variables.
"""

from __future__ import annotations

import logging
import os
from contextlib import suppress
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Final

logger = logging.getLogger(__name__)

DEFAULT_STRATEGIES: Final[tuple[str, ...]] = (
    "pipenv",
    "poetry",
    "dot-venv",
    "venv",
    "project-root",
)

DEFAULT_DIR_NAMES: Final[tuple[str, ...]] = (".venv", "venv")

# markers used to locate a project root for the project-root strategy
DEFAULT_PROJECT_MARKERS: Final[tuple[str, ...]] = (
    # version control
    ".git",
    ".hg",
    ".svn",
    # python
    "pyproject.toml",
    "poetry.lock",
    "Pipfile",
    "setup.py",
    "setup.cfg",
    "requirements.txt",
    # editors
    ".projectile",
    ".editorconfig",
)


@dataclass
class Config:
    """
    main configuration class for withvenv.

    attributes:
        `project_root: Path`
            root directory the configuration was loaded for
        `venv_dir: str | None`
            explicit venv directory used as the override for new contexts.
            `None` means unset, an empty string disables activation.
        `strategies: list[str]`
            names of the detection strategies to enable, in order
        `dir_names: list[str]`
            conventional venv directory names, primary name first
        `python_name: str`
            interpreter name expected inside the venv's bin directory
        `tool_timeout: float`
            seconds to wait for an external package-manager query
        `project_markers: list[str]`
            files or directories that mark a project root
    """

    project_root: Path = field(default_factory=lambda: Path(".").resolve())
    venv_dir: str | None = None
    strategies: list[str] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    dir_names: list[str] = field(default_factory=lambda: list(DEFAULT_DIR_NAMES))
    python_name: str = "python"
    tool_timeout: float = 10.0
    project_markers: list[str] = field(default_factory=lambda: list(DEFAULT_PROJECT_MARKERS))

    def __post_init__(self) -> None:
        """Ensure project_root is a path object."""
        if isinstance(self.project_root, str):
            self.project_root = Path(self.project_root)

    @classmethod
    def from_pyproject_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from the [tool.withvenv] table of pyproject.toml.

        arguments:
            `project_root: str | Path`
                project root directory containing pyproject.toml

        returns: `Config | None`
            configuration object if found, none otherwise
        """
        project_path = Path(project_root)
        pyproject = project_path.joinpath("pyproject.toml")

        if not pyproject.exists():
            return None

        try:
            import tomllib

            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
        except (OSError, ValueError) as e:
            logger.debug("ignoring unreadable %s: %s", pyproject, e)
            return None

        tool_config = data.get("tool", {}).get("withvenv")
        if not isinstance(tool_config, dict):
            return None
        return cls._from_dict(tool_config, project_path)

    @classmethod
    def from_withvenv_toml(cls, project_root: str | Path) -> Config | None:
        """
        Load configuration from .withvenv.toml.

        arguments:
            `project_root: str | Path`
                project root directory containing .withvenv.toml

        returns: `Config | None`
            configuration object if found, none otherwise
        """
        project_path = Path(project_root)
        config_file = project_path.joinpath(".withvenv.toml")

        if not config_file.exists():
            return None

        try:
            import tomllib

            with open(config_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, ValueError) as e:
            logger.debug("ignoring unreadable %s: %s", config_file, e)
            return None

        return cls._from_dict(data, project_path)

    @classmethod
    def from_environment(cls) -> Config:
        """
        Load configuration from environment variables.

        returns: `Config`
            configuration with values from environment
        """
        config = cls()

        # an empty WITHVENV_VENV_DIR is meaningful: it disables activation
        if (venv_dir := os.environ.get("WITHVENV_VENV_DIR")) is not None:
            config.venv_dir = _expand_venv_dir(venv_dir, Path.cwd())

        if strategies := os.environ.get("WITHVENV_STRATEGIES"):
            config.strategies = _split_list(strategies)

        if dir_names := os.environ.get("WITHVENV_DIR_NAMES"):
            config.dir_names = _split_list(dir_names)

        if timeout := os.environ.get("WITHVENV_TOOL_TIMEOUT"):
            with suppress(ValueError):
                config.tool_timeout = float(timeout)

        return config

    @classmethod
    def load(cls, project_root: str | Path = ".") -> Config:
        """
        Load configuration from all available sources.

        sources are loaded in order of priority (later overrides earlier):
        1. default values
        2. pyproject.toml
        3. .withvenv.toml
        4. environment variables

        arguments:
            `project_root: str | Path`
                project root directory

        returns: `Config`
            merged configuration from all sources
        """
        project_path = Path(project_root).resolve()

        config = cls(project_root=project_path)

        if pyproject_config := cls.from_pyproject_toml(project_path):
            config = config.merge(pyproject_config)

        if withvenv_config := cls.from_withvenv_toml(project_path):
            config = config.merge(withvenv_config)

        env_config = cls.from_environment()
        config = config.merge(env_config)

        return config

    def merge(self, other: Config) -> Config:
        """
        merge another configuration into this one.

        values from 'other' take precedence over this config wherever
        they differ from the defaults.

        arguments:
            `other: Config`
                configuration to merge

        returns: `Config`
            new merged configuration
        """
        defaults = Config()
        merged: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "project_root":
                continue
            theirs = getattr(other, f.name)
            merged[f.name] = theirs if theirs != getattr(defaults, f.name) else getattr(self, f.name)

        return Config(
            project_root=other.project_root
            if other.project_root != Path(".").resolve()
            else self.project_root,
            **merged,
        )

    @classmethod
    def _from_dict(cls, data: dict[str, Any], project_root: Path) -> Config:
        """
        Create configuration from a dictionary.

        arguments:
            `data: dict[str, Any]`
                configuration dictionary
            `project_root: Path`
                project root path, used to anchor a relative venv_dir

        returns: `Config`
            configuration object
        """
        config = cls(project_root=project_root)

        if isinstance(venv_dir := data.get("venv_dir"), str):
            config.venv_dir = _expand_venv_dir(venv_dir, project_root)
        if isinstance(strategies := data.get("strategies"), list):
            config.strategies = [str(s) for s in strategies]
        if isinstance(dir_names := data.get("dir_names"), list):
            config.dir_names = [str(d) for d in dir_names]
        if isinstance(python_name := data.get("python_name"), str):
            config.python_name = python_name
        if isinstance(timeout := data.get("tool_timeout"), (int, float)):
            config.tool_timeout = float(timeout)
        if isinstance(markers := data.get("project_markers"), list):
            config.project_markers = [str(m) for m in markers]

        return config


def _split_list(value: str) -> list[str]:
    """split a comma-separated environment variable value."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _expand_venv_dir(value: str, base: Path) -> str:
    """
    expand `~` in a configured venv directory and anchor a relative one.

    arguments:
        `value: str`
            configured venv directory; an empty string is returned as-is
        `base: Path`
            directory a relative value is taken from

    returns: `str`
        the expanded directory
    """
    if not value:
        return value

    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base.joinpath(path)
    return str(path)
