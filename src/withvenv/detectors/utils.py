"""
utility functions for detectors.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from ..project import walk_up

if TYPE_CHECKING:
    from ..models import SearchContext

logger = logging.getLogger(__name__)


def get_bin_dir(venv_path: str | Path) -> Path:
    """
    get the directory holding a virtual environment's executables.

    handles cross-platform differences between windows and unix.

    arguments:
        `venv_path: str | Path`
            path to the virtual environment

    returns: `Path`
        `Scripts` on windows, `bin` everywhere else
    """
    if sys.platform == "win32":
        return Path(venv_path).joinpath("Scripts")
    return Path(venv_path).joinpath("bin")


def get_python_executable(venv_path: Path, python_name: str = "python") -> Path | None:
    """
    get the python executable path for a virtual environment.

    arguments:
        `venv_path: Path`
            path to the virtual environment
        `python_name: str`
            interpreter name (".exe" is appended on windows)

    returns: `Path | None`
        path to python executable, or none if not found
    """
    if sys.platform == "win32" and not python_name.endswith(".exe"):
        python_name = f"{python_name}.exe"

    python_exe = get_bin_dir(venv_path).joinpath(python_name)

    if python_exe.exists():
        return python_exe

    return None


def find_dominating_venv(start: Path, name: str, python_name: str = "python") -> Path | None:
    """
    walk upward from `start` looking for a `<name>/bin/<python>` directory.

    arguments:
        `start: Path`
            directory to begin the walk from
        `name: str`
            conventional venv directory name, e.g. ".venv"
        `python_name: str`
            interpreter name expected in the bin directory

    returns: `Path | None`
        the venv directory (not the interpreter) of the nearest ancestor
        that has one, or none
    """
    for directory in walk_up(start):
        candidate = directory.joinpath(name)
        if get_python_executable(candidate, python_name) is not None:
            return candidate

    return None


def query_tool(search: SearchContext, tool: str, args: Sequence[str]) -> Path | None:
    """
    ask a package manager for the path of its managed environment.

    the tool is looked up on the search context's executable path and run
    in the base directory with `VIRTUAL_ENV` stripped, so an enclosing
    activation does not leak into the answer.

    arguments:
        `search: SearchContext`
            the directory, environment and config to use
        `tool: str`
            executable name, e.g. "pipenv"
        `args: Sequence[str]`
            arguments requesting the environment path

    returns: `Path | None`
        the first line of the tool's output on a zero exit, none otherwise
    """
    executable = search.environment.which(tool)
    if executable is None:
        logger.debug("%s not found on exec path", tool)
        return None

    try:
        result = subprocess.run(
            [executable, *args],
            capture_output=True,
            text=True,
            timeout=search.config.tool_timeout,
            cwd=str(search.base_dir),
            env=search.environment.neutral_variables(),
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug("running %s failed: %s", tool, e)
        return None

    if result.returncode != 0:
        logger.debug("%s exited with status %d", tool, result.returncode)
        return None

    # splitlines() drops the line terminators
    lines = result.stdout.splitlines()
    first_line = lines[0] if lines else ""
    if not first_line:
        return None

    return Path(first_line)
