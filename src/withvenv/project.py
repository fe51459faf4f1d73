"""
project root discovery for withvenv.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from itertools import islice
from pathlib import Path

from .config import DEFAULT_PROJECT_MARKERS


def walk_up(start: str | Path, max_depth: int | None = None) -> Iterator[Path]:
    """
    yield `start` and then each of its ancestors, nearest first.

    arguments:
        `start: str | Path`
            file or directory to begin from; a file begins at its directory
        `max_depth: int | None`
            how many directories to yield at most (default: no limit)

    returns: `Iterator[Path]`
        resolved directories
    """
    current = Path(start).expanduser().resolve()
    if current.is_file():
        current = current.parent

    yield from islice((current, *current.parents), max_depth)


def find_project_root(
    start_path: str | Path = ".",
    markers: Sequence[str] | None = None,
    max_depth: int = 100,
) -> Path | None:
    """
    find the directory that marks the top of the enclosing project.

    arguments:
        `start_path: str | Path`
            where to start looking (default: current directory)
        `markers: Sequence[str] | None`
            names whose presence marks a project root
            (default: `DEFAULT_PROJECT_MARKERS`)
        `max_depth: int`
            directories to inspect before giving up (default: 100)

    returns: `Path | None`
        the nearest directory holding any marker. the filesystem root
        itself is never reported.

    usage:
        ```python
        root = find_project_root("~/Works/example/sub/dir", markers=[".git"])
        ```
    """
    wanted = DEFAULT_PROJECT_MARKERS if markers is None else markers

    for directory in walk_up(start_path, max_depth):
        if directory == directory.parent:
            break
        if any(directory.joinpath(marker).exists() for marker in wanted):
            return directory

    return None
