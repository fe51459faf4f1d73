"""
conftest for withvenv tests.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from unittest import mock

import pytest

from withvenv.activation import Environment
from withvenv.config import Config
from withvenv.models import SearchContext

from tests.fixtures import make_venv


@pytest.fixture(autouse=True)
def clear_withvenv_env():
    """keep the test runner's own venv and withvenv settings out of the tests."""
    cleared = {
        k: v
        for k, v in os.environ.items()
        if k not in ("VIRTUAL_ENV",) and not k.startswith("WITHVENV_")
    }
    with mock.patch.dict(os.environ, cleared, clear=True):
        yield


@pytest.fixture
def environment() -> Environment:
    """an in-memory environment with a plain PATH."""
    return Environment(
        exec_path=["/usr/bin"],
        variables={"PATH": "/usr/bin", "HOME": "/home/user"},
    )


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """default configuration rooted at the test's temporary directory."""
    return Config(project_root=tmp_path)


@pytest.fixture
def make_search(environment: Environment, config: Config) -> Callable[[Path], SearchContext]:
    """build search contexts for a base directory."""

    def factory(base_dir: Path) -> SearchContext:
        return SearchContext(base_dir=base_dir, environment=environment, config=config)

    return factory


@pytest.fixture
def dot_venv_project(tmp_path: Path) -> Path:
    """a project with `.venv/bin/python` and a nested source directory."""
    make_venv(tmp_path / ".venv")
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    return tmp_path
