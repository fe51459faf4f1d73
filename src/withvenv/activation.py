"""
temporary virtual environment activation.

an `Environment` bundles the two pieces of state an activation touches:
the executable search-path list and the variable table. `activated()`
snapshots both, overlays the venv, runs the caller's block, and restores
the snapshot in a `finally` clause so that restoration happens before any
exception from the block reaches the caller.

activations on one environment are serialised with a re-entrant lock:
nested activations in the same thread work, activations from other
threads wait. writes to `os.environ` that bypass the lock are not covered.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Callable, Generator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar, final

from typing_extensions import override

from .detectors.utils import get_bin_dir

logger = logging.getLogger(__name__)

T = TypeVar("T")


@final
@dataclass(frozen=True)
class EnvironmentSnapshot:
    """
    deep copy of an environment taken at the start of an activation.

    attributes:
        `exec_path: tuple[str, ...]`
            executable search-path list
        `variables: Mapping[str, str]`
            full variable table
    """

    exec_path: tuple[str, ...]
    variables: Mapping[str, str] = field(default_factory=dict)


class Environment:
    """
    an injectable process environment.

    attributes:
        `exec_path: list[str]`
            directories searched for executables, in order
        `variables: MutableMapping[str, str]`
            environment variable table
        `lock: threading.RLock`
            held for the whole of an activation
    """

    exec_path: list[str]
    variables: MutableMapping[str, str]

    def __init__(
        self,
        exec_path: list[str] | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> None:
        self.exec_path = list(exec_path) if exec_path is not None else []
        self.variables = dict(variables) if variables is not None else {}
        self.lock = threading.RLock()

    def snapshot(self) -> EnvironmentSnapshot:
        """copy the current state; later mutation does not reach the copy."""
        return EnvironmentSnapshot(tuple(self.exec_path), dict(self.variables))

    def restore(self, snapshot: EnvironmentSnapshot) -> None:
        """
        put the environment back exactly as `snapshot` recorded it.

        the exec path list is updated in place so references to it stay
        valid; variables are only touched where they differ.

        arguments:
            `snapshot: EnvironmentSnapshot`
                state captured by `snapshot()`
        """
        self.exec_path[:] = snapshot.exec_path

        for key in [k for k in self.variables if k not in snapshot.variables]:
            del self.variables[key]
        for key, value in snapshot.variables.items():
            if self.variables.get(key) != value:
                self.variables[key] = value

    def which(self, name: str) -> str | None:
        """find an executable on this environment's exec path."""
        if not self.exec_path:
            return None
        return shutil.which(name, path=os.pathsep.join(self.exec_path))

    def neutral_variables(self) -> dict[str, str]:
        """variables for a helper subprocess, without any venv marker."""
        variables = dict(self.variables)
        _ = variables.pop("VIRTUAL_ENV", None)
        return variables

    def __repr__(self) -> str:
        return f"{type(self).__name__}(exec_path={self.exec_path!r}, variables=<{len(self.variables)} entries>)"


@final
class ProcessEnvironment(Environment):
    """
    the environment of the running interpreter.

    the variable table is `os.environ` itself; the exec path starts out as
    the entries of `PATH`.
    """

    def __init__(self) -> None:
        path = os.environ.get("PATH", "")
        super().__init__(exec_path=[p for p in path.split(os.pathsep) if p])
        self.variables = os.environ

    @override
    def __repr__(self) -> str:
        return f"ProcessEnvironment(exec_path=<{len(self.exec_path)} entries>)"


_process_environment: ProcessEnvironment | None = None
_process_environment_lock = threading.Lock()


def get_process_environment() -> ProcessEnvironment:
    """
    the shared environment for the running process.

    created on first use; every activation that does not inject its own
    environment goes through this one, so they all share a lock.
    """
    global _process_environment
    with _process_environment_lock:
        if _process_environment is None:
            _process_environment = ProcessEnvironment()
        return _process_environment


def _apply_venv(environment: Environment, venv_path: Path) -> None:
    bin_dir = str(get_bin_dir(venv_path))

    environment.exec_path.insert(0, bin_dir)
    environment.variables["VIRTUAL_ENV"] = str(venv_path)

    current_path = environment.variables.get("PATH", "")
    environment.variables["PATH"] = (
        os.pathsep.join([bin_dir, current_path]) if current_path else bin_dir
    )

    # PYTHONHOME makes the venv's interpreter ignore its own prefix
    _ = environment.variables.pop("PYTHONHOME", None)


@contextmanager
def activated(
    venv_path: str | Path | None,
    environment: Environment | None = None,
) -> Generator[Environment, None, None]:
    """
    run a block with a virtual environment overlaid on `environment`.

    arguments:
        `venv_path: str | Path | None`
            venv directory; none or an empty string leaves the
            environment untouched
        `environment: Environment | None`
            environment to mutate (default: the process environment)

    yields: `Environment`
        the environment in its activated state

    usage:
        ```python
        with activated("/proj/.venv"):
            subprocess.run(["python", "-m", "pytest"])
        ```
    """
    env = environment if environment is not None else get_process_environment()

    with env.lock:
        snapshot = env.snapshot()
        try:
            if venv_path is not None and str(venv_path) != "":
                logger.debug("activating %s", venv_path)
                _apply_venv(env, Path(venv_path))
            yield env
        finally:
            env.restore(snapshot)
            logger.debug("environment restored")


def activate_and_run(
    venv_path: str | Path | None,
    work: Callable[[], T],
    environment: Environment | None = None,
) -> T:
    """
    call `work` with a virtual environment activated.

    arguments:
        `venv_path: str | Path | None`
            venv directory, or none to run `work` unmodified
        `work: Callable[[], T]`
            the unit of work
        `environment: Environment | None`
            environment to mutate (default: the process environment)

    returns: `T`
        whatever `work` returns; exceptions from `work` propagate
        unchanged once the environment has been restored
    """
    with activated(venv_path, environment):
        return work()
