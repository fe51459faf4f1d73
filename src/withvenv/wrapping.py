"""
wrapping functions so they always run with a virtual environment activated.

`always_with_venv` is the decorator form. `WrapRegistry` installs the same
wrapper on an attribute of a module or class without editing the code that
defines it, and remembers the original so it can be put back.
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, ParamSpec, TypeVar, final, overload

if TYPE_CHECKING:
    from .core import WithVenv

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

_default_session: WithVenv | None = None


def get_default_session() -> WithVenv:
    """
    the session used by wrappers that were not given one.

    created on first use from the configuration of the current directory.
    """
    global _default_session
    if _default_session is None:
        from .core import WithVenv

        _default_session = WithVenv()
    return _default_session


def set_default_session(session: WithVenv | None) -> None:
    """replace (or with none, reset) the default session."""
    global _default_session
    _default_session = session


@overload
def always_with_venv(
    fn: Callable[P, T],
    *,
    session: WithVenv | None = None,
    base_dir: str | Path | None = None,
) -> Callable[P, T]: ...


@overload
def always_with_venv(
    fn: None = None,
    *,
    session: WithVenv | None = None,
    base_dir: str | Path | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]: ...


def always_with_venv(
    fn: Callable[P, T] | None = None,
    *,
    session: WithVenv | None = None,
    base_dir: str | Path | None = None,
) -> Callable[P, T] | Callable[[Callable[P, T]], Callable[P, T]]:
    """
    decorate a function so every call runs with the venv activated.

    the venv is resolved at call time for `base_dir`, or for the current
    working directory when no base directory was given.

    arguments:
        `fn: Callable[P, T] | None`
            the function to wrap; omitted when used as `@always_with_venv(...)`
        `session: WithVenv | None`
            session to resolve and activate through (default: the
            process-wide default session)
        `base_dir: str | Path | None`
            directory to resolve from

    returns: `Callable[P, T]`
        the wrapped function, with the original at `__wrapped__`

    usage:
        ```python
        @always_with_venv
        def run_tests() -> int:
            return subprocess.run(["pytest"]).returncode
        ```
    """

    def decorate(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            active = session if session is not None else get_default_session()
            with active.activate(base_dir=base_dir):
                return func(*args, **kwargs)

        return wrapper

    if fn is not None:
        return decorate(fn)
    return decorate


@final
class WrapRegistry:
    """
    explicit, inspectable record of attributes replaced by venv wrappers.

    attributes:
        `session: WithVenv | None`
            session the installed wrappers use (none = default session)
        `_originals: dict[tuple[int, str], tuple[object, object, bool]]`
            owner, raw attribute value and whether the owner held it
            directly, keyed by owner identity and attribute name
    """

    _originals: dict[tuple[int, str], tuple[object, object, bool]]

    def __init__(self, session: WithVenv | None = None) -> None:
        self.session = session
        self._originals = {}

    def add(self, owner: object, name: str) -> None:
        """
        replace `owner.name` with a wrapper that activates the venv.

        adding an attribute that is already wrapped does nothing.
        static and class methods stay static and class methods.

        arguments:
            `owner: object`
                module, class or instance holding the function
            `name: str`
                attribute name

        raises:
            `AttributeError`
                if `owner` has no attribute `name`
            `TypeError`
                if the attribute is not callable
        """
        key = (id(owner), name)
        if key in self._originals:
            return

        # raw lookup keeps staticmethod/classmethod descriptors intact
        raw = inspect.getattr_static(owner, name)
        owned = name in getattr(owner, "__dict__", {})
        if not isinstance(owner, type) and not owned:
            # inherited from the instance's class: wrap the bound method
            raw = getattr(owner, name)

        if isinstance(raw, (staticmethod, classmethod)):
            wrapper: object = type(raw)(always_with_venv(raw.__func__, session=self.session))
        elif callable(raw):
            wrapper = always_with_venv(raw, session=self.session)
        else:
            raise TypeError(f"{name!r} is not callable")

        setattr(owner, name, wrapper)
        self._originals[key] = (owner, raw, owned)
        logger.debug("wrapped %s.%s", getattr(owner, "__name__", owner), name)

    def remove(self, owner: object, name: str) -> None:
        """
        restore the original `owner.name`.

        an attribute the owner only inherited is deleted again, so lookup
        falls back to the base class.

        raises:
            `KeyError`
                if the attribute was not wrapped through this registry
        """
        key = (id(owner), name)
        if key not in self._originals:
            raise KeyError(f"{name!r} is not wrapped")

        _, raw, owned = self._originals.pop(key)
        if owned:
            setattr(owner, name, raw)
        else:
            delattr(owner, name)
        logger.debug("unwrapped %s.%s", getattr(owner, "__name__", owner), name)

    def is_wrapped(self, owner: object, name: str) -> bool:
        return (id(owner), name) in self._originals

    def registered(self) -> list[tuple[object, str]]:
        """every (owner, name) pair currently wrapped, in installation order."""
        return [(owner, name) for (_, name), (owner, _, _) in self._originals.items()]

    def clear(self) -> None:
        """remove every wrapper installed through this registry."""
        for owner, name in self.registered():
            self.remove(owner, name)
