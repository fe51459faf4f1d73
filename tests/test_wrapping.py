"""tests for the wrapping module."""

from __future__ import annotations

import types
from pathlib import Path

import pytest

from withvenv.activation import Environment
from withvenv.config import Config
from withvenv.core import StrategyRegistry, WithVenv
from withvenv.models import DetectionResult, SearchContext
from withvenv.wrapping import (
    WrapRegistry,
    always_with_venv,
    get_default_session,
    set_default_session,
)


def _fixed(search: SearchContext) -> DetectionResult | None:
    return DetectionResult(venv_path=Path("/proj/.venv"), label="fixed")


@pytest.fixture
def session(tmp_path: Path, environment: Environment) -> WithVenv:
    """a session that always finds /proj/.venv."""
    return WithVenv(
        config=Config(project_root=tmp_path),
        registry=StrategyRegistry([("fixed", _fixed)]),
        environment=environment,
    )


def _current_venv(environment: Environment) -> str | None:
    return environment.variables.get("VIRTUAL_ENV")


class TestAlwaysWithVenv:
    """tests for the always_with_venv decorator."""

    def test_bare_call(self, session: WithVenv, environment: Environment, tmp_path: Path) -> None:
        """Test wrapping a function directly."""
        wrapped = always_with_venv(_current_venv, session=session, base_dir=tmp_path)

        assert wrapped(environment) == str(Path("/proj/.venv"))
        assert _current_venv(environment) is None

    def test_decorator_with_arguments(
        self, session: WithVenv, environment: Environment, tmp_path: Path
    ) -> None:
        """Test the @always_with_venv(...) form keeps metadata."""

        @always_with_venv(session=session, base_dir=tmp_path)
        def venv_name(env: Environment) -> str | None:
            """Return the active venv."""
            return env.variables.get("VIRTUAL_ENV")

        assert venv_name(environment) == str(Path("/proj/.venv"))
        assert venv_name.__name__ == "venv_name"
        assert venv_name.__doc__ == "Return the active venv."
        assert hasattr(venv_name, "__wrapped__")

    def test_exception_propagates(self, session: WithVenv, environment: Environment) -> None:
        """Test that the wrapped function's error escapes after restoration."""

        @always_with_venv(session=session)
        def fail() -> None:
            raise KeyError("missing")

        with pytest.raises(KeyError):
            fail()

        assert _current_venv(environment) is None

    def test_session_wrap(self, session: WithVenv, environment: Environment, tmp_path: Path) -> None:
        """Test the WithVenv.wrap shortcut."""
        wrapped = session.wrap(_current_venv, base_dir=tmp_path)

        assert wrapped(environment) == str(Path("/proj/.venv"))

    def test_default_session(self, session: WithVenv, environment: Environment) -> None:
        """Test that a wrapper without a session uses the default one."""
        set_default_session(session)
        try:
            assert get_default_session() is session
            assert always_with_venv(_current_venv)(environment) == str(Path("/proj/.venv"))
        finally:
            set_default_session(None)


class TestWrapRegistry:
    """tests for installing wrappers on attributes."""

    def _module(self) -> types.ModuleType:
        module = types.ModuleType("fake_tools")

        def current(env: Environment) -> str | None:
            return env.variables.get("VIRTUAL_ENV")

        module.current = current  # pyright: ignore[reportAttributeAccessIssue]
        module.constant = 42  # pyright: ignore[reportAttributeAccessIssue]
        return module

    def test_add_and_remove(self, session: WithVenv, environment: Environment) -> None:
        """Test that add wraps an attribute and remove restores the original."""
        module = self._module()
        original = module.current
        registry = WrapRegistry(session)

        registry.add(module, "current")

        assert registry.is_wrapped(module, "current")
        assert module.current(environment) == str(Path("/proj/.venv"))
        assert registry.registered() == [(module, "current")]

        registry.remove(module, "current")

        assert module.current is original
        assert module.current(environment) is None
        assert registry.registered() == []

    def test_add_twice_is_noop(self, session: WithVenv) -> None:
        """Test that wrapping an already wrapped attribute keeps one layer."""
        module = self._module()
        registry = WrapRegistry(session)

        registry.add(module, "current")
        wrapped = module.current
        registry.add(module, "current")

        assert module.current is wrapped

    def test_remove_unknown(self, session: WithVenv) -> None:
        """Test that removing an unwrapped attribute raises KeyError."""
        with pytest.raises(KeyError):
            WrapRegistry(session).remove(self._module(), "current")

    def test_add_errors(self, session: WithVenv) -> None:
        """Test that missing and non-callable attributes are rejected."""
        module = self._module()
        registry = WrapRegistry(session)

        with pytest.raises(AttributeError):
            registry.add(module, "nope")
        with pytest.raises(TypeError):
            registry.add(module, "constant")

    def test_wrap_method(self, session: WithVenv, environment: Environment) -> None:
        """Test wrapping a method on a class."""

        class Runner:
            def current(self) -> str | None:
                return environment.variables.get("VIRTUAL_ENV")

        registry = WrapRegistry(session)
        registry.add(Runner, "current")

        assert Runner().current() == str(Path("/proj/.venv"))

        registry.clear()

        assert Runner().current() is None
        assert registry.registered() == []

    def test_wrap_static_and_class_methods(
        self, session: WithVenv, environment: Environment
    ) -> None:
        """Test that static and class methods keep their binding while wrapped and after."""

        class Tools:
            @staticmethod
            def ping() -> str | None:
                return environment.variables.get("VIRTUAL_ENV")

            @classmethod
            def owner(cls) -> tuple[type, str | None]:
                return cls, environment.variables.get("VIRTUAL_ENV")

        static_raw = Tools.__dict__["ping"]
        class_raw = Tools.__dict__["owner"]
        registry = WrapRegistry(session)

        registry.add(Tools, "ping")
        registry.add(Tools, "owner")

        assert isinstance(Tools.__dict__["ping"], staticmethod)
        assert isinstance(Tools.__dict__["owner"], classmethod)
        assert Tools().ping() == str(Path("/proj/.venv"))
        assert Tools.ping() == str(Path("/proj/.venv"))
        assert Tools().owner() == (Tools, str(Path("/proj/.venv")))

        registry.clear()

        assert Tools.__dict__["ping"] is static_raw
        assert Tools.__dict__["owner"] is class_raw
        assert Tools().ping() is None
        assert Tools.owner() == (Tools, None)

    def test_remove_inherited_method(self, session: WithVenv, environment: Environment) -> None:
        """Test that unwrapping an inherited method falls back to the base class."""

        class Base:
            def current(self) -> str | None:
                return environment.variables.get("VIRTUAL_ENV")

        class Child(Base):
            pass

        registry = WrapRegistry(session)
        registry.add(Child, "current")

        assert "current" in Child.__dict__
        assert Child().current() == str(Path("/proj/.venv"))
        assert Base().current() is None

        registry.remove(Child, "current")

        assert "current" not in Child.__dict__
        assert Child().current() is None

    def test_wrap_instance_method(self, session: WithVenv, environment: Environment) -> None:
        """Test wrapping a method on one instance leaves other instances alone."""

        class Runner:
            def current(self) -> str | None:
                return environment.variables.get("VIRTUAL_ENV")

        runner, other = Runner(), Runner()
        registry = WrapRegistry(session)

        registry.add(runner, "current")

        assert runner.current() == str(Path("/proj/.venv"))
        assert other.current() is None

        registry.remove(runner, "current")

        assert "current" not in vars(runner)
        assert runner.current() is None
