"""
core resolution logic for withvenv.

a `Resolver` turns a `ResolutionContext` into a `VenvPath` by checking the
context's override, then its cache, then running the registered detection
strategies in order. `WithVenv` ties a resolver, a context store and an
environment together and is the entry point most callers want.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ParamSpec, TypeVar, final

from .activation import Environment, activated, get_process_environment
from .config import Config
from .detectors import (
    detect_dot_venv,
    detect_pipenv,
    detect_poetry,
    detect_project_root,
    detect_venv,
)
from .models import DetectionResult, ResolutionState, SearchContext, VenvPath
from .status import ResolutionStatus, read_python_version

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DetectionStrategy = Callable[[SearchContext], DetectionResult | None]

# built-in strategies by name, in their default order
BUILTIN_STRATEGIES: dict[str, DetectionStrategy] = {
    "pipenv": detect_pipenv,
    "poetry": detect_poetry,
    "dot-venv": detect_dot_venv,
    "venv": detect_venv,
    "project-root": detect_project_root,
}


@final
class StrategyRegistry:
    """
    ordered, mutable list of named detection strategies.

    attributes:
        `_strategies: list[tuple[str, DetectionStrategy]]`
            registered strategies in evaluation order
    """

    _strategies: list[tuple[str, DetectionStrategy]]

    def __init__(self, strategies: list[tuple[str, DetectionStrategy]] | None = None) -> None:
        self._strategies = []
        for name, strategy in strategies or []:
            self.register(name, strategy)

    @classmethod
    def from_names(cls, names: list[str]) -> StrategyRegistry:
        """
        build a registry of built-in strategies.

        arguments:
            `names: list[str]`
                built-in strategy names, in the desired order

        returns: `StrategyRegistry`
            registry holding those strategies

        raises:
            `KeyError`
                if a name is not a built-in strategy
        """
        unknown = [name for name in names if name not in BUILTIN_STRATEGIES]
        if unknown:
            raise KeyError(f"unknown detection strategies: {', '.join(unknown)}")
        return cls([(name, BUILTIN_STRATEGIES[name]) for name in names])

    @classmethod
    def default(cls) -> StrategyRegistry:
        return cls(list(BUILTIN_STRATEGIES.items()))

    def register(
        self,
        name: str,
        strategy: DetectionStrategy,
        *,
        index: int | None = None,
        before: str | None = None,
        after: str | None = None,
    ) -> None:
        """
        add a strategy, or replace one registered under the same name.

        a replaced strategy keeps its position unless a position is given.
        with no position a new strategy is appended.

        arguments:
            `name: str`
                unique strategy name
            `strategy: DetectionStrategy`
                the detection callable
            `index: int | None`
                explicit position
            `before: str | None`
                insert in front of this strategy
            `after: str | None`
                insert right after this strategy

        raises:
            `ValueError`
                if more than one position argument is given
            `KeyError`
                if `before` or `after` names an unregistered strategy
        """
        if sum(arg is not None for arg in (index, before, after)) > 1:
            raise ValueError("give at most one of index, before and after")

        existing = self._position(name)
        if existing is not None and index is None and before is None and after is None:
            self._strategies[existing] = (name, strategy)
            return

        if existing is not None:
            del self._strategies[existing]

        if before is not None:
            position = self._require(before)
        elif after is not None:
            position = self._require(after) + 1
        elif index is not None:
            position = index
        else:
            position = len(self._strategies)

        self._strategies.insert(position, (name, strategy))

    def unregister(self, name: str) -> DetectionStrategy:
        """
        remove a strategy by name.

        returns: `DetectionStrategy`
            the removed strategy

        raises:
            `KeyError`
                if no strategy has that name
        """
        _, strategy = self._strategies.pop(self._require(name))
        return strategy

    def move(self, name: str, index: int) -> None:
        """move a registered strategy to a new position."""
        self.register(name, self.get(name), index=index)

    def get(self, name: str) -> DetectionStrategy:
        return self._strategies[self._require(name)][1]

    def names(self) -> list[str]:
        return [name for name, _ in self._strategies]

    def __iter__(self) -> Iterator[tuple[str, DetectionStrategy]]:
        return iter(list(self._strategies))

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: object) -> bool:
        return any(registered == name for registered, _ in self._strategies)

    def _position(self, name: str) -> int | None:
        for i, (registered, _) in enumerate(self._strategies):
            if registered == name:
                return i
        return None

    def _require(self, name: str) -> int:
        position = self._position(name)
        if position is None:
            raise KeyError(f"no detection strategy named {name!r}")
        return position


@dataclass
class ResolutionContext:
    """
    the scope across which a venv resolution is cached.

    attributes:
        `key: Hashable`
            identity of the context (file path, uri, directory)
        `base_dir: Path`
            directory detection starts from
        `override: str | None`
            explicit venv path. none means unset, an empty string
            disables activation for this context.
        `cached: VenvPath`
            last resolution result
        `label: str | None`
            what matched during the last search, for display
    """

    key: Hashable
    base_dir: Path
    override: str | None = None
    cached: VenvPath = field(default_factory=VenvPath.unset)
    label: str | None = None


@final
class ContextStore:
    """
    resolution contexts indexed by their key.

    contexts are created on first use and live until `close()`.
    """

    _contexts: dict[Hashable, ResolutionContext]

    def __init__(self) -> None:
        self._contexts = {}

    def get_or_create(
        self,
        key: Hashable,
        base_dir: Path,
        override: str | None = None,
    ) -> ResolutionContext:
        """
        fetch the context for `key`, creating it if needed.

        arguments:
            `key: Hashable`
                context identity
            `base_dir: Path`
                base directory for a new context
            `override: str | None`
                initial override for a new context

        returns: `ResolutionContext`
            existing or newly created context
        """
        context = self._contexts.get(key)
        if context is None:
            context = ResolutionContext(key=key, base_dir=base_dir, override=override)
            self._contexts[key] = context
            logger.debug("created resolution context for %s", key)
        return context

    def get(self, key: Hashable) -> ResolutionContext | None:
        return self._contexts.get(key)

    def close(self, key: Hashable) -> bool:
        """evict a context; returns whether one existed."""
        return self._contexts.pop(key, None) is not None

    def __iter__(self) -> Iterator[ResolutionContext]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, key: object) -> bool:
        return key in self._contexts


@final
class Resolver:
    """
    override-or-cache-or-search resolution of a context's venv.

    attributes:
        `registry: StrategyRegistry`
            strategies to try, in order
        `config: Config`
            configuration handed to strategies
        `environment: Environment`
            environment handed to strategies for tool lookup
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        config: Config,
        environment: Environment,
    ) -> None:
        self.registry = registry
        self.config = config
        self.environment = environment

    def resolve(self, context: ResolutionContext, refresh: bool = False) -> VenvPath:
        """
        resolve the venv for a context.

        arguments:
            `context: ResolutionContext`
                the context to resolve for; its cache and label are updated
            `refresh: bool`
                ignore a cached result and search again

        returns: `VenvPath`
            `FOUND` or `NOT_FOUND`; never raises for a missing venv
        """
        if context.override is not None:
            # trusted as-is, not checked against the disk
            if context.override == "":
                return VenvPath.not_found()
            return VenvPath.found(context.override)

        if context.cached.is_resolved and not refresh:
            return context.cached

        context.label = None
        search = SearchContext(
            base_dir=context.base_dir,
            environment=self.environment,
            config=self.config,
        )

        for name, strategy in self.registry:
            logger.debug("trying strategy %s in %s", name, context.base_dir)
            result = self._run_strategy(name, strategy, search)
            if result is not None:
                logger.debug("strategy %s found %s", name, result.venv_path)
                context.label = result.label
                context.cached = VenvPath.found(result.venv_path)
                return context.cached

        logger.debug("no virtual environment for %s", context.base_dir)
        context.cached = VenvPath.not_found()
        return context.cached

    @staticmethod
    def _run_strategy(
        name: str,
        strategy: DetectionStrategy,
        search: SearchContext,
    ) -> DetectionResult | None:
        try:
            return strategy(search)
        except Exception:
            logger.exception("detection strategy %s failed", name)
            return None


@final
class WithVenv:
    """
    resolve-then-activate entry point.

    attributes:
        `config: Config`
            configuration; `config.venv_dir` seeds each new context's override
        `registry: StrategyRegistry`
            detection strategies
        `environment: Environment`
            environment that activations mutate
        `contexts: ContextStore`
            per-context resolution cache
        `resolver: Resolver`
            the resolver working over the above

    usage:
        ```python
        session = WithVenv()
        session.run(subprocess.run, ["python", "--version"], base_dir="~/proj")
        ```
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: StrategyRegistry | None = None,
        environment: Environment | None = None,
    ) -> None:
        self.config = config or Config.load()
        self.registry = registry or StrategyRegistry.from_names(self.config.strategies)
        self.environment = environment if environment is not None else get_process_environment()
        self.contexts = ContextStore()
        self.resolver = Resolver(self.registry, self.config, self.environment)

    def context(
        self,
        key: Hashable | None = None,
        base_dir: str | Path | None = None,
    ) -> ResolutionContext:
        """
        get or create a resolution context.

        arguments:
            `key: Hashable | None`
                context identity (default: the resolved base directory)
            `base_dir: str | Path | None`
                directory to search from (default: current directory)

        returns: `ResolutionContext`
            the context
        """
        directory = Path(base_dir).expanduser().resolve() if base_dir is not None else Path.cwd()
        if key is None:
            key = directory
        return self.contexts.get_or_create(key, directory, override=self.config.venv_dir)

    def resolve(
        self,
        key: Hashable | None = None,
        base_dir: str | Path | None = None,
        refresh: bool = False,
    ) -> VenvPath:
        return self.resolver.resolve(self.context(key, base_dir), refresh=refresh)

    def refresh(self, key: Hashable | None = None, base_dir: str | Path | None = None) -> VenvPath:
        """force a new search for a context, ignoring its cached result."""
        return self.resolve(key, base_dir, refresh=True)

    @contextmanager
    def activate(
        self,
        key: Hashable | None = None,
        base_dir: str | Path | None = None,
    ) -> Generator[VenvPath, None, None]:
        """
        context manager form of `run`.

        yields: `VenvPath`
            the resolution the block runs under
        """
        venv = self.resolve(key, base_dir)
        with activated(venv.path, self.environment):
            yield venv

    def run(
        self,
        work: Callable[..., T],
        *args: Any,
        key: Hashable | None = None,
        base_dir: str | Path | None = None,
        **kwargs: Any,
    ) -> T:
        """
        call `work(*args, **kwargs)` with the context's venv activated.

        `key` and `base_dir` are consumed here and never reach `work`;
        when `work` itself takes arguments of those names, bind them
        first with `functools.partial` or a lambda.

        arguments:
            `work: Callable[..., T]`
                the unit of work
            `key: Hashable | None`
                context identity
            `base_dir: str | Path | None`
                directory to resolve from

        returns: `T`
            the result of `work`; its exceptions propagate after restoration
        """
        with self.activate(key, base_dir):
            return work(*args, **kwargs)

    def set_override(self, key: Hashable, venv_dir: str | Path, base_dir: str | Path | None = None) -> None:
        """pin a context to a venv path; an empty string disables activation."""
        self.context(key, base_dir).override = str(venv_dir)

    def clear_override(self, key: Hashable) -> None:
        if (context := self.contexts.get(key)) is not None:
            context.override = None

    def status(self, key: Hashable | None = None, base_dir: str | Path | None = None) -> ResolutionStatus:
        """
        the current resolution state of a context, without searching.

        returns: `ResolutionStatus`
            state, path and label for display
        """
        context = self.context(key, base_dir)

        if context.override is not None:
            venv = self.resolver.resolve(context)
            label = None
        else:
            venv = context.cached
            label = context.label

        python_version = read_python_version(venv.path) if venv.path is not None else None
        return ResolutionStatus(
            state=venv.state,
            venv_path=venv.path,
            label=label,
            overridden=context.override is not None,
            python_version=python_version,
        )

    def close(self, key: Hashable) -> bool:
        """forget a context, e.g. when its document is closed."""
        return self.contexts.close(key)

    def wrap(self, fn: Callable[P, T], base_dir: str | Path | None = None) -> Callable[P, T]:
        """
        return `fn` wrapped so every call runs with the venv activated.

        see `withvenv.wrapping.always_with_venv`.
        """
        from .wrapping import always_with_venv

        return always_with_venv(fn, session=self, base_dir=base_dir)


__all__ = [
    "BUILTIN_STRATEGIES",
    "ContextStore",
    "DetectionStrategy",
    "ResolutionContext",
    "ResolutionState",
    "Resolver",
    "StrategyRegistry",
    "WithVenv",
]
