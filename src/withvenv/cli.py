"""
command-line interface for withvenv.

provides commands for finding the virtual environment of a directory,
running a command with it activated, and running the lsp server.
"""

from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from . import __version__
from .config import Config
from .core import StrategyRegistry, WithVenv
from .status import ResolutionStatus


def create_parser() -> argparse.ArgumentParser:
    """
    create the argument parser for the cli.

    returns: `argparse.ArgumentParser`
        configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="withvenv",
        description="run things with a project's python virtual environment activated",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  withvenv find                         # venv for the current directory
  withvenv find ~/proj --json           # output as json
  withvenv status src/                  # resolution state and lighter
  withvenv run -- python -m pytest      # run a command inside the venv
  withvenv run --venv ./env -- pip list # use an explicit venv
  withvenv strategies                   # list detection strategies in order
  withvenv lsp                          # start lsp server
        """,
    )
    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="enable debug logging for troubleshooting",
    )

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    # find command
    find_parser = subparsers.add_parser(
        "find",
        help="print the virtual environment for a directory",
    )
    _ = find_parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="directory to resolve from (default: current directory)",
    )
    _ = find_parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="output in json format (default: text)",
    )
    _ = find_parser.add_argument(
        "--refresh",
        action="store_true",
        help="search again even if a result is cached",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="show resolution state, type label and lighter for a directory",
    )
    _ = status_parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="directory to resolve from (default: current directory)",
    )
    _ = status_parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="output in json format (default: text)",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="run a command with the virtual environment activated",
    )
    _ = run_parser.add_argument(
        "--dir",
        "-d",
        dest="directory",
        default=".",
        help="directory to resolve from (default: current directory)",
    )
    _ = run_parser.add_argument(
        "--venv",
        dest="venv_dir",
        default=None,
        help="use this venv instead of searching (empty string: no venv)",
    )
    _ = run_parser.add_argument(
        "argv",
        nargs=argparse.REMAINDER,
        help="command to run (prefix with -- to pass options)",
    )

    # strategies command
    _ = subparsers.add_parser(
        "strategies",
        help="list enabled detection strategies in evaluation order",
    )

    # lsp command
    lsp_parser = subparsers.add_parser(
        "lsp",
        help="start language server protocol server",
    )
    _ = lsp_parser.add_argument(
        "--tcp",
        action="store_true",
        help="listen on tcp instead of stdio",
    )
    _ = lsp_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="host to bind with --tcp (default: 127.0.0.1)",
    )
    _ = lsp_parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="port to bind with --tcp (default: 2087)",
    )

    return parser


def format_status(status: ResolutionStatus) -> str:
    """
    format a resolution status for text output.

    arguments:
        `status: ResolutionStatus`
            status to format

    returns: `str`
        one `key: value` line per known field
    """
    lines = [f"state: {status.state.value}"]
    if status.venv_path is not None:
        lines.append(f"venv_path: {status.venv_path}")
    if status.label:
        lines.append(f"label: {status.label}")
    if status.overridden:
        lines.append("overridden: true")
    if status.python_version is not None:
        lines.append(f"python_version: {status.python_version}")
    lines.append(f"lighter: {status.lighter()}")
    return "\n".join(lines)


def _resolve_directory(directory: str) -> Path | None:
    path = Path(directory).expanduser()
    if not path.exists():
        print(f"withvenv: error: path not found: {path}", file=sys.stderr)
        return None
    return path.resolve()


def handle_find(args: argparse.Namespace, session: WithVenv) -> int:
    """
    handle the find command.

    returns: `int`
        exit code (0 = resolved, found or not; 1 = bad directory)
    """
    json_output = bool(getattr(args, "json_output", False))
    directory = _resolve_directory(str(getattr(args, "directory", ".")))
    if directory is None:
        return 1

    venv = session.resolve(base_dir=directory, refresh=bool(getattr(args, "refresh", False)))
    if json_output:
        print(json.dumps(session.status(base_dir=directory).to_dict(), indent=2))
    elif venv.path is None:
        print("no virtual environment found")
    else:
        print(venv.path)

    return 0


def handle_status(args: argparse.Namespace, session: WithVenv) -> int:
    """
    handle the status command.

    returns: `int`
        exit code (0 = success, 1 = bad directory)
    """
    json_output = bool(getattr(args, "json_output", False))
    directory = _resolve_directory(str(getattr(args, "directory", ".")))
    if directory is None:
        return 1

    _ = session.resolve(base_dir=directory)
    status = session.status(base_dir=directory)

    if json_output:
        print(json.dumps(status.to_dict(), indent=2))
    else:
        print(format_status(status))

    return 0


def handle_run(args: argparse.Namespace, session: WithVenv) -> int:
    """
    handle the run command.

    returns: `int`
        exit code of the command, 127 if it could not be started,
        2 if no command was given, 1 for a bad directory
    """
    argv_raw = getattr(args, "argv", None)
    argv: list[str] = list(argv_raw) if argv_raw else []  # pyright: ignore[reportAny]
    if argv and argv[0] == "--":
        argv = argv[1:]
    if not argv:
        print("withvenv: error: no command given", file=sys.stderr)
        return 2

    directory = _resolve_directory(str(getattr(args, "directory", ".")))
    if directory is None:
        return 1

    venv_dir_raw = getattr(args, "venv_dir", None)
    if venv_dir_raw is not None:
        venv_dir = str(venv_dir_raw)  # pyright: ignore[reportAny]
        # relative to where the user typed it, not to --dir; "" stays "no venv"
        if venv_dir:
            venv_dir = str(Path(venv_dir).expanduser().resolve())
        session.set_override(directory, venv_dir, base_dir=directory)

    def run_command() -> int:
        # resolve the executable against the activated exec path
        executable = session.environment.which(argv[0]) or argv[0]
        return subprocess.run(
            [executable, *argv[1:]],
            cwd=str(directory),
            env=dict(session.environment.variables),
        ).returncode

    try:
        return session.run(run_command, key=directory, base_dir=directory)
    except (FileNotFoundError, PermissionError) as e:
        print(f"withvenv: error: cannot run {argv[0]!r}: {e}", file=sys.stderr)
        return 127


def handle_strategies(session: WithVenv) -> int:
    """print the enabled strategies, one per line."""
    for name in session.registry.names():
        print(name)
    return 0


def handle_lsp(args: argparse.Namespace, config: Config) -> int:
    """
    handle the lsp command.

    returns: `int`
        exit code once the server stops
    """
    from .lsp_server import run_server_stdio, run_server_tcp

    if bool(getattr(args, "tcp", False)):
        run_server_tcp(
            host=str(getattr(args, "host", "127.0.0.1")),
            port=int(getattr(args, "port", 2087)),
            config=config,
        )
    else:
        run_server_stdio(config)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """
    main entry point for the cli.

    arguments:
        `argv: Sequence[str] | None`
            command line arguments. if None, uses sys.argv.

    returns: `int`
        exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if bool(getattr(args, "debug", False)):
        logging.basicConfig(
            level=logging.DEBUG,
            format="[%(name)s] %(message)s",
        )

    command = getattr(args, "command", None)
    if command is None:
        parser.print_help()
        return 0

    config = Config.load()

    if command == "lsp":
        return handle_lsp(args, config)

    try:
        registry = StrategyRegistry.from_names(config.strategies)
    except KeyError as e:
        print(f"withvenv: error: {e.args[0]}", file=sys.stderr)
        return 2

    session = WithVenv(config=config, registry=registry)

    if command == "find":
        return handle_find(args, session)
    if command == "status":
        return handle_status(args, session)
    if command == "run":
        return handle_run(args, session)
    if command == "strategies":
        return handle_strategies(session)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
