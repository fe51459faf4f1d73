"""
language server protocol implementation for withvenv.

gives editors the host-facing surface of withvenv: every open document is
a resolution context, and commands refresh it, report its status, or run
a program with its virtual environment activated.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, final
from urllib.parse import unquote

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from . import __version__
from .config import Config
from .core import WithVenv

CMD_REFRESH = "withvenv.refresh"
CMD_STATUS = "withvenv.status"
CMD_RUN = "withvenv.run"


def uri_to_path(uri: str) -> Path | None:
    """
    convert a file uri to a filesystem path.

    arguments:
        `uri: str`
            document uri

    returns: `Path | None`
        the path, or none for non-file uris
    """
    if not uri.startswith("file://"):
        return None

    # file:///path/to/file.py -> /path/to/file.py (unix)
    # file:///B%3A/path/to/file.py -> B:/path/to/file.py (windows, url encoded)
    file_path = unquote(uri[7:])

    # strip leading slash if followed by a drive letter
    if (
        len(file_path) >= 3
        and file_path[0] == "/"
        and file_path[1].isalpha()
        and file_path[2] == ":"
    ):
        file_path = file_path[1:]

    return Path(file_path)


def _flatten_arguments(arguments: tuple[Any, ...]) -> list[Any]:
    # executeCommand arguments may arrive as one list or spread out
    if len(arguments) == 1 and isinstance(arguments[0], list):
        return list(arguments[0])  # pyright: ignore[reportUnknownArgumentType]
    return list(arguments)


@final
class WithVenvLanguageServer(LanguageServer):
    """
    lsp server exposing withvenv to editors.

    provides:
    - a resolution context per open document, dropped on close
    - `withvenv.refresh` to force re-resolution
    - `withvenv.status` to query the cached state and lighter
    - `withvenv.run` to run a program inside the document's venv

    attributes:
        `config: Config`
            configuration settings
        `session: WithVenv`
            resolution and activation state
    """

    config: Config
    session: WithVenv

    def __init__(self, config: Config | None = None) -> None:
        """
        initialise the lsp server.

        arguments:
            `config: Config | None`
                configuration settings (default: auto-load from workspace)
        """
        super().__init__("withvenv", __version__)  # pyright: ignore[reportUnknownMemberType]

        self.config = config or Config.load()
        self.session = WithVenv(config=self.config)

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register lsp method and command handlers."""

        @self.feature(types.TEXT_DOCUMENT_DID_OPEN)
        def on_open(params: types.DidOpenTextDocumentParams) -> None:
            """Handle document open."""
            self.open_document(params.text_document.uri)

        _ = on_open  # registered via decorator

        @self.feature(types.TEXT_DOCUMENT_DID_CLOSE)
        def on_close(params: types.DidCloseTextDocumentParams) -> None:
            """Handle document close."""
            _ = self.session.close(params.text_document.uri)

        _ = on_close  # registered via decorator

        @self.command(CMD_REFRESH)
        def refresh(*arguments: Any) -> dict[str, Any] | None:
            """Force re-resolution for a document."""
            args = _flatten_arguments(arguments)
            return self.refresh_document(str(args[0])) if args else None

        _ = refresh  # registered via decorator

        @self.command(CMD_STATUS)
        def status(*arguments: Any) -> dict[str, Any] | None:
            """Report the cached resolution for a document."""
            args = _flatten_arguments(arguments)
            return self.document_status(str(args[0])) if args else None

        _ = status  # registered via decorator

        # the program blocks; keep it off the event loop
        @self.command(CMD_RUN)
        @self.thread()
        def run(*arguments: Any) -> dict[str, Any] | None:
            """Run a program inside a document's venv."""
            args = _flatten_arguments(arguments)
            if len(args) < 2:
                return None
            return self.run_in_document(str(args[0]), [str(a) for a in args[1]])

        _ = run  # registered via decorator

    def _base_dir(self, uri: str) -> Path:
        path = uri_to_path(uri)
        if path is None:
            return Path.cwd()
        return path.parent

    def open_document(self, uri: str) -> None:
        """
        create the resolution context for a newly opened document.

        arguments:
            `uri: str`
                document uri
        """
        _ = self.session.resolve(key=uri, base_dir=self._base_dir(uri))
        status = self.session.status(key=uri)
        self.window_log_message(
            types.LogMessageParams(
                type=types.MessageType.Log,
                message=f"withvenv: {status.lighter()} for {uri}",
            )
        )

    def refresh_document(self, uri: str) -> dict[str, Any]:
        """
        search again for a document's venv.

        returns: `dict[str, Any]`
            the new status
        """
        _ = self.session.refresh(key=uri, base_dir=self._base_dir(uri))
        return self.session.status(key=uri).to_dict()

    def document_status(self, uri: str) -> dict[str, Any]:
        """
        the cached resolution of a document, without searching.

        returns: `dict[str, Any]`
            state, path, label and lighter
        """
        return self.session.status(key=uri, base_dir=self._base_dir(uri)).to_dict()

    def run_in_document(self, uri: str, argv: list[str]) -> dict[str, Any]:
        """
        run a program with a document's venv activated.

        arguments:
            `uri: str`
                document uri selecting the context
            `argv: list[str]`
                program and arguments

        returns: `dict[str, Any]`
            `returncode`, `stdout` and `stderr`; a program that cannot be
            started reports return code 127
        """
        base_dir = self._base_dir(uri)
        environment = self.session.environment

        def run_program() -> subprocess.CompletedProcess[str]:
            executable = environment.which(argv[0]) or argv[0]
            return subprocess.run(
                [executable, *argv[1:]],
                capture_output=True,
                text=True,
                cwd=str(base_dir),
                env=dict(environment.variables),
            )

        try:
            result = self.session.run(run_program, key=uri, base_dir=base_dir)
        except OSError as e:
            return {"returncode": 127, "stdout": "", "stderr": str(e)}

        return {
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }


def create_server(config: Config | None = None) -> WithVenvLanguageServer:
    """
    create and configure the lsp server.

    arguments:
        `config: Config | None`
            configuration settings

    returns: `WithVenvLanguageServer`
        configured lsp server
    """
    return WithVenvLanguageServer(config)


def run_server_stdio(config: Config | None = None) -> None:
    """
    run the lsp server over stdio.

    arguments:
        `config: Config | None`
            configuration settings
    """
    server = create_server(config)
    server.start_io()


def run_server_tcp(host: str = "127.0.0.1", port: int = 2087, config: Config | None = None) -> None:
    """
    run the lsp server over tcp.

    arguments:
        `host: str`
            host address to bind
        `port: int`
            port to listen on
        `config: Config | None`
            configuration settings
    """
    server = create_server(config)
    server.start_tcp(host, port)
