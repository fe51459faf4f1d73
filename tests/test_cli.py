"""tests for the cli module."""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from withvenv import __version__
from withvenv.cli import create_parser, format_status, main
from withvenv.models import ResolutionState
from withvenv.status import ResolutionStatus

from tests.fixtures import make_venv


@pytest.fixture(autouse=True)
def directory_strategies_only():
    """keep real pipenv/poetry installations out of cli runs."""
    os.environ["WITHVENV_STRATEGIES"] = "dot-venv,venv"
    yield


class TestCreateParser:
    """tests for the create_parser function."""

    def test_parser_creation(self) -> None:
        """Test that parser is created successfully."""
        parser = create_parser()

        assert parser.prog == "withvenv"

    def test_find_subcommand(self) -> None:
        """Test find subcommand parsing."""
        args = create_parser().parse_args(["find", "/tmp", "--json"])

        assert args.command == "find"
        assert args.directory == "/tmp"
        assert args.json_output is True
        assert args.refresh is False

    def test_run_subcommand(self) -> None:
        """Test run subcommand parsing keeps the command intact."""
        args = create_parser().parse_args(["run", "--dir", "/p", "--", "python", "-V"])

        assert args.command == "run"
        assert args.directory == "/p"
        assert [a for a in args.argv if a != "--"] == ["python", "-V"]

    def test_lsp_subcommand(self) -> None:
        """Test lsp subcommand parsing."""
        args = create_parser().parse_args(["lsp", "--tcp", "--port", "9000"])

        assert args.tcp is True
        assert args.port == 9000


class TestMain:
    """tests for the main entry point."""

    def test_version(self, capsys) -> None:
        """Test that --version works."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0

        assert __version__ in capsys.readouterr().out

    def test_no_command(self, capsys) -> None:
        """Test that no command prints help."""
        assert main([]) == 0
        assert "withvenv" in capsys.readouterr().out

    def test_find(self, dot_venv_project: Path, capsys) -> None:
        """Test that find prints the venv path."""
        result = main(["find", str(dot_venv_project / "src")])

        assert result == 0
        assert capsys.readouterr().out.strip() == str((dot_venv_project / ".venv").resolve())

    def test_find_nothing(self, tmp_path: Path, capsys) -> None:
        """Test find when no venv applies."""
        result = main(["find", str(tmp_path)])

        assert result == 0
        assert "no virtual environment found" in capsys.readouterr().out

    def test_find_json(self, dot_venv_project: Path, capsys) -> None:
        """Test json output of find."""
        result = main(["find", str(dot_venv_project), "--json"])

        assert result == 0
        data = json.loads(capsys.readouterr().out)
        assert data["state"] == "found"
        assert data["label"] == ".venv"
        assert data["lighter"] == "venv[.venv]"

    def test_find_missing_directory(self, capsys) -> None:
        """Test error handling for a nonexistent directory."""
        result = main(["find", "/nonexistent/path/12345"])

        assert result == 1
        assert "error" in capsys.readouterr().err

    def test_status(self, dot_venv_project: Path, capsys) -> None:
        """Test status text output."""
        result = main(["status", str(dot_venv_project)])

        assert result == 0
        out = capsys.readouterr().out
        assert "state: found" in out
        assert "label: .venv" in out
        assert "lighter: venv[.venv]" in out

    def test_strategies(self, capsys) -> None:
        """Test listing strategies from configuration."""
        assert main(["strategies"]) == 0
        assert capsys.readouterr().out.split() == ["dot-venv", "venv"]

    def test_unknown_strategy(self, capsys) -> None:
        """Test that a misconfigured strategy list is reported."""
        os.environ["WITHVENV_STRATEGIES"] = "dot-venv,conda"

        assert main(["strategies"]) == 2
        assert "conda" in capsys.readouterr().err

    def test_run_activates(self, dot_venv_project: Path) -> None:
        """Test that run executes the command inside the venv."""
        seen: dict[str, str] = {}

        def fake_run(argv: list[str], **kwargs) -> subprocess.CompletedProcess[str]:
            seen.update(kwargs["env"])
            return subprocess.CompletedProcess(args=argv, returncode=3)

        with mock.patch("withvenv.cli.subprocess.run", side_effect=fake_run):
            result = main(["run", "--dir", str(dot_venv_project), "--", "true"])

        assert result == 3
        assert seen["VIRTUAL_ENV"] == str((dot_venv_project / ".venv").resolve())
        assert "VIRTUAL_ENV" not in os.environ

    def test_run_with_explicit_venv(self, tmp_path: Path) -> None:
        """Test that --venv overrides the search."""
        venv = make_venv(tmp_path / "custom")
        seen: dict[str, str] = {}

        def fake_run(argv: list[str], **kwargs) -> subprocess.CompletedProcess[str]:
            seen.update(kwargs["env"])
            return subprocess.CompletedProcess(args=argv, returncode=0)

        with mock.patch("withvenv.cli.subprocess.run", side_effect=fake_run):
            result = main(["run", "--dir", str(tmp_path), "--venv", str(venv), "--", "true"])

        assert result == 0
        assert seen["VIRTUAL_ENV"] == str(venv.resolve())

    def test_run_relative_venv_with_dir(self, tmp_path: Path, monkeypatch) -> None:
        """Test that a relative --venv is taken from the invoking directory, not --dir."""
        venv = make_venv(tmp_path / "env")
        (tmp_path / "sub").mkdir()
        monkeypatch.chdir(tmp_path)
        seen: dict[str, str] = {}

        def fake_run(argv: list[str], **kwargs) -> subprocess.CompletedProcess[str]:
            seen.update(kwargs["env"])
            seen["cwd"] = kwargs["cwd"]
            return subprocess.CompletedProcess(args=argv, returncode=0)

        with mock.patch("withvenv.cli.subprocess.run", side_effect=fake_run):
            result = main(["run", "--dir", "sub", "--venv", "./env", "--", "true"])

        assert result == 0
        expected = venv.resolve()
        assert seen["cwd"] == str((tmp_path / "sub").resolve())
        assert seen["VIRTUAL_ENV"] == str(expected)
        assert seen["PATH"].split(os.pathsep)[0] == str(expected / "bin")

    def test_run_empty_venv_disables(self, dot_venv_project: Path) -> None:
        """Test that --venv "" runs without any venv even when one would be found."""
        seen: dict[str, str] = {}

        def fake_run(argv: list[str], **kwargs) -> subprocess.CompletedProcess[str]:
            seen.update(kwargs["env"])
            return subprocess.CompletedProcess(args=argv, returncode=0)

        with mock.patch("withvenv.cli.subprocess.run", side_effect=fake_run):
            result = main(["run", "--dir", str(dot_venv_project), "--venv", "", "--", "true"])

        assert result == 0
        assert "VIRTUAL_ENV" not in seen

    def test_run_missing_command(self, tmp_path: Path, capsys) -> None:
        """Test that a command that cannot be started exits 127."""
        with mock.patch("withvenv.cli.subprocess.run", side_effect=FileNotFoundError("nope")):
            result = main(["run", "--dir", str(tmp_path), "--", "no-such-command"])

        assert result == 127
        assert "cannot run" in capsys.readouterr().err

    def test_run_without_command(self, capsys) -> None:
        """Test that run with nothing to run is a usage error."""
        assert main(["run"]) == 2
        assert "no command" in capsys.readouterr().err


class TestFormatStatus:
    """tests for text formatting of a status."""

    def test_not_found(self) -> None:
        """Test formatting of a NOT_FOUND status."""
        text = format_status(ResolutionStatus(ResolutionState.NOT_FOUND))

        assert text.splitlines() == ["state: not_found", "lighter: venv[-]"]
