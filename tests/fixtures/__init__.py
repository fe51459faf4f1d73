"""test fixtures and utilities for withvenv.

this package contains helpers that lay out fake virtual environments
and package-manager executables on disk.
"""

from __future__ import annotations

from .venvs import make_fake_tool, make_venv

__all__ = ["make_fake_tool", "make_venv"]
