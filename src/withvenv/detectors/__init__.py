"""
built-in detection strategies.
"""

from __future__ import annotations

from .pipenv import detect_pipenv
from .poetry import detect_poetry
from .project import detect_project_root
from .venv import detect_dot_venv, detect_venv

__all__ = [
    "detect_pipenv",
    "detect_poetry",
    "detect_dot_venv",
    "detect_venv",
    "detect_project_root",
]
