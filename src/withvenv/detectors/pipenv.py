"""
pipenv virtual environment detector.
"""

from __future__ import annotations

from ..models import DetectionResult, SearchContext, ToolType
from .utils import query_tool


def detect_pipenv(search: SearchContext) -> DetectionResult | None:
    """
    detect a pipenv-managed virtual environment via `pipenv --venv`.

    arguments:
        `search: SearchContext`
            directory, environment and configuration to search with

    returns: `DetectionResult | None`
        the reported venv directory, or none when pipenv is missing
        or does not know of an environment here
    """
    venv_path = query_tool(search, "pipenv", ["--venv"])
    if venv_path is None:
        return None

    return DetectionResult(venv_path=venv_path, label=ToolType.PIPENV.value)
