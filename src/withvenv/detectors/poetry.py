"""
poetry virtual environment detector.
"""

from __future__ import annotations

from ..models import DetectionResult, SearchContext, ToolType
from .utils import query_tool


def detect_poetry(search: SearchContext) -> DetectionResult | None:
    """
    detect poetry virtual environment.

    arguments:
        search: directory, environment and configuration to search with

    returns: DetectionResult from `poetry env info --path`, None otherwise
    """
    venv_path = query_tool(search, "poetry", ["env", "info", "--path"])
    if venv_path is None:
        return None

    return DetectionResult(venv_path=venv_path, label=ToolType.POETRY.value)
