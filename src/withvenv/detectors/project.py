"""
project-root-relative venv detector.
"""

from __future__ import annotations

import logging

from ..models import DetectionResult, SearchContext, ToolType
from ..project import find_project_root
from .venv import detect_in

logger = logging.getLogger(__name__)


def detect_project_root(search: SearchContext) -> DetectionResult | None:
    """
    detect a conventional venv directory rooted at the project root.

    the project root comes from marker-based discovery; with no markers
    configured, or no root found, this yields nothing.

    arguments:
        `search: SearchContext`
            directory, environment and configuration to search with

    returns: `DetectionResult | None`
        venv under the project root, labelled "project-root:<name>"
    """
    if not search.config.project_markers:
        return None

    root = find_project_root(search.base_dir, markers=search.config.project_markers)
    if root is None:
        logger.debug("no project root above %s", search.base_dir)
        return None

    result = detect_in(search, root)
    if result is None:
        return None

    return DetectionResult(
        venv_path=result.venv_path,
        label=f"{ToolType.PROJECT_ROOT.value}:{result.label}",
    )
