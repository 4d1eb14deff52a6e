"""Repository-level context shared by the update, run-agent and coaching flows."""

import json
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from clab_logging import get_logger

from .staleness import to_millis, utc_now
from .traversal import DEFAULT_EXCLUSIONS, TraversalEngine


logger = get_logger("repository")

STRUCTURE_LIMIT = 100
STRUCTURE_DEPTH = 10


def _package_json(root: Path) -> dict[str, Any] | None:
    path = root / "package.json"
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read package.json", error=str(e))
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring package.json that is not an object", kind=type(data).__name__)
        return None
    return {
        "name": data.get("name"),
        "description": data.get("description"),
        "version": data.get("version"),
        "dependencies": data.get("dependencies") or {},
    }


def _pyproject(root: Path) -> dict[str, Any] | None:
    path = root / "pyproject.toml"
    if not path.is_file():
        return None
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read pyproject.toml", error=str(e))
        return None
    project = data.get("project")
    if not isinstance(project, dict):
        return None
    return {
        "name": project.get("name"),
        "description": project.get("description"),
        "version": project.get("version"),
        "dependencies": project.get("dependencies") or [],
    }


def package_info(root: Path | str) -> dict[str, Any] | None:
    """Name, description, version and dependencies from the root manifest."""
    root = Path(root)
    return _package_json(root) or _pyproject(root)


def get_repository_context(
    root: Path | str,
    exclusions: Iterable[str] | None = DEFAULT_EXCLUSIONS,
    limit: int = STRUCTURE_LIMIT,
) -> dict[str, Any]:
    """Describe the repository for prompts that look at it as a whole."""
    root = Path(root)
    engine = TraversalEngine(root, max_depth=STRUCTURE_DEPTH, exclusions=exclusions)

    files: list[str] = []
    languages: list[str] = []
    total = 0
    for item in engine.files():
        total += 1
        if len(files) < limit:
            files.append(item.path)
        name = item.path.rsplit("/", 1)[-1]
        if "." in name:
            ext = name.rsplit(".", 1)[-1]
            if ext not in languages:
                languages.append(ext)

    return {
        "path": str(root),
        "timestamp": to_millis(utc_now()),
        "packageInfo": package_info(root),
        "structure": files,
        "languages": languages,
        "stats": {"totalFiles": total},
    }
