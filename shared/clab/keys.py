"""
Cache keys for notes.

A note is stored under ``<sanitized path>/<level>.json`` relative to its
owner's directory. Sanitization replaces every character outside
``[A-Za-z0-9/._-]`` with ``_``. It is lossy: ``a b`` and ``a_b`` share a key.
The on-disk layout depends on this scheme, so it is kept as is; use
``PathKeyCodec.collides`` to detect the ambiguity.
"""

import posixpath
import re
from enum import Enum


class Level(str, Enum):
    """Granularity of a note."""

    FILE = "file"
    DIRECTORY = "directory"
    MODULE = "module"
    PACKAGE = "package"

    def __str__(self) -> str:
        return self.value


ALL_LEVELS = (Level.FILE, Level.DIRECTORY, Level.MODULE, Level.PACKAGE)

# "@" never survives sanitization, so no real path can map onto this segment.
ROOT_SEGMENT = "@root"
PLACEHOLDER = "_"

_UNSAFE = re.compile(r"[^A-Za-z0-9/._-]")


def normalize_path(path: str) -> str:
    """Canonical repository-relative form of ``path``.

    Backslashes become ``/``, redundant separators and ``.`` segments are
    collapsed, leading slashes are dropped, and the root becomes ``""``.
    """
    path = str(path).replace("\\", "/")
    if not path:
        return ""
    path = posixpath.normpath(path).lstrip("/")
    if path in (".", ""):
        return ""
    return path


def display_path(path: str) -> str:
    """Path as shown to users and models; the root is shown as ``.``."""
    return normalize_path(path) or "."


class PathKeyCodec:
    """Maps (path, level) to a storage key."""

    def __init__(self, placeholder: str = PLACEHOLDER):
        self.placeholder = placeholder

    def sanitize(self, path: str) -> str:
        normalized = normalize_path(path)
        if not normalized:
            return ROOT_SEGMENT
        sanitized = _UNSAFE.sub(self.placeholder, normalized)
        # normpath keeps leading ".." segments; never let them climb out
        segments = [self.placeholder * 2 if seg == ".." else seg for seg in sanitized.split("/")]
        return "/".join(segments)

    def encode(self, path: str, level: Level | str) -> str:
        """Storage key for ``path`` at ``level``, e.g. ``src/app.py/file.json``."""
        level = Level(level)
        return f"{self.sanitize(path)}/{level.value}.json"

    def directory_for(self, path: str) -> str:
        """Key prefix holding every note of ``path`` and of its descendants."""
        return self.sanitize(path)

    def collides(self, first: str, second: str) -> bool:
        """True when two distinct paths share a storage key."""
        return normalize_path(first) != normalize_path(second) and self.sanitize(first) == self.sanitize(second)
