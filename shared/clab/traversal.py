"""
Depth-bounded, exclusion-aware repository traversal.

Produces WorkItems lazily in a deterministic order:

- files: depth-first, entries of each directory in lexical order with files
  and sub-directories interleaved by name. A file is produced when its
  containing directory is at depth <= max_depth (the root is depth 0).
- directories: pre-order, depth 1..max_depth.
- modules: flat scan of the root for known manifest files.

Symlinked directories are followed, but every directory is entered at most
once per walk (keyed by device and inode), so symlink cycles terminate.
"""

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from clab_logging import get_logger

from .keys import Level, normalize_path


logger = get_logger("traversal")

# Checked in this order during module detection
MANIFEST_FILES = (
    "package.json",
    "go.mod",
    "Cargo.toml",
    "pom.xml",
    "build.gradle",
    "requirements.txt",
    "setup.py",
    "pyproject.toml",
)

DEFAULT_EXCLUSIONS = (".git", "node_modules", ".consciousness-lab", "dist", "build")

# Suffixes a deep dive analyzes unless configured otherwise
DEFAULT_FILE_EXTENSIONS = (
    ".js",
    ".ts",
    ".py",
    ".go",
    ".rs",
    ".java",
    ".cpp",
    ".c",
    ".h",
    ".sh",
    ".md",
    ".json",
    ".yml",
    ".yaml",
)

# Larger files are skipped rather than read into a prompt
MAX_FILE_SIZE = 100_000

ALLOWED_HIDDEN = ".github"


@dataclass(frozen=True)
class WorkItem:
    """One schedulable unit of analysis."""

    path: str
    level: Level
    depth: int


@dataclass(frozen=True)
class ExclusionSet:
    """Substring exclusions plus the hidden-entry rule.

    An entry is excluded when its repository-relative path contains any of
    ``patterns``, or when its own name starts with ``.`` (except
    ``allowed_hidden``).
    """

    patterns: tuple[str, ...] = DEFAULT_EXCLUSIONS
    allowed_hidden: str = ALLOWED_HIDDEN

    @classmethod
    def of(cls, patterns: Iterable[str] | None) -> "ExclusionSet":
        if patterns is None:
            return cls()
        return cls(patterns=tuple(p for p in patterns if p))

    def excludes(self, rel_path: str) -> bool:
        rel_path = normalize_path(rel_path)
        if not rel_path:
            return False
        name = rel_path.rsplit("/", 1)[-1]
        if name.startswith(".") and name != self.allowed_hidden:
            return True
        return any(pattern in rel_path for pattern in self.patterns)


@dataclass
class Entry:
    """A visible directory entry."""

    name: str
    rel_path: str
    is_dir: bool
    size: int = 0


@dataclass
class _Walk:
    """Per-walk state; each traversal call gets its own."""

    visited: set[tuple[int, int]] = field(default_factory=set)

    def enter(self, directory: Path) -> bool:
        """Record ``directory``; False if this walk has already been inside it."""
        try:
            st = directory.stat()
        except OSError as e:
            logger.warning("Cannot stat directory", path=str(directory), error=str(e))
            return False
        identity = (st.st_dev, st.st_ino)
        if identity in self.visited:
            logger.debug("Skipping already visited directory", path=str(directory))
            return False
        self.visited.add(identity)
        return True


class TraversalEngine:
    """Walks a repository and yields WorkItems per granularity.

    Usage:
        engine = TraversalEngine(repo_root, max_depth=3)
        for item in engine.traverse([Level.FILE, Level.DIRECTORY]):
            ...
    """

    def __init__(
        self,
        root: Path | str,
        max_depth: int = 3,
        exclusions: ExclusionSet | Iterable[str] | None = None,
        file_extensions: Iterable[str] | None = None,
        max_file_size: int | None = None,
    ):
        """``file_extensions`` and ``max_file_size`` of None mean no filter."""
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.root = Path(root)
        self.max_depth = max_depth
        self.exclusions = exclusions if isinstance(exclusions, ExclusionSet) else ExclusionSet.of(exclusions)
        self.file_extensions = (
            None
            if file_extensions is None
            else {(ext if ext.startswith(".") else f".{ext}").lower() for ext in file_extensions}
        )
        self.max_file_size = max_file_size

    def absolute(self, rel_path: str) -> Path:
        rel_path = normalize_path(rel_path)
        return self.root / rel_path if rel_path else self.root

    def list_entries(self, rel_dir: str = "") -> list[Entry]:
        """Visible entries of a directory, sorted by name.

        Unreadable directories and dangling symlinks are logged and skipped.
        """
        rel_dir = normalize_path(rel_dir)
        directory = self.absolute(rel_dir)
        try:
            names = sorted(os.listdir(directory))
        except OSError as e:
            logger.warning("Cannot list directory", path=rel_dir or ".", error=str(e))
            return []

        entries = []
        for name in names:
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if self.exclusions.excludes(rel_path):
                continue
            try:
                st = (directory / name).stat()
            except OSError as e:
                logger.debug("Skipping unreadable entry", path=rel_path, error=str(e))
                continue
            is_dir = os.path.isdir(directory / name)
            entries.append(Entry(name=name, rel_path=rel_path, is_dir=is_dir, size=0 if is_dir else st.st_size))
        return entries

    def _wants_file(self, entry: Entry) -> bool:
        if self.file_extensions is not None and os.path.splitext(entry.name)[1].lower() not in self.file_extensions:
            return False
        if self.max_file_size is not None and entry.size > self.max_file_size:
            logger.debug("Skipping large file", path=entry.rel_path, size=entry.size, limit=self.max_file_size)
            return False
        return True

    def files(self) -> Iterator[WorkItem]:
        """File-level WorkItems in depth-first lexical order."""
        walk = _Walk()
        if not walk.enter(self.root):
            return
        yield from self._files_in("", 0, walk)

    def _files_in(self, rel_dir: str, depth: int, walk: _Walk) -> Iterator[WorkItem]:
        for entry in self.list_entries(rel_dir):
            if entry.is_dir:
                if depth + 1 <= self.max_depth and walk.enter(self.absolute(entry.rel_path)):
                    yield from self._files_in(entry.rel_path, depth + 1, walk)
            elif self._wants_file(entry):
                yield WorkItem(path=entry.rel_path, level=Level.FILE, depth=depth)

    def directories(self) -> Iterator[WorkItem]:
        """Directory-level WorkItems in pre-order, excluding the root."""
        walk = _Walk()
        if not walk.enter(self.root):
            return
        yield from self._directories_in("", 0, walk)

    def _directories_in(self, rel_dir: str, depth: int, walk: _Walk) -> Iterator[WorkItem]:
        if depth + 1 > self.max_depth:
            return
        for entry in self.list_entries(rel_dir):
            if entry.is_dir and walk.enter(self.absolute(entry.rel_path)):
                yield WorkItem(path=entry.rel_path, level=Level.DIRECTORY, depth=depth + 1)
                yield from self._directories_in(entry.rel_path, depth + 1, walk)

    def modules(self) -> Iterator[WorkItem]:
        """Module-level WorkItems: manifests directly in the root."""
        for name in MANIFEST_FILES:
            if (self.root / name).is_file():
                yield WorkItem(path=name, level=Level.MODULE, depth=0)

    def traverse(self, levels: Iterable[Level | str] = (Level.FILE, Level.DIRECTORY, Level.MODULE)) -> Iterator[WorkItem]:
        """WorkItems for the requested granularities, files first."""
        wanted = {Level(level) for level in levels}
        if Level.FILE in wanted:
            yield from self.files()
        if Level.DIRECTORY in wanted:
            yield from self.directories()
        if Level.MODULE in wanted:
            yield from self.modules()

    def descendants(self, rel_dir: str, max_levels: int) -> Iterator[str]:
        """Paths below ``rel_dir`` down to ``max_levels`` levels, pre-order."""
        walk = _Walk()
        if max_levels <= 0 or not walk.enter(self.absolute(rel_dir)):
            return
        yield from self._descendants_in(normalize_path(rel_dir), max_levels, walk)

    def _descendants_in(self, rel_dir: str, remaining: int, walk: _Walk) -> Iterator[str]:
        for entry in self.list_entries(rel_dir):
            yield entry.rel_path
            if entry.is_dir and remaining > 1 and walk.enter(self.absolute(entry.rel_path)):
                yield from self._descendants_in(entry.rel_path, remaining - 1, walk)

    def describe_directory(self, rel_dir: str) -> dict[str, Any]:
        """Immediate contents of a directory for the directory-level prompt."""
        entries = self.list_entries(rel_dir)
        files = [{"name": e.name, "path": e.rel_path, "size": e.size} for e in entries if not e.is_dir]
        directories = [{"name": e.name, "path": e.rel_path} for e in entries if e.is_dir]
        return {
            "path": normalize_path(rel_dir) or ".",
            "files": files,
            "directories": directories,
            "totalFiles": len(files),
            "totalDirectories": len(directories),
        }
