"""
Persistent notes store.

One JSON file per (owner, path, level) under ``<base_dir>/<owner>/``:

    {
      "owner": "architect",
      "path": "src/app.py",
      "level": "file",
      "timestamp": 1732796096789,
      "content": {...},
      "metadata": {"size": 512, "version": "1.0.0"}
    }

Writes go through a temp file and ``os.replace`` so concurrent writers of
different keys never corrupt each other, and writers of the same key get
last-write-wins.
"""

import json
import os
import shutil
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, NamedTuple

from clab_logging import get_logger

from .errors import StorageError
from .keys import ALL_LEVELS, Level, PathKeyCodec, normalize_path
from .staleness import from_millis, to_millis, utc_now


logger = get_logger("notes")

SCHEMA_VERSION = "1.0.0"


def content_size(content: Any) -> int:
    """Size in bytes of the serialized content."""
    return len(json.dumps(content, ensure_ascii=False).encode("utf-8"))


@dataclass
class NoteRecord:
    """A persisted analysis artifact for one (owner, path, level)."""

    owner_id: str
    subject_path: str
    level: Level
    created_at: datetime
    content: Any
    content_size_bytes: int
    schema_version: str = SCHEMA_VERSION

    @classmethod
    def create(
        cls,
        owner_id: str,
        subject_path: str,
        level: Level | str,
        content: Any,
        created_at: datetime | None = None,
    ) -> "NoteRecord":
        return cls(
            owner_id=owner_id,
            subject_path=normalize_path(subject_path),
            level=Level(level),
            created_at=created_at or utc_now(),
            content=content,
            content_size_bytes=content_size(content),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner_id,
            "path": self.subject_path,
            "level": self.level.value,
            "timestamp": to_millis(self.created_at),
            "content": self.content,
            "metadata": {"size": self.content_size_bytes, "version": self.schema_version},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "NoteRecord":
        """Parse the on-disk layout.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"note must be an object, got {type(data).__name__}")
        try:
            owner = data["owner"]
            path = data["path"]
            level = Level(data["level"])
            timestamp = data["timestamp"]
            content = data["content"]
        except KeyError as e:
            raise ValueError(f"note is missing field {e}") from e
        if not isinstance(owner, str) or not isinstance(path, str):
            raise ValueError("note owner and path must be strings")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
            raise ValueError(f"note timestamp must be a number, got {timestamp!r}")

        metadata = data.get("metadata") or {}
        size = metadata.get("size")
        return cls(
            owner_id=owner,
            subject_path=normalize_path(path),
            level=level,
            created_at=from_millis(int(timestamp)),
            content=content,
            content_size_bytes=size if isinstance(size, int) else content_size(content),
            schema_version=str(metadata.get("version", SCHEMA_VERSION)),
        )


class NoteKey(NamedTuple):
    """Storage slot of a note: owner plus encoded path/level key."""

    owner_id: str
    key: str


class NoteStore:
    """Directory-backed store of NoteRecords.

    Usage:
        store = NoteStore(Path(".agent-notes"))
        key = store.key_for("architect", "src/app.py", Level.FILE)
        store.put(key, NoteRecord.create("architect", "src/app.py", "file", analysis))
        record = store.get(key)
    """

    def __init__(self, base_dir: Path | str, codec: PathKeyCodec | None = None):
        self.base_dir = Path(base_dir)
        self.codec = codec or PathKeyCodec()

    def key_for(self, owner_id: str, path: str, level: Level | str) -> NoteKey:
        return NoteKey(owner_id, self.codec.encode(path, level))

    def owner_dir(self, owner_id: str) -> Path:
        if not owner_id or "/" in owner_id or owner_id in (".", ".."):
            raise StorageError(f"Invalid owner id: {owner_id!r}")
        return self.base_dir / owner_id

    def file_for(self, key: NoteKey) -> Path:
        return self.owner_dir(key.owner_id) / key.key

    def put(self, key: NoteKey, record: NoteRecord) -> Path:
        """Write ``record`` to ``key``'s slot, replacing any previous note.

        Raises:
            StorageError: If the directory or file cannot be written.
        """
        target = self.file_for(key)
        payload = json.dumps(record.to_dict(), indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=target.parent, prefix=".", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write note {key.owner_id}/{key.key}: {e}") from e

        logger.debug("Saved note", owner=key.owner_id, key=key.key, size=record.content_size_bytes)
        return target

    def get(self, key: NoteKey) -> NoteRecord | None:
        """Load the note in ``key``'s slot; None when absent or unreadable."""
        return self._read(self.file_for(key))

    def load(self, owner_id: str, path: str, level: Level | str) -> NoteRecord | None:
        return self.get(self.key_for(owner_id, path, level))

    def load_all_levels(self, owner_id: str, path: str) -> list[NoteRecord]:
        """Every note of ``path`` across granularities, in level order."""
        records = []
        for level in ALL_LEVELS:
            record = self.load(owner_id, path, level)
            if record is not None:
                records.append(record)
        return records

    def _read(self, note_file: Path) -> NoteRecord | None:
        if not note_file.is_file():
            return None
        try:
            data = json.loads(note_file.read_text(encoding="utf-8"))
            return NoteRecord.from_dict(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
            logger.warning("Ignoring unreadable note", file=str(note_file), error=str(e))
            return None

    def list_all(self, owner_id: str) -> Iterator[NoteRecord]:
        """Lazily yield every readable note of ``owner_id`` in path order."""
        root = self.owner_dir(owner_id)
        if not root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for name in sorted(filenames):
                if not name.endswith(".json") or name.startswith("."):
                    continue
                record = self._read(Path(dirpath) / name)
                if record is not None:
                    yield record

    def owners(self) -> list[str]:
        if not self.base_dir.is_dir():
            return []
        return sorted(p.name for p in self.base_dir.iterdir() if p.is_dir() and not p.name.startswith("."))

    def clear(self, owner_id: str, path: str | None = None) -> int:
        """Delete the notes of ``path`` and its descendants.

        With ``path`` None (or the repository root) the owner's whole note
        tree is removed. Returns the number of note files deleted.

        Raises:
            StorageError: If the tree exists but cannot be removed.
        """
        root = self.owner_dir(owner_id)
        if path is None or not normalize_path(path):
            target = root
        else:
            target = root / self.codec.directory_for(path)
        if not target.exists():
            return 0

        removed = sum(1 for p in target.rglob("*.json") if p.is_file())
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise StorageError(f"Failed to clear notes at {target}: {e}") from e

        logger.info("Cleared notes", owner=owner_id, path=path or ".", removed=removed)
        return removed
