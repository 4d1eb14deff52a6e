"""
Context assembly for model prompts.

Gathers previously stored notes around a target path (the path itself, its
ancestors, and the descendants of a directory) so each new analysis can build
on what earlier runs concluded.
"""

import json

from clab_logging import get_logger

from .keys import display_path, normalize_path
from .notes import NoteRecord, NoteStore
from .traversal import TraversalEngine


logger = get_logger("context")

SUMMARY_CHARS = 300


class ContextAggregator:
    """Loads and recency-sorts the notes relevant to a path."""

    def __init__(self, store: NoteStore, engine: TraversalEngine):
        self.store = store
        self.engine = engine

    def load_context(self, owner_id: str, path: str, max_depth: int = 3) -> list[NoteRecord]:
        """Notes for ``path``, its ancestors and (for directories) descendants.

        Ancestors are taken up to ``max_depth`` hops above ``path`` (the root
        counts as an ancestor); descendants down to ``max_depth`` levels.
        Missing notes are skipped. Newest first.
        """
        path = normalize_path(path)
        parts = path.split("/") if path else []

        subjects = [path]
        for hop in range(1, max_depth + 1):
            if hop > len(parts):
                break
            subjects.append("/".join(parts[:-hop]))

        if max_depth > 0 and self.engine.absolute(path).is_dir():
            subjects.extend(self.engine.descendants(path, max_depth))

        records: list[NoteRecord] = []
        seen: set[tuple[str, str]] = set()
        for subject in subjects:
            for record in self.store.load_all_levels(owner_id, subject):
                slot = (record.subject_path, record.level.value)
                if slot in seen:
                    continue
                seen.add(slot)
                records.append(record)

        records.sort(key=lambda r: r.created_at, reverse=True)
        logger.debug("Loaded context notes", path=display_path(path), count=len(records))
        return records


def summarize_note(record: NoteRecord) -> str:
    content = record.content
    if isinstance(content, dict) and isinstance(content.get("summary"), str):
        text = content["summary"]
    elif isinstance(content, str):
        text = content
    else:
        text = json.dumps(content, ensure_ascii=False)
    if len(text) > SUMMARY_CHARS:
        text = text[:SUMMARY_CHARS] + "..."
    return text


def render_context(records: list[NoteRecord], limit: int = 5) -> str:
    """Compact text block of the newest ``limit`` notes for a prompt."""
    if not records:
        return "No previous notes."
    lines = []
    for record in records[:limit]:
        when = record.created_at.strftime("%Y-%m-%d %H:%M")
        lines.append(f"- [{record.level.value}] {display_path(record.subject_path)} ({when}): {summarize_note(record)}")
    return "\n".join(lines)
