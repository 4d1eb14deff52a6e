"""Tests for clab.context."""

from datetime import UTC, datetime, timedelta

from clab.context import ContextAggregator, render_context, summarize_note
from clab.keys import Level
from clab.notes import NoteRecord, NoteStore
from clab.traversal import TraversalEngine


BASE = datetime(2025, 3, 1, tzinfo=UTC)


class TestContextAggregator:
    """Tests for ContextAggregator.load_context."""

    def setup_store(self, tmp_path, make_tree):
        root = make_tree(tmp_path / "repo", {"src/lib/util.py": "", "src/app.py": "", "docs/x.md": ""})
        store = NoteStore(tmp_path / "notes")
        return ContextAggregator(store, TraversalEngine(root, max_depth=3, exclusions=[])), store

    def put(self, store, path, level, minutes):
        record = NoteRecord.create("architect", path, level, {"summary": path}, created_at=BASE + timedelta(minutes=minutes))
        store.put(store.key_for("architect", path, level), record)

    def test_collects_self_and_ancestors_newest_first(self, tmp_path, make_tree):
        aggregator, store = self.setup_store(tmp_path, make_tree)
        self.put(store, "src/lib/util.py", Level.FILE, 1)
        self.put(store, "src/lib", Level.DIRECTORY, 3)
        self.put(store, "src", Level.DIRECTORY, 2)
        self.put(store, "docs/x.md", Level.FILE, 9)

        records = aggregator.load_context("architect", "src/lib/util.py")

        assert [r.subject_path for r in records] == ["src/lib", "src", "src/lib/util.py"]

    def test_root_note_counts_as_ancestor(self, tmp_path, make_tree):
        aggregator, store = self.setup_store(tmp_path, make_tree)
        self.put(store, "", Level.DIRECTORY, 0)

        records = aggregator.load_context("architect", "src/app.py")

        assert [r.subject_path for r in records] == [""]

    def test_ancestor_hops_bounded(self, tmp_path, make_tree):
        aggregator, store = self.setup_store(tmp_path, make_tree)
        self.put(store, "src", Level.DIRECTORY, 0)

        assert aggregator.load_context("architect", "src/lib/util.py", max_depth=1) == []

    def test_directory_includes_descendants(self, tmp_path, make_tree):
        aggregator, store = self.setup_store(tmp_path, make_tree)
        self.put(store, "src/app.py", Level.FILE, 1)
        self.put(store, "src/lib/util.py", Level.FILE, 2)

        records = aggregator.load_context("architect", "src")

        assert {r.subject_path for r in records} == {"src/app.py", "src/lib/util.py"}

    def test_no_duplicates(self, tmp_path, make_tree):
        aggregator, store = self.setup_store(tmp_path, make_tree)
        self.put(store, "src", Level.DIRECTORY, 1)

        records = aggregator.load_context("architect", "src")

        assert len(records) == 1


class TestRenderContext:
    """Tests for prompt rendering of context notes."""

    def test_empty(self):
        assert render_context([]) == "No previous notes."

    def test_limit_and_format(self):
        records = [
            NoteRecord.create("architect", f"f{i}.py", Level.FILE, {"summary": f"note {i}"}, created_at=BASE)
            for i in range(7)
        ]
        text = render_context(records, limit=2)

        assert text.splitlines() == [
            "- [file] f0.py (2025-03-01 00:00): note 0",
            "- [file] f1.py (2025-03-01 00:00): note 1",
        ]

    def test_summarize_note_truncates_and_handles_non_dict(self):
        long = NoteRecord.create("architect", "a", Level.FILE, {"summary": "x" * 400}, created_at=BASE)
        assert summarize_note(long) == "x" * 300 + "..."

        plain = NoteRecord.create("architect", "a", Level.FILE, ["one", "two"], created_at=BASE)
        assert summarize_note(plain) == '["one", "two"]'
