"""Tests for clab.state and clab.repository."""

import json

import pytest

from clab.errors import StorageError
from clab.repository import get_repository_context, package_info
from clab.state import ENTITY_TYPES, AgentState


class TestAgentState:
    """Tests for AgentState."""

    def test_initialize_writes_document(self, tmp_path, persona):
        state = AgentState("architect", tmp_path / "states")

        state.initialize(persona, {"path": "/repo"})

        data = json.loads((tmp_path / "states" / "architect.json").read_text())
        assert data["agent"]["name"] == "The Architect"
        assert data["agent"]["levelName"] == "Structure"
        assert data["agent"]["evolved"] is False
        assert set(data["knowledge"]["entities"]) == set(ENTITY_TYPES)
        assert data["knowledge"]["understanding"]["confidence_level"] == 0
        assert data["context"]["repository"] == {"path": "/repo"}
        assert data["metadata"]["version"] == "1.0.0"

    def test_load_round_trip(self, tmp_path, persona):
        AgentState("architect", tmp_path).initialize(persona, {})

        state = AgentState("architect", tmp_path)
        assert state.load()
        assert state.state["agent"]["id"] == "architect"

    def test_load_missing_or_corrupt(self, tmp_path):
        assert not AgentState("architect", tmp_path).load()

        (tmp_path / "architect.json").write_text("{broken")
        assert not AgentState("architect", tmp_path).load()

    def test_apply_analysis(self, tmp_path, persona):
        state = AgentState("architect", tmp_path)
        state.initialize(persona, {})

        state.apply_analysis(
            {
                "insights": ["Layered design", "Thin CLI"],
                "entities": {"components": ["cli", "store"], "patterns": "not-a-list", "services": ["api"]},
                "confidence": 72,
            }
        )
        state.save()

        reloaded = AgentState("architect", tmp_path)
        reloaded.load()
        assert reloaded.insights() == ["Layered design", "Thin CLI"]
        entities = reloaded.state["knowledge"]["entities"]
        assert entities["components"] == ["cli", "store"]
        assert entities["patterns"] == []
        assert entities["services"] == ["api"]
        assert reloaded.summary()["confidence"] == 72
        assert reloaded.summary()["entities"] == 3

    @pytest.mark.parametrize(
        "analysis",
        [
            {"insights": "A single sentence", "confidence": "high"},
            {"insights": {"text": "nested"}, "confidence": True},
            {"insights": [42, None, {"text": "x"}]},
        ],
    )
    def test_apply_analysis_ignores_malformed_fields(self, tmp_path, persona, analysis):
        state = AgentState("architect", tmp_path)
        state.initialize(persona, {})

        state.apply_analysis(analysis)

        assert state.insights() == []
        assert state.summary()["confidence"] == 0

    def test_apply_analysis_keeps_string_insights_from_mixed_list(self, tmp_path, persona):
        state = AgentState("architect", tmp_path)
        state.initialize(persona, {})

        state.apply_analysis({"insights": ["Layered design", 7, "Thin CLI"]})

        assert state.insights() == ["Layered design", "Thin CLI"]

    def test_save_without_state(self, tmp_path):
        with pytest.raises(StorageError):
            AgentState("architect", tmp_path).save()

    def test_save_failure(self, tmp_path, persona):
        blocker = tmp_path / "states"
        blocker.write_text("file in the way")

        with pytest.raises(StorageError, match="Failed to save state"):
            AgentState("architect", blocker).initialize(persona, {})

    @pytest.mark.parametrize("agent_id", ["", "../x", ".hidden"])
    def test_invalid_agent_id(self, tmp_path, agent_id):
        with pytest.raises(StorageError):
            AgentState(agent_id, tmp_path)


class TestRepositoryContext:
    """Tests for get_repository_context."""

    def test_package_json(self, repo):
        context = get_repository_context(repo)

        assert context["packageInfo"]["name"] == "demo"
        assert context["packageInfo"]["version"] == "1.2.3"
        assert context["structure"] == ["a/b.py", "a/c/d.py", "package.json"]
        assert context["stats"]["totalFiles"] == 3
        assert context["languages"] == ["py", "json"]

    def test_pyproject(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "tool"\nversion = "0.2"\ndependencies = ["requests"]\n')

        info = package_info(tmp_path)

        assert info == {"name": "tool", "description": None, "version": "0.2", "dependencies": ["requests"]}

    def test_no_manifest(self, tmp_path):
        assert package_info(tmp_path) is None

    @pytest.mark.parametrize("content", [b"[]", b"\"demo\"", b"42", b"{\"name\": \"caf\xe9\"}", b"{not json"])
    def test_unusable_package_json_is_ignored(self, tmp_path, content):
        (tmp_path / "package.json").write_bytes(content)
        (tmp_path / "app.py").write_text("x = 1\n")

        context = get_repository_context(tmp_path)

        assert context["packageInfo"] is None
        assert context["structure"] == ["app.py", "package.json"]

    def test_invalid_package_json_falls_back_to_pyproject(self, tmp_path):
        (tmp_path / "package.json").write_text("[]")
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "tool"\n')

        assert package_info(tmp_path)["name"] == "tool"

    def test_pyproject_without_project_table(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.black]\nline-length = 100\n")
        assert package_info(tmp_path) is None

    def test_pyproject_not_utf8(self, tmp_path):
        (tmp_path / "pyproject.toml").write_bytes(b'[project]\nname = "caf\xe9"\n')
        assert package_info(tmp_path) is None

    def test_structure_limit(self, tmp_path, make_tree):
        make_tree(tmp_path, {f"f{i:03d}.txt": "" for i in range(12)})

        context = get_repository_context(tmp_path, limit=5)

        assert len(context["structure"]) == 5
        assert context["stats"]["totalFiles"] == 12
