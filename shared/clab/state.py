"""
Per-persona agent state.

Each persona keeps one JSON document at ``<states_dir>/<agent_id>.json`` with
what it has learned about the repository across update runs:

    {
      "agent": {"id", "name", "level", "levelName", "focus", "evolved"},
      "knowledge": {"entities": {...}, "understanding": {"confidence_level", ...}},
      "context": {"repository": {...}, "lastAnalyzed": <ms>},
      "understanding": {"insights": [{"text", "timestamp"}], ...},
      "evolution": {"transformations": [], "learningHistory": []},
      "metadata": {"created": <ms>, "lastModified": <ms>, "version": "1.0.0"}
    }
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from clab_logging import get_logger

from .errors import StorageError
from .notes import SCHEMA_VERSION
from .personas import Persona
from .staleness import to_millis, utc_now


logger = get_logger("state")

ENTITY_TYPES = ("components", "patterns", "concepts", "relationships")


def _now_ms() -> int:
    return to_millis(utc_now())


class AgentState:
    """Load, modify and save one persona's state document."""

    def __init__(self, agent_id: str, base_dir: Path | str = ".agent-states"):
        if not agent_id or "/" in agent_id or agent_id.startswith("."):
            raise StorageError(f"Invalid agent id {agent_id!r}")
        self.agent_id = agent_id
        self.base_dir = Path(base_dir)
        self.state: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.agent_id}.json"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> bool:
        """Read the state from disk. Returns False when absent or unreadable."""
        if not self.path.exists():
            return False
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load agent state", agent=self.agent_id, error=str(e))
            return False
        if not isinstance(data, dict):
            logger.warning("Agent state is not an object", agent=self.agent_id)
            return False
        self.state = data
        return True

    def initialize(self, persona: Persona, repo_context: dict[str, Any]) -> None:
        """Start a fresh state for ``persona`` and save it."""
        now = _now_ms()
        self.state = {
            "agent": {
                "id": self.agent_id,
                "name": persona.name,
                "level": persona.level,
                "levelName": persona.level_name,
                "focus": list(persona.focus),
                "evolved": False,
            },
            "knowledge": {
                "entities": {kind: [] for kind in ENTITY_TYPES},
                "understanding": {"confidence_level": 0, "key_insights": [], "assumptions": []},
            },
            "context": {"repository": repo_context, "lastAnalyzed": now},
            "understanding": {"insights": [], "questions": [], "observations": []},
            "evolution": {"transformations": [], "learningHistory": []},
            "metadata": {"created": now, "lastModified": now, "version": SCHEMA_VERSION},
        }
        self.save()

    def _require(self) -> dict[str, Any]:
        if self.state is None:
            raise StorageError(f"State for {self.agent_id} has not been loaded or initialized")
        return self.state

    def save(self) -> Path:
        """Write the state, stamping ``metadata.lastModified``.

        Raises:
            StorageError: If there is no state or it cannot be written.
        """
        state = self._require()
        state.setdefault("metadata", {})["lastModified"] = _now_ms()
        payload = json.dumps(state, indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.base_dir, prefix=".", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to save state for {self.agent_id}: {e}") from e
        return self.path

    def add_insight(self, insight: str) -> None:
        understanding = self._require().setdefault("understanding", {})
        understanding.setdefault("insights", []).append({"text": insight, "timestamp": _now_ms()})

    def add_entity(self, kind: str, entity: Any) -> None:
        knowledge = self._require().setdefault("knowledge", {})
        knowledge.setdefault("entities", {}).setdefault(kind, []).append(entity)

    def update_confidence(self, level: int | float) -> None:
        knowledge = self._require().setdefault("knowledge", {})
        knowledge.setdefault("understanding", {})["confidence_level"] = level

    def apply_analysis(self, analysis: dict[str, Any]) -> None:
        """Fold one repository analysis into the state."""
        insights = analysis.get("insights")
        if isinstance(insights, list):
            for insight in insights:
                if isinstance(insight, str):
                    self.add_insight(insight)
        entities = analysis.get("entities")
        if isinstance(entities, dict):
            for kind, values in entities.items():
                if isinstance(values, list):
                    for entity in values:
                        self.add_entity(kind, entity)
        confidence = analysis.get("confidence")
        if isinstance(confidence, int | float) and not isinstance(confidence, bool):
            self.update_confidence(confidence)
        self._require().setdefault("context", {})["lastAnalyzed"] = _now_ms()

    def insights(self) -> list[str]:
        state = self.state or {}
        entries = state.get("understanding", {}).get("insights", [])
        return [e["text"] if isinstance(e, dict) else str(e) for e in entries]

    def summary(self) -> dict[str, Any]:
        """Short description for ``clab status``."""
        state = self.state or {}
        knowledge = state.get("knowledge", {})
        entities = knowledge.get("entities", {})
        return {
            "agent": self.agent_id,
            "name": state.get("agent", {}).get("name"),
            "insights": len(self.insights()),
            "entities": sum(len(v) for v in entities.values() if isinstance(v, list)),
            "confidence": knowledge.get("understanding", {}).get("confidence_level", 0),
            "last_modified": state.get("metadata", {}).get("lastModified"),
        }
