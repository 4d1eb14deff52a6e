"""
Persona definitions.

A persona is the perspective an analysis is written from. The core treats it
as a bag of prompt parameters; only ``id`` is used for storage (it is the
owner of that persona's notes and state).

Document format (JSON, or YAML for .yaml/.yml files):
    {"characters": [
        {"id": "architect", "name": "The Architect", "level": 1,
         "level_name": "Structure", "focus": ["architecture"], "role": "..."}
    ]}
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


REQUIRED_FIELDS = ("id", "name", "level", "level_name")


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    level: int
    level_name: str
    focus: tuple[str, ...] = ()
    role: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Persona":
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise ConfigError(f"Persona {data.get('id', '?')!r} is missing {', '.join(missing)}")
        focus = data.get("focus") or ()
        if isinstance(focus, str):
            focus = (focus,)
        known = {"id", "name", "level", "level_name", "focus", "role"}
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            level=data["level"],
            level_name=str(data["level_name"]),
            focus=tuple(str(f) for f in focus),
            role=str(data.get("role") or ""),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "level_name": self.level_name,
            "focus": list(self.focus),
            "role": self.role,
            **self.extra,
        }


class PersonaRegistry:
    """Personas by id, in document order."""

    def __init__(self, personas: list[Persona]):
        self._personas: dict[str, Persona] = {}
        for persona in personas:
            if persona.id in self._personas:
                raise ConfigError(f"Duplicate persona id {persona.id!r}")
            self._personas[persona.id] = persona

    @classmethod
    def from_file(cls, path: Path | str) -> "PersonaRegistry":
        """Load the persona document.

        Raises:
            ConfigError: If the file is missing or malformed.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to load personas from {path}: {e}") from e

        try:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to parse personas from {path}: {e}") from e

        entries = data.get("characters") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ConfigError(f"{path} must contain a 'characters' list")
        if not all(isinstance(entry, dict) for entry in entries):
            raise ConfigError(f"Every entry in {path} 'characters' must be an object")
        return cls([Persona.from_dict(entry) for entry in entries])

    def get(self, persona_id: str) -> Persona:
        """Raises ConfigError for unknown ids."""
        try:
            return self._personas[persona_id]
        except KeyError:
            known = ", ".join(self._personas) or "none"
            raise ConfigError(f"Persona {persona_id!r} not found (known: {known})") from None

    def all(self) -> list[Persona]:
        return list(self._personas.values())

    def ids(self) -> list[str]:
        return list(self._personas)

    def by_level(self, level: int) -> list[Persona]:
        return [p for p in self._personas.values() if p.level == level]

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._personas

    def __len__(self) -> int:
        return len(self._personas)
