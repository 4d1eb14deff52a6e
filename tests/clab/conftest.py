"""
Shared fixtures for clab tests.
"""

import json
import threading
from pathlib import Path

import pytest

from clab.model import ModelResponse
from clab.personas import Persona


DEFAULT_ANALYSIS = {"summary": "Looks fine", "insights": ["Clear layout"], "confidence": 80}


class FakeModelService:
    """ModelService double that records prompts.

    ``responder`` maps a prompt to the response text; returning an exception
    instance raises it instead.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda prompt: "Here you go: " + json.dumps(DEFAULT_ANALYSIS))
        self.calls = []
        self._lock = threading.Lock()

    def call(self, model, prompt, *, temperature=None, max_tokens=None):
        with self._lock:
            self.calls.append({"model": model, "prompt": prompt, "temperature": temperature, "max_tokens": max_tokens})
        result = self.responder(prompt)
        if isinstance(result, Exception):
            raise result
        return ModelResponse(text=result, model_used=model or "fake/model")

    @property
    def prompts(self):
        return [c["prompt"] for c in self.calls]


def write_tree(root: Path, files: dict) -> Path:
    """Create ``files`` (relative path -> text) under ``root``."""
    for rel_path, text in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return root


@pytest.fixture
def fake_service():
    return FakeModelService()


@pytest.fixture
def persona():
    return Persona(
        id="architect",
        name="The Architect",
        level=1,
        level_name="Structure",
        focus=("architecture", "dependencies"),
        role="systems architect",
    )


@pytest.fixture
def repo(tmp_path):
    """Small repository: two nested source files and a manifest."""
    root = tmp_path / "repo"
    return write_tree(
        root,
        {
            "a/b.py": "bee = 1\n",
            "a/c/d.py": "dee = 2\n",
            "package.json": json.dumps({"name": "demo", "version": "1.2.3", "description": "Demo repo"}),
        },
    )


@pytest.fixture
def make_tree():
    return write_tree


@pytest.fixture
def make_service():
    return FakeModelService
