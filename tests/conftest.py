"""
Pytest configuration and shared fixtures for clab tests.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest


# Add project paths to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "shared"))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that would leak into LabConfig.from_env."""
    for name in list(os.environ):
        if name.startswith("CLAB_") or name in ("OPENROUTER_API_KEY", "MODEL", "GITHUB_WORKSPACE"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    return monkeypatch
