"""Pytest configuration and fixtures for all tests."""

import sys
from pathlib import Path

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture
def snapshots():
    """Collects published snapshots: ``orchestrator.subscribe(snapshots.append)``."""
    return []
