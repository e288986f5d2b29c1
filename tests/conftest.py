"""Shared test fixtures for Clocked."""

import os
import sys
from pathlib import Path

import pytest

from clocked.services.cache_store import CacheStore


@pytest.fixture(scope="session")
def qapp():
    """Create a QCoreApplication for tests that need Qt."""
    os.environ["QT_QPA_PLATFORM"] = "offscreen"
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication(sys.argv[:1] or ["test"])
    yield app


@pytest.fixture
def store(tmp_path):
    s = CacheStore(db_path=tmp_path / "cache.db")
    yield s
    s.close()


@pytest.fixture
def projects_root(tmp_path) -> Path:
    """An empty ~/.claude/projects lookalike."""
    root = tmp_path / ".claude" / "projects"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def workspace(tmp_path) -> Path:
    """A directory that stands in for the user's real project checkouts."""
    ws = tmp_path / "work"
    ws.mkdir()
    return ws
