"""Common test fixtures for the NoteGraph MCP server."""

import tempfile
from pathlib import Path

import pytest

from notegraph_mcp.config import config
from notegraph_mcp.models.db_models import init_db
from notegraph_mcp.services.note_service import NoteService
from notegraph_mcp.storage.note_store import NoteStore

OWNER = "alice"
OTHER_OWNER = "bob"


@pytest.fixture
def temp_db_dir():
    """Create a temporary directory for the database."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_db_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "database_path", temp_db_dir / "test_notegraph.db")
    monkeypatch.setattr(config, "in_memory_db", False)
    monkeypatch.setattr(config, "owner", OWNER)
    yield config


@pytest.fixture
def engine(test_config):
    """A file-backed SQLite engine with the schema created."""
    engine = init_db(test_config.get_db_url())
    yield engine
    engine.dispose()


@pytest.fixture
def note_store(engine):
    """Create a test note store."""
    yield NoteStore(engine=engine)


@pytest.fixture
def note_service(note_store):
    """Create a test NoteService."""
    yield NoteService(store=note_store)
