"""Pytest fixtures for the Whisper Garden test suite."""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(scope="function")
def test_db(tmp_path):
    """Create a fresh SQLite store for each test."""
    from whisper_server.db.database import SqliteStore

    return SqliteStore(tmp_path / "test_whispers.db")


@pytest.fixture(scope="function")
def memory_store():
    """Create a fresh in-memory store for each test."""
    from whisper_server.db.memory import MemoryStore

    return MemoryStore()


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """Run the test once against each store backend."""
    from whisper_server.db.database import open_store

    return open_store(request.param, tmp_path / "test_whispers.db")


@pytest.fixture(scope="function")
async def test_client(store):
    """Create an httpx client against the app, backed by a fresh store."""
    from httpx import ASGITransport, AsyncClient
    from whisper_server.main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def test_whisper(store):
    """Write and return a whisper."""
    return store.create_whisper("I still think about that summer.", "memories")


@pytest.fixture
def test_user(store):
    """Register and return a user."""
    return store.create_user("quiet_fox", "hunter2")
