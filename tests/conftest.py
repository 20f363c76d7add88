"""
Cloud Console - Test fixtures
"""

import os

# Set up test environment before imports
os.environ["BACKGROUND_TASKS_ENABLED"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_COMMAND"] = "100000/minute"
os.environ["SEED_DEMO_DATA"] = "true"
os.environ["AGENT_USE_SUDO"] = "false"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("OPENAI_API_KEY_FILE", None)

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the app at a fresh SQLite file."""
    from cloudpanel.config import settings

    path = str(tmp_path / "cloud-console-test.db")
    monkeypatch.setattr(settings, "database_path", path)
    return path


@pytest.fixture
def client(db_path):
    """Test client with the lifespan (migrations + demo data) applied."""
    from cloudpanel.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db(db_path):
    """Initialized database connection with demo data."""
    from cloudpanel.db import init_db, close_db, get_db

    await init_db()
    yield await get_db()
    await close_db()
