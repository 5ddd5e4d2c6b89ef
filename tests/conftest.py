import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Set test environment variables before recall.config is imported
os.environ["RECALL_ENVIRONMENT"] = "test"
os.environ["RECALL_LOG_LEVEL"] = "WARNING"
os.environ["RECALL_LLM_API_KEY"] = ""
os.environ["RECALL_OLLAMA_MODEL"] = ""
os.environ["RECALL_CRON_SECRET"] = ""


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the app at a fresh data directory for each test."""
    from recall.config import settings

    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    return tmp_path / "data"


@pytest_asyncio.fixture
async def db(data_dir):
    """An initialized SQLite connection on a throwaway database."""
    from recall.db import init_all_databases
    from recall.db.sqlite import get_db

    await init_all_databases(data_dir)
    async for conn in get_db():
        yield conn


@pytest.fixture
def client(data_dir):
    """Test client; the lifespan initializes the database under data_dir."""
    from recall import create_app

    with TestClient(create_app()) as c:
        yield c
