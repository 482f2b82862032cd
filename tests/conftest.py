import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient
from network_blocker import install_network_blocker

from config import get_settings  # noqa: E402
from core.providers import get_session_service  # noqa: E402
from db.models import ALL_DOCUMENT_MODELS  # noqa: E402


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ORS_API_KEY", "test-ors-key")
    monkeypatch.setenv("MONGO_DB", "round_planner_test")
    install_network_blocker(monkeypatch)
    get_settings.cache_clear()
    get_session_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_session_service.cache_clear()


@pytest.fixture
async def beanie_db():
    client = AsyncMongoMockClient()
    database = client["round_planner_test"]
    await init_beanie(database=database, document_models=ALL_DOCUMENT_MODELS)
    return database
