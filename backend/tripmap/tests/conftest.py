import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "unit-test-key")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("CACHE_PERSISTENCE", "false")

from tripmap.main import app
from tripmap.services import cache as cache_service
from tripmap.services.cache import SnapshotCache
from tripmap.utils.settings import get_settings


@pytest.fixture(autouse=True)
def reset_state():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    cache_service.close_cache()
    app.dependency_overrides.clear()


@pytest.fixture()
def memory_cache():
    cache = SnapshotCache(start_sweeper=False)
    yield cache
    cache.close()


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c
