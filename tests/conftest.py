import os

# Set before catalog_sync.config is imported; Config reads the environment once
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("FAL_API_KEY", "test-fal-key")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key-12345")

import pytest

from catalog_sync.db.catalog_db import CatalogStore
from tests.helpers.supabase_stub import SupabaseStub


@pytest.fixture
def sb():
    return SupabaseStub()


@pytest.fixture
def store(sb):
    return CatalogStore(client=sb)


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    """Pricing batch pauses, backoff and refresh delays never really sleep in tests"""
    sleeps = []
    monkeypatch.setattr("time.sleep", sleeps.append)
    return sleeps
