"""
Shared fixtures for the data-sync test suites.
"""

import pytest
import pytest_asyncio

from console_sync.app.adapters.api_client import ApiClient
from console_sync.app.caching.cache_store import CacheStore
from console_sync.app.caching.session_storage import MemorySessionStorage
from shared.test_helpers import FakeApi

BASE_URL = "http://api.test"


class FakeClock:
    """Wall clock the tests can move by hand."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_api():
    """Scripted API."""
    return FakeApi()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemorySessionStorage(quota_bytes=None)


@pytest.fixture
def cache_store(storage, clock):
    return CacheStore(storage, namespace="console", version="v1", clock=clock)


@pytest_asyncio.fixture
async def api_client(fake_api):
    client = ApiClient(BASE_URL, transport=fake_api.transport())
    yield client
    await client.aclose()
