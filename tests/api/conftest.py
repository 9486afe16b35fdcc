"""Test fixtures for REST API tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.api.deps import get_broadcaster, get_cache, get_presence
from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.main import app
from fieldops.utils.db import get_db, session_scope
from fieldops.utils.redis_client import CacheService
from fieldops.utils.security import create_access_token
from fieldops.ws.presence import InMemoryPresenceStore, PresenceTracker


class RecordingBroadcaster(EventBroadcaster):
    """Keeps dispatched events for assertions instead of sending them."""

    def __init__(self):
        super().__init__(None)
        self.events = []

    async def dispatch(self, events) -> int:
        self.events.extend(events)
        return len(events)

    def names(self) -> list[str]:
        return [event.name.value for event in self.events]


def auth_headers(user_id: str) -> dict[str, str]:
    """Bearer header for a freshly signed access token."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def presence() -> PresenceTracker:
    return PresenceTracker(InMemoryPresenceStore(), EventBroadcaster(None))


@pytest_asyncio.fixture(scope="function")
async def test_client(session_factory, broadcaster, presence) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the application with the store and fan-out swapped out."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_presence] = lambda: presence
    app.dependency_overrides[get_cache] = lambda: CacheService(None)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
