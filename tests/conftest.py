from collections.abc import AsyncGenerator

import fakeredis
import fakeredis.aioredis
import httpx
import pytest
import pytest_asyncio

from pushrelay.config import Settings, override_settings
from pushrelay.main import app
from pushrelay.notifications.push import PushDispatcher
from pushrelay.subscriptions.service import SubscriptionService
from pushrelay.subscriptions.store import SubscriptionStore


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly selected."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    skip_integration = pytest.mark.skip(reason="use -m integration to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _test_settings(tmp_path):
    """Override settings so tests keep state in tmp_path."""
    override_settings(
        Settings(
            state_dir=str(tmp_path),
        )
    )
    yield
    override_settings(None)


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[SubscriptionStore]:
    """Connected store over an isolated in-memory Redis."""
    client = fakeredis.aioredis.FakeRedis(
        server=fakeredis.FakeServer(),
        decode_responses=True,
    )
    s = SubscriptionStore(client, max_attempts=1)
    assert await s.connect()
    yield s
    await s.close()


@pytest.fixture
def service(store) -> SubscriptionService:
    return SubscriptionService(store)


@pytest.fixture
def dispatcher(service, tmp_path) -> PushDispatcher:
    # Dummy key path; webpush is mocked
    return PushDispatcher(
        service,
        vapid_private_key=tmp_path / "fake.pem",
        vapid_claims={"sub": "mailto:test@test"},
    )


@pytest_asyncio.fixture
async def client(service, dispatcher) -> AsyncGenerator[httpx.AsyncClient]:
    """Async test client wired to the in-memory store."""
    app.state.subscriptions = service
    app.state.dispatcher = dispatcher
    app.state.vapid_public_key = "test-vapid-key-abc"

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
