import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

# Set test environment variables FIRST
os.environ["API_BASE_URL"] = "http://test"
os.environ["EVENT_MATERIALIZE_BACKOFF_SECONDS"] = "0"

from business.friendship import FriendshipDirectory  # noqa: E402
from business.proposals import EventProposalCoordinator  # noqa: E402
from fake_backend import FakeBackendState, create_fake_backend  # noqa: E402
from integrations.backend import BackendClient  # noqa: E402
from utils.events import EventBus  # noqa: E402


@pytest.fixture(scope="function")
def backend() -> FakeBackendState:
    """Fresh in-memory backend for each test."""
    return FakeBackendState()


@pytest.fixture(scope="function")
def transport(backend: FakeBackendState) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=create_fake_backend(backend))


@pytest_asyncio.fixture(scope="function")
async def client(transport: httpx.ASGITransport) -> AsyncGenerator[BackendClient, None]:
    async with BackendClient("http://test", transport=transport) as c:
        yield c


@pytest.fixture
def alice(backend: FakeBackendState) -> dict:
    return backend.add_customer("Alice", "alice@example.com")


@pytest.fixture
def bob(backend: FakeBackendState) -> dict:
    return backend.add_customer("Bob", "bob@example.com")


@pytest.fixture
def carol(backend: FakeBackendState) -> dict:
    return backend.add_customer("Carol", "carol@example.com")


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def directory(client: BackendClient, bus: EventBus) -> FriendshipDirectory:
    return FriendshipDirectory(client, bus=bus)


@pytest.fixture
def coordinator(
    client: BackendClient, directory: FriendshipDirectory, bus: EventBus
) -> EventProposalCoordinator:
    return EventProposalCoordinator(client, directory, bus=bus, backoff_seconds=0)
