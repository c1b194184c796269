"""Shared test fixtures."""

import os

# Settings are read at import time
os.environ["ARCH_DATABASE_URL"] = "memory://"
os.environ["ARCH_LLM_API_KEY"] = "test-key"
os.environ["ARCH_RATE_LIMIT"] = "1000/minute"
os.environ["ARCH_LOG_LEVEL"] = "ERROR"  # Reduce log noise

from collections.abc import AsyncGenerator  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from mock_provider import MockProvider, recommendation_json  # noqa: E402

from architect_api import app  # noqa: E402
from architect_api.api import get_chat_service  # noqa: E402
from architect_api.chat import ChatService  # noqa: E402
from architect_api.recommendation import RecommendationClient  # noqa: E402
from architect_api.storage import InMemoryRepository  # noqa: E402


@pytest.fixture
def mock_provider() -> MockProvider:
    """Scripted model provider that answers with a valid recommendation."""
    return MockProvider()


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def chat_service(repository: InMemoryRepository, mock_provider: MockProvider) -> ChatService:
    """ChatService wired to in-memory storage and the mock provider."""
    return ChatService(repository, RecommendationClient(mock_provider))


@pytest_asyncio.fixture
async def client(chat_service: ChatService) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the chat service injected through dependency overrides."""
    app.dependency_overrides[get_chat_service] = lambda: chat_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_services() -> list[dict[str, Any]]:
    """Service lines as the model sends them."""
    return [
        {
            "name": "Amazon EC2",
            "type": "Compute",
            "monthlyCost": 70.0,
            "description": "Web servers",
            "configuration": {"instanceType": "t3.large", "region": "us-west-2"},
        },
        {
            "name": "Amazon RDS",
            "type": "Database",
            "monthlyCost": 40.0,
            "description": "PostgreSQL database",
            "configuration": {"instanceType": "db.t3.medium", "storage": "100GB"},
        },
        {
            "name": "Amazon S3",
            "type": "Storage",
            "monthlyCost": 10.0,
            "description": "Static assets",
            "configuration": {},
        },
    ]


@pytest.fixture
def sample_recommendation_json(sample_services: list[dict[str, Any]]) -> str:
    return recommendation_json(services=sample_services, total=120.0)
