"""
Pytest configuration and fixtures for WeChat ChatGPT Bridge tests.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from wechat_bridge.ai.completion_client import CompletionClient
from wechat_bridge.config.settings import Settings
from wechat_bridge.domain.event import EventRecord
from wechat_bridge.domain.message import Base, MessageRecord
from wechat_bridge.infrastructure.database import create_session_factory
from wechat_bridge.infrastructure.repository import SQLAlchemyRepository
from wechat_bridge.usecases.prompt_window import PromptWindowBuilder
from wechat_bridge.utils.time import utcnow


# Use a separate in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_TOKEN = "test_token"


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return create_session_factory(test_engine)


@pytest.fixture
def message_repository(session_factory) -> SQLAlchemyRepository:
    return SQLAlchemyRepository(session_factory, MessageRecord)


@pytest.fixture
def event_repository(session_factory) -> SQLAlchemyRepository:
    return SQLAlchemyRepository(session_factory, EventRecord)


@pytest.fixture
def prompt_builder(message_repository) -> PromptWindowBuilder:
    """Prompt builder with the default window rules and a 1000 token budget."""
    return PromptWindowBuilder(message_repository, max_token=1000)


@pytest.fixture
def mock_completion_client():
    """Completion client whose API call is mocked."""
    client = MagicMock(spec=CompletionClient)
    client.complete = AsyncMock(return_value="Hello from the assistant")
    return client


@pytest.fixture
def test_settings() -> Settings:
    """Application settings for testing."""
    return Settings(
        wechat_token=TEST_TOKEN,
        openai_api_key="sk-test123",
        openai_model="gpt-3.5-turbo",
        openai_max_token=1024,
        database_url=TEST_DATABASE_URL,
        duplicate_poll_attempts=3,
        duplicate_poll_interval=0,
    )


@pytest.fixture
def add_turn(message_repository):
    """Insert a persisted turn created `minutes_ago` minutes before now."""

    async def _add_turn(
        session_id="u1",
        question="question",
        answer="answer",
        minutes_ago=1.0,
        token=None,
        msgid=None,
        deleted=False,
    ):
        created_at = utcnow() - timedelta(minutes=minutes_ago)
        return await message_repository.insert({
            "session_id": session_id,
            "msgid": msgid,
            "question": question,
            "answer": answer,
            "token": len(question) + len(answer) if token is None else token,
            "created_at": created_at,
            "deleted_at": created_at if deleted else None,
        })

    return _add_turn
