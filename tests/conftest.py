"""
Test Configuration — Fixtures for async DB, test client, and fake LLM providers.

Each test gets its own file-backed SQLite database so that several sessions
(run lock, pipeline, read side) can see each other's commits.
"""

import json
import os
import re

# Settings are read at import time; point them at SQLite before anything imports core.config.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.main import app
from core.ai.base import BaseAIProvider
from core.database import Base, get_db, get_session_factory
from core.exceptions import AIProviderError
from workers.ai_generator.classifier import ContentClassifier

_PRODUCT_LINE = re.compile(r"^Product: (.*)$", re.MULTILINE)
_TRENDS_CATEGORY = re.compile(r"for the (.*) category")
_COUPON_TARGET = re.compile(r"coupon codes for (.*) in the (.*) category")


def default_reply(prompt: str) -> dict:
    """Deterministic stand-in for the LLM, keyed on the prompt kind."""
    if "trending product keywords" in prompt:
        category = _TRENDS_CATEGORY.search(prompt).group(1)
        return {"keywords": [f"{category} Gadget {i}" for i in range(1, 8)]}
    if "categorize it accurately" in prompt:
        return {"category": "Electronics", "confidence": 0.92, "keywords": ["tech", "deal"]}
    if "optimized marketing content" in prompt:
        name = _PRODUCT_LINE.search(prompt).group(1)
        return {
            "title": f"{name} Deluxe",
            "description": f"The {name} you have been waiting for.",
            "features": ["Fast", "Light"],
            "benefits": ["Saves time"],
        }
    if "unique coupon codes" in prompt:
        merchant, category = _COUPON_TARGET.search(prompt).groups()
        prefix = re.sub(r"[^A-Z]", "", merchant.upper())[:3] + re.sub(r"[^A-Z]", "", category.upper())[:3]
        return {
            "codes": [
                {
                    "code": f"{prefix}{i}",
                    "description": f"{10 * i}% off {category}",
                    "discountType": "percentage",
                    "discountValue": 10 * i,
                    "minimumSpend": 25,
                    "expiresIn": 14,
                }
                for i in range(1, 4)
            ]
        }
    raise AIProviderError(f"unexpected prompt: {prompt[:40]}")


class FakeProvider(BaseAIProvider):
    """BaseAIProvider answering from a Python callable instead of an API."""

    def __init__(self, reply=default_reply) -> None:
        super().__init__(api_key="test", model_name="fake-model")
        self.reply = reply
        self.prompts: list[str] = []

    async def generate_text(self, prompt, system_prompt=None, *, json_mode=False) -> str:
        self.prompts.append(prompt)
        result = self.reply(prompt)
        return result if isinstance(result, str) else json.dumps(result)

    async def test_connection(self) -> bool:
        return True


class FailingProvider(BaseAIProvider):
    def __init__(self) -> None:
        super().__init__(api_key="test", model_name="broken-model")

    async def generate_text(self, prompt, system_prompt=None, *, json_mode=False) -> str:
        raise AIProviderError("model unavailable")

    async def test_connection(self) -> bool:
        return False


@pytest.fixture
async def test_engine(tmp_path):
    """Per-test SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs (begin_nested) behave.
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def classifier(fake_provider):
    return ContentClassifier(fake_provider)


@pytest.fixture
def failing_classifier():
    return ContentClassifier(FailingProvider())


@pytest.fixture
def make_classifier():
    """Build a classifier whose fake LLM answers with `reply(prompt)`."""

    def _make(reply=default_reply, cls=ContentClassifier):
        return cls(FakeProvider(reply))

    return _make


@pytest.fixture
async def client(session_factory):
    """Async test client with the DB dependencies pointed at the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
