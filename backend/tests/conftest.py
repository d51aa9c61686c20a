import re
import zlib
from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx
import numpy as np
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from intranet_search import models  # noqa: F401
from intranet_search.main import app
from intranet_search.database import Base
from intranet_search.api import deps
from intranet_search.core.search_exceptions import EmbeddingError
from intranet_search.core.search_store import SearchStore
from intranet_search.utils.cache import _cache_instance
from intranet_search.utils.redis_cache import RedisConnection

DIMENSIONS = 768
_WORD = re.compile(r"\w+")


def fake_embedding(text: str) -> List[float]:
    """Bag-of-words vector: texts sharing words have a high cosine similarity."""
    vector = np.zeros(DIMENSIONS, dtype=np.float32)
    for word in set(_WORD.findall(text.lower())):
        if len(word) > 2:
            vector[zlib.crc32(word.encode("utf-8")) % DIMENSIONS] = 1.0
    norm = np.linalg.norm(vector)
    if norm == 0:
        vector[0] = 1.0
        norm = 1.0
    return (vector / norm).tolist()


class FakeEmbeddingEngine:
    """Deterministic stand-in for the Gemini embedding API."""

    def __init__(self, fail_on: Optional[List[str]] = None, fail_all: bool = False):
        self.fail_on = fail_on or []
        self.fail_all = fail_all
        self.calls: List[str] = []

    async def embed_document(self, text: str) -> List[float]:
        return self._embed(text)

    async def embed_query(self, text: str) -> List[float]:
        return self._embed(text)

    def _embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        if self.fail_all or any(marker in text for marker in self.fail_on):
            raise EmbeddingError("Embedding API error: 429 rate limited")
        return fake_embedding(text)


class FakeRedis:
    """In-memory subset of the redis.asyncio client used by the cache."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value.encode("utf-8") if isinstance(value, str) else value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)

    async def ping(self):
        return True


@pytest.fixture(autouse=True)
def fake_redis():
    """Route the distributed cache to an in-memory fake for every test."""
    redis = FakeRedis()
    _cache_instance.reset()
    with patch.object(RedisConnection, "get_redis_client", AsyncMock(return_value=redis)):
        yield redis
    _cache_instance.reset()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """A fresh SQLite database per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'search.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return SearchStore(session_factory)


@pytest.fixture
def embedding_engine():
    return FakeEmbeddingEngine()


@pytest.fixture
def chat_engine():
    engine = AsyncMock()
    engine.complete = AsyncMock(return_value="política de horário\nhorário de trabalho\nescala de turnos")
    return engine


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def add_rows(session_factory):
    """Insert ORM rows in their own committed session."""
    async def _add(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
    return _add


@pytest.fixture
def make_embedding_engine():
    return FakeEmbeddingEngine


@pytest_asyncio.fixture
async def api_client(store, embedding_engine):
    """ASGI client with the store and AI engines swapped for test doubles."""
    app.dependency_overrides[deps.get_search_store] = lambda: store
    app.dependency_overrides[deps.get_embedding_engine] = lambda: embedding_engine
    app.dependency_overrides[deps.get_suggestion_chat_engine] = lambda: None
    app.dependency_overrides[deps.get_insights_chat_engine] = lambda: None

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
