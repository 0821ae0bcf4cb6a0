"""
Pytest configuration and fixtures
"""

import asyncio
import fnmatch
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from models.base import Base
import models.upload  # noqa: F401
import models.dataset  # noqa: F401
import models.usage  # noqa: F401
from ingestion.queue.redis_queue import EventQueue, UploadQueue
from schemas.messages import EventMessage


SAMPLE_CSV = (
    "id,name,amount\n"
    "1,alpha,10.5\n"
    "2,beta,20.25\n"
    "3,gamma,30.0\n"
)


class FakeRedis:
    """
    In-memory stand-in for the handful of redis.asyncio commands the queues use.

    Lists follow Redis semantics: LPUSH prepends, BRPOP pops from the tail.
    TTLs are recorded but never expire.
    """

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.strings: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}

    async def lpush(self, key, *values):
        lst = self.lists.setdefault(key, [])
        for value in values:
            lst.insert(0, value)
        return len(lst)

    async def brpop(self, keys, timeout=0):
        for key in keys:
            lst = self.lists.get(key)
            if lst:
                return key, lst.pop()
        # Yield so concurrently running tasks get a turn
        await asyncio.sleep(0)
        return None

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.strings)

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.strings:
            return None
        self.strings[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def hincrby(self, key, field, amount=1):
        h = self.hashes.setdefault(key, {})
        h[field] = str(int(h.get(field, "0")) + amount)
        return int(h[field])

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def ping(self):
        return True

    async def aclose(self):
        pass

    def keys_matching(self, pattern: str) -> List[str]:
        return [k for k in self.strings if fnmatch.fnmatch(k, pattern)]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def event_queue(fake_redis):
    return EventQueue(fake_redis, prefix="test", ttl_seconds=86400, dequeue_timeout=1)


@pytest.fixture
def upload_queue(fake_redis):
    return UploadQueue(fake_redis, prefix="test", ttl_seconds=86400, dequeue_timeout=1)


@pytest.fixture
def sqlite_url(tmp_path):
    """File-backed SQLite database with all tables created"""
    path = tmp_path / "test.db"
    sync_engine = create_sync_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest_asyncio.fixture(scope="function")
async def test_engine(sqlite_url):
    """Create test database engine"""
    engine = create_async_engine(
        sqlite_url,
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_object_store():
    """Object store double: presigns deterministically, records PUTs"""
    store = MagicMock()
    store.bucket = "test-bucket"
    store.put_object = AsyncMock()
    store.put_parquet = AsyncMock()
    store.download_to_file = AsyncMock()
    store.ensure_bucket = AsyncMock()

    def presign(object_key, content_type, expiry_seconds):
        return (
            f"https://objects.test/test-bucket/{object_key}?X-Amz-Expires={expiry_seconds}",
            datetime(2024, 1, 15, 12, 15, tzinfo=timezone.utc),
        )

    store.generate_presigned_put_url = MagicMock(side_effect=presign)
    return store


@pytest.fixture
def sample_csv_path(tmp_path):
    path = tmp_path / "sample.csv"
    path.write_text(SAMPLE_CSV)
    return path


def make_event(
    tenant_id: str = "t1",
    event_id: str = "evt_00000001",
    event_name: str = "page_view",
    properties: str = '{"path": "/home"}',
    event_time: Optional[datetime] = None,
) -> EventMessage:
    event_time = event_time or datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    return EventMessage(
        event_id=event_id,
        tenant_id=tenant_id,
        event_name=event_name,
        properties=properties,
        event_time=event_time,
        received_at=datetime(2024, 1, 15, 10, 0, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def event_factory():
    return make_event
