import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campus_messaging.database import Base, get_db
from campus_messaging.dependencies import get_clock
from campus_messaging.identity import create_access_token
from campus_messaging.main import app as fastapi_app
from campus_messaging.models import Message, Profile
from campus_messaging.schemas.message import MessageRecord
from campus_messaging.ws import LiveUpdateChannel, get_channel

ALICE = "4f1c2a9e-0000-4000-8000-00000000000a"
BOB = "4f1c2a9e-0000-4000-8000-00000000000b"
CAROL = "4f1c2a9e-0000-4000-8000-00000000000c"
GHOST = "4f1c2a9e-0000-4000-8000-0000000000ff"  # no profile

PROFILES = {
    ALICE: "Alice Adams",
    BOB: "Bob Brown",
    CAROL: "Carol Chen",
}

T0 = datetime(2026, 3, 1, 9, 0, 0)


class TickClock:
    """Returns strictly increasing naive UTC timestamps, one second apart."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


def record(id, sender_id, recipient_id, content="hi", read=False, at=0, updated_at=None) -> MessageRecord:
    created = T0 + timedelta(seconds=at)
    return MessageRecord(
        id=id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        read=read,
        created_at=created,
        updated_at=updated_at or created,
    )


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all(Profile(id=pid, name=name) for pid, name in PROFILES.items())
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def channel():
    return LiveUpdateChannel(queue_size=16)


@pytest_asyncio.fixture
async def app(session_factory, channel, clock):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_channel] = lambda: channel
    fastapi_app.dependency_overrides[get_clock] = lambda: clock
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def http_for(app):
    """Factory for HTTP clients authenticated as a given user."""
    clients = []

    def make(user_id: str, base_url: str = "http://test") -> httpx.AsyncClient:
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=base_url,
            headers=auth_headers(user_id),
        )
        clients.append(client)
        return client

    yield make
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def count_messages(session_factory):
    async def count() -> int:
        async with session_factory() as session:
            result = await session.execute(Message.__table__.select())
            return len(result.all())

    return count
