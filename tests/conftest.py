"""
Pytest fixtures for the credential service tests.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Tuple

# Point the app at SQLite before any teller module builds its engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from teller.config import Settings, get_settings

get_settings.cache_clear()

from teller.kernel.identity.identity_service import CredentialService
from teller.kernel.identity.jwt import SessionTokenIssuer
from teller.kernel.identity.notifications import NotificationKind
from teller.kernel.identity.store import SqlAlchemyIdentityStore
from teller.kernel.models.base import Base
from teller.kernel.models.identity import Identity


TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta

    def set(self, value: datetime) -> None:
        self.now = value


class RecordingNotifier:
    """Notifier that keeps every token it is handed."""

    def __init__(self):
        self.sent: List[Tuple[Identity, str, NotificationKind]] = []

    async def notify(self, identity: Identity, token: str, kind: NotificationKind) -> None:
        self.sent.append((identity, token, kind))

    def last_token(self, kind: NotificationKind) -> str:
        for _, token, sent_kind in reversed(self.sent):
            if sent_kind == kind:
                return token
        raise AssertionError(f"No {kind.value} token was sent")


class RecordingStore:
    """Delegates to a real store and records the mutating calls."""

    MUTATIONS = ("create", "update", "consume_verification_token", "consume_reset_token")

    def __init__(self, inner: SqlAlchemyIdentityStore):
        self.inner = inner
        self.mutations: List[str] = []

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name not in self.MUTATIONS:
            return attr

        async def recorded(*args, **kwargs):
            self.mutations.append(name)
            return await attr(*args, **kwargs)

        return recorded


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def session_issuer() -> SessionTokenIssuer:
    """Session issuer for tests; uses real time so tokens verify."""
    return SessionTokenIssuer(
        secret_key="test-secret-key-for-testing-only-0123456789",
        algorithm="HS256",
        issuer="test-issuer",
        audience="test-audience",
        expire_minutes=60,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings() -> Settings:
    return Settings(require_email_verification=False, password_reset_expire_hours=24)


@pytest.fixture
def store(db_session: AsyncSession) -> RecordingStore:
    return RecordingStore(SqlAlchemyIdentityStore(db_session))


@pytest.fixture
def service(store, session_issuer, notifier, settings, clock) -> CredentialService:
    return CredentialService(
        store,
        issuer=session_issuer,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


@pytest_asyncio.fixture
async def alice(service: CredentialService, db_session: AsyncSession) -> Identity:
    """A committed, unverified account."""
    result = await service.register("alice", "alice@x.com", "Passw0rd!", "Passw0rd!")
    assert result.ok, result.error
    await db_session.commit()
    return result.value.identity
