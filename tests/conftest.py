"""
Shared test configuration and fixtures for atkit tests.

Provides a fake XRPC server built on aiohttp's test server, JWT factories for access and refresh
tokens, and in-process Redis and SQLite backends for the credential stores.
"""

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List

import fakeredis.aioredis
import pytest
import pytest_asyncio
from jwcrypto import jwk, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from social.graze.atkit.atproto.dispatcher import Dispatcher
from social.graze.atkit.atproto.session import Session, SessionManager
from social.graze.atkit.model.base import Base
from social.graze.atkit.store import MemoryCredentialStore
from social.graze.atkit.lexicon.server import CreateSessionOutput
from tests.test_helpers import TEST_DID, FakeXRPCServer, session_body


@pytest_asyncio.fixture
async def xrpc_server():
    """Provide a running fake XRPC server."""
    fake = FakeXRPCServer()
    await fake.server.start_server()
    yield fake
    await fake.server.close()


@pytest.fixture
def signing_key() -> jwk.JWK:
    return jwk.JWK.generate(kty="oct", size=256)


@pytest.fixture
def make_token(signing_key) -> Callable[..., str]:
    """Build a signed JWT expiring ``expires_in`` seconds from now."""

    def _make_token(expires_in: float = 3600, scope: str = "com.atproto.access") -> str:
        exp = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        token = jwt.JWT(
            header={"alg": "HS256", "typ": "JWT"},
            claims={"sub": TEST_DID, "scope": scope, "exp": int(exp.timestamp())},
        )
        token.make_signed_token(signing_key)
        return token.serialize()

    return _make_token


@pytest.fixture
def make_session(make_token) -> Callable[..., Session]:
    """Build a Session against ``service_endpoint`` with tokens expiring as requested."""

    def _make_session(
        service_endpoint: str,
        access_expires_in: float = 3600,
        refresh_expires_in: float = 86400,
    ) -> Session:
        access_token = make_token(access_expires_in)
        refresh_token = make_token(refresh_expires_in, scope="com.atproto.refresh")
        body = session_body(access_token, refresh_token, service_endpoint)
        return Session.from_output(
            CreateSessionOutput.model_validate(body), service_endpoint
        )

    return _make_session


@pytest.fixture
def recorded_sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps) -> Callable[[float], Awaitable[None]]:
    """An asyncio.sleep replacement that records delays without waiting."""

    async def _sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    return _sleep


@pytest_asyncio.fixture
async def dispatcher(fake_sleep):
    """Provide a dispatcher with the default retry policy and no real delays."""
    dispatcher = Dispatcher(max_attempts=3, retry_delay=1.0, sleep=fake_sleep)
    yield dispatcher
    await dispatcher.close()


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def session_manager(dispatcher, memory_store, xrpc_server) -> SessionManager:
    """A session manager whose PDS and public App View are the fake server."""
    return SessionManager(
        dispatcher,
        memory_store,
        pds_url=xrpc_server.url,
        public_appview_url=xrpc_server.url,
        refresh_margin=60.0,
    )


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def engine():
    """Create an in-memory SQLite engine with all tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

