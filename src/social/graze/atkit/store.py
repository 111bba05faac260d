"""
Credential stores.

A store persists the active session so that it survives restarts and can be shared between
processes. The session manager writes the store before it swaps its own in-memory session, so a
store never lags behind what callers are using.

Backends:
- MemoryCredentialStore: process-local, the default
- RedisCredentialStore: one key per session, written atomically with SET
- DatabaseCredentialStore: one row per session in ``atkit_sessions``, written in one transaction

The Redis and database stores encrypt the serialized session with Fernet when given a key.
``create_credential_store`` picks a backend from ``Settings``.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError
from sqlalchemy import delete
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from social.graze.atkit.atproto.session import Session
from social.graze.atkit.config import Settings
from social.graze.atkit.model.base import Base
from social.graze.atkit.model.session import StoredSession

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


class CredentialStore(ABC):
    """Persistence for one session. All operations are safe to call concurrently."""

    @abstractmethod
    async def retrieve_session(self) -> Optional[Session]:
        pass

    @abstractmethod
    async def store(self, session: Session) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def retrieve_access_token(self) -> Optional[str]:
        session = await self.retrieve_session()
        if session is None:
            return None
        return session.access_token

    async def retrieve_refresh_token(self) -> Optional[str]:
        session = await self.retrieve_session()
        if session is None:
            return None
        return session.refresh_token

    async def open(self) -> None:
        """Prepare the backend before first use."""

    async def close(self) -> None:
        """Release connections the store opened itself."""


class SessionCodec:
    """Serializes sessions to JSON, Fernet-encrypted when a key is given."""

    def __init__(self, encryption_key: Optional[Fernet] = None) -> None:
        self.encryption_key = encryption_key

    def encode(self, session: Session) -> bytes:
        data = session.model_dump_json(by_alias=True).encode("utf-8")
        if self.encryption_key is not None:
            return self.encryption_key.encrypt(data)
        return data

    def decode(self, data: bytes | str) -> Optional[Session]:
        """Decode stored data. Unreadable entries are logged and treated as absent."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            if self.encryption_key is not None:
                data = self.encryption_key.decrypt(data)
            return Session.model_validate_json(data)
        except InvalidToken:
            logger.warning("Stored session could not be decrypted, ignoring it")
        except ValidationError as e:
            logger.warning(f"Stored session is malformed, ignoring it: {e}")
        return None


class MemoryCredentialStore(CredentialStore):
    def __init__(self, session: Optional[Session] = None) -> None:
        self._session = session
        self._lock = asyncio.Lock()

    async def retrieve_session(self) -> Optional[Session]:
        async with self._lock:
            return self._session

    async def store(self, session: Session) -> None:
        async with self._lock:
            self._session = session

    async def clear(self) -> None:
        async with self._lock:
            self._session = None


class RedisCredentialStore(CredentialStore):
    """
    Stores the session under ``{prefix}:{key}``.

    The entry expires together with the refresh token when its expiry is known.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str = DEFAULT_KEY,
        prefix: str = "atkit:session",
        encryption_key: Optional[Fernet] = None,
        owns_client: bool = False,
    ) -> None:
        self.redis_client = redis_client
        self.owns_client = owns_client
        self.redis_key = f"{prefix}:{key}"
        self.codec = SessionCodec(encryption_key)

    async def retrieve_session(self) -> Optional[Session]:
        data = await self.redis_client.get(self.redis_key)
        if data is None:
            return None
        return self.codec.decode(data)

    async def store(self, session: Session) -> None:
        expires_in: Optional[int] = None
        if session.refresh_expires_at is not None:
            expires_in = int(
                (session.refresh_expires_at - datetime.now(timezone.utc)).total_seconds()
            )
            if expires_in <= 0:
                await self.clear()
                return

        await self.redis_client.set(
            self.redis_key, self.codec.encode(session), ex=expires_in
        )

    async def clear(self) -> None:
        await self.redis_client.delete(self.redis_key)

    async def close(self) -> None:
        if self.owns_client:
            await self.redis_client.aclose()


class DatabaseCredentialStore(CredentialStore):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        key: str = DEFAULT_KEY,
        encryption_key: Optional[Fernet] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        """
        Args:
            engine: An engine the store opened itself. ``open()`` creates the sessions table on
                it and ``close()`` disposes of it.
        """
        self.session_maker = session_maker
        self.engine = engine
        self.key = key
        self.codec = SessionCodec(encryption_key)

    async def retrieve_session(self) -> Optional[Session]:
        async with self.session_maker() as database_session:
            stored = await database_session.get(StoredSession, self.key)
            if stored is None:
                return None
            return self.codec.decode(stored.data)

    async def store(self, session: Session) -> None:
        async with self.session_maker() as database_session:
            async with database_session.begin():
                await database_session.merge(
                    StoredSession(
                        key=self.key,
                        did=session.did,
                        data=self.codec.encode(session).decode("utf-8"),
                        access_token_expires_at=session.access_expires_at,
                        refresh_token_expires_at=session.refresh_expires_at,
                        updated_at=datetime.now(timezone.utc),
                    )
                )

    async def clear(self) -> None:
        async with self.session_maker() as database_session:
            async with database_session.begin():
                await database_session.execute(
                    delete(StoredSession).where(StoredSession.key == self.key)
                )

    async def open(self) -> None:
        if self.engine is not None:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def create_credential_store(settings: Settings) -> CredentialStore:
    """
    Build the store selected by ``settings``.

    ``redis_dsn`` takes precedence over ``database_url``; with neither set the session is kept in
    process memory. Redis and database stores own the connections opened here and are given
    ``settings.encryption_key``.
    """
    if settings.redis_dsn:
        logger.info("Using the Redis credential store")
        return RedisCredentialStore(
            redis.from_url(settings.redis_dsn),
            encryption_key=settings.encryption_key,
            owns_client=True,
        )

    if settings.database_url:
        logger.info("Using the database credential store")
        engine = create_async_engine(settings.database_url)
        return DatabaseCredentialStore(
            async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
            encryption_key=settings.encryption_key,
            engine=engine,
        )

    return MemoryCredentialStore()
