"""
Session and token lifecycle.

A ``SessionManager`` owns the one canonical ``Session`` of a client. Sessions are immutable: a
refresh builds a new one, persists it, and only then swaps the manager's reference, so readers
always see a complete session.

Refreshes are single-flight. The first caller that needs a fresh token starts a refresh task and
every other caller awaits that same task. The task is shielded, so a caller being cancelled never
aborts or half-applies a refresh that others depend on.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from aiohttp import hdrs
from jwcrypto.common import base64url_decode, json_decode
from pydantic import BaseModel, ConfigDict, Field
import sentry_sdk

from social.graze.atkit.atproto.dispatcher import Dispatcher
from social.graze.atkit.atproto.request import build_request, xrpc_url
from social.graze.atkit.config import DEFAULT_PDS_URL, DEFAULT_PUBLIC_APPVIEW_URL
from social.graze.atkit.errors import (
    AuthenticationError,
    MissingActiveSessionError,
    XRPCError,
)
from social.graze.atkit.lexicon.server import (
    CreateSessionInput,
    CreateSessionOutput,
    GetSessionOutput,
    RefreshSessionOutput,
    SessionOutput,
)
from social.graze.atkit.resolve.handle import service_endpoint_from_did_document

if TYPE_CHECKING:
    from social.graze.atkit.store import CredentialStore

logger = logging.getLogger(__name__)

CREATE_SESSION = "com.atproto.server.createSession"
REFRESH_SESSION = "com.atproto.server.refreshSession"
GET_SESSION = "com.atproto.server.getSession"
DELETE_SESSION = "com.atproto.server.deleteSession"


class AuthMode(Enum):
    """How an endpoint uses the session."""

    REQUIRED = "required"
    """A session is mandatory; calls without one fail with ``MissingActiveSessionError``."""

    OPTIONAL = "optional"
    """Use the session when there is one, otherwise call the public App View anonymously."""

    NONE = "none"
    """Never attach a token."""


def token_expiry(token: Optional[str]) -> Optional[datetime]:
    """
    Read the ``exp`` claim of a JWT without verifying it.

    Returns None for tokens that are not JWTs or carry no usable ``exp``.
    """
    if not token:
        return None

    parts = token.split(".")
    if len(parts) != 3:
        return None

    try:
        claims = json_decode(base64url_decode(parts[1]))
    except (ValueError, TypeError):
        return None

    if not isinstance(claims, dict):
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


class Session(BaseModel):
    """An authenticated session with a PDS."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    did: str
    handle: str
    access_token: str = Field(alias="accessJwt")
    refresh_token: str = Field(alias="refreshJwt")
    service_endpoint: str = Field(alias="serviceEndpoint")
    email: Optional[str] = None
    email_confirmed: Optional[bool] = Field(default=None, alias="emailConfirmed")
    active: Optional[bool] = None
    status: Optional[str] = None
    did_document: Optional[Dict[str, Any]] = Field(default=None, alias="didDoc")
    access_expires_at: Optional[datetime] = Field(default=None, alias="accessExpiresAt")
    refresh_expires_at: Optional[datetime] = Field(
        default=None, alias="refreshExpiresAt"
    )

    @classmethod
    def from_output(cls, output: SessionOutput, fallback_service_endpoint: str) -> "Session":
        return cls(
            did=output.did,
            handle=output.handle,
            access_token=output.access_jwt,
            refresh_token=output.refresh_jwt,
            service_endpoint=service_endpoint_from_did_document(output.did_doc)
            or fallback_service_endpoint,
            email=output.email,
            email_confirmed=output.email_confirmed,
            active=output.active,
            status=output.status,
            did_document=output.did_doc,
            access_expires_at=token_expiry(output.access_jwt),
            refresh_expires_at=token_expiry(output.refresh_jwt),
        )

    def refreshed(self, output: RefreshSessionOutput) -> "Session":
        """A new session carrying the rotated tokens. Fields the refresh omits are kept."""
        did_document = output.did_doc or self.did_document
        return self.model_copy(
            update={
                "did": output.did,
                "handle": output.handle,
                "access_token": output.access_jwt,
                "refresh_token": output.refresh_jwt,
                "service_endpoint": service_endpoint_from_did_document(did_document)
                or self.service_endpoint,
                "did_document": did_document,
                "active": output.active if output.active is not None else self.active,
                "status": output.status,
                "access_expires_at": token_expiry(output.access_jwt),
                "refresh_expires_at": token_expiry(output.refresh_jwt),
            }
        )

    def access_expired(self, now: datetime, margin: float = 0.0) -> bool:
        """
        True when the access token expires within ``margin`` seconds of ``now``.

        Tokens without a readable expiry are assumed valid; the server has the final say.
        """
        if self.access_expires_at is None:
            return False
        return self.access_expires_at - timedelta(seconds=margin) <= now

    def refresh_expired(self, now: datetime) -> bool:
        if self.refresh_expires_at is None:
            return False
        return self.refresh_expires_at <= now


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(
        self,
        dispatcher: Dispatcher,
        store: "CredentialStore",
        pds_url: str = DEFAULT_PDS_URL,
        public_appview_url: str = DEFAULT_PUBLIC_APPVIEW_URL,
        refresh_margin: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.dispatcher = dispatcher
        self.store = store
        self.pds_url = pds_url
        self.public_appview_url = public_appview_url
        self.refresh_margin = refresh_margin
        self._clock = clock

        self._session: Optional[Session] = None
        self._refresh_task: Optional[asyncio.Task[Session]] = None
        # Bumped whenever the active session is replaced or dropped.
        self._generation = 0

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def service_endpoint(self) -> str:
        if self._session is None:
            return self.pds_url
        return self._session.service_endpoint

    async def create_session(
        self,
        identifier: str,
        password: str,
        auth_factor_token: Optional[str] = None,
    ) -> Session:
        """
        Log in with a handle (or DID, or email) and password.

        Raises:
            AuthenticationError: The credentials were rejected.
        """
        descriptor = build_request(
            xrpc_url(self.pds_url, CREATE_SESSION),
            hdrs.METH_POST,
            body=CreateSessionInput(
                identifier=identifier,
                password=password,
                auth_factor_token=auth_factor_token,
            ),
            nsid=CREATE_SESSION,
        )
        try:
            output = await self.dispatcher.send(descriptor, CreateSessionOutput)
        except XRPCError as e:
            if e.status == 401:
                raise AuthenticationError(f"Login rejected: {e}") from e
            raise

        session = Session.from_output(output, self.pds_url)
        await self.store.store(session)
        self._generation += 1
        self._session = session
        logger.info(f"Created session for {session.did}")
        return session

    async def resume(self, session: Session) -> Session:
        """
        Activate an existing session, refreshing it if the access token has expired.

        Raises:
            AuthenticationError: The refresh token has expired; the caller must log in again.
        """
        if session.refresh_expired(self._clock()):
            await self.invalidate()
            raise AuthenticationError("Session tokens expired")

        await self.store.store(session)
        self._generation += 1
        self._session = session

        if session.access_expired(self._clock(), self.refresh_margin):
            return await self.refresh(stale=session)
        return session

    async def resume_from_store(self) -> Optional[Session]:
        """Activate the session held by the credential store, if there is one."""
        session = await self.store.retrieve_session()
        if session is None:
            return None
        return await self.resume(session)

    async def get_valid_access_token(self) -> str:
        """
        Return an access token that is not about to expire.

        Raises:
            MissingActiveSessionError: No session is active.
            AuthenticationError: The session could not be refreshed.
        """
        session = self._session
        if session is None:
            raise MissingActiveSessionError("No active session")

        if not session.access_expired(self._clock(), self.refresh_margin):
            return session.access_token

        refreshed = await self.refresh(stale=session)
        return refreshed.access_token

    async def refresh(self, stale: Optional[Session] = None) -> Session:
        """
        Refresh the session, joining a refresh that is already running.

        When ``stale`` is given and the active session has already moved past it, the active
        session is returned without another round trip.
        """
        current = self._session
        if (
            stale is not None
            and current is not None
            and current is not stale
            and not current.access_expired(self._clock(), self.refresh_margin)
        ):
            return current

        if self._refresh_task is None:
            self._refresh_task = asyncio.get_running_loop().create_task(
                self._do_refresh()
            )
            self._refresh_task.add_done_callback(self._refresh_done)

        return await asyncio.shield(self._refresh_task)

    def _refresh_done(self, task: "asyncio.Task[Session]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark the exception as retrieved when every waiter was cancelled.
            task.exception()

    async def _do_refresh(self) -> Session:
        session = self._session
        if session is None:
            raise MissingActiveSessionError("No active session")
        generation = self._generation

        if session.refresh_expired(self._clock()):
            await self.invalidate()
            raise AuthenticationError("Refresh token expired")

        descriptor = build_request(
            xrpc_url(session.service_endpoint, REFRESH_SESSION),
            hdrs.METH_POST,
            authorization=f"Bearer {session.refresh_token}",
            nsid=REFRESH_SESSION,
            idempotent=True,
        )
        try:
            output = await self.dispatcher.send(descriptor, RefreshSessionOutput)
        except XRPCError as e:
            if e.status == 401 or (e.status == 400 and e.token_rejected):
                logger.warning(f"Refresh rejected for {session.did}: {e}")
                sentry_sdk.capture_exception(e)
                if self._generation == generation:
                    await self.invalidate()
                raise AuthenticationError(f"Session refresh rejected: {e}") from e
            raise

        new_session = session.refreshed(output)
        if self._generation != generation:
            return await self._superseded_refresh(session)

        await self.store.store(new_session)
        if self._generation != generation:
            return await self._superseded_refresh(session)
        self._session = new_session
        logger.debug(f"Refreshed session for {new_session.did}")
        return new_session

    async def _superseded_refresh(self, session: Session) -> Session:
        """
        Settle a refresh whose session was logged out or replaced while it was in flight.

        The refreshed tokens are discarded and the store is brought back in line with the
        active session.
        """
        logger.info(f"Discarding refresh for {session.did}, the session ended meanwhile")
        current = self._session
        if current is None:
            await self.store.clear()
            raise MissingActiveSessionError("Session ended during refresh")
        await self.store.store(current)
        return current

    async def get_session(self) -> Session:
        """Validate the active session with the PDS and pick up account changes."""
        token = await self.get_valid_access_token()
        session = self._session
        if session is None:
            raise MissingActiveSessionError("No active session")

        descriptor = build_request(
            xrpc_url(session.service_endpoint, GET_SESSION),
            hdrs.METH_GET,
            authorization=f"Bearer {token}",
            nsid=GET_SESSION,
        )
        output = await self.dispatcher.send(descriptor, GetSessionOutput)

        did_document = output.did_doc or session.did_document
        updated = session.model_copy(
            update={
                "handle": output.handle,
                "email": output.email,
                "email_confirmed": output.email_confirmed,
                "active": output.active,
                "status": output.status,
                "did_document": did_document,
                "service_endpoint": service_endpoint_from_did_document(did_document)
                or session.service_endpoint,
            }
        )
        # A refresh that finished meanwhile carries newer tokens; keep those.
        if self._session is session:
            await self.store.store(updated)
            self._session = updated
            return updated
        return self._session or updated

    async def delete_session(self) -> None:
        """Log out. The local session is cleared even when the server call fails."""
        session = self._session
        if session is None:
            return

        descriptor = build_request(
            xrpc_url(session.service_endpoint, DELETE_SESSION),
            hdrs.METH_POST,
            authorization=f"Bearer {session.refresh_token}",
            nsid=DELETE_SESSION,
        )
        try:
            await self.dispatcher.send(descriptor)
        finally:
            await self.invalidate()

    async def invalidate(self) -> None:
        """Forget the session locally and in the credential store."""
        self._generation += 1
        self._session = None
        await self.store.clear()

    async def authorization(self, auth_mode: AuthMode) -> Tuple[Optional[str], str]:
        """
        Resolve the ``Authorization`` header and base URL for a call.

        Raises:
            MissingActiveSessionError: ``auth_mode`` is REQUIRED and no session is active.
        """
        if auth_mode == AuthMode.NONE:
            return None, self.service_endpoint

        if self._session is None:
            if auth_mode == AuthMode.OPTIONAL:
                return None, self.public_appview_url
            raise MissingActiveSessionError("No active session")

        token = await self.get_valid_access_token()
        return f"Bearer {token}", self.service_endpoint
