"""
Tests for session creation, refresh and invalidation.

The refresh tests run real concurrent callers against the fake XRPC server and count the
``refreshSession`` calls it receives.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web

from social.graze.atkit.atproto.session import (
    CREATE_SESSION,
    DELETE_SESSION,
    GET_SESSION,
    REFRESH_SESSION,
    AuthMode,
    SessionManager,
    token_expiry,
)
from social.graze.atkit.errors import (
    AuthenticationError,
    MissingActiveSessionError,
    XRPCError,
)

from tests.test_helpers import (
    TEST_DID,
    TEST_HANDLE,
    json_response,
    request_json,
    session_body,
    xrpc_error,
)


def refresh_handler(make_token, delay: float = 0.0):
    """A refreshSession handler that rotates both tokens."""

    async def handler(request: web.Request) -> web.StreamResponse:
        if delay:
            await asyncio.sleep(delay)
        return json_response(
            body=session_body(make_token(3600), make_token(86400, scope="com.atproto.refresh"))
        )

    return handler


class TestTokenExpiry:
    """Test reading the exp claim from JWTs."""

    def test_reads_exp(self, make_token):
        expiry = token_expiry(make_token(120))
        assert expiry is not None
        remaining = (expiry - datetime.now(timezone.utc)).total_seconds()
        assert 100 < remaining <= 120

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c", "a.e30.c"])
    def test_unreadable_tokens(self, token):
        # "e30" is base64url for "{}", a token without exp.
        assert token_expiry(token) is None


class TestCreateSession:
    """Test logging in."""

    @pytest.mark.asyncio
    async def test_create_session(self, session_manager, memory_store, xrpc_server, make_token):
        access_token = make_token(3600)
        xrpc_server.respond(
            CREATE_SESSION,
            session_body(access_token, make_token(86400), "https://pds.example.com"),
        )

        session = await session_manager.create_session(TEST_HANDLE, "hunter2")

        assert session.did == TEST_DID
        assert session.access_token == access_token
        assert session.service_endpoint == "https://pds.example.com"
        assert session.access_expires_at is not None
        assert session_manager.session is session
        assert await memory_store.retrieve_session() == session

        sent = request_json(xrpc_server.requests_for(CREATE_SESSION)[0])
        assert sent == {"identifier": TEST_HANDLE, "password": "hunter2"}

    @pytest.mark.asyncio
    async def test_service_endpoint_falls_back_to_pds(
        self, session_manager, xrpc_server, make_token
    ):
        xrpc_server.respond(CREATE_SESSION, session_body(make_token(), make_token()))

        session = await session_manager.create_session(TEST_HANDLE, "hunter2")

        assert session.service_endpoint == xrpc_server.url

    @pytest.mark.asyncio
    async def test_auth_factor_token_sent(self, session_manager, xrpc_server, make_token):
        xrpc_server.respond(CREATE_SESSION, session_body(make_token(), make_token()))

        await session_manager.create_session(TEST_HANDLE, "hunter2", "123456")

        sent = request_json(xrpc_server.requests_for(CREATE_SESSION)[0])
        assert sent["authFactorToken"] == "123456"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, session_manager, memory_store, xrpc_server):
        async def rejected(request):
            return xrpc_error(401, "AuthenticationRequired", "Invalid identifier or password")

        xrpc_server.route(CREATE_SESSION, rejected)

        with pytest.raises(AuthenticationError):
            await session_manager.create_session(TEST_HANDLE, "wrong")

        assert session_manager.session is None
        assert await memory_store.retrieve_session() is None


class TestRefresh:
    """Test single-flight token refresh."""

    @pytest.mark.asyncio
    async def test_valid_token_returned_without_refresh(
        self, session_manager, xrpc_server, make_session
    ):
        session = make_session(xrpc_server.url)
        await session_manager.resume(session)

        assert await session_manager.get_valid_access_token() == session.access_token
        assert xrpc_server.requests_for(REFRESH_SESSION) == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(
        self, session_manager, memory_store, xrpc_server, make_session, make_token
    ):
        stale = make_session(xrpc_server.url, access_expires_in=10)
        session_manager._session = stale
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token, delay=0.05))

        tokens = await asyncio.gather(
            *[session_manager.get_valid_access_token() for _ in range(10)]
        )

        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 1
        assert len(set(tokens)) == 1
        assert tokens[0] != stale.access_token
        assert session_manager.session.access_token == tokens[0]
        assert (await memory_store.retrieve_session()).access_token == tokens[0]

        refresh_request = xrpc_server.requests_for(REFRESH_SESSION)[0]
        assert refresh_request["method"] == "POST"
        assert refresh_request["headers"]["Authorization"] == f"Bearer {stale.refresh_token}"

    @pytest.mark.asyncio
    async def test_refresh_keeps_session_fields(
        self, session_manager, xrpc_server, make_session, make_token
    ):
        stale = make_session("https://pds.example.com", access_expires_in=10)
        session_manager._session = stale.model_copy(
            update={"service_endpoint": xrpc_server.url, "email": "alice@example.com"}
        )
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token))

        refreshed = await session_manager.refresh()

        assert refreshed.email == "alice@example.com"
        # The stale DID document still names the old PDS.
        assert refreshed.service_endpoint == "https://pds.example.com"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_abort_refresh(
        self, session_manager, xrpc_server, make_session, make_token
    ):
        session_manager._session = make_session(xrpc_server.url, access_expires_in=10)
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token, delay=0.1))

        first = asyncio.create_task(session_manager.get_valid_access_token())
        await asyncio.sleep(0.02)
        second = asyncio.create_task(session_manager.get_valid_access_token())
        await asyncio.sleep(0)
        first.cancel()

        token = await second

        with pytest.raises(asyncio.CancelledError):
            await first
        assert session_manager.session.access_token == token
        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error", [(400, "ExpiredToken"), (400, "InvalidToken"), (401, "AuthMissing")]
    )
    async def test_rejected_refresh_invalidates(
        self, session_manager, memory_store, xrpc_server, make_session, status, error
    ):
        await memory_store.store(make_session(xrpc_server.url))
        session_manager._session = make_session(xrpc_server.url, access_expires_in=10)

        async def rejected(request):
            return xrpc_error(status, error, "Token has been revoked")

        xrpc_server.route(REFRESH_SESSION, rejected)

        with pytest.raises(AuthenticationError):
            await session_manager.get_valid_access_token()

        assert session_manager.session is None
        assert await memory_store.retrieve_session() is None

    @pytest.mark.asyncio
    async def test_server_failure_keeps_session(
        self, session_manager, xrpc_server, make_session
    ):
        session = make_session(xrpc_server.url, access_expires_in=10)
        session_manager._session = session

        async def broken(request):
            return xrpc_error(500, "InternalServerError")

        xrpc_server.route(REFRESH_SESSION, broken)

        with pytest.raises(XRPCError):
            await session_manager.refresh()

        assert session_manager.session is session
        assert session_manager._refresh_task is None

    @pytest.mark.asyncio
    async def test_transient_refresh_failure_is_retried(
        self, session_manager, memory_store, xrpc_server, make_session, make_token, recorded_sleeps
    ):
        session_manager._session = make_session(xrpc_server.url, access_expires_in=10)
        succeed = refresh_handler(make_token)
        calls = []

        async def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                return xrpc_error(503, "ServiceUnavailable", "Unavailable")
            return await succeed(request)

        xrpc_server.route(REFRESH_SESSION, flaky)

        token = await session_manager.get_valid_access_token()

        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 2
        assert recorded_sleeps == [1.0]
        assert session_manager.session.access_token == token
        assert (await memory_store.retrieve_session()).access_token == token

    @pytest.mark.asyncio
    async def test_logout_during_refresh_discards_result(
        self, session_manager, memory_store, xrpc_server, make_session, make_token
    ):
        session = make_session(xrpc_server.url, access_expires_in=10)
        await memory_store.store(session)
        session_manager._session = session
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token, delay=0.2))

        pending = asyncio.create_task(session_manager.get_valid_access_token())
        await asyncio.sleep(0.05)
        await session_manager.invalidate()

        with pytest.raises(MissingActiveSessionError):
            await pending

        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 1
        assert session_manager.session is None
        assert await memory_store.retrieve_session() is None

    @pytest.mark.asyncio
    async def test_login_during_refresh_keeps_new_session(
        self, session_manager, memory_store, xrpc_server, make_session, make_token
    ):
        await session_manager.resume(make_session(xrpc_server.url, access_expires_in=3600))
        session_manager._session = make_session(xrpc_server.url, access_expires_in=10)
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token, delay=0.2))

        pending = asyncio.create_task(session_manager.get_valid_access_token())
        await asyncio.sleep(0.05)
        replacement = make_session(xrpc_server.url)
        await session_manager.resume(replacement)

        assert await pending == replacement.access_token
        assert session_manager.session is replacement
        assert await memory_store.retrieve_session() == replacement

    @pytest.mark.asyncio
    async def test_refresh_without_session(self, session_manager):
        with pytest.raises(MissingActiveSessionError):
            await session_manager.get_valid_access_token()

    @pytest.mark.asyncio
    async def test_stale_refresh_skipped_when_session_moved_on(
        self, session_manager, xrpc_server, make_session
    ):
        stale = make_session(xrpc_server.url, access_expires_in=10)
        current = make_session(xrpc_server.url)
        session_manager._session = current

        assert await session_manager.refresh(stale=stale) is current
        assert xrpc_server.requests_for(REFRESH_SESSION) == []


class TestResume:
    """Test resuming stored sessions."""

    @pytest.mark.asyncio
    async def test_resume_expired_refresh_token(
        self, session_manager, memory_store, xrpc_server, make_session
    ):
        session = make_session(
            xrpc_server.url, access_expires_in=-100, refresh_expires_in=-10
        )
        await memory_store.store(session)

        with pytest.raises(AuthenticationError, match="Session tokens expired"):
            await session_manager.resume(session)

        assert session_manager.session is None
        assert await memory_store.retrieve_session() is None

    @pytest.mark.asyncio
    async def test_resume_expired_access_token_refreshes(
        self, session_manager, xrpc_server, make_session, make_token
    ):
        session = make_session(xrpc_server.url, access_expires_in=-10)
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token))

        resumed = await session_manager.resume(session)

        assert resumed.access_token != session.access_token
        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 1

    @pytest.mark.asyncio
    async def test_resume_from_store(self, session_manager, memory_store, xrpc_server, make_session):
        session = make_session(xrpc_server.url)
        await memory_store.store(session)

        assert await session_manager.resume_from_store() == session
        assert session_manager.session == session

    @pytest.mark.asyncio
    async def test_resume_from_empty_store(self, session_manager):
        assert await session_manager.resume_from_store() is None

    @pytest.mark.asyncio
    async def test_refresh_margin_triggers_early_refresh(
        self, session_manager, xrpc_server, make_session, make_token
    ):
        # Valid for another 30 seconds, inside the 60 second margin.
        session = make_session(xrpc_server.url, access_expires_in=30)
        xrpc_server.route(REFRESH_SESSION, refresh_handler(make_token))

        await session_manager.resume(session)

        assert len(xrpc_server.requests_for(REFRESH_SESSION)) == 1

    @pytest.mark.asyncio
    async def test_clock_is_injectable(self, dispatcher, memory_store, xrpc_server, make_session):
        session = make_session(xrpc_server.url, refresh_expires_in=3600)
        future = datetime.now(timezone.utc) + timedelta(hours=2)
        manager = SessionManager(
            dispatcher, memory_store, pds_url=xrpc_server.url, clock=lambda: future
        )

        with pytest.raises(AuthenticationError):
            await manager.resume(session)


class TestSessionCalls:
    """Test getSession and deleteSession."""

    @pytest.mark.asyncio
    async def test_get_session_updates_account_fields(
        self, session_manager, xrpc_server, make_session
    ):
        session = make_session(xrpc_server.url)
        session_manager._session = session
        xrpc_server.respond(
            GET_SESSION,
            {
                "handle": "alice.example.com",
                "did": TEST_DID,
                "email": "alice@example.com",
                "emailConfirmed": True,
                "active": True,
            },
        )

        updated = await session_manager.get_session()

        assert updated.handle == "alice.example.com"
        assert updated.email_confirmed is True
        assert updated.access_token == session.access_token
        headers = xrpc_server.requests_for(GET_SESSION)[0]["headers"]
        assert headers["Authorization"] == f"Bearer {session.access_token}"

    @pytest.mark.asyncio
    async def test_delete_session_clears_even_on_failure(
        self, session_manager, memory_store, xrpc_server, make_session
    ):
        session = make_session(xrpc_server.url)
        await session_manager.resume(session)

        async def broken(request):
            return xrpc_error(500, "InternalServerError")

        xrpc_server.route(DELETE_SESSION, broken)

        with pytest.raises(XRPCError):
            await session_manager.delete_session()

        assert session_manager.session is None
        assert await memory_store.retrieve_session() is None
        headers = xrpc_server.requests_for(DELETE_SESSION)[0]["headers"]
        assert headers["Authorization"] == f"Bearer {session.refresh_token}"

    @pytest.mark.asyncio
    async def test_delete_without_session_is_noop(self, session_manager, xrpc_server):
        await session_manager.delete_session()
        assert xrpc_server.requests == []


class TestAuthorization:
    """Test resolving the Authorization header and base URL per auth mode."""

    @pytest.mark.asyncio
    async def test_required_without_session(self, session_manager):
        with pytest.raises(MissingActiveSessionError):
            await session_manager.authorization(AuthMode.REQUIRED)

    @pytest.mark.asyncio
    async def test_optional_without_session_uses_public_appview(
        self, dispatcher, memory_store
    ):
        manager = SessionManager(
            dispatcher,
            memory_store,
            pds_url="https://pds.example.com",
            public_appview_url="https://public.api.bsky.app",
        )

        assert await manager.authorization(AuthMode.OPTIONAL) == (
            None,
            "https://public.api.bsky.app",
        )

    @pytest.mark.asyncio
    async def test_session_attaches_bearer(self, session_manager, make_session):
        session = make_session("https://pds.example.com")
        session_manager._session = session

        for mode in (AuthMode.REQUIRED, AuthMode.OPTIONAL):
            assert await session_manager.authorization(mode) == (
                f"Bearer {session.access_token}",
                "https://pds.example.com",
            )

    @pytest.mark.asyncio
    async def test_none_never_attaches_token(self, session_manager, make_session):
        session_manager._session = make_session("https://pds.example.com")

        assert await session_manager.authorization(AuthMode.NONE) == (
            None,
            "https://pds.example.com",
        )
