"""
The client facade.

``ATProtoClient`` wires configuration, metrics, the dispatcher, the session manager and the
credential store together and exposes the endpoint namespaces:

    async with ATProtoClient(Settings()) as client:
        await client.login("alice.bsky.social", "app-password")
        timeline = await client.feed.get_timeline(limit=50)
"""

import logging
from types import TracebackType
from typing import Optional

import aiohttp

from social.graze.atkit.api.actor import ActorAPI
from social.graze.atkit.api.feed import FeedAPI
from social.graze.atkit.api.graph import GraphAPI
from social.graze.atkit.api.notification import NotificationAPI
from social.graze.atkit.api.repo import RepoAPI
from social.graze.atkit.api.server import ServerAPI
from social.graze.atkit.api.unspecced import UnspeccedAPI
from social.graze.atkit.api.video import VIDEO_SERVICE, VideoAPI
from social.graze.atkit.atproto.chain import ChainMiddlewareClient, StatsdMiddleware
from social.graze.atkit.atproto.dispatcher import Dispatcher
from social.graze.atkit.atproto.session import Session, SessionManager
from social.graze.atkit.atproto.xrpc import XRPCExecutor
from social.graze.atkit.config import Settings
from social.graze.atkit.errors import RequestPrepareError
from social.graze.atkit.metrics import MetricsClient, create_metrics_client
from social.graze.atkit.resolve.handle import resolve_subject
from social.graze.atkit.store import CredentialStore, create_credential_store

logger = logging.getLogger(__name__)


class ATProtoClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[CredentialStore] = None,
        session: Optional[Session] = None,
        metrics_client: Optional[MetricsClient] = None,
        chain_client: Optional[ChainMiddlewareClient] = None,
    ) -> None:
        """
        Args:
            settings: Configuration; loaded from ``ATKIT_*`` environment variables when omitted.
            store: Where the session is persisted. When omitted one is built from the Redis or
                database settings, falling back to process memory.
            session: A previously obtained session to resume on ``start()``.
            metrics_client: Metrics sink. When omitted one is created on ``start()`` from
                ``settings.metrics_backend``.
            chain_client: HTTP client to send requests with, for tests and custom transports.
        """
        self.settings = settings or Settings()
        self._owns_store = store is None
        self.store = store or create_credential_store(self.settings)
        self._initial_session = session
        self._metrics_client = metrics_client
        self._owns_metrics = False
        self._started = False

        self.dispatcher = Dispatcher.from_settings(
            self.settings, metrics_client=metrics_client, chain_client=chain_client
        )
        self.sessions = SessionManager(
            self.dispatcher,
            self.store,
            pds_url=self.settings.pds_url,
            public_appview_url=self.settings.public_appview_url,
            refresh_margin=self.settings.refresh_margin,
        )
        self.executor = XRPCExecutor(
            self.sessions,
            self.dispatcher,
            services={VIDEO_SERVICE: self.settings.video_service_url},
        )

        self.server = ServerAPI(self.executor, self.sessions)
        self.actor = ActorAPI(self.executor)
        self.feed = FeedAPI(self.executor)
        self.graph = GraphAPI(self.executor)
        self.notification = NotificationAPI(self.executor)
        self.video = VideoAPI(self.executor, self.sessions, self.server)
        self.unspecced = UnspeccedAPI(self.executor)
        self.repo = RepoAPI(self.executor)

    @property
    def session(self) -> Optional[Session]:
        return self.sessions.session

    async def start(self) -> "ATProtoClient":
        """Open the credential store, create the metrics client and resume a session, if any."""
        if self._started:
            return self
        self._started = True

        if self._owns_store:
            await self.store.open()

        if self._metrics_client is None and self.settings.metrics_backend != "none":
            self._metrics_client = await create_metrics_client(
                self.settings.metrics_backend,
                host=self.settings.statsd_host,
                port=self.settings.statsd_port,
                debug=self.settings.debug,
            )
            self._owns_metrics = True
            self.dispatcher.add_middleware(
                StatsdMiddleware(
                    self._metrics_client, prefix=self.settings.statsd_prefix
                )
            )

        if self._initial_session is not None:
            await self.sessions.resume(self._initial_session)
        else:
            await self.sessions.resume_from_store()
        return self

    async def login(
        self,
        identifier: str,
        password: str,
        auth_factor_token: Optional[str] = None,
        resolve_pds: bool = False,
    ) -> Session:
        """
        Log in and make the new session active.

        With ``resolve_pds`` the identifier is resolved to its PDS first, so accounts hosted
        outside the configured entryway can log in directly.
        """
        if resolve_pds:
            async with aiohttp.ClientSession() as http_session:
                resolved = await resolve_subject(
                    http_session, self.settings.plc_hostname, identifier
                )
            if resolved is None:
                raise RequestPrepareError(f"Could not resolve {identifier}")
            logger.info(f"Resolved {identifier} to {resolved.did} at {resolved.pds}")
            self.sessions.pds_url = resolved.pds.rstrip("/")

        return await self.sessions.create_session(
            identifier, password, auth_factor_token
        )

    async def logout(self) -> None:
        await self.sessions.delete_session()

    async def close(self) -> None:
        await self.dispatcher.close()
        if self._owns_metrics and self._metrics_client is not None:
            await self._metrics_client.close()
        if self._owns_store:
            await self.store.close()

    async def __aenter__(self) -> "ATProtoClient":
        return await self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
