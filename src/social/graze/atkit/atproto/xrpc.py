"""
Declarative XRPC endpoints.

An ``Endpoint`` describes one lexicon method: its NSID, whether it is a query (GET) or a
procedure (POST), how it uses the session, and the model its output decodes into. Namespace
methods in ``social.graze.atkit.api`` are thin functions that build parameters and hand an
endpoint to the ``XRPCExecutor``, which composes the session manager, request builder and
dispatcher.
"""

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Optional, Type

from aiohttp import hdrs
from pydantic import BaseModel

from social.graze.atkit.atproto.dispatcher import Dispatcher
from social.graze.atkit.atproto.request import (
    JSON_CONTENT_TYPE,
    QueryItems,
    RequestDescriptor,
    append_query_items,
    build_request,
    xrpc_url,
)
from social.graze.atkit.atproto.session import AuthMode, SessionManager
from social.graze.atkit.errors import EmptyServiceURLError, XRPCError

logger = logging.getLogger(__name__)

QUERY = "query"
PROCEDURE = "procedure"

__all__ = ["AuthMode", "Endpoint", "XRPCExecutor", "QUERY", "PROCEDURE"]


@dataclass(frozen=True)
class Endpoint:
    nsid: str
    method: str = QUERY
    auth: AuthMode = AuthMode.REQUIRED
    output: Optional[Type[BaseModel]] = None
    service: Optional[str] = None
    """Named service to call instead of the session's PDS, such as ``video``."""
    idempotent: Optional[bool] = None
    """Overrides the method default; uploads that are safe to re-send set this to True."""

    @property
    def http_method(self) -> str:
        return hdrs.METH_GET if self.method == QUERY else hdrs.METH_POST


class XRPCExecutor:
    """
    Runs endpoints.

    An authenticated call answered with 400 or 401 ``ExpiredToken`` (the token expired between the
    local check and the server's) refreshes the session once and is re-sent once.
    """

    def __init__(
        self,
        sessions: SessionManager,
        dispatcher: Dispatcher,
        services: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.services = dict(services or {})

    def base_url(self, endpoint: Endpoint, session_base_url: str) -> str:
        if endpoint.service is None:
            return session_base_url
        base_url = self.services.get(endpoint.service)
        if base_url is None:
            raise EmptyServiceURLError(f"No URL configured for service {endpoint.service}")
        return base_url

    def build(
        self,
        endpoint: Endpoint,
        base_url: str,
        authorization: Optional[str],
        params: Optional[QueryItems] = None,
        body: Any = None,
        content_type: Optional[str] = None,
    ) -> RequestDescriptor:
        url = xrpc_url(base_url, endpoint.nsid)
        if params is not None:
            url = append_query_items(url, params)
        return build_request(
            url,
            endpoint.http_method,
            content_type=content_type or JSON_CONTENT_TYPE,
            authorization=authorization,
            body=body,
            idempotent=endpoint.idempotent,
            nsid=endpoint.nsid,
        )

    async def call(
        self,
        endpoint: Endpoint,
        params: Optional[QueryItems] = None,
        body: Any = None,
        content_type: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> Any:
        """
        Call ``endpoint`` and return its decoded output, or None when it declares no output.

        ``authorization`` replaces the session token, for calls made with a service-auth token.
        """
        refreshed = False
        while True:
            if authorization is None:
                auth_header, base_url = await self.sessions.authorization(endpoint.auth)
            else:
                auth_header, base_url = authorization, self.sessions.service_endpoint
            # Read after authorization(), which may have refreshed the session.
            session = self.sessions.session

            descriptor = self.build(
                endpoint,
                self.base_url(endpoint, base_url),
                auth_header,
                params=params,
                body=body,
                content_type=content_type,
            )

            try:
                if endpoint.output is None:
                    await self.dispatcher.send(descriptor)
                    return None
                return await self.dispatcher.send(descriptor, endpoint.output)
            except XRPCError as e:
                if (
                    refreshed
                    or authorization is not None
                    or auth_header is None
                    or session is None
                    or e.status not in (400, 401)
                    or e.error != "ExpiredToken"
                ):
                    raise
                logger.info(f"{endpoint.nsid} rejected an expired token, refreshing")
                refreshed = True
                await self.sessions.refresh(stale=session)
