"""com.atproto.server"""

from typing import Optional

from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.session import Session, SessionManager
from social.graze.atkit.atproto.xrpc import AuthMode, Endpoint, XRPCExecutor
from social.graze.atkit.lexicon.server import DescribeServerOutput, GetServiceAuthOutput

GET_SERVICE_AUTH = Endpoint(
    "com.atproto.server.getServiceAuth", output=GetServiceAuthOutput
)
DESCRIBE_SERVER = Endpoint(
    "com.atproto.server.describeServer", auth=AuthMode.NONE, output=DescribeServerOutput
)


class ServerAPI:
    """Session lifecycle calls go through the session manager so that its state stays canonical."""

    def __init__(self, executor: XRPCExecutor, sessions: SessionManager) -> None:
        self.executor = executor
        self.sessions = sessions

    async def create_session(
        self,
        identifier: str,
        password: str,
        auth_factor_token: Optional[str] = None,
    ) -> Session:
        return await self.sessions.create_session(
            identifier, password, auth_factor_token
        )

    async def refresh_session(self) -> Session:
        return await self.sessions.refresh()

    async def get_session(self) -> Session:
        return await self.sessions.get_session()

    async def delete_session(self) -> None:
        await self.sessions.delete_session()

    async def get_service_auth(
        self,
        aud: str,
        exp: Optional[int] = None,
        lxm: Optional[str] = None,
    ) -> GetServiceAuthOutput:
        """
        Get a short-lived token signed by the account, for calling another service directly.

        Args:
            aud: DID of the service the token is meant for.
            exp: Expiry as a UNIX timestamp; the PDS default (60 seconds) when omitted.
            lxm: The only XRPC method the token may be used for.
        """
        params = QueryItems().add("aud", aud).add("exp", exp).add("lxm", lxm)
        return await self.executor.call(GET_SERVICE_AUTH, params)

    async def describe_server(self) -> DescribeServerOutput:
        return await self.executor.call(DESCRIBE_SERVER)
