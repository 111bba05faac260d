"""
Common testing utilities for atkit tests.

Provides an in-process XRPC server, canned session bodies and response helpers shared by the
test modules.
"""

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiohttp import web
from aiohttp import test_utils

TEST_DID = "did:plc:testuser123"
TEST_HANDLE = "alice.test"

XRPCHandler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def json_response(status: int = 200, body: Any = None, **kwargs) -> web.Response:
    return web.json_response(body if body is not None else {}, status=status, **kwargs)


def xrpc_error(
    status: int, error: str, message: str = "", headers: Optional[Dict[str, str]] = None
) -> web.Response:
    return web.json_response(
        {"error": error, "message": message}, status=status, headers=headers
    )


def request_json(recorded: Dict[str, Any]) -> Any:
    """Decode the JSON body of a recorded request."""
    return json.loads(recorded["body"])


def did_document(pds_url: str) -> Dict[str, Any]:
    return {
        "id": TEST_DID,
        "alsoKnownAs": [f"at://{TEST_HANDLE}"],
        "service": [
            {
                "id": "#atproto_pds",
                "type": "AtprotoPersonalDataServer",
                "serviceEndpoint": pds_url,
            }
        ],
    }


def session_body(
    access_token: str, refresh_token: str, pds_url: Optional[str] = None
) -> Dict[str, Any]:
    """A createSession / refreshSession response body."""
    body: Dict[str, Any] = {
        "accessJwt": access_token,
        "refreshJwt": refresh_token,
        "handle": TEST_HANDLE,
        "did": TEST_DID,
        "active": True,
    }
    if pds_url is not None:
        body["didDoc"] = did_document(pds_url)
    return body


class FakeXRPCServer:
    """
    An in-process XRPC server.

    Handlers are registered per NSID. Every request is recorded so tests can assert on
    methods, query strings, headers and bodies.
    """

    def __init__(self) -> None:
        self.handlers: Dict[str, XRPCHandler] = {}
        self.requests: List[Dict[str, Any]] = []
        app = web.Application()
        app.router.add_route("*", "/xrpc/{nsid}", self._dispatch)
        self.server = test_utils.TestServer(app)

    @property
    def url(self) -> str:
        return str(self.server.make_url("")).rstrip("/")

    def route(self, nsid: str, handler: XRPCHandler) -> None:
        self.handlers[nsid] = handler

    def respond(self, nsid: str, body: Any = None, status: int = 200) -> None:
        """Answer ``nsid`` with a fixed JSON body."""

        async def handler(request: web.Request) -> web.StreamResponse:
            return json_response(status, body)

        self.route(nsid, handler)

    def requests_for(self, nsid: str) -> List[Dict[str, Any]]:
        return [request for request in self.requests if request["nsid"] == nsid]

    async def _dispatch(self, request: web.Request) -> web.StreamResponse:
        nsid = request.match_info["nsid"]
        body = await request.read()
        self.requests.append(
            {
                "nsid": nsid,
                "method": request.method,
                "query": list(request.query.items()),
                "query_string": request.query_string,
                "headers": dict(request.headers),
                "body": body,
            }
        )
        handler = self.handlers.get(nsid)
        if handler is None:
            return xrpc_error(501, "MethodNotImplemented", f"{nsid} is not implemented")
        return await handler(request)
