from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import json
import logging
import time
from types import TracebackType
from typing import (
    Any,
    Awaitable,
    Callable,
    Generator,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from aiohttp import ClientError, ClientResponse, ClientSession, hdrs
from aiohttp.typedefs import StrOrURL
from multidict import CIMultiDictProxy
import sentry_sdk
from yarl import URL

from social.graze.atkit.atproto.request import RequestDescriptor
from social.graze.atkit.errors import TransportError
from social.graze.atkit.metrics import MetricsClient

RequestFunc = Callable[..., Awaitable[ClientResponse]]

logger = logging.getLogger(__name__)


class _LoggerStub(Protocol):
    """_Logger defines which methods logger object should have."""

    @abstractmethod
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass


_LoggerType = Union[_LoggerStub, logging.Logger]


@dataclass
class ChainRequest:
    method: str
    url: StrOrURL
    headers: dict[str, Any] | None = None
    trace_request_ctx: dict[str, Any] | None = None
    kwargs: dict[str, Any] | None = None

    @staticmethod
    def from_descriptor(descriptor: RequestDescriptor) -> "ChainRequest":
        kwargs: dict[str, Any] = {}
        if descriptor.body is not None:
            kwargs["data"] = descriptor.body
        return ChainRequest(
            method=descriptor.method,
            # Query strings are already percent-encoded by the request builder.
            url=URL(descriptor.url, encoded=True),
            headers=dict(descriptor.headers),
            trace_request_ctx={"nsid": descriptor.nsid},
            kwargs=kwargs,
        )

    @property
    def nsid(self) -> str | None:
        return (self.trace_request_ctx or {}).get("nsid")


@dataclass
class ChainResponse:
    status: int
    headers: CIMultiDictProxy[str]
    body: str | bytes | dict[str, Any] | list[Any] | None = None

    @staticmethod
    async def from_aiohttp_response(response: ClientResponse) -> "ChainResponse":
        status = response.status
        headers = response.headers

        content_type = response.headers.get(hdrs.CONTENT_TYPE, "")
        raw = await response.read()

        if content_type.startswith("application/json"):
            if len(raw) == 0:
                return ChainResponse(status=status, headers=headers, body=None)
            try:
                return ChainResponse(
                    status=status, headers=headers, body=json.loads(raw)
                )
            except ValueError:
                # Servers occasionally label HTML error pages as JSON.
                return ChainResponse(
                    status=status,
                    headers=headers,
                    body=raw.decode("utf-8", errors="replace"),
                )
        elif content_type.startswith("text/"):
            return ChainResponse(
                status=status,
                headers=headers,
                body=raw.decode(response.charset or "utf-8", errors="replace"),
            )
        return ChainResponse(status=status, headers=headers, body=raw)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def body_contains(self, text: str) -> bool:
        if self.body is None:
            return False

        if isinstance(self.body, str):
            return text in self.body

        elif isinstance(self.body, bytes):
            return text.encode("utf-8") in self.body

        elif isinstance(self.body, dict):
            return text in self.body

        return False

    def body_matches_kv(self, key: str, value: Any) -> bool:
        if self.body is None:
            return False

        return (
            isinstance(self.body, dict) and key in self.body and self.body[key] == value
        )


NextChainResponseCallbackType = Tuple[ClientResponse, ChainResponse]

NextChainCallbackType = Callable[
    [ChainRequest], Awaitable[NextChainResponseCallbackType]
]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        pass

    def handle_gen(self, next: NextChainCallbackType) -> NextChainCallbackType:
        async def next_invoke(request: ChainRequest) -> NextChainResponseCallbackType:
            return await self.handle(next, request)

        return next_invoke


class StatsdMiddleware(RequestMiddlewareBase):
    """
    Records request timing and counts, tagged by method, XRPC method and outcome.

    Transport failures are reported to Sentry before being re-raised.
    """

    def __init__(self, metrics_client: MetricsClient, prefix: str = "atkit") -> None:
        super().__init__()
        self._metrics_client = metrics_client
        self._prefix = prefix

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        tags: dict[str, Any] = {
            "method": request.method,
            "nsid": request.nsid or "none",
        }
        start_time = time.monotonic()
        try:
            response = await next(request)
        except TransportError as e:
            sentry_sdk.capture_exception(e)
            tags["status"] = "transport_error"
            raise
        else:
            tags["status"] = str(response[1].status)
            return response
        finally:
            self._metrics_client.timer(
                f"{self._prefix}.client.request.time",
                time.monotonic() - start_time,
                tag_dict=tags,
            )
            self._metrics_client.increment(
                f"{self._prefix}.client.request.count", 1, tag_dict=tags
            )


class DebugMiddleware(RequestMiddlewareBase):
    """Logs every request and response at debug level."""

    def __init__(self, logger: _LoggerType | None = None) -> None:
        super().__init__()
        self._logger: _LoggerType = logger or logging.getLogger("atkit_chain")

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        headers = dict(request.headers or {})
        if hdrs.AUTHORIZATION in headers:
            headers[hdrs.AUTHORIZATION] = "[redacted]"
        self._logger.debug(f"Request: {request.method} {request.url} {headers}")

        response = await next(request)

        chain_response = response[1]
        self._logger.debug(
            f"Response: {chain_response.status} {request.url} {chain_response.body!r}"
        )
        return response


class EndOfLineChainMiddleware:
    def __init__(
        self,
        request_func: RequestFunc,
        logger: _LoggerType,
        raise_for_status: bool = False,
    ) -> None:
        super().__init__()
        self._request_func = request_func
        self._raise_for_status = raise_for_status
        self._logger = logger

    async def handle(self, request: ChainRequest) -> NextChainResponseCallbackType:

        self._logger.debug(f"Making request: {request.method} {request.url}")

        try:
            response: ClientResponse = await self._request_func(
                request.method.lower(),
                request.url,
                headers=request.headers,
                trace_request_ctx={
                    **(request.trace_request_ctx or {}),
                },
                **(request.kwargs or {}),
            )

            if self._raise_for_status:
                response.raise_for_status()

            return response, await ChainResponse.from_aiohttp_response(response)
        except (ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"{request.method} {request.url} failed: {e!r}"
            ) from e


class ChainMiddlewareContext:
    def __init__(
        self,
        chain_callback: NextChainCallbackType,
        chain_request: ChainRequest,
        logger: _LoggerType,
    ) -> None:
        self._chain_callback = chain_callback
        self._chain_request = chain_request
        self._logger = logger

        self.chain_response: ChainResponse | None = None
        self.client_response: ClientResponse | None = None

    async def _do_request(self) -> Tuple[ClientResponse, ChainResponse]:
        client_response, chain_response = await self._chain_callback(
            self._chain_request
        )
        self.client_response = client_response
        self.chain_response = chain_response
        return client_response, chain_response

    def __await__(self) -> Generator[Any, None, Tuple[ClientResponse, ChainResponse]]:
        return self.__aenter__().__await__()

    async def __aenter__(self) -> Tuple[ClientResponse, ChainResponse]:
        return await self._do_request()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.client_response is not None and not self.client_response.closed:
            self.client_response.close()


class ChainMiddlewareClient:
    def __init__(
        self,
        client_session: ClientSession | None = None,
        logger: _LoggerType | None = None,
        middleware: Sequence[RequestMiddlewareBase] | None = None,
        raise_for_status: bool = False,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        if client_session is not None:
            client = client_session
            closed = None
        else:
            client = ClientSession(*args, **kwargs)
            closed = False

        self._middleware = middleware

        self._client = client
        self._closed = closed

        self._logger: _LoggerType = logger or logging.getLogger("atkit_chain")
        self._raise_for_status = raise_for_status

    @property
    def closed(self) -> bool:
        return self._client.closed

    def send(self, chain_request: ChainRequest) -> ChainMiddlewareContext:
        """Run an already-built request through the middleware chain."""
        return self._build_context(chain_request)

    async def close(self) -> None:
        # Sessions handed in by the caller are owned by the caller.
        if self._closed is not None:
            await self._client.close()
            self._closed = True

    def _build_context(self, chain_request: ChainRequest) -> ChainMiddlewareContext:
        end_of_line_middleware = EndOfLineChainMiddleware(
            request_func=self._client.request,
            logger=self._logger,
            raise_for_status=self._raise_for_status,
        )

        chain_callback: NextChainCallbackType = end_of_line_middleware.handle

        full_middleware_chain = reversed(self._middleware or [])

        for mw in full_middleware_chain:
            chain_callback = mw.handle_gen(chain_callback)

        return ChainMiddlewareContext(
            chain_callback=chain_callback,
            chain_request=chain_request,
            logger=self._logger,
        )

    async def __aenter__(self) -> "ChainMiddlewareClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __del__(self) -> None:
        if getattr(self, "_closed", None) is None:
            # in case object was not initialized (__init__ raised an exception)
            # or the session belongs to the caller
            return

        if not self._closed:
            self._logger.warning("atkit chain client was not closed")
