"""
Dispatching built requests and classifying their outcome.

The ``Dispatcher`` sends a ``RequestDescriptor`` through the chain middleware client, turns
non-2xx responses into ``XRPCError`` instances and re-sends the request when the failure is
transient (502, 503, 504 or a transport error). Everything else surfaces on first occurrence,
including 429: the caller decides what to do with ``retry_after``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Type, TypeVar, Union, overload

from aiohttp import ClientTimeout, hdrs
from pydantic import BaseModel, ValidationError

from social.graze.atkit.atproto.chain import (
    ChainMiddlewareClient,
    ChainRequest,
    ChainResponse,
    DebugMiddleware,
    RequestMiddlewareBase,
    StatsdMiddleware,
)
from social.graze.atkit.atproto.request import RequestDescriptor
from social.graze.atkit.config import Settings
from social.graze.atkit.errors import (
    ATProtoError,
    ResponseDecodeError,
    TransportError,
    XRPCError,
)
from social.graze.atkit.metrics import MetricsClient

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SleepFunc = Callable[[float], Awaitable[Any]]


class Dispatcher:
    """
    Sends requests and applies the retry policy.

    The underlying ``aiohttp.ClientSession`` is created lazily on first use, so a dispatcher can
    be constructed outside of a running event loop.
    """

    def __init__(
        self,
        chain_client: Optional[ChainMiddlewareClient] = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        connect_timeout: Optional[float] = 10.0,
        request_timeout: Optional[float] = 60.0,
        user_agent: str = "atkit",
        middleware: Optional[Sequence[RequestMiddlewareBase]] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = ClientTimeout(total=request_timeout, connect=connect_timeout)
        self.user_agent = user_agent
        self._middleware = list(middleware or [])
        self._chain_client = chain_client
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        metrics_client: Optional[MetricsClient] = None,
        chain_client: Optional[ChainMiddlewareClient] = None,
    ) -> "Dispatcher":
        middleware: list[RequestMiddlewareBase] = []
        if metrics_client is not None:
            middleware.append(
                StatsdMiddleware(metrics_client, prefix=settings.statsd_prefix)
            )
        if settings.debug:
            middleware.append(DebugMiddleware())

        return cls(
            chain_client=chain_client,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay,
            connect_timeout=settings.connect_timeout,
            request_timeout=settings.request_timeout,
            user_agent=settings.user_agent,
            middleware=middleware,
        )

    @property
    def chain_client(self) -> ChainMiddlewareClient:
        if self._chain_client is None:
            self._chain_client = ChainMiddlewareClient(
                middleware=self._middleware,
                timeout=self.timeout,
                headers={hdrs.USER_AGENT: self.user_agent},
            )
        return self._chain_client

    def add_middleware(self, middleware: RequestMiddlewareBase) -> None:
        """
        Append a middleware to the chain.

        Applies to every request sent afterwards, unless the chain client was supplied by the
        caller, in which case its own middleware is used.
        """
        self._middleware.append(middleware)

    async def close(self) -> None:
        if self._chain_client is not None:
            await self._chain_client.close()

    @overload
    async def send(self, descriptor: RequestDescriptor) -> ChainResponse: ...

    @overload
    async def send(
        self, descriptor: RequestDescriptor, decode_as: Type[ModelT]
    ) -> ModelT: ...

    async def send(
        self,
        descriptor: RequestDescriptor,
        decode_as: Optional[Type[ModelT]] = None,
    ) -> Union[ChainResponse, ModelT]:
        """
        Send ``descriptor`` and return the decoded 2xx response.

        The same immutable descriptor is re-sent for every attempt. When attempts are exhausted
        the last error is raised.

        Raises:
            XRPCError: The server answered with a non-2xx status.
            TransportError: The request could not be completed.
            ResponseDecodeError: The 2xx body did not match ``decode_as``.
        """
        attempt = 0
        while True:
            attempt += 1

            error: ATProtoError
            try:
                chain_response = await self._exchange(descriptor)
            except TransportError as e:
                error = e
            else:
                if chain_response.ok:
                    return self.decode(chain_response, decode_as)
                error = XRPCError.from_response(
                    chain_response.status, chain_response.headers, chain_response.body
                )

            if not self.should_retry(error, descriptor, attempt):
                raise error

            logger.info(
                f"Attempt {attempt} of {self.max_attempts} for {descriptor.method} "
                f"{descriptor.nsid or descriptor.url} failed with {error.kind.value}, retrying"
            )
            await self._sleep(self.retry_delay)

    def should_retry(
        self, error: ATProtoError, descriptor: RequestDescriptor, attempt: int
    ) -> bool:
        if attempt >= self.max_attempts:
            return False
        return error.retryable and descriptor.idempotent

    @staticmethod
    def decode(
        chain_response: ChainResponse, decode_as: Optional[Type[ModelT]]
    ) -> Union[ChainResponse, ModelT]:
        if decode_as is None:
            return chain_response

        body = chain_response.body
        if body is None:
            body = {}
        try:
            return decode_as.model_validate(body)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Response could not be decoded as {decode_as.__name__}: {e}"
            ) from e

    async def _exchange(self, descriptor: RequestDescriptor) -> ChainResponse:
        chain_request = ChainRequest.from_descriptor(descriptor)
        async with self.chain_client.send(chain_request) as (_, chain_response):
            return chain_response
