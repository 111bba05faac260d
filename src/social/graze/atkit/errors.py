"""
Error taxonomy for XRPC calls.

Every failure surfaced by the SDK is an ``ATProtoError`` carrying an ``ErrorKind``, so callers can
branch on recoverability (prompt a re-login on ``authentication_failed``, show a wait message on
``rate_limited``) without parsing strings.

Kinds fall into three groups:

1. Request preparation failures (``invalid_request_url``, ``empty_service_url``,
   ``missing_active_session``) are raised before anything is sent and are fatal until the caller
   fixes its configuration or logs in.
2. HTTP failures are classified by status code. 502, 503 and 504 are transient and retried by the
   dispatcher. Everything else is surfaced on first occurrence.
3. Transport failures (connection errors, timeouts) are transient and share the retry policy of
   the 5xx gateway errors.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
import json
from typing import Any, Dict, Mapping, Optional


class ErrorKind(Enum):
    """Kind of failure, independent of the exception type that carries it."""

    invalid_request_url = "InvalidRequestURL"
    empty_service_url = "EmptyServiceURL"
    missing_active_session = "MissingActiveSession"
    bad_request = "BadRequest"
    authentication_failed = "AuthenticationFailed"
    forbidden = "Forbidden"
    not_found = "NotFound"
    method_not_allowed = "MethodNotAllowed"
    payload_too_large = "PayloadTooLarge"
    upgrade_required = "UpgradeRequired"
    rate_limited = "RateLimited"
    server_error = "ServerError"
    not_implemented = "NotImplemented"
    bad_gateway = "BadGateway"
    service_unavailable = "ServiceUnavailable"
    gateway_timeout = "GatewayTimeout"
    transport = "Transport"
    invalid_response = "InvalidResponse"
    unknown = "Unknown"


STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.bad_request,
    401: ErrorKind.authentication_failed,
    403: ErrorKind.forbidden,
    404: ErrorKind.not_found,
    405: ErrorKind.method_not_allowed,
    413: ErrorKind.payload_too_large,
    426: ErrorKind.upgrade_required,
    429: ErrorKind.rate_limited,
    500: ErrorKind.server_error,
    501: ErrorKind.not_implemented,
    502: ErrorKind.bad_gateway,
    503: ErrorKind.service_unavailable,
    504: ErrorKind.gateway_timeout,
}

TRANSIENT_KINDS = frozenset(
    {
        ErrorKind.bad_gateway,
        ErrorKind.service_unavailable,
        ErrorKind.gateway_timeout,
        ErrorKind.transport,
    }
)

# Error short-codes a PDS returns when a token is definitively unusable.
TOKEN_REJECTED_ERRORS = frozenset({"ExpiredToken", "InvalidToken"})


def kind_for_status(status: int) -> ErrorKind:
    return STATUS_KINDS.get(status, ErrorKind.unknown)


class ATProtoError(Exception):
    """Base exception for everything raised by the SDK."""

    kind: ErrorKind = ErrorKind.unknown

    @property
    def retryable(self) -> bool:
        return self.kind in TRANSIENT_KINDS


class RequestPrepareError(ATProtoError):
    """The request could not be built; nothing was sent."""


class InvalidRequestURLError(RequestPrepareError):
    kind = ErrorKind.invalid_request_url


class EmptyServiceURLError(RequestPrepareError):
    kind = ErrorKind.empty_service_url


class MissingActiveSessionError(RequestPrepareError):
    kind = ErrorKind.missing_active_session


class TransportError(ATProtoError):
    """The exchange failed below HTTP: connection refused, reset, or timed out."""

    kind = ErrorKind.transport


class AuthenticationError(ATProtoError):
    """
    The session can no longer be used and the caller must log in again.

    Raised when a refresh token is rejected or already expired. Never retried.
    """

    kind = ErrorKind.authentication_failed


class ResponseDecodeError(ATProtoError):
    """A successful response body did not match the expected output model."""

    kind = ErrorKind.invalid_response


class XRPCError(ATProtoError):
    """
    An HTTP-level failure reported by the server.

    Attributes:
        status: HTTP status code.
        error: The ``error`` short-code from the response body, when present.
        message: The ``message`` string from the response body, when present.
        retry_after: Seconds to wait before retrying, from ``Retry-After`` (429 only).
        www_authenticate: Raw ``WWW-Authenticate`` header value (401 only).
        headers: Response headers, kept for diagnostics.
        body: Raw response body.
    """

    def __init__(
        self,
        kind: ErrorKind,
        status: int,
        error: Optional[str] = None,
        message: Optional[str] = None,
        retry_after: Optional[float] = None,
        www_authenticate: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
    ) -> None:
        self.kind = kind
        self.status = status
        self.error = error
        self.message = message
        self.retry_after = retry_after
        self.www_authenticate = www_authenticate
        self.headers: Dict[str, str] = dict(headers or {})
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        detail = ": ".join(part for part in (self.error, self.message) if part)
        if detail:
            return f"{self.kind.value} ({self.status}) {detail}"
        return f"{self.kind.value} ({self.status})"

    @property
    def token_rejected(self) -> bool:
        return self.error in TOKEN_REJECTED_ERRORS

    @classmethod
    def from_response(
        cls,
        status: int,
        headers: Mapping[str, str],
        body: Any,
        now: Optional[datetime] = None,
    ) -> "XRPCError":
        kind = kind_for_status(status)
        error, message = parse_error_body(body)

        retry_after = None
        if kind == ErrorKind.rate_limited:
            retry_after = parse_retry_after(headers, now)

        www_authenticate = None
        if kind == ErrorKind.authentication_failed:
            www_authenticate = headers.get("WWW-Authenticate")

        return cls(
            kind=kind,
            status=status,
            error=error,
            message=message,
            retry_after=retry_after,
            www_authenticate=www_authenticate,
            headers=headers,
            body=body,
        )


def parse_error_body(body: Any) -> tuple[Optional[str], Optional[str]]:
    """Extract ``(error, message)`` from an XRPC error body in any of its wire forms."""
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None, None

    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return None, body or None

    if not isinstance(body, dict):
        return None, None

    error = body.get("error")
    message = body.get("message")
    return (
        error if isinstance(error, str) else None,
        message if isinstance(message, str) else None,
    )


def parse_retry_after(
    headers: Mapping[str, str], now: Optional[datetime] = None
) -> Optional[float]:
    """
    Seconds to wait, from ``Retry-After`` (delta-seconds or HTTP-date).

    Falls back to the ``ratelimit-reset`` header (UNIX epoch seconds) that Bluesky services send.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    value = headers.get("Retry-After")
    if value is not None:
        value = value.strip()
        try:
            return max(0.0, float(value))
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return max(0.0, (when - now).total_seconds())

    reset = headers.get("ratelimit-reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - now.timestamp())
        except ValueError:
            return None

    return None
