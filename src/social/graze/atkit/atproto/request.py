"""
XRPC request building.

Everything in this module is pure: URLs, query strings, headers and bodies are produced without
any I/O so that a ``RequestDescriptor`` can be built, inspected and handed to the dispatcher.

Validation policy (clamping of ``limit`` and friends) belongs to the endpoint layer. The builder
encodes what it is given.
"""

from dataclasses import dataclass, field
import re
from types import MappingProxyType
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from aiohttp import hdrs
import pydantic_core
from yarl import URL

from social.graze.atkit.errors import EmptyServiceURLError, InvalidRequestURLError

JSON_CONTENT_TYPE = "application/json"

NSID_PATTERN = re.compile(
    r"^[a-zA-Z][a-zA-Z0-9-]*(\.[a-zA-Z0-9][a-zA-Z0-9-]*)+\.[a-zA-Z][a-zA-Z0-9]*$"
)

IDEMPOTENT_METHODS = frozenset(
    {hdrs.METH_GET, hdrs.METH_HEAD, hdrs.METH_PUT, hdrs.METH_DELETE}
)

QueryItem = Tuple[str, str]


@dataclass(frozen=True)
class RequestDescriptor:
    """
    A fully-formed HTTP request.

    Immutable once built. ``idempotent`` tells the dispatcher whether re-sending the exact same
    request after a transient failure is safe.
    """

    url: str
    method: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    body: Optional[bytes] = None
    idempotent: bool = True
    nsid: Optional[str] = None

    @property
    def authorization(self) -> Optional[str]:
        return self.headers.get(hdrs.AUTHORIZATION)


def clamp(value: int, minimum: int, maximum: int) -> int:
    """Clamp ``value`` into ``[minimum, maximum]``."""
    return max(minimum, min(maximum, int(value)))


def render_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class QueryItems:
    """
    Ordered list of query parameters that allows repeated keys.

    Array parameters such as ``uris`` or ``actors`` are sent as one ``key=value`` pair per
    element, in the order given.
    """

    def __init__(self, items: Optional[Iterable[QueryItem]] = None) -> None:
        self._items: List[QueryItem] = list(items or [])

    def add(self, key: str, value: Any) -> "QueryItems":
        """Append ``key=value``. ``None`` values are skipped and booleans render as true/false."""
        if value is not None:
            self._items.append((key, render_query_value(value)))
        return self

    def extend(
        self, key: str, values: Optional[Iterable[Any]], max_items: Optional[int] = None
    ) -> "QueryItems":
        """Append one ``key=value`` pair per element, keeping at most ``max_items`` elements."""
        if values is None:
            return self
        values = list(values)
        if max_items is not None:
            values = values[:max_items]
        for value in values:
            self.add(key, value)
        return self

    def add_limit(
        self,
        value: Optional[int],
        minimum: int = 1,
        maximum: int = 100,
        key: str = "limit",
    ) -> "QueryItems":
        if value is None:
            return self
        return self.add(key, clamp(value, minimum, maximum))

    def add_cursor(self, cursor: Optional[str]) -> "QueryItems":
        return self.add("cursor", cursor)

    def items(self) -> List[QueryItem]:
        return list(self._items)

    def __iter__(self) -> Iterator[QueryItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, QueryItems):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"QueryItems({self._items!r})"


def append_query_items(url: str, items: Iterable[QueryItem]) -> str:
    """
    Percent-encode ``items`` and append them to ``url``.

    Insertion order and duplicate keys are preserved, as is any query already present on ``url``.
    """
    pairs: Sequence[QueryItem] = [(k, render_query_value(v)) for k, v in items]
    if len(pairs) == 0:
        return url
    return str(URL(url).extend_query(pairs))


def xrpc_url(base_url: Optional[str], nsid: str) -> str:
    """
    Build ``{base_url}/xrpc/{nsid}``.

    Raises:
        EmptyServiceURLError: ``base_url`` is missing or blank.
        InvalidRequestURLError: ``base_url`` is not an absolute http(s) URL, or ``nsid`` is not a
            valid namespaced identifier.
    """
    if base_url is None or len(base_url.strip()) == 0:
        raise EmptyServiceURLError("Service URL is empty")

    base_url = base_url.strip().rstrip("/")
    try:
        parsed = URL(base_url)
    except (TypeError, ValueError) as e:
        raise InvalidRequestURLError(f"Invalid service URL: {base_url}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidRequestURLError(f"Invalid service URL: {base_url}")

    if NSID_PATTERN.match(nsid) is None:
        raise InvalidRequestURLError(f"Invalid XRPC method: {nsid}")

    return f"{base_url}/xrpc/{nsid}"


def encode_body(body: Any) -> Optional[bytes]:
    """
    Serialize a request body.

    Raw bytes pass through untouched (binary uploads). Anything else, including pydantic models
    and containers of them, is JSON-encoded using wire aliases with ``None`` fields omitted.
    """
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    return pydantic_core.to_json(body, by_alias=True, exclude_none=True)


def build_request(
    url: str,
    method: str,
    accept: Optional[str] = JSON_CONTENT_TYPE,
    content_type: Optional[str] = JSON_CONTENT_TYPE,
    authorization: Optional[str] = None,
    body: Any = None,
    idempotent: Optional[bool] = None,
    headers: Optional[Mapping[str, str]] = None,
    nsid: Optional[str] = None,
) -> RequestDescriptor:
    """
    Produce a ``RequestDescriptor``. No I/O.

    Args:
        url: Target URL, query string included.
        method: HTTP method.
        accept: ``Accept`` header value, omitted when None.
        content_type: ``Content-Type`` header value. Only sent when there is a body or the method
            is POST/PUT.
        authorization: Full ``Authorization`` header value (e.g. ``Bearer <jwt>``).
        body: Structured body (JSON-encoded) or raw bytes.
        idempotent: Whether the request may be re-sent after a transient failure. Defaults to
            True for GET/HEAD/PUT/DELETE and False otherwise.
        headers: Extra headers, applied before the ones above.
        nsid: XRPC method name, carried for metrics and logging.
    """
    method = method.upper()
    encoded_body = encode_body(body)

    request_headers = dict(headers or {})
    if accept is not None:
        request_headers[hdrs.ACCEPT] = accept
    if authorization is not None:
        request_headers[hdrs.AUTHORIZATION] = authorization
    if content_type is not None and (
        encoded_body is not None or method in (hdrs.METH_POST, hdrs.METH_PUT)
    ):
        request_headers[hdrs.CONTENT_TYPE] = content_type

    if idempotent is None:
        idempotent = method in IDEMPOTENT_METHODS

    return RequestDescriptor(
        url=url,
        method=method,
        headers=MappingProxyType(request_headers),
        body=encoded_body,
        idempotent=idempotent,
        nsid=nsid,
    )


def guess_mime_type(filename: str) -> str:
    """Determine a blob's MIME type from its file extension."""
    suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return {
        "png": "image/png",
        "jpeg": "image/jpeg",
        "jpg": "image/jpeg",
        "webp": "image/webp",
        "gif": "image/gif",
        "mp4": "video/mp4",
    }.get(suffix, "application/octet-stream")
