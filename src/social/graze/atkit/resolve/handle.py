"""AT Protocol handle and DID resolution utilities.

Resolves AT Protocol handles to DIDs using DNS TXT records and HTTPS well-known endpoints, and
DIDs to their handle and PDS through the PLC directory (did:plc) or did.json (did:web).
"""

import asyncio
from enum import IntEnum
import logging
import re
from typing import Any, Dict, Optional

from aiodns import DNSResolver
from aiodns.error import DNSError
from aiohttp import ClientError, ClientSession
from pydantic import BaseModel
import sentry_sdk

logger = logging.getLogger(__name__)

PDS_SERVICE_TYPE = "AtprotoPersonalDataServer"
PDS_SERVICE_ID = "#atproto_pds"

HANDLE_PATTERN = re.compile(
    r"^([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$"
)


class SubjectType(IntEnum):
    """AT Protocol subject type enumeration.

    Identifies whether a subject is a DID or handle requiring resolution.
    """

    did_method_plc = 1
    did_method_web = 2
    hostname = 3


class ParsedSubject(BaseModel):
    """Parsed AT Protocol subject input."""

    subject_type: SubjectType
    subject: str


class ResolvedSubject(BaseModel):
    """Resolved AT Protocol subject with DID, handle and PDS endpoint."""

    did: str
    handle: str
    pds: str


def is_valid_handle(value: str) -> bool:
    return len(value) <= 253 and HANDLE_PATTERN.match(value) is not None


def pds_predicate(value: Dict[str, Any]) -> bool:
    """Check if a DID document service entry is an AT Protocol PDS."""
    return (
        isinstance(value, dict)
        and (
            value.get("type", None) == PDS_SERVICE_TYPE
            or str(value.get("id", "")).endswith(PDS_SERVICE_ID)
        )
        and isinstance(value.get("serviceEndpoint"), str)
    )


def service_endpoint_from_did_document(
    did_document: Optional[Dict[str, Any]],
) -> Optional[str]:
    """Return the PDS endpoint named in a DID document, without a trailing slash."""
    if not isinstance(did_document, dict):
        return None
    services = did_document.get("service", [])
    if not isinstance(services, list):
        return None
    pds = next(filter(pds_predicate, services), None)
    if pds is None:
        return None
    return pds["serviceEndpoint"].rstrip("/")


def handle_from_did_document(did_document: Dict[str, Any]) -> Optional[str]:
    also_known_as = did_document.get("alsoKnownAs", [])
    handle = next(
        (
            value
            for value in also_known_as
            if isinstance(value, str) and value.startswith("at://")
        ),
        None,
    )
    if handle is None:
        return None
    return handle.removeprefix("at://")


def subject_from_did_document(
    did: str, did_document: Optional[Dict[str, Any]]
) -> Optional[ResolvedSubject]:
    if not isinstance(did_document, dict):
        return None
    handle = handle_from_did_document(did_document)
    pds = service_endpoint_from_did_document(did_document)
    if handle is None or pds is None:
        return None
    return ResolvedSubject(did=did, handle=handle, pds=pds)


async def resolve_handle_dns(
    handle: str, resolver: Optional[DNSResolver] = None
) -> Optional[str]:
    """Resolve a handle to a DID using the _atproto.{handle} TXT record.

    Returns:
        DID string if found, None if resolution fails
    """
    resolver = resolver or DNSResolver()
    try:
        results = await resolver.query(f"_atproto.{handle}", "TXT")
    except DNSError as e:
        logger.debug(f"DNS resolution failed for {handle}: {e}")
        return None
    for result in results or []:
        text = result.text
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        if text.startswith("did="):
            return text.removeprefix("did=").strip()
    return None


async def resolve_handle_http(session: ClientSession, handle: str) -> Optional[str]:
    """Resolve a handle to a DID using https://{handle}/.well-known/atproto-did.

    Returns:
        DID string if found, None if resolution fails
    """
    try:
        async with session.get(f"https://{handle}/.well-known/atproto-did") as resp:
            if resp.status != 200:
                return None
            body = (await resp.text()).strip()
    except (ClientError, asyncio.TimeoutError) as e:
        sentry_sdk.capture_exception(e)
        return None
    if body.startswith("did:"):
        return body
    return None


async def resolve_handle(
    session: ClientSession, handle: str, resolver: Optional[DNSResolver] = None
) -> Optional[str]:
    """Resolve a handle to a DID using DNS and HTTPS concurrently, preferring DNS."""
    async with asyncio.TaskGroup() as tg:
        dns_result = tg.create_task(resolve_handle_dns(handle, resolver))
        http_result = tg.create_task(resolve_handle_http(session, handle))
    if dns_result.result() is not None:
        return dns_result.result()
    return http_result.result()


async def resolve_did_method_plc(
    plc_directory: str, session: ClientSession, did: str
) -> Optional[ResolvedSubject]:
    """Resolve a did:plc DID through the PLC directory."""
    async with session.get(f"https://{plc_directory}/{did}") as resp:
        if resp.status != 200:
            return None
        body = await resp.json()
    return subject_from_did_document(did, body)


def did_web_document_url(did: str) -> Optional[str]:
    if not did.startswith("did:web:"):
        return None
    parts = did.removeprefix("did:web:").split(":")
    if len(parts[0]) == 0:
        return None

    if len(parts) == 1:
        parts.append(".well-known")

    return "https://{inner}/did.json".format(inner="/".join(parts))


async def resolve_did_method_web(
    session: ClientSession, did: str
) -> Optional[ResolvedSubject]:
    """Resolve a did:web DID through its did.json document."""
    url = did_web_document_url(did)
    if url is None:
        return None

    async with session.get(url) as resp:
        if resp.status != 200:
            return None
        body = await resp.json()
    return subject_from_did_document(did, body)


async def resolve_did(
    session: ClientSession, plc_hostname: str, did: str
) -> Optional[ResolvedSubject]:
    """Resolve a DID to its handle and PDS. Unsupported methods resolve to None."""
    if did.startswith("did:plc:"):
        return await resolve_did_method_plc(plc_hostname, session, did)
    elif did.startswith("did:web:"):
        return await resolve_did_method_web(session, did)
    return None


async def resolve_subject(
    session: ClientSession, plc_hostname: str, subject: str
) -> Optional[ResolvedSubject]:
    """Resolve a handle or DID to its DID, handle and PDS.

    Args:
        session: HTTP client session
        plc_hostname: PLC directory hostname
        subject: Handle or DID to resolve, optionally prefixed with at:// or @

    Returns:
        ResolvedSubject if successful, None if resolution fails
    """
    parsed_subject = parse_input(subject)
    if parsed_subject is None:
        return None

    did: Optional[str] = None
    if parsed_subject.subject_type == SubjectType.hostname:
        did = await resolve_handle(session, parsed_subject.subject)
    else:
        did = parsed_subject.subject

    if did is None:
        return None

    return await resolve_did(session, plc_hostname, did)


def parse_input(subject: str) -> Optional[ParsedSubject]:
    """Normalize and classify a subject. Returns None for input that is neither a DID nor a handle."""
    subject = subject.strip()
    subject = subject.removeprefix("at://")
    subject = subject.removeprefix("@")

    if subject.startswith("did:plc:"):
        return ParsedSubject(subject_type=SubjectType.did_method_plc, subject=subject)
    elif subject.startswith("did:web:"):
        return ParsedSubject(subject_type=SubjectType.did_method_web, subject=subject)

    subject = subject.lower()
    if not is_valid_handle(subject):
        return None
    return ParsedSubject(subject_type=SubjectType.hostname, subject=subject)
