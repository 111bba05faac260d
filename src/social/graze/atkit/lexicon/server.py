"""com.atproto.server: session lifecycle and service auth."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from social.graze.atkit.lexicon.union import LexiconModel


class CreateSessionInput(LexiconModel):
    identifier: str
    password: str
    auth_factor_token: Optional[str] = None


class SessionOutput(LexiconModel):
    """Shared shape of ``createSession`` and ``refreshSession`` responses."""

    access_jwt: str
    refresh_jwt: str
    handle: str
    did: str
    did_doc: Optional[Dict[str, Any]] = None
    email: Optional[str] = None
    email_confirmed: Optional[bool] = None
    email_auth_factor: Optional[bool] = None
    active: Optional[bool] = None
    status: Optional[str] = None


class CreateSessionOutput(SessionOutput):
    pass


class RefreshSessionOutput(SessionOutput):
    pass


class GetSessionOutput(LexiconModel):
    handle: str
    did: str
    did_doc: Optional[Dict[str, Any]] = None
    email: Optional[str] = None
    email_confirmed: Optional[bool] = None
    email_auth_factor: Optional[bool] = None
    active: Optional[bool] = None
    status: Optional[str] = None


class GetServiceAuthOutput(LexiconModel):
    token: str


class DescribeServerLinks(LexiconModel):
    privacy_policy: Optional[str] = None
    terms_of_service: Optional[str] = None


class DescribeServerOutput(LexiconModel):
    did: str
    available_user_domains: List[str] = Field(default_factory=list)
    invite_code_required: Optional[bool] = None
    phone_verification_required: Optional[bool] = None
    links: Optional[DescribeServerLinks] = None
    contact: Optional[Dict[str, Any]] = None
