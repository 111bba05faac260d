"""
Configuration Module for atkit

This module defines the configuration surface for building an AT Protocol client, using Pydantic
for settings validation.

The configuration follows these principles:
1. Environment-based configuration with sensible defaults
2. Strong validation and typing through Pydantic
3. Explicit injection: a Settings instance is handed to the client, never read from a global

Settings are loaded from environment variables prefixed with ``ATKIT_`` (for example
``ATKIT_PDS_URL``), or passed directly as keyword arguments.

Key configuration areas include:
- Service endpoints (PDS, public App View, video service, PLC directory)
- Dispatch policy (retry ceiling, retry delay, timeouts)
- Token lifecycle (refresh margin)
- Credential storage (encryption key, Redis and database DSNs)
- Monitoring and observability
"""

import base64
import logging
from typing import Literal, Optional

from cryptography.fernet import Fernet
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

DEFAULT_PDS_URL = "https://bsky.social"
"""Entryway used for login and authenticated calls when no session endpoint is known."""

DEFAULT_PUBLIC_APPVIEW_URL = "https://public.api.bsky.app"
"""Public App View used for unauthenticated calls to optionally-authenticated endpoints."""

DEFAULT_VIDEO_SERVICE_URL = "https://video.bsky.app"
"""Video service that accepts uploads and reports processing job status."""


class Settings(BaseSettings):
    """
    Client settings for atkit.

    This class uses Pydantic's BaseSettings to automatically load values from environment
    variables, with defaults that talk to the public Bluesky network.

    Settings are organized into the following categories:
    - Environment and debugging
    - Service endpoints
    - Dispatch policy
    - Token lifecycle
    - Credential storage
    - Monitoring and observability
    """

    model_config = SettingsConfigDict(
        env_prefix="ATKIT_", extra="ignore", arbitrary_types_allowed=True
    )

    # Environment and debugging settings
    debug: bool = False
    """
    Enable request/response tracing through the debug middleware.
    Set with ATKIT_DEBUG=true environment variable.
    """

    # Service endpoints
    pds_url: str = DEFAULT_PDS_URL
    """
    Base URL of the Personal Data Server (or entryway) used for login.
    Set with ATKIT_PDS_URL environment variable.
    Default: https://bsky.social
    """

    public_appview_url: str = DEFAULT_PUBLIC_APPVIEW_URL
    """
    Base URL used for optionally-authenticated endpoints when no session is active.
    Set with ATKIT_PUBLIC_APPVIEW_URL environment variable.
    Default: https://public.api.bsky.app
    """

    video_service_url: str = DEFAULT_VIDEO_SERVICE_URL
    """
    Base URL of the video upload service.
    Set with ATKIT_VIDEO_SERVICE_URL environment variable.
    """

    plc_hostname: str = "plc.directory"
    """
    Hostname for the PLC directory service for DID resolution.
    Set with ATKIT_PLC_HOSTNAME environment variable.
    """

    # Dispatch policy
    max_attempts: int = Field(default=3, ge=1)
    """
    Maximum number of attempts for requests failing with a transient error (502/503/504, or a
    transport failure such as a timeout).
    Set with ATKIT_MAX_ATTEMPTS environment variable.
    Default: 3
    """

    retry_delay: float = Field(default=1.0, ge=0)
    """
    Fixed delay in seconds between attempts.
    Set with ATKIT_RETRY_DELAY environment variable.
    Default: 1.0
    """

    connect_timeout: Optional[float] = 10.0
    """
    Seconds allowed to establish a connection. None disables the limit.
    Set with ATKIT_CONNECT_TIMEOUT environment variable.
    """

    request_timeout: Optional[float] = 60.0
    """
    Seconds allowed for a whole request, including reading the body. None disables the limit.
    Set with ATKIT_REQUEST_TIMEOUT environment variable.
    """

    user_agent: str = "atkit"
    """
    User-Agent header sent with every request.
    Set with ATKIT_USER_AGENT environment variable.
    """

    # Token lifecycle
    refresh_margin: float = Field(default=60.0, ge=0)
    """
    Access tokens expiring within this many seconds are refreshed before use.
    Set with ATKIT_REFRESH_MARGIN environment variable.
    Default: 60
    """

    # Credential storage
    encryption_key: Optional[Fernet] = None
    """
    Fernet key used by the Redis and database credential stores to encrypt tokens at rest.
    Can be set to a Fernet object or base64-encoded key string. Tokens are stored in plain text
    when unset.
    Set with ATKIT_ENCRYPTION_KEY environment variable.
    """

    redis_dsn: Optional[str] = None
    """
    Redis connection string for the Redis credential store.
    Set with ATKIT_REDIS_DSN environment variable.
    """

    database_url: Optional[str] = None
    """
    SQLAlchemy async connection string for the database credential store, for example
    postgresql+asyncpg://postgres:password@db/atkit.
    Set with ATKIT_DATABASE_URL environment variable.
    """

    # Monitoring and observability settings
    metrics_backend: Literal["telegraf", "none"] = "none"
    """
    Metrics backend for request timing and counts.
    Set with ATKIT_METRICS_BACKEND environment variable.
    """

    statsd_host: str = "localhost"
    """
    StatsD/Telegraf host for metrics collection.
    Set with ATKIT_STATSD_HOST environment variable.
    """

    statsd_port: int = 8125
    """
    StatsD/Telegraf port for metrics collection.
    Set with ATKIT_STATSD_PORT environment variable.
    """

    statsd_prefix: str = "atkit"
    """
    Prefix for all StatsD metrics from this client.
    Set with ATKIT_STATSD_PREFIX environment variable.
    """

    @field_validator("pds_url", "public_appview_url", "video_service_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("encryption_key", mode="before")
    @classmethod
    def decode_encryption_key(cls, v) -> Optional[Fernet]:
        """
        Validate and process the encryption_key setting.

        This validator accepts either:
        - None, to disable encryption at rest
        - An existing Fernet object (for programmatic configuration)
        - A base64-encoded string containing a Fernet key

        Raises:
            ValueError: If the input is neither a Fernet object nor a valid base64 key
        """
        if v is None or isinstance(v, Fernet):
            return v
        elif isinstance(v, str):
            key_data = base64.b64decode(v)
            return Fernet(key_data)
        raise ValueError(
            "encryption_key must be a Fernet object or a base64-encoded key string"
        )
