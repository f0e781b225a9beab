"""
Configuration Module for the AtomPub client

Client options are collected in a single Pydantic settings object instead of
being passed piecemeal. Values are read from ``ATOMPUB_``-prefixed environment
variables, with defaults suitable for talking to a public AtomPub service.

Programmatic callers can construct ``ClientSettings`` directly; keyword
arguments take precedence over the environment.
"""

from typing import Final, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION: Final = "0.1.0"

DEFAULT_USER_AGENT: Final = f"graze-atompub/{VERSION}"

DEFAULT_TIMEOUT: Final = 30.0


class ClientSettings(BaseSettings):
    """
    Settings for the AtomPub client.

    Options and their effect:
    - user_agent: value of the User-Agent header sent with every request
    - verbose: buffer every response body and log it as a diagnostic
    - timeout: total time allowed for one request, in seconds
    - username / password: WSSE credentials; both must be set to enable WSSE
    - service_url: default service document URL for the command line
    - debug: DEBUG level logging for the command line
    - sentry_dsn: report command line failures to Sentry
    """

    model_config = SettingsConfigDict(env_prefix="ATOMPUB_", extra="ignore")

    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    """
    Client identity sent as the User-Agent header.
    Set with ATOMPUB_USER_AGENT environment variable.
    """

    verbose: bool = False
    """
    Dump response bodies to the diagnostics logger.
    Set with ATOMPUB_VERBOSE=true environment variable.
    """

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    """
    Overall per-request timeout in seconds.
    Set with ATOMPUB_TIMEOUT environment variable.
    Default: 30
    """

    username: Optional[str] = None
    """
    WSSE username.
    Set with ATOMPUB_USERNAME environment variable.
    """

    password: Optional[str] = Field(default=None, repr=False)
    """
    WSSE password (or API key, depending on the service).
    Set with ATOMPUB_PASSWORD environment variable.
    """

    service_url: Optional[str] = None
    """
    Service document URL used by the command line when none is given.
    Set with ATOMPUB_SERVICE_URL environment variable.
    """

    debug: bool = False
    """
    Enable DEBUG level logging in the command line.
    Set with ATOMPUB_DEBUG=true environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with ATOMPUB_SENTRY_DSN environment variable.
    """

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and self.password is not None
