"""Request authentication for AtomPub servers.

Implements the WSSE UsernameToken profile used by many AtomPub services:
every request carries a fresh nonce and creation time, and a SHA-1 digest
binding both to the shared password. The server can verify freshness without
issuing a challenge first.

See: https://docs.oasis-open.org/wss-m/wss/v1.1.1/os/wss-UsernameTokenProfile-v1.1.1-os.html
"""

from abc import ABC, abstractmethod
import base64
from datetime import datetime, timezone
import hashlib
import secrets
from typing import MutableMapping, Optional, Protocol

from social.graze.atompub.config import ClientSettings
from social.graze.atompub.errors import AuthError, AuthErrorKind

NONCE_SIZE = 20

WSSE_AUTHORIZATION = 'WSSE profile="UsernameToken"'

# Characters that would break the quoted X-WSSE parameter list.
_USERNAME_FORBIDDEN = frozenset('",\r\n')


class _RequestStub(Protocol):
    """_RequestStub defines what an authenticator needs from a request."""

    headers: MutableMapping[str, str]


class Authenticator(ABC):
    @abstractmethod
    def authenticate(self, request: _RequestStub) -> None:
        """Attach credentials to the request headers.

        Raises:
            AuthError: If the credentials cannot be produced.
        """


class NoAuth(Authenticator):
    """Authenticator for servers that accept anonymous requests."""

    def authenticate(self, request: _RequestStub) -> None:
        pass


class WSSEAuth(Authenticator):
    """WSSE UsernameToken authenticator.

    Holds only the immutable credentials; each call to ``authenticate``
    produces its own nonce, timestamp and digest, so a single instance can
    be shared across concurrent requests.
    """

    def __init__(self, username: str, password: str) -> None:
        if any(c in _USERNAME_FORBIDDEN for c in username):
            raise ValueError(
                "wsse username must not contain quotes, commas or line breaks"
            )
        self._username = username
        self._password = password

    @property
    def username(self) -> str:
        return self._username

    def __repr__(self) -> str:
        return f"WSSEAuth(username={self._username!r})"

    def authenticate(self, request: _RequestStub) -> None:
        nonce = generate_nonce()
        created = created_timestamp()
        password_digest = generate_password_digest(self._password, nonce, created)

        request.headers["X-WSSE"] = generate_wsse_value(
            self._username, password_digest, nonce, created
        )
        request.headers["Authorization"] = WSSE_AUTHORIZATION


def generate_nonce() -> bytes:
    """Generate a single-use nonce from the system CSPRNG.

    Raises:
        AuthError: If the operating system cannot supply random bytes.
    """
    try:
        return secrets.token_bytes(NONCE_SIZE)
    except (OSError, NotImplementedError) as e:
        raise AuthError(
            AuthErrorKind.random_source_failure, f"generate wsse nonce: {e}"
        ) from e


def created_timestamp(now: Optional[datetime] = None) -> str:
    """Format a creation time as an RFC 3339 UTC timestamp with second precision."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%SZ")


def generate_password_digest(password: str, nonce: bytes, created: str) -> str:
    """Compute ``base64(SHA-1(nonce + created + password))``.

    Raises:
        AuthError: If SHA-1 is unavailable or the inputs cannot be encoded.
    """
    try:
        digest = hashlib.sha1()
        digest.update(nonce)
        digest.update(created.encode("utf-8"))
        digest.update(password.encode("utf-8"))
    except ValueError as e:
        raise AuthError(
            AuthErrorKind.hash_failure, f"generate wsse password digest: {e}"
        ) from e
    return base64.b64encode(digest.digest()).decode("ascii")


def generate_wsse_value(
    username: str, password_digest: str, nonce: bytes, created: str
) -> str:
    nonce_b64 = base64.b64encode(nonce).decode("ascii")
    return (
        f'UsernameToken Username="{username}", PasswordDigest="{password_digest}", '
        f'Nonce="{nonce_b64}", Created="{created}"'
    )


def build_authenticator(settings: ClientSettings) -> Authenticator:
    """Pick WSSE when the settings carry credentials, anonymous access otherwise."""
    if settings.has_credentials:
        return WSSEAuth(settings.username or "", settings.password or "")
    return NoAuth()
