"""Exception hierarchy for the AtomPub client.

Each layer raises its own error type and chains the lower layer's failure
as the ``__cause__``:

- AuthError: the authenticator could not produce credentials.
- TransportError: the request could not be built, authenticated or sent.
- ProtocolError: the exchange completed but the server or document did not
  meet the protocol contract.
"""

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    random_source_failure = "random_source_failure"
    hash_failure = "hash_failure"


class TransportErrorKind(str, Enum):
    request_build_failure = "request_build_failure"
    auth_failed = "auth_failed"
    network_failure = "network_failure"


class ProtocolErrorKind(str, Enum):
    unexpected_status = "unexpected_status"
    encode_failure = "encode_failure"
    decode_failure = "decode_failure"


class AtomPubError(Exception):
    """Base class for every error raised by this package."""


class AuthError(AtomPubError):
    def __init__(self, kind: AuthErrorKind, message: Optional[str] = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class TransportError(AtomPubError):
    def __init__(
        self,
        kind: TransportErrorKind,
        message: Optional[str] = None,
        timeout: bool = False,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.timeout = timeout


class ProtocolError(AtomPubError):
    """Raised when a response does not satisfy the AtomPub contract.

    For ``unexpected_status`` errors, ``status`` carries the HTTP status code
    the server returned.
    """

    def __init__(
        self,
        kind: ProtocolErrorKind,
        message: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        if message is None:
            message = kind.value
            if status is not None:
                message = f"{message}: {status}"
        super().__init__(message)
        self.kind = kind
        self.status = status
