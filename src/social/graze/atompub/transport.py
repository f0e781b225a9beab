"""HTTP transport for AtomPub requests.

Requests pass through a middleware chain before reaching aiohttp:

    UserAgentMiddleware -> AuthenticationMiddleware -> VerboseMiddleware
        -> EndOfLineMiddleware (performs the HTTP call)

Each middleware receives the request and a ``next`` callback, and returns the
``aiohttp.ClientResponse`` produced further down the chain. Responses are
returned unconsumed; ``Transport.execute`` hands them out through a
``TransportContext`` that closes the response when the ``async with`` block
exits.

Failures are mapped onto ``TransportError``:

- authentication failures abort before any network call (``auth_failed``)
- invalid URLs and request arguments (``request_build_failure``)
- connection errors and timeouts (``network_failure``)
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, field
import logging
from types import TracebackType
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generator,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from aiohttp import (
    ClientError,
    ClientResponse,
    ClientSession,
    ClientTimeout,
    InvalidURL,
    hdrs,
)
from multidict import CIMultiDict

from social.graze.atompub.auth import Authenticator, NoAuth
from social.graze.atompub.config import ClientSettings
from social.graze.atompub.errors import AuthError, TransportError, TransportErrorKind

RequestFunc = Callable[..., Awaitable[ClientResponse]]

logger = logging.getLogger(__name__)

diagnostics_logger = logging.getLogger("social.graze.atompub.diagnostics")


class _LoggerStub(Protocol):
    """_Logger defines which methods logger object should have."""

    @abstractmethod
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        pass


_LoggerType = Union[_LoggerStub, logging.Logger]


@dataclass
class TransportRequest:
    method: str
    url: str
    headers: CIMultiDict[str] = field(default_factory=CIMultiDict)
    body: Optional[bytes] = None
    kwargs: Dict[str, Any] = field(default_factory=dict)


NextCallbackType = Callable[[TransportRequest], Awaitable[ClientResponse]]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextCallbackType, request: TransportRequest
    ) -> ClientResponse:
        pass

    def handle_gen(self, next: NextCallbackType) -> NextCallbackType:
        async def next_invoke(request: TransportRequest) -> ClientResponse:
            return await self.handle(next, request)

        return next_invoke


class UserAgentMiddleware(RequestMiddlewareBase):
    def __init__(self, user_agent: str) -> None:
        super().__init__()
        self._user_agent = user_agent

    async def handle(
        self, next: NextCallbackType, request: TransportRequest
    ) -> ClientResponse:
        request.headers[hdrs.USER_AGENT] = self._user_agent
        return await next(request)


class AuthenticationMiddleware(RequestMiddlewareBase):
    def __init__(self, authenticator: Authenticator) -> None:
        super().__init__()
        self._authenticator = authenticator

    async def handle(
        self, next: NextCallbackType, request: TransportRequest
    ) -> ClientResponse:
        try:
            self._authenticator.authenticate(request)
        except AuthError as e:
            raise TransportError(
                TransportErrorKind.auth_failed, f"authenticate request: {e}"
            ) from e
        return await next(request)


class VerboseMiddleware(RequestMiddlewareBase):
    """Dumps every response body to the diagnostics logger.

    The body is read in full; aiohttp keeps it on the response, so later
    ``read()`` calls return the same bytes.
    """

    def __init__(self, logger: Optional[_LoggerType] = None) -> None:
        super().__init__()
        self._logger: _LoggerType = logger or diagnostics_logger

    async def handle(
        self, next: NextCallbackType, request: TransportRequest
    ) -> ClientResponse:
        response = await next(request)
        try:
            body = await response.read()
        except (ClientError, asyncio.TimeoutError) as e:
            response.close()
            raise TransportError(
                TransportErrorKind.network_failure,
                f"dump response body: {e}",
                timeout=isinstance(e, asyncio.TimeoutError),
            ) from e
        self._logger.info("Response Body:\n%s", body.decode("utf-8", "replace"))
        return response


class EndOfLineMiddleware:
    def __init__(
        self,
        request_func: RequestFunc,
        logger: _LoggerType,
        timeout: Optional[ClientTimeout] = None,
    ) -> None:
        super().__init__()
        self._request_func = request_func
        self._logger = logger
        self._timeout = timeout

    async def handle(self, request: TransportRequest) -> ClientResponse:
        self._logger.debug(f"Making request: {request.method} {request.url}")

        kwargs = dict(request.kwargs)
        if self._timeout is not None:
            kwargs.setdefault("timeout", self._timeout)

        try:
            return await self._request_func(
                request.method.lower(),
                request.url,
                headers=request.headers,
                data=request.body,
                **kwargs,
            )
        except InvalidURL as e:
            raise TransportError(
                TransportErrorKind.request_build_failure, f"create request: {e}"
            ) from e
        except asyncio.TimeoutError as e:
            raise TransportError(
                TransportErrorKind.network_failure,
                f"do request: timed out: {e!r}",
                timeout=True,
            ) from e
        except ClientError as e:
            raise TransportError(
                TransportErrorKind.network_failure, f"do request: {e}"
            ) from e
        except ValueError as e:
            raise TransportError(
                TransportErrorKind.request_build_failure, f"create request: {e}"
            ) from e


class TransportContext:
    """Awaitable and async context manager around one request.

    ``async with`` closes the response on exit, whether the block completes,
    raises, or is cancelled.
    """

    def __init__(
        self,
        callback: NextCallbackType,
        request: TransportRequest,
    ) -> None:
        self._callback = callback
        self._request = request
        self.client_response: ClientResponse | None = None

    async def _do_request(self) -> ClientResponse:
        self.client_response = await self._callback(self._request)
        return self.client_response

    def __await__(self) -> Generator[Any, None, ClientResponse]:
        return self._do_request().__await__()

    async def __aenter__(self) -> ClientResponse:
        return await self._do_request()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.client_response is not None and not self.client_response.closed:
            self.client_response.close()


class Transport:
    def __init__(
        self,
        authenticator: Authenticator | None = None,
        settings: ClientSettings | None = None,
        client_session: ClientSession | None = None,
        logger: _LoggerType | None = None,
        middleware: Sequence[RequestMiddlewareBase] | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._authenticator = authenticator or NoAuth()

        # An injected session belongs to the caller and is never closed here.
        self._client = client_session
        self._owns_client = client_session is None
        self._closed = False

        self._logger: _LoggerType = logger or logging.getLogger(__name__)
        self._timeout = ClientTimeout(total=self._settings.timeout)

        self._middleware: list[RequestMiddlewareBase] = [
            UserAgentMiddleware(self._settings.user_agent),
            AuthenticationMiddleware(self._authenticator),
        ]
        if self._settings.verbose:
            self._middleware.append(VerboseMiddleware())
        self._middleware.extend(middleware or [])

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def authenticator(self) -> Authenticator:
        return self._authenticator

    def _session(self) -> ClientSession:
        if self._closed:
            raise TransportError(
                TransportErrorKind.request_build_failure, "transport is closed"
            )
        if self._client is None:
            self._client = ClientSession(timeout=self._timeout)
        return self._client

    def execute(
        self,
        method: str,
        url: str,
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> TransportContext:
        request = TransportRequest(
            method=method,
            url=url,
            headers=CIMultiDict(headers or {}),
            body=body,
            kwargs=kwargs,
        )

        end_of_line_middleware = EndOfLineMiddleware(
            request_func=self._request,
            logger=self._logger,
            timeout=self._timeout,
        )

        callback: NextCallbackType = end_of_line_middleware.handle

        for mw in reversed(self._middleware):
            callback = mw.handle_gen(callback)

        return TransportContext(callback=callback, request=request)

    async def _request(self, method: str, url: str, **kwargs: Any) -> ClientResponse:
        return await self._session().request(method, url, **kwargs)

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
        self._closed = True

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
