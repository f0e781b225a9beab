"""AtomPub protocol operations.

``Client.discover`` fetches and decodes a service document (RFC 5023
section 8); ``Client.publish`` posts an entry to a collection (RFC 5023
section 9.2) and decodes the server's copy of the created member.

Both operations check the status code before decoding anything and release
the response on every exit path. Neither retries: a failed publish may or may
not have created the resource, so retrying is left to the caller.
"""

import asyncio
from dataclasses import dataclass
import logging
from types import TracebackType
from typing import Optional

from aiohttp import ClientError, ClientResponse, ClientSession, hdrs
from multidict import CIMultiDictProxy

from social.graze.atompub.auth import Authenticator
from social.graze.atompub.config import ClientSettings
from social.graze.atompub.errors import (
    ProtocolError,
    ProtocolErrorKind,
    TransportError,
    TransportErrorKind,
)
from social.graze.atompub.model.atom import Entry
from social.graze.atompub.model.base import (
    ATOM_ENTRY_MEDIA_TYPE,
    ATOM_SERVICE_MEDIA_TYPE,
)
from social.graze.atompub.model.codec import (
    decode_entry,
    decode_service_document,
    encode_entry,
)
from social.graze.atompub.model.service import ServiceDocument
from social.graze.atompub.transport import Transport

logger = logging.getLogger(__name__)


@dataclass
class GetServiceDocumentResponse:
    headers: CIMultiDictProxy[str]
    body: ServiceDocument


@dataclass
class CreateEntryResponse:
    headers: CIMultiDictProxy[str]
    body: Entry

    @property
    def location(self) -> Optional[str]:
        """URI of the created member, from the Location header."""
        return self.headers.get(hdrs.LOCATION)


async def _read_body(response: ClientResponse) -> bytes:
    try:
        return await response.read()
    except asyncio.TimeoutError as e:
        raise TransportError(
            TransportErrorKind.network_failure,
            f"read response body: {e!r}",
            timeout=True,
        ) from e
    except ClientError as e:
        raise TransportError(
            TransportErrorKind.network_failure, f"read response body: {e}"
        ) from e


def _expect_status(response: ClientResponse, expected: int) -> None:
    if response.status != expected:
        raise ProtocolError(
            ProtocolErrorKind.unexpected_status, status=response.status
        )


class Client:
    """AtomPub client.

    The client owns a ``Transport``; close it with ``await client.close()`` or
    use the client as an async context manager. Pass either a ready
    ``transport`` or the arguments to build one, not both.
    """

    def __init__(
        self,
        authenticator: Authenticator | None = None,
        settings: ClientSettings | None = None,
        client_session: ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        configured = (authenticator, settings, client_session)
        if transport is not None:
            if any(arg is not None for arg in configured):
                raise ValueError(
                    "authenticator, settings and client_session configure the "
                    "transport and cannot be combined with an explicit transport"
                )
        else:
            transport = Transport(
                authenticator=authenticator,
                settings=settings,
                client_session=client_session,
            )
        self._transport = transport

    @property
    def transport(self) -> Transport:
        return self._transport

    async def discover(self, url: str) -> GetServiceDocumentResponse:
        """Retrieve and parse the service document at ``url``.

        Raises:
            TransportError: If the request could not be authenticated or sent.
            ProtocolError: If the server does not answer 200 with a valid
                service document.
        """
        async with self._transport.execute(
            hdrs.METH_GET, url, headers={hdrs.ACCEPT: ATOM_SERVICE_MEDIA_TYPE}
        ) as response:
            _expect_status(response, 200)
            body = await _read_body(response)

            try:
                service_document = decode_service_document(body)
            except ValueError as e:
                raise ProtocolError(
                    ProtocolErrorKind.decode_failure, f"decode service document: {e}"
                ) from e

            return GetServiceDocumentResponse(
                headers=response.headers, body=service_document
            )

    async def publish(self, collection_url: str, entry: Entry) -> CreateEntryResponse:
        """Create ``entry`` as a new member of the collection.

        The returned body is the server's representation of the created
        entry, including the identifier, links and timestamps it assigned.

        Raises:
            TransportError: If the request could not be authenticated or sent.
            ProtocolError: If the entry cannot be encoded, or the server does
                not answer 201 with a valid entry.
        """
        try:
            body = encode_entry(entry)
        except (ValueError, TypeError, AttributeError) as e:
            raise ProtocolError(
                ProtocolErrorKind.encode_failure, f"marshal entry: {e}"
            ) from e

        async with self._transport.execute(
            hdrs.METH_POST,
            collection_url,
            body=body,
            headers={hdrs.CONTENT_TYPE: ATOM_ENTRY_MEDIA_TYPE},
        ) as response:
            _expect_status(response, 201)
            response_body = await _read_body(response)

            try:
                created_entry = decode_entry(response_body)
            except ValueError as e:
                raise ProtocolError(
                    ProtocolErrorKind.decode_failure, f"decode created entry: {e}"
                ) from e

            logger.debug(f"Created entry {created_entry.id} in {collection_url}")

            return CreateEntryResponse(headers=response.headers, body=created_entry)

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
