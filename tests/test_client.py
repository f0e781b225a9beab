"""
Unit tests for the AtomPub protocol operations in social.graze.atompub.client

Tests cover service document discovery and entry publication against an
in-process AtomPub server, status code enforcement, decode and encode failure
mapping, and response release on every exit path.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from aiohttp import hdrs

from social.graze.atompub.auth import WSSEAuth
from social.graze.atompub.client import (
    Client,
    CreateEntryResponse,
    GetServiceDocumentResponse,
)
from social.graze.atompub.errors import (
    ProtocolError,
    ProtocolErrorKind,
    TransportError,
    TransportErrorKind,
)
from social.graze.atompub.model.atom import Content, Control, Entry
from social.graze.atompub.model.base import (
    ATOM_ENTRY_MEDIA_TYPE,
    ATOM_SERVICE_MEDIA_TYPE,
    Text,
)
from social.graze.atompub.model.codec import decode_entry
from social.graze.atompub.transport import Transport

from tests.test_helpers import (
    CREATED_ENTRY,
    CREATED_ENTRY_LOCATION,
    SERVICE_DOCUMENT,
    atompub_server,
    create_mock_response,
    create_mock_session,
    created_entry_headers,
    service_document_headers,
)


def new_entry() -> Entry:
    return Entry(
        title=Text(value="Atom-Powered Robots Run Amok"),
        content=Content(type="text", value="Some text."),
        control=Control(draft=True),
    )


def mock_client(settings, status: int, body: bytes = b"", headers=None):
    response = create_mock_response(status=status, body=body, headers=headers)
    session = create_mock_session(response)
    return Client(settings=settings, client_session=session), response


class TestDiscover:
    """Test service document discovery."""

    @pytest.mark.asyncio
    async def test_discover_decodes_service_document(self, settings):
        """Test a 200 response yields workspaces and collections in order."""
        async with atompub_server(
            body=SERVICE_DOCUMENT, headers=service_document_headers()
        ) as (server, handler):
            async with Client(settings=settings) as client:
                result = await client.discover(str(server.make_url("/service")))

        assert isinstance(result, GetServiceDocumentResponse)
        workspaces = result.body.workspaces
        assert len(workspaces) == 2
        assert [len(w.collections) for w in workspaces] == [1, 2]
        assert [w.title.value for w in workspaces] == ["Main Site", "Sidebar Blog"]
        assert [c.title.value for c in workspaces[1].collections] == [
            "Remaindered Links",
            "Pictures",
        ]
        assert result.headers[hdrs.CONTENT_TYPE] == "application/atomsvc+xml"

        recorded = handler.requests[0]
        assert recorded.method == "GET"
        assert recorded.headers[hdrs.ACCEPT] == ATOM_SERVICE_MEDIA_TYPE

    @pytest.mark.asyncio
    async def test_discover_sends_credentials(self, settings):
        """Test discovery requests are authenticated."""
        async with atompub_server(body=SERVICE_DOCUMENT) as (server, handler):
            async with Client(WSSEAuth("alice", "pw"), settings) as client:
                await client.discover(str(server.make_url("/service")))

        headers = handler.requests[0].headers
        assert headers["Authorization"] == 'WSSE profile="UsernameToken"'
        assert 'Username="alice"' in headers["X-WSSE"]
        assert headers[hdrs.USER_AGENT] == "atompub-tests/1.0"

    @pytest.mark.asyncio
    async def test_discover_not_found(self, settings):
        """Test a 404 raises unexpected_status and never decodes."""
        async with atompub_server(status=404, body=b"not found") as (server, _):
            async with Client(settings=settings) as client:
                with patch(
                    "social.graze.atompub.client.decode_service_document"
                ) as mock_decode:
                    with pytest.raises(ProtocolError) as exc_info:
                        await client.discover(str(server.make_url("/service")))

        assert exc_info.value.kind == ProtocolErrorKind.unexpected_status
        assert exc_info.value.status == 404
        mock_decode.assert_not_called()

    @pytest.mark.asyncio
    async def test_discover_malformed_body(self, settings):
        """Test a 200 with a non-service body raises decode_failure."""
        async with atompub_server(body=b"<html>oops</html>") as (server, _):
            async with Client(settings=settings) as client:
                with pytest.raises(ProtocolError) as exc_info:
                    await client.discover(str(server.make_url("/service")))

        assert exc_info.value.kind == ProtocolErrorKind.decode_failure
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_discover_releases_response_on_success(self, settings):
        """Test the response is closed after a successful decode."""
        client, response = mock_client(settings, 200, SERVICE_DOCUMENT)

        await client.discover("https://example.com/service")

        response.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_discover_releases_response_on_decode_failure(self, settings):
        """Test the response is closed when decoding fails."""
        client, response = mock_client(settings, 200, b"garbage")

        with pytest.raises(ProtocolError):
            await client.discover("https://example.com/service")

        response.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_discover_releases_response_on_bad_status(self, settings):
        """Test the response is closed when the status is rejected."""
        client, response = mock_client(settings, 404)

        with pytest.raises(ProtocolError):
            await client.discover("https://example.com/service")

        response.close.assert_called_once()
        response.read.assert_not_called()

    @pytest.mark.asyncio
    async def test_discover_transport_failure_propagates(self, settings):
        """Test transport failures surface as TransportError."""
        async with atompub_server() as (server, _):
            url = str(server.make_url("/service"))

        async with Client(settings=settings) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.discover(url)

        assert exc_info.value.kind == TransportErrorKind.network_failure

    @pytest.mark.asyncio
    async def test_discover_cancelled_in_flight(self, settings):
        """Test cancelling discover aborts the request and leaves no open response."""
        async with atompub_server(
            body=SERVICE_DOCUMENT, headers=service_document_headers(), delay=1.0
        ) as (server, handler):
            async with Client(settings=settings) as client:
                contexts = []
                execute = client.transport.execute

                def capture(*args, **kwargs):
                    context = execute(*args, **kwargs)
                    contexts.append(context)
                    return context

                with patch.object(client.transport, "execute", side_effect=capture):
                    task = asyncio.create_task(
                        client.discover(str(server.make_url("/service")))
                    )
                    while not handler.requests:
                        await asyncio.sleep(0.01)
                    task.cancel()

                    with pytest.raises(asyncio.CancelledError):
                        await task

        assert len(contexts) == 1
        response = contexts[0].client_response
        assert response is None or response.closed

    @pytest.mark.asyncio
    async def test_discover_cancelled_while_reading_releases_response(self, settings):
        """Test cancellation during the body read closes the response."""
        client, response = mock_client(
            settings, 200, SERVICE_DOCUMENT, service_document_headers()
        )
        response.read = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await client.discover("https://example.com/service")

        response.close.assert_called_once()


class TestPublish:
    """Test entry publication."""

    @pytest.mark.asyncio
    async def test_publish_returns_server_entry(self, settings):
        """Test a 201 response yields the server's copy with its assigned id."""
        async with atompub_server(
            status=201, body=CREATED_ENTRY, headers=created_entry_headers()
        ) as (server, handler):
            async with Client(WSSEAuth("alice", "pw"), settings) as client:
                result = await client.publish(
                    str(server.make_url("/collection")), new_entry()
                )

        assert isinstance(result, CreateEntryResponse)
        assert result.body.id == "tag:example.org,2003:3.2397"
        assert result.body.link("edit").href == CREATED_ENTRY_LOCATION
        assert result.location == CREATED_ENTRY_LOCATION

        recorded = handler.requests[0]
        assert recorded.method == "POST"
        assert recorded.path == "/collection"
        assert recorded.headers[hdrs.CONTENT_TYPE] == ATOM_ENTRY_MEDIA_TYPE
        assert "X-WSSE" in recorded.headers

    @pytest.mark.asyncio
    async def test_publish_sends_encoded_entry(self, settings):
        """Test the request body decodes back to the submitted entry."""
        entry = new_entry()

        async with atompub_server(status=201, body=CREATED_ENTRY) as (server, handler):
            async with Client(settings=settings) as client:
                await client.publish(str(server.make_url("/collection")), entry)

        assert decode_entry(handler.requests[0].body) == entry

    @pytest.mark.asyncio
    async def test_publish_keeps_location_out_of_body(self, settings):
        """Test response headers are returned beside the decoded entry."""
        client, _ = mock_client(settings, 201, CREATED_ENTRY, created_entry_headers())

        result = await client.publish("https://example.com/collection", new_entry())

        assert result.headers[hdrs.LOCATION] == CREATED_ENTRY_LOCATION
        assert CREATED_ENTRY_LOCATION not in result.body.id

    @pytest.mark.asyncio
    async def test_publish_without_location(self, settings):
        """Test location is None when the server omits the header."""
        client, _ = mock_client(settings, 201, CREATED_ENTRY)

        result = await client.publish("https://example.com/collection", new_entry())

        assert result.location is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 400, 401, 409, 500])
    async def test_publish_rejects_other_statuses(self, settings, status):
        """Test anything but 201 raises unexpected_status."""
        client, _ = mock_client(settings, status, CREATED_ENTRY)

        with pytest.raises(ProtocolError) as exc_info:
            await client.publish("https://example.com/collection", new_entry())

        assert exc_info.value.kind == ProtocolErrorKind.unexpected_status
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_publish_server_error_releases_response(self, settings):
        """Test a 500 raises unexpected_status and still closes the response."""
        client, response = mock_client(settings, 500, b"Internal Server Error")

        with pytest.raises(ProtocolError) as exc_info:
            await client.publish("https://example.com/collection", new_entry())

        assert exc_info.value.status == 500
        response.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_server_error_against_server(self, settings):
        """Test a real 500 response is reported with its status code."""
        async with atompub_server(status=500, body=b"boom") as (server, _):
            async with Client(settings=settings) as client:
                with pytest.raises(ProtocolError) as exc_info:
                    await client.publish(
                        str(server.make_url("/collection")), new_entry()
                    )

        assert exc_info.value.kind == ProtocolErrorKind.unexpected_status
        assert exc_info.value.status == 500
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_publish_malformed_created_entry(self, settings):
        """Test a 201 with a malformed body raises decode_failure and releases it."""
        client, response = mock_client(settings, 201, b"<entry>")

        with pytest.raises(ProtocolError) as exc_info:
            await client.publish("https://example.com/collection", new_entry())

        assert exc_info.value.kind == ProtocolErrorKind.decode_failure
        response.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_encode_failure_sends_nothing(self, settings):
        """Test an unencodable entry raises encode_failure before any request."""
        client, response = mock_client(settings, 201, CREATED_ENTRY)
        entry = Entry(title=Text(value="bell\x07"))

        with pytest.raises(ProtocolError) as exc_info:
            await client.publish("https://example.com/collection", entry)

        assert exc_info.value.kind == ProtocolErrorKind.encode_failure
        client.transport._client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_publish_does_not_retry(self, settings):
        """Test a failed publish is attempted exactly once."""
        async with atompub_server(status=503) as (server, handler):
            async with Client(settings=settings) as client:
                with pytest.raises(ProtocolError):
                    await client.publish(
                        str(server.make_url("/collection")), new_entry()
                    )

        assert len(handler.requests) == 1


class TestClientConstruction:
    """Test client construction and ownership."""

    def test_client_builds_transport(self, settings):
        """Test the client wires settings and authenticator into its transport."""
        auth = WSSEAuth("alice", "pw")
        client = Client(auth, settings)

        assert client.transport.authenticator is auth
        assert client.transport.settings is settings

    def test_client_accepts_transport(self, settings):
        """Test an explicit transport is used as is."""
        transport = Transport(settings=settings)
        assert Client(transport=transport).transport is transport

    def test_client_rejects_transport_with_settings(self, settings):
        """Test transport arguments cannot be combined with a ready transport."""
        transport = Transport(settings=settings)
        with pytest.raises(ValueError, match="explicit transport"):
            Client(WSSEAuth("alice", "pw"), settings, transport=transport)

    @pytest.mark.asyncio
    async def test_client_close_closes_transport(self, settings):
        """Test closing the client closes its transport."""
        client = Client(settings=settings)
        await client.close()

        with pytest.raises(TransportError):
            await client.discover("https://example.com/service")
