"""
AtomPub - Atom Publishing Protocol client

This package implements a client for the Atom Publishing Protocol (RFC 5023) and
the Atom Syndication Format (RFC 4287). It discovers the collections a server
offers through its service document and publishes new entries into them,
authenticating every request with a WSSE UsernameToken.

Key Components:
- auth.py: Request authenticators (anonymous and WSSE UsernameToken)
- transport.py: Middleware chain around aiohttp (User-Agent, authentication,
  verbose diagnostics, the HTTP call itself)
- client.py: Protocol operations (service document discovery, entry creation)
- model: Pydantic models for Atom/AtomPub documents and their XML codec
- config.py: Client settings loaded from the environment
- cli.py: Command line interface

Request Flow:
1. The caller builds an Authenticator and hands it to a Client
2. The Client encodes the outgoing document (for publish) and asks the
   Transport to execute the request
3. The Transport sets the User-Agent, lets the Authenticator add its headers,
   and performs the HTTP call
4. The Client checks the status code, decodes the response body and returns
   the decoded document alongside the response headers

Errors are raised as AuthError, TransportError or ProtocolError (see errors.py),
each chained to the failure that caused it.
"""
