"""
Atom and AtomPub Document Models

This package defines the documents exchanged with an AtomPub server as Pydantic
models, together with the XML codec that maps them to and from the wire format.

Key Models:
- base.py: XML namespaces, media types and the shared Text construct
- atom.py: Atom entries (RFC 4287) and their child constructs
- service.py: AtomPub service documents (RFC 5023 section 8)
- codec.py: ElementTree based encoder/decoder for the models above

The same models are used for outbound and inbound documents, so an Entry the
client sends decodes back through exactly the schema used for the server's
response.
"""
