"""Atom entry models (RFC 4287).

Optional attributes default to None and are omitted from the wire format,
so an entry built by the caller carries only the fields it sets.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from social.graze.atompub.model.base import Text


class Person(BaseModel):
    """Atom person construct, used for ``atom:author``."""

    name: str
    uri: Optional[str] = None
    email: Optional[str] = None


class Content(BaseModel):
    """Entry content, either inline (``value``) or out-of-line (``src``)."""

    type: Optional[str] = None
    src: Optional[str] = None
    value: str = ""


class Link(BaseModel):
    href: str
    rel: Optional[str] = None
    type: Optional[str] = None
    hreflang: Optional[str] = None
    title: Optional[str] = None
    length: Optional[int] = Field(default=None, ge=0)


class Category(BaseModel):
    term: str
    scheme: Optional[str] = None
    label: Optional[str] = None


class Control(BaseModel):
    """AtomPub publishing control (RFC 5023 section 13.1)."""

    draft: bool = False


class Entry(BaseModel):
    """Atom entry.

    ``id`` may be left empty when publishing; the server assigns the
    canonical identifier and returns it in the created entry.
    """

    id: str = ""
    title: Text = Field(default_factory=Text)
    published: Optional[datetime] = None
    updated: Optional[datetime] = None
    summary: Optional[Text] = None
    authors: List[Person] = Field(default_factory=list)
    content: Optional[Content] = None
    links: List[Link] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    control: Optional[Control] = None

    @field_validator("published", "updated")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def link(self, rel: str) -> Optional[Link]:
        """Return the first link with the given relation, if any.

        Links without a ``rel`` attribute are treated as ``alternate``.
        """
        for link in self.links:
            if (link.rel or "alternate") == rel:
                return link
        return None

    @property
    def is_draft(self) -> bool:
        return self.control is not None and self.control.draft
