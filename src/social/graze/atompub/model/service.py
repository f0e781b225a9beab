"""AtomPub service document models (RFC 5023 section 8)."""

from typing import List, Optional

from pydantic import BaseModel, Field

from social.graze.atompub.model.atom import Category
from social.graze.atompub.model.base import Text


class Categories(BaseModel):
    """Category constraints of a collection (``app:categories``).

    ``href`` references an out-of-line category document; otherwise the
    allowed categories are listed inline in ``categories``.
    """

    fixed: Optional[str] = None
    scheme: Optional[str] = None
    href: Optional[str] = None
    categories: List[Category] = Field(default_factory=list)

    @property
    def is_fixed(self) -> bool:
        return self.fixed == "yes"


class Collection(BaseModel):
    href: str = ""
    title: Text = Field(default_factory=Text)
    accept: List[str] = Field(default_factory=list)
    categories: Optional[Categories] = None


class Workspace(BaseModel):
    title: Text = Field(default_factory=Text)
    collections: List[Collection] = Field(default_factory=list)


class ServiceDocument(BaseModel):
    workspaces: List[Workspace] = Field(default_factory=list)

    def collections(self) -> List[Collection]:
        """All collections across workspaces, in document order."""
        return [
            collection
            for workspace in self.workspaces
            for collection in workspace.collections
        ]
