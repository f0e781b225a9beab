from enum import Enum
from typing import Final, Optional

from pydantic import BaseModel

ATOM_NS: Final = "http://www.w3.org/2005/Atom"
APP_NS: Final = "http://www.w3.org/2007/app"

ATOM_ENTRY_MEDIA_TYPE: Final = "application/atom+xml;type=entry"
ATOM_SERVICE_MEDIA_TYPE: Final = "application/atomsvc+xml"


class TextType(str, Enum):
    text = "text"
    html = "html"


class Text(BaseModel):
    """Atom text construct (RFC 4287 section 3.1)."""

    type: Optional[TextType] = None
    value: str = ""
