"""XML codec for Atom entries and AtomPub service documents.

Encoding emits Atom in the default namespace and AtomPub under the ``app``
prefix. Decoding is namespace aware and accepts any prefixes the server
chooses.

Every decode failure (malformed XML, wrong root element, values that do not
validate against the models) is raised as ``ValueError``.

xhtml text constructs and content are refused in both directions; their
element markup has no representation in a character-data ``value``.
"""

from datetime import datetime, timezone
import re
from typing import Any, Dict, List, Optional, Union
from xml.etree import ElementTree as ET

from social.graze.atompub.model.atom import Entry
from social.graze.atompub.model.base import APP_NS, ATOM_NS, Text, TextType
from social.graze.atompub.model.service import ServiceDocument

# Characters outside the XML 1.0 Char production cannot be serialized.
_INVALID_XML_CHARS = re.compile(
    r"[^\t\n\r\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)


def _atom(tag: str) -> str:
    return f"{{{ATOM_NS}}}{tag}"


def _app(tag: str) -> str:
    return f"{{{APP_NS}}}{tag}"


def _checked(value: str) -> str:
    match = _INVALID_XML_CHARS.search(value)
    if match is not None:
        raise ValueError(
            f"character {match.group()!r} at position {match.start()} "
            "is not allowed in XML"
        )
    return value


def _format_datetime(value: datetime) -> str:
    # RFC 3339 requires an offset; naive values are taken as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def _reject_xhtml(type_: Optional[str], where: str) -> None:
    # xhtml constructs carry element markup, not character data.
    if type_ is not None and type_.strip().lower() == "xhtml":
        raise ValueError(f"xhtml {where} is not supported")


def _sub(
    parent: ET.Element, tag: str, text: Optional[str] = None, **attrs: Any
) -> ET.Element:
    element = ET.SubElement(parent, tag)
    for key, value in attrs.items():
        if value is not None:
            element.set(key, _checked(str(value)))
    if text:
        element.text = _checked(text)
    return element


def _sub_text_construct(parent: ET.Element, tag: str, text: Text) -> ET.Element:
    return _sub(
        parent,
        tag,
        text.value,
        type=text.type.value if text.type is not None else None,
    )


def encode_entry(entry: Entry) -> bytes:
    """Serialize an entry to a UTF-8 XML document.

    Raises:
        ValueError: If a field holds characters XML cannot represent.
    """
    root = ET.Element("entry", {"xmlns": ATOM_NS, "xmlns:app": APP_NS})

    if entry.id:
        _sub(root, "id", entry.id)
    _sub_text_construct(root, "title", entry.title)
    if entry.published is not None:
        _sub(root, "published", _format_datetime(entry.published))
    if entry.updated is not None:
        _sub(root, "updated", _format_datetime(entry.updated))
    if entry.summary is not None:
        _sub_text_construct(root, "summary", entry.summary)

    for author in entry.authors:
        author_element = _sub(root, "author")
        _sub(author_element, "name", author.name)
        if author.uri is not None:
            _sub(author_element, "uri", author.uri)
        if author.email is not None:
            _sub(author_element, "email", author.email)

    if entry.content is not None:
        _reject_xhtml(entry.content.type, "content")
        _sub(
            root,
            "content",
            entry.content.value,
            type=entry.content.type,
            src=entry.content.src,
        )

    for link in entry.links:
        _sub(
            root,
            "link",
            href=link.href,
            rel=link.rel,
            type=link.type,
            hreflang=link.hreflang,
            title=link.title,
            length=link.length,
        )

    for category in entry.categories:
        _sub(
            root,
            "category",
            term=category.term,
            scheme=category.scheme,
            label=category.label,
        )

    if entry.control is not None:
        control_element = _sub(root, "app:control")
        _sub(control_element, "app:draft", "yes" if entry.control.draft else "no")

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _parse(data: Union[bytes, str], expected_tag: str) -> ET.Element:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ValueError(f"malformed XML: {e}") from e
    if root.tag != expected_tag:
        raise ValueError(
            f"unexpected root element {root.tag}, expected {expected_tag}"
        )
    return root


def _element_text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None:
        return None
    return "".join(element.itertext())


def _date_construct(element: Optional[ET.Element]) -> Optional[str]:
    text = _element_text(element)
    return text.strip() if text is not None else None


def _text_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    _reject_xhtml(value, "text construct")
    # Unrecognised types are dropped rather than failing the whole document.
    return value if value in TextType.__members__ else None


def _text_construct(element: Optional[ET.Element]) -> Optional[Dict[str, Any]]:
    if element is None:
        return None
    return {"type": _text_type(element.get("type")), "value": _element_text(element)}


def _attributes(element: ET.Element, *names: str) -> Dict[str, Any]:
    return {name: element.get(name) for name in names}


def _categories(parent: ET.Element) -> List[Dict[str, Any]]:
    return [
        {"term": element.get("term", ""), **_attributes(element, "scheme", "label")}
        for element in parent.findall(_atom("category"))
    ]


def decode_entry(data: Union[bytes, str]) -> Entry:
    """Parse an Atom entry document.

    Raises:
        ValueError: If the document is not a well-formed Atom entry.
    """
    root = _parse(data, _atom("entry"))

    fields: Dict[str, Any] = {
        "id": (_element_text(root.find(_atom("id"))) or "").strip(),
        "published": _date_construct(root.find(_atom("published"))),
        "updated": _date_construct(root.find(_atom("updated"))),
        "summary": _text_construct(root.find(_atom("summary"))),
        "authors": [
            {
                "name": _element_text(author.find(_atom("name"))) or "",
                "uri": _element_text(author.find(_atom("uri"))),
                "email": _element_text(author.find(_atom("email"))),
            }
            for author in root.findall(_atom("author"))
        ],
        "links": [
            {
                "href": link.get("href", ""),
                **_attributes(link, "rel", "type", "hreflang", "title", "length"),
            }
            for link in root.findall(_atom("link"))
        ],
        "categories": _categories(root),
    }

    title = _text_construct(root.find(_atom("title")))
    if title is not None:
        fields["title"] = title

    content = root.find(_atom("content"))
    if content is not None:
        _reject_xhtml(content.get("type"), "content")
        fields["content"] = {
            **_attributes(content, "type", "src"),
            "value": _element_text(content),
        }

    control = root.find(_app("control"))
    if control is not None:
        draft = _element_text(control.find(_app("draft")))
        fields["control"] = {"draft": (draft or "").strip() == "yes"}

    return Entry.model_validate(fields)


def decode_service_document(data: Union[bytes, str]) -> ServiceDocument:
    """Parse an AtomPub service document.

    Raises:
        ValueError: If the document is not a well-formed service document.
    """
    root = _parse(data, _app("service"))

    workspaces: List[Dict[str, Any]] = []
    for workspace in root.findall(_app("workspace")):
        collections: List[Dict[str, Any]] = []
        for collection in workspace.findall(_app("collection")):
            fields: Dict[str, Any] = {
                "href": collection.get("href", ""),
                "accept": [
                    (_element_text(accept) or "").strip()
                    for accept in collection.findall(_app("accept"))
                ],
            }
            title = _text_construct(collection.find(_atom("title")))
            if title is not None:
                fields["title"] = title
            categories = collection.find(_app("categories"))
            if categories is not None:
                fields["categories"] = {
                    **_attributes(categories, "fixed", "scheme", "href"),
                    "categories": _categories(categories),
                }
            collections.append(fields)

        workspace_fields: Dict[str, Any] = {"collections": collections}
        title = _text_construct(workspace.find(_atom("title")))
        if title is not None:
            workspace_fields["title"] = title
        workspaces.append(workspace_fields)

    return ServiceDocument.model_validate({"workspaces": workspaces})
