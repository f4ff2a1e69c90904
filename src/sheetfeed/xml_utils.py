"""XML helpers for the spreadsheet feed protocol.

Covers three things:
- escaping scalar values and column names for templated XML output,
- parsing response bodies and decoding them once into ``Feed``/``FeedEntry``
  records (repeated elements always come back as tuples),
- locating and completing raw ``<entry>`` fragments for row patching.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from sheetfeed.exceptions import FeedParseError

ATOM_NS = "http://www.w3.org/2005/Atom"
GS_NS = "http://schemas.google.com/spreadsheets/2006"
GSX_NS = "http://schemas.google.com/spreadsheets/2006/extended"
BATCH_NS = "http://schemas.google.com/gdata/batch"
GD_NS = "http://schemas.google.com/g/2005"
OPENSEARCH_NS = "http://a9.com/-/spec/opensearch/1.1/"

# Prefix -> namespace, "" being the default (Atom) namespace
NAMESPACES = {
    "": ATOM_NS,
    "gs": GS_NS,
    "gsx": GSX_NS,
    "batch": BATCH_NS,
    "gd": GD_NS,
    "openSearch": OPENSEARCH_NS,
}

_ENTRY_RE = re.compile(r"<entry(?:\s[^>]*)?>[\s\S]*?</entry>")
_START_TAG_RE = re.compile(r"<(feed|entry)(\s[^>]*)?>")
_XMLNS_RE = re.compile(r"""\sxmlns(?::([\w.-]+))?\s*=\s*(["'])(.*?)\2""")


def xml_safe_value(value: object) -> str:
    """Escape a scalar for use in XML text or a double-quoted attribute."""
    if value is None:
        return ""
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("\n", "&#10;")
        .replace("\r", "&#13;")
    )


def xml_safe_column_name(value: object) -> str:
    """Normalize a column key to the service's element name form.

    Whitespace and underscores are dropped and the result is lowercased,
    e.g. ``"First Name"`` -> ``"firstname"``.
    """
    if not value:
        return ""
    return re.sub(r"[\s_]+", "", str(value)).lower()


# ============================================================================
# Decoded wire shapes
# ============================================================================


@dataclass(frozen=True)
class Link:
    """A ``<link>`` descriptor."""

    rel: str
    href: str
    type: str | None = None


@dataclass(frozen=True)
class Author:
    name: str
    email: str | None = None


@dataclass(frozen=True)
class CellData:
    """The ``<gs:cell>`` element of a cells-feed entry."""

    row: int
    col: int
    input_value: str | None
    numeric_value: str | None
    text: str


@dataclass(frozen=True)
class BatchStatus:
    code: int
    reason: str


@dataclass(frozen=True)
class FeedEntry:
    """One decoded ``<entry>``."""

    id: str
    title: str
    updated: str
    links: tuple[Link, ...] = ()
    row_count: int | None = None
    col_count: int | None = None
    cell: CellData | None = None
    # gsx columns in document order; empty elements decode to None
    extended: tuple[tuple[str, str | None], ...] = ()
    batch_id: str | None = None
    batch_status: BatchStatus | None = None


@dataclass(frozen=True)
class Feed:
    """A decoded ``<feed>`` document."""

    id: str
    title: str
    updated: str
    author: Author | None
    links: tuple[Link, ...]
    entries: tuple[FeedEntry, ...]


def _q(prefix: str, name: str) -> str:
    return f"{{{NAMESPACES[prefix]}}}{name}"


def parse_xml(text: str) -> ET.Element:
    """Parse a response body, raising FeedParseError on malformed XML."""
    try:
        return ET.fromstring(text)
    except ET.ParseError as e:
        raise FeedParseError(f"Invalid XML in response: {e}") from e


def _text(element: ET.Element, prefix: str, name: str) -> str:
    return element.findtext(_q(prefix, name)) or ""


def _int_or_none(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _decode_links(element: ET.Element) -> tuple[Link, ...]:
    return tuple(
        Link(rel=link.get("rel", ""), href=link.get("href", ""), type=link.get("type"))
        for link in element.findall(_q("", "link"))
    )


def _decode_cell(element: ET.Element) -> CellData | None:
    cell = element.find(_q("gs", "cell"))
    if cell is None:
        return None
    return CellData(
        row=int(cell.get("row", "0")),
        col=int(cell.get("col", "0")),
        input_value=cell.get("inputValue"),
        numeric_value=cell.get("numericValue"),
        text=cell.text or "",
    )


def _decode_extended(element: ET.Element) -> tuple[tuple[str, str | None], ...]:
    prefix = f"{{{GSX_NS}}}"
    return tuple(
        (child.tag[len(prefix) :], child.text or None)
        for child in element
        if child.tag.startswith(prefix)
    )


def _decode_batch_status(element: ET.Element) -> BatchStatus | None:
    status = element.find(_q("batch", "status"))
    if status is None:
        return None
    return BatchStatus(code=int(status.get("code", "0")), reason=status.get("reason", ""))


def decode_entry(element: ET.Element) -> FeedEntry:
    """Decode a single ``<entry>`` element."""
    return FeedEntry(
        id=_text(element, "", "id"),
        title=_text(element, "", "title"),
        updated=_text(element, "", "updated"),
        links=_decode_links(element),
        row_count=_int_or_none(element.findtext(_q("gs", "rowCount"))),
        col_count=_int_or_none(element.findtext(_q("gs", "colCount"))),
        cell=_decode_cell(element),
        extended=_decode_extended(element),
        batch_id=element.findtext(_q("batch", "id")),
        batch_status=_decode_batch_status(element),
    )


def decode_feed(element: ET.Element) -> Feed:
    """Decode a ``<feed>`` element and all of its entries."""
    author = None
    author_el = element.find(_q("", "author"))
    if author_el is not None:
        author = Author(
            name=_text(author_el, "", "name"),
            email=author_el.findtext(_q("", "email")),
        )
    return Feed(
        id=_text(element, "", "id"),
        title=_text(element, "", "title"),
        updated=_text(element, "", "updated"),
        author=author,
        links=_decode_links(element),
        entries=tuple(decode_entry(e) for e in element.findall(_q("", "entry"))),
    )


def decode_document(element: ET.Element) -> Feed | FeedEntry:
    """Decode a parsed response root, which is either a feed or one entry."""
    if element.tag == _q("", "feed"):
        return decode_feed(element)
    if element.tag == _q("", "entry"):
        return decode_entry(element)
    raise FeedParseError(f"Unexpected document root: {element.tag}")


# ============================================================================
# Raw entry fragments
# ============================================================================


def extract_entry_fragments(xml: str) -> list[str]:
    """Return the raw text of every ``<entry>`` element, in document order."""
    return _ENTRY_RE.findall(xml)


def _declared_prefixes(start_tag: str) -> dict[str, str]:
    return {m.group(1) or "": m.group(3) for m in _XMLNS_RE.finditer(start_tag)}


def feed_namespace_declarations(xml: str) -> dict[str, str]:
    """Return the ``xmlns`` declarations on the document's root start tag.

    Other root attributes (such as ``gd:etag``) are not included.
    """
    match = _START_TAG_RE.search(xml)
    if match is None:
        return {}
    return _declared_prefixes(match.group(0))


def add_namespace_declarations(fragment: str, declarations: dict[str, str]) -> str:
    """Add the given declarations to the fragment's start tag where missing."""
    match = _START_TAG_RE.search(fragment)
    if match is None:
        return fragment
    start_tag = match.group(0)
    existing = _declared_prefixes(start_tag)
    missing = "".join(
        f" xmlns='{uri}'" if not prefix else f" xmlns:{prefix}='{uri}'"
        for prefix, uri in declarations.items()
        if prefix not in existing
    )
    if not missing:
        return fragment
    name = match.group(1)
    new_tag = f"<{name}{missing}{start_tag[len(name) + 1 :]}"
    return fragment[: match.start()] + new_tag + fragment[match.end() :]


def ensure_namespaces(fragment: str) -> str:
    """Declare the Atom default namespace and every known prefix the fragment uses."""
    needed = {"": ATOM_NS}
    for prefix, uri in NAMESPACES.items():
        if prefix and re.search(rf"[<\s/]{re.escape(prefix)}:", fragment):
            needed[prefix] = uri
    return add_namespace_declarations(fragment, needed)
