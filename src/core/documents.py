# src/core/documents.py — v1
"""Helpers for reading the XML documents that drive datamingle.

Catalog, query and mapping documents are all small XML files; these
helpers open them with lxml and translate failures into the error
taxonomy with the offending path attached.
"""

from __future__ import annotations

from pathlib import Path

from lxml import etree

from datamingle.core.errors import DatasourceIOError, ParseError

# Entity expansion and network access stay off for operator-supplied documents.
_PARSER = etree.XMLParser(
    remove_comments=True,
    remove_pis=True,
    resolve_entities=False,
    no_network=True,
)


def read_xml_document(path: str | Path) -> etree._Element:
    """Parse an XML file and return its root element.

    Raises:
        DatasourceIOError: If the file cannot be opened.
        ParseError: If the file is not well-formed XML.
    """
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise DatasourceIOError(f"Failed to open file: {p}: {e}") from e
    try:
        return etree.fromstring(data, parser=_PARSER)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Failed to parse XML file: {e}", path=str(p)) from e


def local_name(elem: etree._Element) -> str:
    """Tag name without namespace."""
    return etree.QName(elem).localname


def child_text(elem: etree._Element, tag: str, strip: bool = True) -> str | None:
    """Text of the first child named `tag`, or None when the child is absent."""
    for child in elem:
        if local_name(child) == tag:
            text = child.text or ""
            return text.strip() if strip else text
    return None
