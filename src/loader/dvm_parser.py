# src/loader/dvm_parser.py — v1
"""Streaming parser for mapping (DVM) documents.

    <edges>
      <edge>
        <headnode><name>A</name><description>...</description></headnode>
        <tailnode><name>B</name><description>...</description></tailnode>
        <datasource>ds</datasource>      (or <datasource><name>ds</name></datasource>)
        <query>...</query>               (or <query><string>...</string></query>)
        <key>0</key>                     (or <key><position>0</position></key>)
        <value>1</value>                 (or <value><position>1</position></value>)
      </edge>
    </edges>

The root element may have any name. Below it the schema is strict: any
other tag, at any depth, is a ParseError.
Records are yielded one `edge` at a time.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from lxml import etree

from datamingle.core.documents import local_name
from datamingle.core.errors import DatasourceIOError, ParseError, SchemaViolation
from datamingle.core.models import Attribute, MappingRecord

logger = logging.getLogger(__name__)

_EDGE_LIST = frozenset({"edge"})

_CHILDREN: dict[str, frozenset[str]] = {
    "edge": frozenset({"headnode", "tailnode", "datasource", "query", "key", "value"}),
    "headnode": frozenset({"name", "description"}),
    "tailnode": frozenset({"name", "description"}),
    "datasource": frozenset({"name"}),
    "query": frozenset({"string"}),
    "key": frozenset({"position"}),
    "value": frozenset({"position"}),
}

_REQUIRED = ("headnode.name", "tailnode.name", "datasource", "key", "value")


def iter_mapping_records(path: str | Path) -> Iterator[MappingRecord]:
    """Yield one MappingRecord per `edge` element of a DVM file.

    Raises:
        DatasourceIOError: If the file cannot be opened.
        ParseError: Unknown tag, stray text, missing field or malformed XML.
        SchemaViolation: A field given twice within one edge.
    """
    p = Path(path)
    logger.info('Reading from DVM file "%s"', p)
    try:
        handle = p.open("rb")
    except OSError as e:
        raise DatasourceIOError(f"Failed to open file: {p}: {e}") from e

    with handle:
        stack: list[str] = []
        fields: dict[str, str] | None = None
        edge_index = -1
        events = etree.iterparse(
            handle,
            events=("start", "end"),
            remove_comments=True,
            remove_pis=True,
            resolve_entities=False,
            no_network=True,
        )
        try:
            for event, elem in events:
                tag = local_name(elem)
                if event == "start":
                    if not stack:
                        allowed = None
                    elif len(stack) == 1:
                        allowed = _EDGE_LIST
                    else:
                        allowed = _CHILDREN.get(stack[-1], frozenset())
                    if allowed is not None and tag not in allowed:
                        where = "/".join([*stack, tag])
                        raise ParseError(f"Unexpected start tag <{tag}>", path=f"{p}:{where}")
                    stack.append(tag)
                    if len(stack) == 2:
                        edge_index += 1
                        fields = {}
                    continue

                stack.pop()
                text = (elem.text or "").strip()
                if len(stack) == 1:
                    if text:
                        raise ParseError(
                            f"Unexpected text: {text!r}", path=f"{p}:edge[{edge_index}]"
                        )
                    yield _build_record(fields or {}, f"{p}:edge[{edge_index}]")
                    fields = None
                    _release(elem)
                    continue

                if not text:
                    continue
                field = _field_for(stack[-1] if stack else None, tag)
                if field is None or fields is None:
                    where = "/".join([*stack, tag])
                    raise ParseError(f"Unexpected text: {text!r}", path=f"{p}:{where}")
                if field in fields:
                    raise SchemaViolation(
                        f"Field {field} given twice in {p}:edge[{edge_index}]",
                        label=field,
                    )
                fields[field] = text
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Error reading event: {e}", path=str(p)) from e


def _field_for(parent: str | None, tag: str) -> str | None:
    """Map an element carrying text to the record field it fills."""
    if parent in ("headnode", "tailnode") and tag in ("name", "description"):
        return f"{parent}.{tag}"
    if parent == "datasource" and tag == "name":
        return "datasource"
    if parent == "query" and tag == "string":
        return "query"
    if parent in ("key", "value") and tag == "position":
        return parent
    if parent == "edge" and tag in ("datasource", "query", "key", "value"):
        return tag
    return None


def _build_record(fields: dict[str, str], where: str) -> MappingRecord:
    missing = [f for f in _REQUIRED if not fields.get(f)]
    if missing:
        raise ParseError(f"Missing required field(s): {', '.join(missing)}", path=where)
    return MappingRecord(
        head=Attribute(
            name=fields["headnode.name"],
            description=fields.get("headnode.description", ""),
        ),
        tail=Attribute(
            name=fields["tailnode.name"],
            description=fields.get("tailnode.description", ""),
        ),
        datasource=fields["datasource"],
        query=fields.get("query", ""),
        key=fields["key"],
        value=fields["value"],
    )


def _release(elem: etree._Element) -> None:
    """Free a fully processed edge and its earlier siblings."""
    elem.clear()
    parent = elem.getparent()
    if parent is None:
        return
    while elem.getprevious() is not None:
        del parent[0]
