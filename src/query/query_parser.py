# src/query/query_parser.py — v1
"""Query document parser.

    <query>
      <rootnode>X000</rootnode>
      <node>
        <onnode>root_node</onnode>
        <label>X000</label>
        <children>X001, X002</children>
        <transformations>filter: $X001$ > 5;aggregate:sum</transformations>
        <theta></theta>
        <output>yes</output>
      </node>
      ...
    </query>

Field strings are normalized here: empty children/transformations become
empty lists, an empty theta becomes None. Filter and map expressions are
compiled while parsing, so a bad expression fails before any evaluation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from lxml import etree
from pydantic import ValidationError

from datamingle.core.documents import child_text, local_name, read_xml_document
from datamingle.core.errors import ParseError, SchemaViolation
from datamingle.core.models import (
    AggregateTransform,
    AggregationType,
    FilterTransform,
    MapTransform,
    NodeSpec,
    QueryDocument,
    Transformation,
)
from datamingle.transform.expressions import compile_expression

logger = logging.getLogger(__name__)

OUTPUT_TRUE = frozenset({"yes", "true"})
OUTPUT_FALSE = frozenset({"no", "false", ""})


def parse_children(raw: str | None) -> list[str]:
    """Split a comma-separated label list; empty input gives an empty list."""
    if raw is None or not raw.strip():
        return []
    return [part.strip() for part in raw.split(",")]


def parse_output(raw: str | None) -> bool:
    """yes/true -> True, no/false/empty -> False, case-insensitive."""
    token = (raw or "").strip().lower()
    if token in OUTPUT_TRUE:
        return True
    if token in OUTPUT_FALSE:
        return False
    raise ParseError(f"Invalid output given: {raw!r} (expected yes/no/true/false)")


def parse_theta(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def parse_transformations(raw: str | None) -> list[Transformation]:
    """Parse `kind:args` segments separated by `;`, keeping document order.

    Raises:
        ParseError: Segment without `:`, unknown kind, unknown aggregation,
            empty or invalid expression.
    """
    if raw is None or not raw.strip():
        return []

    transformations: list[Transformation] = []
    for segment in raw.split(";"):
        if not segment.strip():
            continue
        kind, sep, args = segment.partition(":")
        if not sep:
            raise ParseError(f"Invalid transformation {segment.strip()!r}: expected kind:args")
        kind, args = kind.strip(), args.strip()

        if kind == "aggregate":
            try:
                aggregation = AggregationType.parse(args)
            except ValueError as e:
                raise ParseError(f"Invalid aggregation type: {args!r}") from e
            transformations.append(AggregateTransform(aggregation=aggregation))
        elif kind in ("filter", "map"):
            if not args:
                raise ParseError(f"Missing expression for {kind} transformation")
            compile_expression(args)
            if kind == "filter":
                transformations.append(FilterTransform(expression=args))
            else:
                transformations.append(MapTransform(expression=args))
        else:
            raise ParseError(f"Invalid transformation defined: {kind!r}")
    return transformations


def parse_node(elem: etree._Element, where: str = "node") -> NodeSpec:
    """Build a NodeSpec from one `node` element."""
    name = child_text(elem, "onnode")
    label = child_text(elem, "label")
    if not name:
        raise ParseError("Missing required field 'onnode'", path=where)
    if not label:
        raise ParseError("Missing required field 'label'", path=where)

    try:
        return NodeSpec(
            name=name,
            label=label,
            children=parse_children(child_text(elem, "children")),
            transformations=parse_transformations(child_text(elem, "transformations")),
            theta=parse_theta(child_text(elem, "theta")),
            output=parse_output(child_text(elem, "output")),
        )
    except ParseError as e:
        if e.path is not None:
            raise
        raise ParseError(str(e), path=f"{where}[{label}]") from e
    except ValidationError as e:
        raise ParseError(f"Invalid node: {e}", path=where) from e


def parse_query_document(root: etree._Element, source: str = "query") -> QueryDocument:
    """Build a QueryDocument from a parsed `query` root element.

    Raises:
        ParseError: Wrong root, missing rootnode or malformed node.
        SchemaViolation: Two nodes share a label.
    """
    if local_name(root) != "query":
        raise ParseError(f"Expected <query> root element, got <{local_name(root)}>", path=source)
    root_node = child_text(root, "rootnode")
    if not root_node:
        raise ParseError("Missing required field 'rootnode'", path=source)

    nodes: list[NodeSpec] = []
    seen: set[str] = set()
    for index, elem in enumerate(e for e in root if local_name(e) == "node"):
        spec = parse_node(elem, where=f"{source}:node[{index}]")
        if spec.label in seen:
            raise SchemaViolation(
                f"Duplicate node label {spec.label!r} in {source}", label=spec.label
            )
        seen.add(spec.label)
        nodes.append(spec)

    logger.debug("Parsed query document %s: root %s, %d nodes", source, root_node, len(nodes))
    return QueryDocument(root_node=root_node, nodes=nodes)


def load_query_document(path: str | Path) -> QueryDocument:
    """Read and parse a query document file."""
    p = Path(path)
    logger.info("Loading query from %s", p)
    return parse_query_document(read_xml_document(p), source=str(p))
