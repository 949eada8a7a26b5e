# src/query/tree_builder.py — v1
"""Query tree compiler — wire NodeSpecs into a QueryTreeNode tree.

Each label is removed from the lookup when it is visited, so a label can
be placed in the tree only once: reusing a child label under a second
parent fails with "child node not found". Labels never reached from the
root are left unused. Construction walks depth-first in document order
with an explicit stack, bounded by `max_depth`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from datamingle.core.errors import SchemaViolation
from datamingle.core.models import NodeSpec, QueryDocument, QueryTreeNode
from datamingle.query.query_parser import load_query_document

logger = logging.getLogger(__name__)

DEFAULT_MAX_TREE_DEPTH = 10_000


def _tree_node(spec: NodeSpec) -> QueryTreeNode:
    return QueryTreeNode(
        name=spec.name,
        label=spec.label,
        transformations=list(spec.transformations),
        theta=spec.theta,
        output=spec.output,
    )


def build_tree(
    document: QueryDocument,
    max_depth: int = DEFAULT_MAX_TREE_DEPTH,
) -> QueryTreeNode:
    """Assemble the query tree rooted at `document.root_node`.

    Raises:
        SchemaViolation: Root label missing, child label not found (or
            already used), or the tree deeper than `max_depth`.
    """
    pending: dict[str, NodeSpec] = {spec.label: spec for spec in document.nodes}

    root_spec = pending.pop(document.root_node, None)
    if root_spec is None:
        raise SchemaViolation(
            f"Incorrectly defined root node: {document.root_node}. "
            f"The <rootnode> tag and <label> of a node must match (root node/label mismatch)",
            label=document.root_node,
        )

    root = _tree_node(root_spec)
    stack: list[tuple[QueryTreeNode, Iterator[str], int]] = [
        (root, iter(root_spec.children), 1)
    ]
    while stack:
        node, remaining, depth = stack[-1]
        child_label = next(remaining, None)
        if child_label is None:
            stack.pop()
            continue

        child_spec = pending.pop(child_label, None)
        if child_spec is None:
            raise SchemaViolation(
                f"Incorrectly defined child node: {child_label} (under {node.label}). "
                f"The <label> of a node must match the <children> entry (child node not found)",
                label=child_label,
            )
        if depth >= max_depth:
            raise SchemaViolation(
                f"Query tree deeper than {max_depth} levels at node {child_label}",
                label=child_label,
            )

        child = _tree_node(child_spec)
        node.children.append(child)
        stack.append((child, iter(child_spec.children), depth + 1))

    if pending:
        logger.debug("Unreachable query nodes left unused: %s", ", ".join(sorted(pending)))
    return root


def compile_query(
    path: str | Path,
    max_depth: int = DEFAULT_MAX_TREE_DEPTH,
) -> QueryTreeNode:
    """Parse a query document file and build its tree."""
    tree = build_tree(load_query_document(path), max_depth=max_depth)
    logger.debug("Compiled query tree rooted at %s (%d nodes)", tree.label, tree.node_count())
    return tree
