# src/engine/evaluator.py — v2
"""Evaluation engine — resolve a compiled query tree against the mapping graph.

Nodes are visited in post-order. For a child C of parent P every join
edge C -> P is streamed from its datasource; each (key, value) pair
becomes the row {C: key, P: value}. A leaf runs its pipeline over those
rows; an inner node first inner-joins the concatenated contributions of
its children with its own edge pairs to P, then runs its pipeline. Either
way the pipeline sees the P column, and aggregations reduce once per P
value, so every row handed to P still carries its join value. The root,
and a node without edges to its parent, runs its pipeline over the
children's contributions alone. Output nodes are reported in post-order.

In concurrent mode all nodes of the same height (distance to the deepest
leaf below them) are evaluated together; none of them is an ancestor of
another, and all their children belong to lower heights.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal, Mapping

from datamingle.core.errors import UnknownDatasource
from datamingle.core.models import Datasource, OutputRecord, QueryTreeNode
from datamingle.datasources.catalog import datasource_names
from datamingle.datasources.reader_factory import create_reader
from datamingle.graph_store.base_mapping_store import BaseMappingStore
from datamingle.logging.context import set_node_context
from datamingle.logging.logger import trace
from datamingle.transform.expressions import Row
from datamingle.transform.pipeline import apply_pipeline

_module_logger = logging.getLogger(__name__)

EvaluationMode = Literal["sequential", "concurrent"]


@dataclass
class NodeResult:
    """Rows a node ended with and what it hands to its parent."""

    rows: list[Row] = field(default_factory=list)
    contribution: list[Row] = field(default_factory=list)


class EvaluationEngine:
    """Evaluates query trees against one mapping store and datasource catalog."""

    def __init__(
        self,
        store: BaseMappingStore,
        datasources: Mapping[str, Datasource],
        logger: logging.Logger | None = None,
        mode: EvaluationMode = "sequential",
    ) -> None:
        if mode not in ("sequential", "concurrent"):
            raise ValueError(f"Unknown evaluation mode: {mode!r}")
        self._store = store
        self._datasources = datasources
        self._logger = logger or _module_logger
        self._mode = mode

    @property
    def mode(self) -> EvaluationMode:
        return self._mode

    async def evaluate(self, tree: QueryTreeNode) -> list[OutputRecord]:
        """Evaluate the tree and return output-node values in post-order.

        Raises:
            UnknownDatasource: An edge names a datasource missing from the catalog.
            DatasourceIOError: A datasource cannot be opened or yields a bad record.
            EvaluationError: A transformation fails.
        """
        order = list(tree.walk_postorder())
        parents = _parent_map(tree)
        self._logger.info(
            "Evaluating query rooted at %s (%d nodes, %s)", tree.label, len(order), self._mode
        )

        results: dict[int, NodeResult] = {}
        if self._mode == "sequential":
            for node in order:
                results[id(node)] = await self._visit(node, parents.get(id(node)), results)
        else:
            for level in _height_levels(order):
                outcomes = await _gather_fail_fast(
                    [self._visit(node, parents.get(id(node)), results) for node in level]
                )
                for node, outcome in zip(level, outcomes):
                    results[id(node)] = outcome
        set_node_context(None)

        output = [
            OutputRecord(
                label=node.label,
                name=node.name,
                values=[row[node.label] for row in results[id(node)].rows if node.label in row],
            )
            for node in order
            if node.output
        ]
        self._logger.info("Evaluation finished: %d output nodes", len(output))
        return output

    async def _visit(
        self,
        node: QueryTreeNode,
        parent: QueryTreeNode | None,
        results: Mapping[int, NodeResult],
    ) -> NodeResult:
        set_node_context(node.label)
        self._logger.debug("Evaluating %s", node.label)

        incoming: list[Row] = []
        for child in node.children:
            incoming.extend(results[id(child)].contribution)

        pairs = await self._edge_pairs(node, parent) if parent is not None else None
        if parent is None or pairs is None:
            # Root, or no join edge to the parent: nothing flows upward.
            return NodeResult(rows=apply_pipeline(incoming, node.transformations, node.label))

        if node.is_leaf:
            stream = [{node.label: key, parent.label: value} for key, value in pairs]
        else:
            stream = _join(incoming, pairs, node.label, parent.label)
        rows = apply_pipeline(stream, node.transformations, node.label, group=parent.label)
        return NodeResult(rows=rows, contribution=rows)

    async def _edge_pairs(
        self,
        child: QueryTreeNode,
        parent: QueryTreeNode,
    ) -> list[tuple[str, str]] | None:
        """Read every key/value pair of every join edge child -> parent.

        Returns None when the store holds no such edge.
        """
        edges = await self._store.lookup_join(child.name, parent.name)
        trace(self._logger, "Edge %s => %s (%d join edges)", child.label, parent.label, len(edges))
        if not edges:
            return None

        pairs: list[tuple[str, str]] = []
        for edge in edges:
            datasource = self._datasources.get(edge.datasource)
            if datasource is None:
                raise UnknownDatasource(
                    edge.datasource,
                    context=(
                        f'edge "{child.name}" -> "{parent.name}" at node {child.label}; '
                        f"known: {', '.join(datasource_names(self._datasources)) or 'none'}"
                    ),
                )
            reader = create_reader(datasource)
            async with await reader.open(edge.key, edge.value) as stream:
                async for result in stream:
                    pairs.append(result.unwrap())
            trace(self._logger, "Read %d pairs from %s", len(pairs), edge.datasource)
        return pairs


def _join(
    rows: list[Row],
    pairs: list[tuple[str, str]],
    label: str,
    parent_label: str,
) -> list[Row]:
    """Inner join of rows with edge pairs on the node's own value."""
    by_key: dict[str, list[str]] = {}
    for key, value in pairs:
        by_key.setdefault(key, []).append(value)
    joined: list[Row] = []
    for row in rows:
        own = row.get(label)
        if own is None:
            continue
        for value in by_key.get(own, ()):
            joined.append({**row, parent_label: value})
    return joined


def _parent_map(tree: QueryTreeNode) -> dict[int, QueryTreeNode]:
    return {id(child): node for node in tree.walk_postorder() for child in node.children}


def _height_levels(order: list[QueryTreeNode]) -> list[list[QueryTreeNode]]:
    """Group post-ordered nodes by height, lowest first."""
    heights: dict[int, int] = {}
    levels: list[list[QueryTreeNode]] = []
    for node in order:
        height = 1 + max((heights[id(c)] for c in node.children), default=-1)
        heights[id(node)] = height
        if height == len(levels):
            levels.append([])
        levels[height].append(node)
    return levels


async def _gather_fail_fast(coros: list) -> list[NodeResult]:
    """Run coroutines concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
