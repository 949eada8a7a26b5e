# src/transform/pipeline.py — v2
"""Run a node's transformation steps, in document order, over its rows."""

from __future__ import annotations

from typing import Iterable, Sequence, assert_never

from datamingle.core.errors import EvaluationError
from datamingle.core.models import (
    AggregateTransform,
    FilterTransform,
    MapTransform,
    Transformation,
)
from datamingle.transform.aggregate import aggregate
from datamingle.transform.expressions import Row, compile_expression, format_value


def apply_pipeline(
    rows: Iterable[Row],
    transformations: Sequence[Transformation],
    focus: str,
    group: str | None = None,
) -> list[Row]:
    """Apply every step to the rows; `focus` is the label of the node being evaluated.

    `group` names the column aggregations partition on (the parent join
    column when the node feeds a parent).

    Raises:
        EvaluationError: Named after `focus` when a step fails.
    """
    current = list(rows)
    try:
        for step in transformations:
            current = apply_step(current, step, focus, group)
    except EvaluationError as e:
        if e.label is not None:
            raise
        raise EvaluationError(str(e), label=focus) from e
    return current


def apply_step(
    rows: list[Row],
    step: Transformation,
    focus: str,
    group: str | None = None,
) -> list[Row]:
    if isinstance(step, FilterTransform):
        predicate = compile_expression(step.expression)
        return [row for row in rows if predicate.evaluate(row)]
    if isinstance(step, MapTransform):
        expression = compile_expression(step.expression)
        return [{**row, focus: format_value(expression.evaluate(row))} for row in rows]
    if isinstance(step, AggregateTransform):
        return aggregate(rows, step.aggregation, focus, group)
    assert_never(step)
