# src/transform/aggregate.py — v2
"""Reductions applied by `aggregate:<kind>` steps."""

from __future__ import annotations

from typing import assert_never

from datamingle.core.errors import EvaluationError
from datamingle.core.models import AggregationType
from datamingle.transform.expressions import Row, coerce_value, format_value, is_number


def aggregate(
    rows: list[Row],
    kind: AggregationType,
    focus: str,
    group: str | None = None,
) -> list[Row]:
    """Reduce rows on the `focus` column.

    MIN/MAX keep the whole row holding the extreme value (first one on
    ties). SUM/AVERAGE/COUNT produce a single `{focus: result}` row.
    Empty input yields no rows, except COUNT which yields "0".

    With `group`, rows are partitioned on that column (first-appearance
    order) and each partition is reduced on its own; computed rows carry
    the partition value as `{focus: result, group: value}`. No input
    rows means no partitions, so grouped COUNT yields nothing.
    """
    if group is None:
        return _reduce(rows, kind, focus)

    partitions: dict[str, list[Row]] = {}
    for row in rows:
        partitions.setdefault(row.get(group, ""), []).append(row)
    reduced: list[Row] = []
    for value, members in partitions.items():
        for row in _reduce(members, kind, focus):
            reduced.append(row if group in row else {**row, group: value})
    return reduced


def _reduce(rows: list[Row], kind: AggregationType, focus: str) -> list[Row]:
    if kind is AggregationType.COUNT:
        return [{focus: str(len(rows))}]
    if not rows:
        return []
    if kind is AggregationType.ANY:
        return [rows[0]]
    if kind is AggregationType.MIN or kind is AggregationType.MAX:
        return _extreme(rows, focus, pick_max=kind is AggregationType.MAX)
    if kind is AggregationType.SUM or kind is AggregationType.AVERAGE:
        numbers = _numbers(rows, focus, kind)
        if not numbers:
            return []
        total = sum(numbers)
        result = total if kind is AggregationType.SUM else total / len(numbers)
        return [{focus: format_value(result)}]
    assert_never(kind)


def _extreme(rows: list[Row], focus: str, pick_max: bool) -> list[Row]:
    candidates = [row for row in rows if focus in row]
    if not candidates:
        return []
    coerced = [coerce_value(row[focus]) for row in candidates]
    keys = coerced if all(is_number(v) for v in coerced) else [row[focus] for row in candidates]
    choose = max if pick_max else min
    best = choose(range(len(candidates)), key=keys.__getitem__)
    return [candidates[best]]


def _numbers(rows: list[Row], focus: str, kind: AggregationType) -> list[int | float]:
    numbers: list[int | float] = []
    for row in rows:
        if focus not in row:
            continue
        value = coerce_value(row[focus])
        if not is_number(value):
            raise EvaluationError(f"{kind.value} over non-numeric value {row[focus]!r}")
        numbers.append(value)
    return numbers
