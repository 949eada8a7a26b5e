# src/transform/expressions.py — v2
"""Filter/map expression language.

Expressions use Python expression syntax, restricted by an AST whitelist,
with `$LABEL$` placeholders standing for the current row's value of the
query node labelled LABEL:

    $X001$ > 5
    upper(concat($X001$, "-", $X002$))
    $X003$ * 2 if $X003$ > 0 else 0

Placeholder values that look like numbers are bound as int/float, the
rest as strings. Compilation happens once per distinct source string.
Powers and products are size-checked at evaluation time so an
expression cannot build a huge integer or string.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from functools import lru_cache
from types import CodeType
from typing import Any, Callable, Mapping

from datamingle.core.errors import EvaluationError, ParseError

Row = dict[str, str]

_PLACEHOLDER = re.compile(r"\$([^$]+)\$")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def coerce_value(raw: str) -> int | float | str:
    """Bind a row value as a number when it looks like one."""
    text = raw.strip()
    if not _NUMBER.match(text):
        return raw
    if text.lstrip("+-").isdigit():
        return int(text)
    return float(text)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_value(value: Any) -> str:
    """Render an expression or aggregation result as a row value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value)


def _substr(value: Any, start: int, length: int | None = None) -> str:
    text = format_value(value)
    if length is None:
        return text[start:]
    return text[start:start + length]


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "len": lambda v: len(format_value(v)),
    "int": int,
    "float": float,
    "str": format_value,
    "upper": lambda v: format_value(v).upper(),
    "lower": lambda v: format_value(v).lower(),
    "strip": lambda v: format_value(v).strip(),
    "concat": lambda *parts: "".join(format_value(p) for p in parts),
    "substr": _substr,
    "replace": lambda v, old, new: format_value(v).replace(format_value(old), format_value(new)),
    "startswith": lambda v, prefix: format_value(v).startswith(format_value(prefix)),
    "endswith": lambda v, suffix: format_value(v).endswith(format_value(suffix)),
    "contains": lambda v, part: format_value(part) in format_value(v),
}

MAX_INT_BITS = 100_000
MAX_TEXT_LENGTH = 1_000_000


def _checked_pow(base: Any, exponent: Any) -> Any:
    if (
        isinstance(base, int) and isinstance(exponent, int)
        and exponent > 0 and abs(base) > 1
        and abs(base).bit_length() * exponent > MAX_INT_BITS
    ):
        raise OverflowError(f"integer power exceeds {MAX_INT_BITS} bits")
    return base ** exponent


def _checked_mul(left: Any, right: Any) -> Any:
    for text, count in ((left, right), (right, left)):
        if isinstance(text, str) and isinstance(count, int) and len(text) * count > MAX_TEXT_LENGTH:
            raise OverflowError(f"repeated string exceeds {MAX_TEXT_LENGTH} characters")
    if (
        isinstance(left, int) and isinstance(right, int)
        and left.bit_length() + right.bit_length() > MAX_INT_BITS
    ):
        raise OverflowError(f"integer product exceeds {MAX_INT_BITS} bits")
    return left * right


_CHECKED_OPS: dict[type[ast.operator], str] = {
    ast.Pow: "_checked_pow",
    ast.Mult: "_checked_mul",
}

_EVAL_GLOBALS: dict[str, Any] = {
    "__builtins__": {},
    **FUNCTIONS,
    "_checked_pow": _checked_pow,
    "_checked_mul": _checked_mul,
}


class CheckedArithmetic(ast.NodeTransformer):
    """Routes ** and * through the size-checked helpers above."""

    def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
        self.generic_visit(node)
        helper = _CHECKED_OPS.get(type(node.op))
        if helper is None:
            return node
        call = ast.Call(
            func=ast.Name(id=helper, ctx=ast.Load()),
            args=[node.left, node.right],
            keywords=[],
        )
        return ast.copy_location(call, node)


_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression, ast.Load,
    ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.UAdd, ast.USub, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
)


class ExpressionValidator(ast.NodeVisitor):
    """Collects whitelist violations in a parsed expression.

    Only the bound placeholder names may appear as bare names; function
    names are only valid as the target of a direct call.
    """

    def __init__(self, names: set[str]) -> None:
        self.names = names
        self.errors: list[str] = []

    def validate(self, tree: ast.AST) -> list[str]:
        self.errors = []
        self.visit(tree)
        return self.errors

    def generic_visit(self, node: ast.AST) -> None:
        if not isinstance(node, _ALLOWED_NODES):
            self.errors.append(f"Blocked construct '{type(node).__name__}'")
            return
        super().generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if not isinstance(node.value, (str, int, float, bool)) and node.value is not None:
            self.errors.append(f"Blocked literal {node.value!r}")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id not in self.names:
            self.errors.append(f"Unknown name '{node.id}'")

    def visit_Call(self, node: ast.Call) -> None:
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            self.errors.append(f"Call to unsupported function '{ast.unparse(node.func)}'")
            return
        if node.keywords:
            self.errors.append(f"Keyword arguments not allowed in call to '{node.func.id}'")
        for arg in node.args:
            self.visit(arg)


@dataclass(frozen=True)
class CompiledExpression:
    """Validated expression, ready to evaluate against rows."""

    source: str
    labels: tuple[str, ...]
    code: CodeType

    def evaluate(self, row: Mapping[str, str]) -> Any:
        """Evaluate against one row.

        Raises:
            EvaluationError: Unknown placeholder label or a runtime failure.
        """
        bindings: dict[str, Any] = {}
        for index, label in enumerate(self.labels):
            if label not in row:
                raise EvaluationError(
                    f"Unknown label {label!r} in expression {self.source!r}"
                )
            bindings[_binding(index)] = coerce_value(row[label])
        try:
            return eval(self.code, _EVAL_GLOBALS, bindings)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise EvaluationError(f"Expression {self.source!r} failed: {e}") from e


def _binding(index: int) -> str:
    return f"_v{index}"


@lru_cache(maxsize=512)
def compile_expression(source: str) -> CompiledExpression:
    """Substitute placeholders, parse and validate an expression.

    Raises:
        ParseError: Empty expression, syntax error or blocked construct.
    """
    labels: list[str] = []

    def _substitute(match: re.Match[str]) -> str:
        label = match.group(1).strip()
        if label not in labels:
            labels.append(label)
        return _binding(labels.index(label))

    text = _PLACEHOLDER.sub(_substitute, source.strip())
    if not text:
        raise ParseError("Empty expression")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ParseError(f"Invalid expression {source!r}: {e.msg}") from e

    errors = ExpressionValidator({_binding(i) for i in range(len(labels))}).validate(tree)
    if errors:
        raise ParseError(f"Invalid expression {source!r}: {'; '.join(errors)}")

    return CompiledExpression(
        source=source,
        labels=tuple(labels),
        code=compile(
            ast.fix_missing_locations(CheckedArithmetic().visit(tree)), "<expression>", "eval",
        ),
    )
