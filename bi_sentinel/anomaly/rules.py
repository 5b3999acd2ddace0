"""
Business-rule condition compiler.

Rule conditions are small boolean expressions in Python syntax, e.g.
"revenue < 0" or "deposit > 10000 and status == 'open'". They are parsed with
ast and checked against a whitelist; nothing is ever passed to eval().

Bare identifiers are column references. Evaluation uses three-valued logic:
a comparison touching a null cell, or values that cannot be compared, is
unknown (None), and only a condition that evaluates to True is a violation.
"""

from __future__ import annotations

import ast
import operator
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from bi_sentinel.data.extraction import parse_numeric


class ConditionError(ValueError):
    """Raised when a rule condition cannot be compiled."""
    pass


_COMPARATORS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Compare,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Tuple,
    ast.List,
) + tuple(_COMPARATORS)


def _coerce_pair(left: Any, right: Any) -> Tuple[Any, Any]:
    # Cells often arrive as text; compare them numerically against numbers.
    if isinstance(left, str) and isinstance(right, (int, float)) and not isinstance(right, bool):
        parsed = parse_numeric(left)
        return (parsed if parsed is not None else left), right
    if isinstance(right, str) and isinstance(left, (int, float)) and not isinstance(left, bool):
        parsed = parse_numeric(right)
        return left, (parsed if parsed is not None else right)
    return left, right


class CompiledCondition:
    """
    A validated rule condition.

    Attributes:
        source: Original condition text
        references: Column references in order of first appearance
    """

    def __init__(self, source: str, tree: ast.Expression, references: Tuple[str, ...]) -> None:
        self.source = source
        self.references = references
        self._tree = tree

    def __repr__(self) -> str:
        return f"CompiledCondition({self.source!r})"

    def bind(self, column_names: Sequence[str]) -> Optional[Dict[str, int]]:
        """
        Resolve every reference to a column index.

        Exact case-insensitive name match wins; otherwise the first column
        whose name contains the reference. Returns None if any reference
        cannot be resolved.
        """
        lowered = [name.lower() for name in column_names]
        binding: Dict[str, int] = {}

        for ref in self.references:
            needle = ref.lower()
            if needle in lowered:
                binding[ref] = lowered.index(needle)
                continue
            partial = next((i for i, name in enumerate(lowered) if needle in name), None)
            if partial is None:
                return None
            binding[ref] = partial

        return binding

    def evaluate(self, values: Mapping[str, Any]) -> Optional[bool]:
        """
        Evaluate against a mapping of reference -> cell value.

        Returns True, False, or None when the outcome is unknown.
        """
        result = self._eval(self._tree.body, values)
        if result is None:
            return None
        return bool(result)

    def is_violated(self, values: Mapping[str, Any]) -> bool:
        return self.evaluate(values) is True

    def _eval(self, node: ast.AST, values: Mapping[str, Any]) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            return values.get(node.id)

        if isinstance(node, (ast.Tuple, ast.List)):
            return tuple(self._eval(elt, values) for elt in node.elts)

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand, values)
            if operand is None:
                return None
            if isinstance(node.op, ast.Not):
                return not operand
            numeric = parse_numeric(operand)
            if numeric is None:
                return None
            return -numeric if isinstance(node.op, ast.USub) else numeric

        if isinstance(node, ast.BoolOp):
            outcomes = [self._eval(v, values) for v in node.values]
            if isinstance(node.op, ast.And):
                if any(o is not None and not o for o in outcomes):
                    return False
                return None if any(o is None for o in outcomes) else True
            if any(o is not None and o for o in outcomes):
                return True
            return None if any(o is None for o in outcomes) else False

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, values)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, values)
                if left is None or right is None:
                    return None
                left, right = _coerce_pair(left, right)
                try:
                    if not _COMPARATORS[type(op)](left, right):
                        return False
                except TypeError:
                    return None
                left = right
            return True

        raise ConditionError(f"Unsupported expression: {type(node).__name__}")


def _collect_references(tree: ast.Expression) -> Tuple[str, ...]:
    names = sorted(
        (node for node in ast.walk(tree) if isinstance(node, ast.Name)),
        key=lambda node: (node.lineno, node.col_offset),
    )
    seen: Dict[str, None] = {}
    for node in names:
        seen.setdefault(node.id, None)
    return tuple(seen)


@lru_cache(maxsize=256)
def compile_condition(condition: str) -> CompiledCondition:
    """
    Parse and validate a rule condition.

    Args:
        condition: Expression text, e.g. "revenue < 0"

    Returns:
        CompiledCondition ready for binding and evaluation

    Raises:
        ConditionError: On empty text, syntax errors, disallowed constructs
            (calls, attributes, subscripts, arithmetic) or a condition with
            no column reference
    """
    text = (condition or "").strip()
    if not text:
        raise ConditionError("Condition is empty")

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ConditionError(f"Invalid condition {condition!r}: {e.msg}") from e

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ConditionError(
                f"Unsupported construct {type(node).__name__} in condition {condition!r}"
            )

    references = _collect_references(tree)
    if not references:
        raise ConditionError(f"Condition {condition!r} references no column")

    return CompiledCondition(text, tree, references)
