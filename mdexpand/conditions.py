"""Restricted guard expressions for conditional spans.

Guards are parsed with :mod:`ast` and immediately translated into a small
tagged-variant tree. Evaluation walks that tree against a read-only view of
the session, so a guard can read bindings but has no way to call, assign or
import anything.
"""

from __future__ import annotations

import ast
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, Union

from .errors import GuardError, GuardSyntaxError, UndefinedReferenceError
from .logging import get_logger
from .models import ConditionalSpan, SourceLocation

_LOGGER = get_logger("conditions")


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Reference:
    name: str


@dataclass(frozen=True)
class Sequence:
    items: Tuple["Guard", ...]
    kind: str = "tuple"


@dataclass(frozen=True)
class Comparison:
    left: "Guard"
    operators: Tuple[str, ...]
    comparators: Tuple["Guard", ...]


@dataclass(frozen=True)
class BoolOp:
    op: str
    operands: Tuple["Guard", ...]


@dataclass(frozen=True)
class Not:
    operand: "Guard"


Guard = Union[Literal, Reference, Sequence, Comparison, BoolOp, Not]


_COMPARATORS: Dict[Type[ast.cmpop], Tuple[str, Callable[[Any, Any], bool]]] = {
    ast.Eq: ("==", operator.eq),
    ast.NotEq: ("!=", operator.ne),
    ast.Lt: ("<", operator.lt),
    ast.LtE: ("<=", operator.le),
    ast.Gt: (">", operator.gt),
    ast.GtE: (">=", operator.ge),
    ast.In: ("in", lambda left, right: left in right),
    ast.NotIn: ("not in", lambda left, right: left not in right),
    ast.Is: ("is", operator.is_),
    ast.IsNot: ("is not", operator.is_not),
}
_OPERATORS_BY_SYMBOL = {symbol: func for symbol, func in _COMPARATORS.values()}


def compile_guard(expression: str, *, location: Optional[SourceLocation] = None) -> Guard:
    """Translate ``expression`` into a guard tree or raise :class:`GuardSyntaxError`."""
    source = expression.strip()
    if not source:
        raise GuardSyntaxError("empty guard expression", location=location)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise GuardSyntaxError(f"invalid guard '{source}': {exc.msg}", location=location) from exc
    return _translate(tree.body, source, location)


def _translate(node: ast.AST, source: str, location: Optional[SourceLocation]) -> Guard:
    if isinstance(node, ast.Constant):
        return Literal(node.value)
    if isinstance(node, ast.Name):
        return Reference(node.id)
    if isinstance(node, ast.UnaryOp):
        if isinstance(node.op, ast.Not):
            return Not(_translate(node.operand, source, location))
        if isinstance(node.op, (ast.USub, ast.UAdd)) and isinstance(node.operand, ast.Constant):
            value = node.operand.value
            if isinstance(value, (int, float, complex)) and not isinstance(value, bool):
                return Literal(-value if isinstance(node.op, ast.USub) else value)
    if isinstance(node, ast.BoolOp):
        op = "and" if isinstance(node.op, ast.And) else "or"
        return BoolOp(op, tuple(_translate(value, source, location) for value in node.values))
    if isinstance(node, ast.Compare):
        symbols = []
        for op in node.ops:
            symbol, _ = _COMPARATORS[type(op)]
            symbols.append(symbol)
        return Comparison(
            left=_translate(node.left, source, location),
            operators=tuple(symbols),
            comparators=tuple(_translate(item, source, location) for item in node.comparators),
        )
    if isinstance(node, (ast.Tuple, ast.List)):
        kind = "list" if isinstance(node, ast.List) else "tuple"
        return Sequence(tuple(_translate(item, source, location) for item in node.elts), kind=kind)

    fragment = ast.get_source_segment(source, node) or type(node).__name__
    raise GuardSyntaxError(
        f"unsupported construct '{fragment}' in guard '{source}'; guards allow literals, "
        "names, comparisons and and/or/not",
        location=location,
    )


def _truth(value: Any, *, location: Optional[SourceLocation]) -> bool:
    # Arrays and similar session values refuse a plain truth test.
    try:
        return bool(value)
    except Exception as exc:
        raise GuardError(
            f"cannot use {type(value).__name__} as a condition: {exc}",
            location=location,
        ) from exc


class ConditionalEvaluator:
    """Evaluates guards against a read-only mapping of session bindings."""

    def evaluate(self, span: ConditionalSpan, bindings: Mapping[str, Any]) -> bool:
        """Return whether the span's primary branch is emitted."""
        result = _truth(self.value(span.guard, bindings, location=span.location), location=span.location)
        _LOGGER.debug("Guard '%s' at %s evaluated to %s", span.expression, span.location, result)
        return result

    def value(
        self,
        guard: Guard,
        bindings: Mapping[str, Any],
        *,
        location: Optional[SourceLocation] = None,
    ) -> Any:
        if isinstance(guard, Literal):
            return guard.value
        if isinstance(guard, Reference):
            if guard.name not in bindings:
                raise UndefinedReferenceError(guard.name, location=location)
            return bindings[guard.name]
        if isinstance(guard, Sequence):
            items = [self.value(item, bindings, location=location) for item in guard.items]
            return items if guard.kind == "list" else tuple(items)
        if isinstance(guard, Not):
            return not _truth(self.value(guard.operand, bindings, location=location), location=location)
        if isinstance(guard, BoolOp):
            # Python semantics: return the deciding operand, skip the rest.
            result: Any = None
            for operand in guard.operands:
                result = self.value(operand, bindings, location=location)
                if guard.op == "and" and not _truth(result, location=location):
                    return result
                if guard.op == "or" and _truth(result, location=location):
                    return result
            return result
        if isinstance(guard, Comparison):
            left = self.value(guard.left, bindings, location=location)
            for symbol, comparator in zip(guard.operators, guard.comparators):
                right = self.value(comparator, bindings, location=location)
                try:
                    outcome = _OPERATORS_BY_SYMBOL[symbol](left, right)
                except Exception as exc:
                    raise GuardError(
                        f"cannot compare {type(left).__name__} {symbol} {type(right).__name__}: {exc}",
                        location=location,
                    ) from exc
                if not _truth(outcome, location=location):
                    return False
                left = right
            return True
        raise TypeError(f"Unknown guard node {guard!r}")  # pragma: no cover - exhaustive


__all__ = [
    "BoolOp",
    "Comparison",
    "ConditionalEvaluator",
    "Guard",
    "Literal",
    "Not",
    "Reference",
    "Sequence",
    "compile_guard",
]
