"""Row filters for backend table queries.

A filter renders to a PostgREST query parameter and can also be evaluated
against an in-memory row, so the same predicate drives the HTTP client and
any client-side filtering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

_RESERVED = set(',.:()"')


def _format_value(value: Any, quote: bool = True) -> str:
    """Render a filter operand; list and logic-tree operands quote reserved characters."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if quote and (any(ch in _RESERVED for ch in text) or text != text.strip()):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True)
class Filter:
    """`column <op> value` where op is one of eq, neq, in, is."""
    column: str
    op: str
    value: Any

    def expression(self, nested: bool = False) -> str:
        """Operator and operand, e.g. ``eq.open`` or ``in.(a,b)``.

        Operands inside an ``or=(...)`` tree are quoted when needed; a
        top-level operand is sent as is.
        """
        if self.op == "in":
            return "in.(" + ",".join(_format_value(v) for v in self.value) + ")"
        return f"{self.op}.{_format_value(self.value, quote=nested)}"

    def to_param(self) -> tuple[str, str]:
        return self.column, self.expression()

    def matches(self, row: dict[str, Any]) -> bool:
        actual = row.get(self.column)
        if self.op == "eq":
            return actual == self.value
        if self.op == "neq":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if self.op == "is":
            return actual is self.value
        raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of conjunctions: ``or=(and(a,b),and(c,d))``."""
    groups: tuple[tuple[Filter, ...], ...]

    def to_param(self) -> tuple[str, str]:
        parts = []
        for group in self.groups:
            inner = ",".join(f"{f.column}.{f.expression(nested=True)}" for f in group)
            parts.append(f"and({inner})" if len(group) > 1 else inner)
        return "or", "(" + ",".join(parts) + ")"

    def matches(self, row: dict[str, Any]) -> bool:
        return any(all(f.matches(row) for f in group) for group in self.groups)


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def is_(column: str, value: bool | None) -> Filter:
    return Filter(column, "is", value)


def any_of(*groups: Iterable[Filter]) -> AnyOf:
    return AnyOf(tuple(tuple(group) for group in groups))


def matches_all(row: dict[str, Any], filters: Iterable[Filter | AnyOf]) -> bool:
    return all(f.matches(row) for f in filters)
