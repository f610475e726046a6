"""Immutable predicate tree produced by the filter builder.

Nodes only describe a condition; ``portal.filtering.compiler`` lowers them to
SQLAlchemy clauses or to plain Python callables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from portal.filtering.attributes import ResolvedAttribute

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class Eq:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Neq:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Gt:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Lt:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Gte:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Lte:
    attribute: ResolvedAttribute
    value: Any


@dataclass(frozen=True)
class Like:
    """Case-insensitive substring match; ``needle`` is stored lower-cased."""

    attribute: ResolvedAttribute
    needle: str

    @property
    def pattern(self) -> str:
        """SQL LIKE pattern in which wildcards typed by the caller match literally."""
        escaped = self.needle.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")
        return f"%{escaped}%"


@dataclass(frozen=True)
class In:
    attribute: ResolvedAttribute
    values: tuple[str, ...]


@dataclass(frozen=True)
class Between:
    attribute: ResolvedAttribute
    lower: Any
    upper: Any


@dataclass(frozen=True)
class IsNull:
    attribute: ResolvedAttribute


@dataclass(frozen=True)
class NotNull:
    attribute: ResolvedAttribute


@dataclass(frozen=True)
class Join:
    """``predicate`` is resolved against the schema on the far side of ``relation``."""

    relation: ResolvedAttribute
    predicate: Expr


@dataclass(frozen=True)
class And:
    operands: tuple[Expr, ...]


Expr = Union[Eq, Neq, Gt, Lt, Gte, Lte, Like, In, Between, IsNull, NotNull, Join, And]


def and_(*exprs: Expr | None) -> Expr | None:
    """AND the given expressions, skipping ``None`` and flattening nested ``And``.

    Returns ``None`` (match everything) when nothing is left.
    """
    operands: list[Expr] = []
    for expr in exprs:
        if expr is None:
            continue
        if isinstance(expr, And):
            operands.extend(expr.operands)
        else:
            operands.append(expr)
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return And(tuple(operands))
