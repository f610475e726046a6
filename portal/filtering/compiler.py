from __future__ import annotations

import enum
from typing import Any, Callable, Iterable

from sqlalchemy import String, and_ as sa_and, cast, func
from sqlalchemy.orm import Query, aliased
from sqlalchemy.sql.elements import ColumnElement

from portal.filtering.attributes import Kind, ResolvedAttribute
from portal.filtering.expressions import (
    LIKE_ESCAPE,
    And,
    Between,
    Eq,
    Expr,
    Gt,
    Gte,
    In,
    IsNull,
    Join,
    Like,
    Lt,
    Lte,
    Neq,
    NotNull,
)

_BOOL_TEXT = {"true": True, "false": False}


class SqlAlchemyCompiler:
    """Lower expression trees for one root model into SQLAlchemy clauses.

    Relation hops become aliased LEFT OUTER JOINs, one per distinct path, so
    several predicates on ``client.*`` share a single join. Call ``apply`` on
    the query once every clause and sort column has been compiled.
    """

    def __init__(self, model: type):
        self.model = model
        self._entities: dict[tuple[str, ...], Any] = {(): model}
        self._joins: list[tuple[Any, Any]] = []
        self.joins_collection = False

    def entity_for(self, hops: tuple[str, ...]):
        entity = self._entities.get(hops)
        if entity is not None:
            return entity
        parent = self.entity_for(hops[:-1])
        rel_attr = getattr(parent, hops[-1])
        alias = aliased(rel_attr.property.mapper.class_)
        if rel_attr.property.uselist:
            self.joins_collection = True
        self._joins.append((rel_attr, alias))
        self._entities[hops] = alias
        return alias

    def column(self, attribute: ResolvedAttribute, prefix: tuple[str, ...] = ()):
        entity = self.entity_for(prefix + attribute.joins)
        return getattr(entity, attribute.spec.name)

    def _as_string(self, attribute: ResolvedAttribute, column):
        if attribute.kind is Kind.STRING:
            return column
        return cast(column, String)

    def compile(self, expr: Expr, prefix: tuple[str, ...] = ()) -> ColumnElement:
        if isinstance(expr, And):
            return sa_and(*(self.compile(operand, prefix) for operand in expr.operands))
        if isinstance(expr, Join):
            self.entity_for(prefix + expr.relation.path)
            return self.compile(expr.predicate, prefix + expr.relation.path)

        attribute = expr.attribute
        column = self.column(attribute, prefix)
        if isinstance(expr, IsNull):
            return column.is_(None) if attribute.kind is not Kind.RELATION else column == None  # noqa: E711
        if isinstance(expr, NotNull):
            return column.is_not(None) if attribute.kind is not Kind.RELATION else column != None  # noqa: E711
        if isinstance(expr, Eq):
            return column == expr.value
        if isinstance(expr, Neq):
            return column != expr.value
        if isinstance(expr, Gt):
            return column > expr.value
        if isinstance(expr, Lt):
            return column < expr.value
        if isinstance(expr, Gte):
            return column >= expr.value
        if isinstance(expr, Lte):
            return column <= expr.value
        if isinstance(expr, Like):
            return func.lower(self._as_string(attribute, column)).like(expr.pattern, escape=LIKE_ESCAPE)
        if isinstance(expr, In):
            if attribute.kind is Kind.BOOL:
                # compare booleans natively; the text form of a boolean differs per dialect
                flags = [_BOOL_TEXT[v] for v in expr.values if v in _BOOL_TEXT]
                return column.in_(flags)
            return self._as_string(attribute, column).in_(expr.values)
        if isinstance(expr, Between):
            if isinstance(expr.lower, str) and attribute.kind is not Kind.STRING:
                column = cast(column, String)
            return column.between(expr.lower, expr.upper)
        raise TypeError(f"Unsupported expression node: {type(expr).__name__}")

    def apply(self, query: Query) -> Query:
        for rel_attr, alias in self._joins:
            query = query.outerjoin(rel_attr.of_type(alias))
        if self.joins_collection:
            query = query.distinct()
        return query


def apply_predicate(query: Query, model: type, expr: Expr | None) -> Query:
    if expr is None:
        return query
    compiler = SqlAlchemyCompiler(model)
    clause = compiler.compile(expr)
    return compiler.apply(query).filter(clause)


def _string_form(value) -> str:
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _walk(obj, names: Iterable[str]) -> list:
    """Follow attribute names from ``obj``; collections fan out, ``None`` ends the branch."""
    current = [obj]
    for name in names:
        following = []
        for item in current:
            value = getattr(item, name, None)
            if value is None:
                continue
            if isinstance(value, (list, tuple, set)):
                following.extend(v for v in value if v is not None)
            else:
                following.append(value)
        current = following
    return current


def _compare(op: Callable[[Any, Any], bool]):
    def _inner(candidate, value) -> bool:
        if candidate is None:
            return False
        try:
            return op(candidate, value)
        except TypeError:
            return False
    return _inner


_OPERATORS = {
    Eq: _compare(lambda a, b: a == b),
    Neq: _compare(lambda a, b: a != b),
    Gt: _compare(lambda a, b: a > b),
    Lt: _compare(lambda a, b: a < b),
    Gte: _compare(lambda a, b: a >= b),
    Lte: _compare(lambda a, b: a <= b),
}


def compile_python(expr: Expr | None, prefix: tuple[str, ...] = ()) -> Callable[[object], bool]:
    """Build an in-memory predicate over plain objects with SQL NULL semantics.

    A missing relation or a ``None`` attribute never satisfies a comparison;
    collection hops match when any element does, like a SQL join.
    """
    if expr is None:
        return lambda obj: True
    if isinstance(expr, And):
        parts = [compile_python(operand, prefix) for operand in expr.operands]
        return lambda obj: all(part(obj) for part in parts)
    if isinstance(expr, Join):
        inner = compile_python(expr.predicate)
        hops = prefix + expr.relation.path
        return lambda obj: any(inner(related) for related in _walk(obj, hops))

    attribute = expr.attribute
    parents = prefix + attribute.joins
    name = attribute.spec.name

    def _values(obj) -> list:
        return [getattr(parent, name, None) for parent in _walk(obj, parents)]

    if isinstance(expr, IsNull):
        def _is_null(obj) -> bool:
            parents_found = _walk(obj, parents)
            if not parents_found:
                return True
            return any(getattr(p, name, None) in (None, []) for p in parents_found)
        return _is_null
    if isinstance(expr, NotNull):
        return lambda obj: any(v not in (None, []) for v in _values(obj))
    if isinstance(expr, Like):
        return lambda obj: any(
            v is not None and expr.needle in _string_form(v).lower() for v in _values(obj)
        )
    if isinstance(expr, In):
        allowed = set(expr.values)
        return lambda obj: any(v is not None and _string_form(v) in allowed for v in _values(obj))
    if isinstance(expr, Between):
        as_string = isinstance(expr.lower, str) and attribute.kind is not Kind.STRING

        def _between(obj) -> bool:
            for v in _values(obj):
                if v is None:
                    continue
                candidate = _string_form(v) if as_string else v
                try:
                    if expr.lower <= candidate <= expr.upper:
                        return True
                except TypeError:
                    continue
            return False
        return _between
    op = _OPERATORS.get(type(expr))
    if op is None:
        raise TypeError(f"Unsupported expression node: {type(expr).__name__}")
    return lambda obj: any(op(v, expr.value) for v in _values(obj))
