"""Turn parsed filter terms into one typed predicate for an entity.

``SpecificationBuilder`` runs parser -> resolver -> coercer -> predicate
factory for every parameter and ANDs the results. Malformed keys are dropped
by the parser; unknown attributes and bad values raise ``FilterError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Mapping

from portal.filtering.attributes import EntitySchema, Kind, ResolvedAttribute, resolve_path, schema_for
from portal.filtering.coercion import coerce_value
from portal.filtering.errors import FilterValueError
from portal.filtering.expressions import (
    Between,
    Eq,
    Expr,
    Gt,
    In,
    IsNull,
    Join,
    Like,
    Lt,
    Neq,
    NotNull,
    and_,
)
from portal.filtering.parser import FilterTerm, JoinClause, Operator, parse_filter_params

_LOG = logging.getLogger("portal.filters")

_RANGE_KINDS = {Kind.DATE, Kind.DATETIME, Kind.INTEGER, Kind.FLOAT, Kind.DECIMAL}


def _require_scalar(attribute: ResolvedAttribute, operator: Operator) -> None:
    if attribute.kind is Kind.RELATION:
        raise FilterValueError(attribute.dotted, operator.value, "scalar attribute required")


def equal(attribute: ResolvedAttribute, raw: str) -> Eq:
    _require_scalar(attribute, Operator.EQ)
    return Eq(attribute, coerce_value(attribute, raw))


def not_equal(attribute: ResolvedAttribute, raw: str) -> Neq:
    _require_scalar(attribute, Operator.NEQ)
    return Neq(attribute, coerce_value(attribute, raw))


def _ordered_value(attribute: ResolvedAttribute, raw: str, operator: Operator):
    if not attribute.kind.is_ordered:
        raise FilterValueError(attribute.dotted, raw, f"{attribute.kind.value} does not support {operator.value}")
    return coerce_value(attribute, raw)


def greater_than(attribute: ResolvedAttribute, raw: str) -> Gt:
    return Gt(attribute, _ordered_value(attribute, raw, Operator.GT))


def less_than(attribute: ResolvedAttribute, raw: str) -> Lt:
    return Lt(attribute, _ordered_value(attribute, raw, Operator.LT))


def like(attribute: ResolvedAttribute, raw: str) -> Like:
    if attribute.kind is not Kind.STRING:
        raise FilterValueError(attribute.dotted, raw, f"{attribute.kind.value} does not support like")
    return Like(attribute, raw.lower())


def in_(attribute: ResolvedAttribute, values: tuple[str, ...]) -> In:
    _require_scalar(attribute, Operator.IN)
    return In(attribute, tuple(values))


def between(attribute: ResolvedAttribute, lower: str, upper: str) -> Between:
    _require_scalar(attribute, Operator.BETWEEN)
    if attribute.kind in _RANGE_KINDS:
        upper_value = coerce_value(attribute, upper)
        if attribute.kind is Kind.DATETIME and "T" not in upper:
            # a bare date as the upper bound covers that whole day
            upper_value = datetime.combine(upper_value.date(), time.max)
        return Between(attribute, coerce_value(attribute, lower), upper_value)
    return Between(attribute, lower, upper)


def is_null(attribute: ResolvedAttribute) -> IsNull:
    return IsNull(attribute)


def is_not_null(attribute: ResolvedAttribute) -> NotNull:
    return NotNull(attribute)


def join_property(relation: ResolvedAttribute, clause: JoinClause) -> Join:
    if relation.kind is not Kind.RELATION:
        raise FilterValueError(relation.dotted, clause.field, "relation required for join")
    target = resolve_path(schema_for(relation.spec.target), clause.field)
    if target.kind is Kind.RELATION:
        raise FilterValueError(target.dotted, clause.value, "scalar attribute required for join")
    if clause.operator.lower() == Operator.LIKE.value:
        if target.kind is Kind.STRING:
            inner: Expr = like(target, clause.value)
        else:
            # Non-string columns are matched on their text form.
            inner = Like(target, clause.value.lower())
    else:
        inner = equal(target, clause.value)
    return Join(relation, inner)


class SpecificationBuilder:
    """Build a combined predicate for one entity from ``field_operator=value`` pairs."""

    def __init__(self, model_or_schema):
        self.schema: EntitySchema = schema_for(model_or_schema)

    def build_term(self, term: FilterTerm) -> Expr:
        attribute = resolve_path(self.schema, term.field)
        operator = term.operator
        if operator is Operator.EQ:
            return equal(attribute, term.value)
        if operator is Operator.NEQ:
            return not_equal(attribute, term.value)
        if operator is Operator.GT:
            return greater_than(attribute, term.value)
        if operator is Operator.LT:
            return less_than(attribute, term.value)
        if operator is Operator.LIKE:
            return like(attribute, term.value)
        if operator is Operator.IN:
            return in_(attribute, term.value)
        if operator is Operator.BETWEEN:
            lower, upper = term.value
            return between(attribute, lower, upper)
        if operator is Operator.ISNULL:
            return is_null(attribute)
        if operator is Operator.NOTNULL:
            return is_not_null(attribute)
        return join_property(attribute, term.value)

    def build_terms(self, terms: list[FilterTerm]) -> Expr | None:
        return and_(*(self.build_term(term) for term in terms))

    def build(self, params: Mapping[str, str | None]) -> Expr | None:
        """Return the AND of every parameter's predicate, or ``None`` when there is nothing to filter."""
        terms = parse_filter_params(params)
        expr = self.build_terms(terms)
        _LOG.debug("filter built entity=%s terms=%d", self.schema.name, len(terms))
        return expr


def build_specification(model_or_schema, params: Mapping[str, str | None]) -> Expr | None:
    return SpecificationBuilder(model_or_schema).build(params)
