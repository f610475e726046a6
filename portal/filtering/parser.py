"""Query-string filter grammar: ``field[_operator]=value``.

The operator is the token after the last underscore, which keeps snake_case
field names (``created_at_gt``) usable; when that token is not an operator the
whole key is the field and the operator is ``eq`` (``client_id=5``). Values
that do not fit an operator's shape are dropped without an error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

_LOG = logging.getLogger("portal.filters")


class Operator(str, enum.Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    LIKE = "like"
    IN = "in"
    BETWEEN = "between"
    ISNULL = "isnull"
    NOTNULL = "notnull"
    JOIN = "join"

    @classmethod
    def lookup(cls, token: str) -> Operator | None:
        try:
            return cls(token.lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class JoinClause:
    field: str
    operator: str
    value: str


@dataclass(frozen=True)
class FilterTerm:
    field: str
    operator: Operator
    value: str | tuple[str, ...] | JoinClause


def extract_filter_params(params: Mapping[str, str | None] | Iterable[tuple[str, str | None]], prefix: str) -> dict[str, str | None]:
    """Keep only keys carrying ``prefix`` and strip it; later duplicates win."""
    items = params.items() if isinstance(params, Mapping) else params
    return {key[len(prefix):]: value for key, value in items if key.startswith(prefix) and len(key) > len(prefix)}


def _split_key(key: str) -> tuple[str, Operator] | None:
    if "_" not in key:
        return key, Operator.EQ
    field, _, token = key.rpartition("_")
    operator = Operator.lookup(token)
    if operator is None:
        # snake_case field with the default operator
        return key, Operator.EQ
    if not field:
        return None
    return field, operator


def parse_filter_param(key: str, value: str | None) -> FilterTerm | None:
    if value is None or value == "":
        return None
    split = _split_key(key)
    if split is None:
        _LOG.debug("filter key dropped: missing field key=%r", key)
        return None
    field, operator = split

    if operator is Operator.IN:
        return FilterTerm(field, operator, tuple(value.split(",")))
    if operator is Operator.BETWEEN:
        bounds = value.split(",")
        if len(bounds) != 2:
            _LOG.debug("filter key dropped: between needs two bounds key=%r value=%r", key, value)
            return None
        return FilterTerm(field, operator, (bounds[0], bounds[1]))
    if operator is Operator.JOIN:
        parts = value.split(":")
        if len(parts) != 3:
            _LOG.debug("filter key dropped: join needs field:operator:value key=%r value=%r", key, value)
            return None
        return FilterTerm(field, operator, JoinClause(field=parts[0], operator=parts[1], value=parts[2]))
    return FilterTerm(field, operator, value)


def parse_filter_params(params: Mapping[str, str | None]) -> list[FilterTerm]:
    terms = []
    for key, value in params.items():
        term = parse_filter_param(key, value)
        if term is not None:
            terms.append(term)
    return terms
