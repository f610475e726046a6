"""Uniform list endpoints: filter + page + fetch once + map rows.

``paginated_response`` is persistence-agnostic; ``query_fetcher`` is the
SQLAlchemy-backed fetch function used by the API routers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Mapping, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.filtering.attributes import resolve_path, schema_for
from portal.filtering.builder import SpecificationBuilder
from portal.filtering.compiler import SqlAlchemyCompiler
from portal.filtering.expressions import Expr, and_
from portal.filtering.paging import PagingDescriptor, SortDirection, build_paging
from portal.filtering.parser import extract_filter_params
from portal.schemas.pagination import PaginatedResponse

_LOG = logging.getLogger("portal.filters")

T = TypeVar("T")
D = TypeVar("D")


@dataclass(frozen=True)
class RawPage(Generic[T]):
    rows: list[T]
    page_index: int
    page_size: int
    total_items: int
    total_pages: int
    is_first: bool
    is_last: bool

    @classmethod
    def of(cls, rows: Iterable[T], paging: PagingDescriptor, total_items: int) -> RawPage[T]:
        total_pages = math.ceil(total_items / paging.page_size) if total_items else 0
        return cls(
            rows=list(rows),
            page_index=paging.page_index,
            page_size=paging.page_size,
            total_items=total_items,
            total_pages=total_pages,
            is_first=paging.page_index == 0,
            is_last=paging.page_index >= total_pages - 1,
        )


FetchFunction = Callable[[Expr | None, PagingDescriptor], RawPage[T]]


def paginated_response(
    model_or_schema,
    fetch: FetchFunction,
    mapper: Callable[[T], D],
    params: Mapping[str, str | None] | Iterable[tuple[str, str | None]],
    page: int = 0,
    size: int | None = None,
    sort_by: str | None = None,
    direction: str | None = None,
) -> PaginatedResponse[D]:
    """Build filter and paging from request parameters, call ``fetch`` exactly once, map the rows.

    Paging metadata is copied from the fetch result as-is; rows beyond its
    page size are cut off. Errors from ``fetch`` propagate untouched.
    """
    schema = schema_for(model_or_schema)
    paging = build_paging(page, size, sort_by, direction, schema=schema)
    filters = extract_filter_params(params, settings.FILTER_PARAM_PREFIX)
    predicate = SpecificationBuilder(schema).build(filters)

    result = fetch(predicate, paging)

    return PaginatedResponse(
        items=[mapper(row) for row in result.rows[: result.page_size]],
        page_index=result.page_index,
        page_size=result.page_size,
        total_items=result.total_items,
        total_pages=result.total_pages,
        is_first=result.is_first,
        is_last=result.is_last,
    )


@dataclass(frozen=True)
class QueryFetcher:
    """SQLAlchemy fetch function for ``paginated_response``.

    ``base`` is ANDed with the request predicate; routers use it to scope rows
    to the current user.
    """

    db: Session
    model: type
    base: Expr | None = None

    def __call__(self, predicate: Expr | None, paging: PagingDescriptor) -> RawPage:
        compiler = SqlAlchemyCompiler(self.model)
        combined = and_(self.base, predicate)
        clause = compiler.compile(combined) if combined is not None else None
        sort_column = compiler.column(resolve_path(schema_for(self.model), paging.sort_field))

        query = compiler.apply(self.db.query(self.model))
        if clause is not None:
            query = query.filter(clause)
        total = query.order_by(None).count()

        order = sort_column.asc() if paging.sort_direction is SortDirection.ASC else sort_column.desc()
        tie_breakers = [col.asc() for col in sa_inspect(self.model).primary_key if col.key != paging.sort_field]
        rows = query.order_by(order, *tie_breakers).offset(paging.offset).limit(paging.page_size).all()
        _LOG.info(
            "list fetched entity=%s total=%d page=%d size=%d sort=%s %s",
            self.model.__name__,
            total,
            paging.page_index,
            paging.page_size,
            paging.sort_field,
            paging.sort_direction.value,
        )
        return RawPage.of(rows, paging, int(total))


def query_fetcher(db: Session, model: type, base: Expr | None = None) -> QueryFetcher:
    return QueryFetcher(db=db, model=model, base=base)
