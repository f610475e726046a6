from __future__ import annotations

from datetime import date, datetime, time

from portal.filtering.attributes import ResolvedAttribute, resolve_path, schema_for
from portal.filtering.expressions import Between, Eq, Expr, Gte, IsNull, Like, Lte, and_
from portal.models.time_entry import TimeEntry

combine = and_


def _attr(path: str) -> ResolvedAttribute:
    return resolve_path(schema_for(TimeEntry), path)


def has_project_id(project_id: int | None) -> Expr | None:
    if project_id is None:
        return None
    return Eq(_attr("project_id"), project_id)


def has_user_id(user_id: int | None) -> Expr | None:
    if user_id is None:
        return None
    return Eq(_attr("user_id"), user_id)


def date_range_between(start: date | None, end: date | None) -> Expr | None:
    """Entries whose start time falls on any day from ``start`` to ``end``, both inclusive."""
    if start is None and end is None:
        return None
    start_time = _attr("start_time")
    if start is None:
        return Lte(start_time, datetime.combine(end, time.max))
    if end is None:
        return Gte(start_time, datetime.combine(start, time.min))
    return Between(start_time, datetime.combine(start, time.min), datetime.combine(end, time.max))


def is_billable(billable: bool | None) -> Expr | None:
    if billable is None:
        return None
    return Eq(_attr("billable"), billable)


def is_billed(billed: bool | None) -> Expr | None:
    if billed is None:
        return None
    return Eq(_attr("billed"), billed)


def description_contains(text: str | None) -> Expr | None:
    if not text:
        return None
    return Like(_attr("description"), text.lower())


def has_invoice_id(invoice_id: int | None) -> Expr | None:
    if invoice_id is None:
        return None
    return Eq(_attr("invoice_id"), invoice_id)


def not_invoiced() -> Expr:
    return IsNull(_attr("invoice"))


def billable_but_not_billed() -> Expr:
    return and_(Eq(_attr("billable"), True), Eq(_attr("billed"), False))
