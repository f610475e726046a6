"""Reusable invoice predicates.

Each helper returns ``None`` when its argument is ``None`` (or empty), which
``combine`` skips, so optional request arguments can be passed straight in.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from portal.filtering.attributes import ResolvedAttribute, resolve_path, schema_for
from portal.filtering.expressions import Between, Eq, Expr, Gte, Like, Lt, Lte, Neq, and_
from portal.models.invoice import Invoice, InvoiceStatus

combine = and_


def _attr(path: str) -> ResolvedAttribute:
    return resolve_path(schema_for(Invoice), path)


def has_freelancer(freelancer_id: int | None) -> Expr | None:
    if freelancer_id is None:
        return None
    return Eq(_attr("freelancer_id"), freelancer_id)


def has_client_id(client_id: int | None) -> Expr | None:
    if client_id is None:
        return None
    return Eq(_attr("client_id"), client_id)


def has_project_id(project_id: int | None) -> Expr | None:
    if project_id is None:
        return None
    return Eq(_attr("project_id"), project_id)


def has_status(status: InvoiceStatus | None) -> Expr | None:
    if status is None:
        return None
    return Eq(_attr("status"), status)


def issue_date_between(start: date | None, end: date | None) -> Expr | None:
    """Inclusive on both ends; a missing bound leaves that side open."""
    if start is None and end is None:
        return None
    if start is None:
        return Lte(_attr("issue_date"), end)
    if end is None:
        return Gte(_attr("issue_date"), start)
    return Between(_attr("issue_date"), start, end)


def invoice_number_contains(text: str | None) -> Expr | None:
    if not text:
        return None
    return Like(_attr("invoice_number"), text.lower())


def amount_at_least(amount: Decimal | None) -> Expr | None:
    if amount is None:
        return None
    return Gte(_attr("amount"), amount)


def amount_at_most(amount: Decimal | None) -> Expr | None:
    if amount is None:
        return None
    return Lte(_attr("amount"), amount)


def is_overdue(today: date | None = None) -> Expr:
    today = today or date.today()
    status = _attr("status")
    return and_(
        Lt(_attr("due_date"), today),
        Neq(status, InvoiceStatus.PAID),
        Neq(status, InvoiceStatus.CANCELLED),
    )
