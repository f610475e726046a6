"""Reusable payment predicates; ``None`` means no constraint."""

from __future__ import annotations

from datetime import datetime

from portal.filtering.attributes import ResolvedAttribute, resolve_path, schema_for
from portal.filtering.expressions import Between, Eq, Expr, Gte, Lte, and_
from portal.models.payment import Payment, PaymentStatus

combine = and_


def _attr(path: str) -> ResolvedAttribute:
    return resolve_path(schema_for(Payment), path)


def has_freelancer(freelancer_id: int | None) -> Expr | None:
    if freelancer_id is None:
        return None
    return Eq(_attr("invoice.freelancer_id"), freelancer_id)


def has_invoice_id(invoice_id: int | None) -> Expr | None:
    if invoice_id is None:
        return None
    return Eq(_attr("invoice_id"), invoice_id)


def has_status(status: PaymentStatus | None) -> Expr | None:
    if status is None:
        return None
    return Eq(_attr("status"), status)


def payment_date_between(start: datetime | None, end: datetime | None) -> Expr | None:
    if start is None and end is None:
        return None
    if start is None:
        return Lte(_attr("payment_date"), end)
    if end is None:
        return Gte(_attr("payment_date"), start)
    return Between(_attr("payment_date"), start, end)
