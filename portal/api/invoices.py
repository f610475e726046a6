from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.api.common import (
    ListParams,
    date_or_400,
    decimal_or_400,
    enum_or_400,
    int_or_400,
    list_params,
    optional_str,
    to_float,
    to_iso,
)
from portal.api.payments import serialize_payment
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.filtering.listing import paginated_response, query_fetcher
from portal.models.client import Client
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.project import Project
from portal.models.time_entry import TimeEntry
from portal.models.user import User
from portal.specifications import invoices as invoice_specs

router = APIRouter()


def _serialize_invoice(row: Invoice) -> dict:
    return {
        "id": row.id,
        "invoice_number": row.invoice_number,
        "status": row.status.value,
        "issue_date": to_iso(row.issue_date),
        "due_date": to_iso(row.due_date),
        "sent_date": to_iso(row.sent_date),
        "paid_date": to_iso(row.paid_date),
        "subtotal": to_float(row.subtotal),
        "tax_rate": to_float(row.tax_rate),
        "tax_amount": to_float(row.tax_amount),
        "discount": to_float(row.discount),
        "amount": to_float(row.amount),
        "amount_paid": to_float(row.amount_paid),
        "amount_due": to_float(row.amount_due),
        "currency": row.currency,
        "payment_method": row.payment_method,
        "description": row.description,
        "notes": row.notes,
        "client_id": row.client_id,
        "client_name": row.client.name if row.client else None,
        "project_id": row.project_id,
        "project_name": row.project.name if row.project else None,
        "freelancer_id": row.freelancer_id,
        "created_at": to_iso(row.created_at),
        "updated_at": to_iso(row.updated_at),
    }


def _invoice_number(db: Session) -> str:
    prefix = date.today().strftime("%Y%m%d")
    candidate = f"INV-{prefix}-{uuid4().hex[:8].upper()}"
    exists = db.query(Invoice.id).filter(Invoice.invoice_number == candidate).first()
    if exists is None:
        return candidate
    return f"INV-{prefix}-{uuid4().hex[:12].upper()}"


def _invoice_or_404(db: Session, invoice_id: int, user: User) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None or invoice.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _owned_project_id(db: Session, raw, user: User) -> int | None:
    if raw in (None, ""):
        return None
    project = db.get(Project, int_or_400(raw, "project_id"))
    if project is None or project.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project.id


def _commit_or_400(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Invoice number already exists")


@router.get("")
def list_invoices(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return paginated_response(
        Invoice,
        query_fetcher(db, Invoice, base=invoice_specs.has_freelancer(user.id)),
        _serialize_invoice,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/overdue")
def list_overdue_invoices(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    base = invoice_specs.combine(invoice_specs.has_freelancer(user.id), invoice_specs.is_overdue())
    return paginated_response(
        Invoice,
        query_fetcher(db, Invoice, base=base),
        _serialize_invoice,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _serialize_invoice(_invoice_or_404(db, invoice_id, user))


@router.post("", status_code=201)
def create_invoice(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = db.get(Client, int_or_400(payload.get("client_id"), "client_id"))
    if client is None or client.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Client not found")

    project_id = _owned_project_id(db, payload.get("project_id"), user)

    issue_date = date_or_400(payload.get("issue_date"), "issue_date", required=False) or date.today()
    due_date = date_or_400(payload.get("due_date"), "due_date")
    if due_date < issue_date:
        raise HTTPException(status_code=400, detail='Field "due_date" cannot be before "issue_date"')

    invoice = Invoice(
        invoice_number=optional_str(payload, "invoice_number", 50) or _invoice_number(db),
        status=enum_or_400(InvoiceStatus, payload.get("status"), "status", InvoiceStatus.DRAFT),
        issue_date=issue_date,
        due_date=due_date,
        subtotal=decimal_or_400(payload.get("subtotal"), "subtotal"),
        tax_rate=decimal_or_400(payload.get("tax_rate"), "tax_rate", required=False),
        discount=decimal_or_400(payload.get("discount"), "discount", required=False),
        description=optional_str(payload, "description", 2000),
        notes=optional_str(payload, "notes", 2000),
        payment_method=optional_str(payload, "payment_method", 50),
        currency=(optional_str(payload, "currency", 3) or client.currency or "USD").upper(),
        client_id=client.id,
        project_id=project_id,
        freelancer_id=user.id,
    )
    invoice.recalculate_amounts()
    db.add(invoice)
    _commit_or_400(db)
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.put("/{invoice_id}")
def update_invoice(
    invoice_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = _invoice_or_404(db, invoice_id, user)
    if invoice.status is InvoiceStatus.PAID:
        raise HTTPException(status_code=400, detail="Cannot update a paid invoice")

    if "client_id" in payload:
        client = db.get(Client, int_or_400(payload.get("client_id"), "client_id"))
        if client is None or client.freelancer_id != user.id:
            raise HTTPException(status_code=404, detail="Client not found")
        invoice.client_id = client.id
    if "project_id" in payload:
        invoice.project_id = _owned_project_id(db, payload.get("project_id"), user)
    if "invoice_number" in payload and optional_str(payload, "invoice_number", 50):
        invoice.invoice_number = optional_str(payload, "invoice_number", 50)
    if "issue_date" in payload:
        invoice.issue_date = date_or_400(payload.get("issue_date"), "issue_date")
    if "due_date" in payload:
        invoice.due_date = date_or_400(payload.get("due_date"), "due_date")
    if invoice.due_date < invoice.issue_date:
        raise HTTPException(status_code=400, detail='Field "due_date" cannot be before "issue_date"')
    if "status" in payload:
        invoice.status = enum_or_400(InvoiceStatus, payload.get("status"), "status", invoice.status)
    if "subtotal" in payload:
        invoice.subtotal = decimal_or_400(payload.get("subtotal"), "subtotal")
    for field in ("tax_rate", "discount"):
        if field in payload:
            setattr(invoice, field, decimal_or_400(payload.get(field), field, required=False))
    for field in ("description", "notes"):
        if field in payload:
            setattr(invoice, field, optional_str(payload, field, 2000))
    if "payment_method" in payload:
        invoice.payment_method = optional_str(payload, "payment_method", 50)
    if "currency" in payload and optional_str(payload, "currency", 3):
        invoice.currency = optional_str(payload, "currency", 3).upper()

    invoice.recalculate_amounts()
    db.add(invoice)
    _commit_or_400(db)
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.patch("/{invoice_id}/mark-sent")
def mark_invoice_sent(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = _invoice_or_404(db, invoice_id, user)
    if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
        raise HTTPException(status_code=400, detail=f"Cannot send an invoice with status {invoice.status.value}")
    invoice.status = InvoiceStatus.SENT
    invoice.sent_date = date.today()
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.patch("/{invoice_id}/mark-paid")
def mark_invoice_paid(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = _invoice_or_404(db, invoice_id, user)
    if invoice.status is InvoiceStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Cannot mark a cancelled invoice as paid")
    invoice.status = InvoiceStatus.PAID
    if invoice.paid_date is None:
        invoice.paid_date = date.today()
    invoice.amount_paid = invoice.amount
    invoice.amount_due = Decimal("0")
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return _serialize_invoice(invoice)


@router.get("/{invoice_id}/payments")
def list_invoice_payments(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = _invoice_or_404(db, invoice_id, user)
    rows = sorted(invoice.payments, key=lambda p: p.id)
    return {"rows": [serialize_payment(p) for p in rows], "total": len(rows)}


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = _invoice_or_404(db, invoice_id, user)
    if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.SENT):
        raise HTTPException(status_code=400, detail="Cannot delete a paid or sent invoice")
    db.query(TimeEntry).filter(TimeEntry.invoice_id == invoice.id).update(
        {TimeEntry.invoice_id: None, TimeEntry.billed: False}, synchronize_session=False
    )
    db.delete(invoice)
    db.commit()
