from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.api.common import (
    ListParams,
    datetime_or_400,
    decimal_or_400,
    enum_or_400,
    int_or_400,
    list_params,
    optional_str,
    to_float,
    to_iso,
)
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.filtering.listing import paginated_response, query_fetcher
from portal.models.common import utcnow
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.payment import Payment, PaymentStatus
from portal.models.user import User
from portal.specifications import payments as payment_specs

router = APIRouter()
_LOG = logging.getLogger("portal.http")


def serialize_payment(row: Payment) -> dict:
    return {
        "id": row.id,
        "invoice_id": row.invoice_id,
        "invoice_number": row.invoice.invoice_number if row.invoice else None,
        "amount": to_float(row.amount),
        "payment_method": row.payment_method,
        "payment_date": to_iso(row.payment_date),
        "transaction_id": row.transaction_id,
        "notes": row.notes,
        "status": row.status.value,
        "created_at": to_iso(row.created_at),
        "updated_at": to_iso(row.updated_at),
    }


def _payment_or_404(db: Session, payment_id: int, user: User) -> Payment:
    payment = db.get(Payment, payment_id)
    if payment is None or payment.invoice is None or payment.invoice.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


def _settle(invoice: Invoice) -> None:
    invoice.recalculate_amounts()
    invoice.apply_payment_status()


@router.get("")
def list_payments(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return paginated_response(
        Payment,
        query_fetcher(db, Payment, base=payment_specs.has_freelancer(user.id)),
        serialize_payment,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/{payment_id}")
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return serialize_payment(_payment_or_404(db, payment_id, user))


@router.post("", status_code=201)
def create_payment(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = db.get(Invoice, int_or_400(payload.get("invoice_id"), "invoice_id"))
    if invoice is None or invoice.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Invoice not found")
    if invoice.status is InvoiceStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Cannot add a payment to a cancelled invoice")

    amount = decimal_or_400(payload.get("amount"), "amount")
    if amount == 0:
        raise HTTPException(status_code=400, detail='Field "amount" must be a positive number')
    status = enum_or_400(PaymentStatus, payload.get("status"), "status", PaymentStatus.COMPLETED)

    invoice.recalculate_amounts()
    if status is PaymentStatus.COMPLETED and amount > invoice.amount_due:
        raise HTTPException(status_code=400, detail="Payment amount exceeds the amount due")

    payment = Payment(
        amount=amount,
        payment_method=optional_str(payload, "payment_method", 50),
        payment_date=datetime_or_400(payload.get("payment_date"), "payment_date", required=False) or utcnow(),
        transaction_id=optional_str(payload, "transaction_id", 100),
        notes=optional_str(payload, "notes"),
        status=status,
    )
    invoice.payments.append(payment)
    if not invoice.payment_method and payment.payment_method:
        invoice.payment_method = payment.payment_method
    _settle(invoice)

    db.add(invoice)
    db.commit()
    db.refresh(payment)
    _LOG.info("payment recorded payment_id=%s invoice_id=%s status=%s", payment.id, invoice.id, invoice.status.value)
    return serialize_payment(payment)


@router.delete("/{payment_id}", status_code=204)
def delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = _payment_or_404(db, payment_id, user)
    invoice = payment.invoice
    if payment.status is PaymentStatus.COMPLETED and invoice.status is InvoiceStatus.PAID:
        raise HTTPException(status_code=400, detail="Cannot delete a completed payment of a paid invoice")
    invoice.payments.remove(payment)
    _settle(invoice)
    db.add(invoice)
    db.commit()
