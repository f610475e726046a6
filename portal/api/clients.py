from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.api.common import ListParams, int_or_400, list_params, optional_str, required_str, to_iso
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.filtering.listing import paginated_response, query_fetcher
from portal.models.client import Client
from portal.models.company import Company
from portal.models.invoice import Invoice
from portal.models.project import Project
from portal.models.user import User
from portal.specifications.common import owned_by

router = APIRouter()


def _serialize_client(row: Client) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "email": row.email,
        "phone": row.phone,
        "notes": row.notes,
        "city": row.city,
        "country": row.country,
        "currency": row.currency,
        "company_id": row.company_id,
        "company_name": row.company.name if row.company else None,
        "freelancer_id": row.freelancer_id,
        "created_at": to_iso(row.created_at),
        "updated_at": to_iso(row.updated_at),
    }


def _owned_company_id(db: Session, raw, user: User) -> int | None:
    if raw in (None, ""):
        return None
    company = db.get(Company, int_or_400(raw, "company_id"))
    if company is None or company.owner_id != user.id:
        raise HTTPException(status_code=404, detail="Company not found")
    return company.id


def _client_or_404(db: Session, client_id: int, user: User) -> Client:
    client = db.get(Client, client_id)
    if client is None or client.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("")
def list_clients(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return paginated_response(
        Client,
        query_fetcher(db, Client, base=owned_by(Client, user.id)),
        _serialize_client,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/{client_id}")
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _serialize_client(_client_or_404(db, client_id, user))


@router.post("", status_code=201)
def create_client(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = Client(
        name=required_str(payload, "name", 100),
        email=optional_str(payload, "email", 100),
        phone=optional_str(payload, "phone", 15),
        notes=optional_str(payload, "notes"),
        city=optional_str(payload, "city", 50),
        country=optional_str(payload, "country", 50),
        currency=(optional_str(payload, "currency", 3) or "").upper() or None,
        company_id=_owned_company_id(db, payload.get("company_id"), user),
        freelancer_id=user.id,
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    return _serialize_client(client)


@router.put("/{client_id}")
def update_client(
    client_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = _client_or_404(db, client_id, user)
    if "name" in payload:
        client.name = required_str(payload, "name", 100)
    for field, max_length in (("email", 100), ("phone", 15), ("notes", None), ("city", 50), ("country", 50)):
        if field in payload:
            setattr(client, field, optional_str(payload, field, max_length))
    if "currency" in payload:
        client.currency = (optional_str(payload, "currency", 3) or "").upper() or None
    if "company_id" in payload:
        client.company_id = _owned_company_id(db, payload.get("company_id"), user)

    db.add(client)
    db.commit()
    db.refresh(client)
    return _serialize_client(client)


@router.delete("/{client_id}", status_code=204)
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = _client_or_404(db, client_id, user)
    in_use = (
        db.query(Project.id).filter(Project.client_id == client.id).first() is not None
        or db.query(Invoice.id).filter(Invoice.client_id == client.id).first() is not None
    )
    if in_use:
        raise HTTPException(status_code=400, detail="Client has projects or invoices")
    db.delete(client)
    db.commit()
