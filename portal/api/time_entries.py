from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.api.common import ListParams, datetime_or_400, int_or_400, list_params, optional_str, to_iso
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.filtering.listing import paginated_response, query_fetcher
from portal.models.common import utcnow
from portal.models.project import Project
from portal.models.time_entry import TimeEntry
from portal.models.user import User
from portal.specifications import time_entries as time_entry_specs

router = APIRouter()


def _serialize_time_entry(row: TimeEntry) -> dict:
    return {
        "id": row.id,
        "project_id": row.project_id,
        "project_name": row.project.name if row.project else None,
        "user_id": row.user_id,
        "start_time": to_iso(row.start_time),
        "end_time": to_iso(row.end_time),
        "duration_seconds": row.duration_seconds,
        "hours": row.hours,
        "description": row.description,
        "billable": bool(row.billable),
        "billed": bool(row.billed),
        "invoice_id": row.invoice_id,
        "created_at": to_iso(row.created_at),
        "updated_at": to_iso(row.updated_at),
    }


def _entry_or_404(db: Session, entry_id: int, user: User) -> TimeEntry:
    entry = db.get(TimeEntry, entry_id)
    if entry is None or entry.user_id != user.id:
        raise HTTPException(status_code=404, detail="Time entry not found")
    return entry


def _owned_project_or_404(db: Session, raw, user: User) -> Project:
    project = db.get(Project, int_or_400(raw, "project_id"))
    if project is None or project.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("")
def list_time_entries(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return paginated_response(
        TimeEntry,
        query_fetcher(db, TimeEntry, base=time_entry_specs.has_user_id(user.id)),
        _serialize_time_entry,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/unbilled")
def list_unbilled_time_entries(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    base = time_entry_specs.combine(
        time_entry_specs.has_user_id(user.id),
        time_entry_specs.billable_but_not_billed(),
        time_entry_specs.not_invoiced(),
    )
    return paginated_response(
        TimeEntry,
        query_fetcher(db, TimeEntry, base=base),
        _serialize_time_entry,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/active")
def list_active_time_entries(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = (
        db.query(TimeEntry)
        .filter(TimeEntry.user_id == user.id, TimeEntry.start_time.is_not(None), TimeEntry.end_time.is_(None))
        .order_by(TimeEntry.start_time.desc(), TimeEntry.id.asc())
        .all()
    )
    return {"rows": [_serialize_time_entry(r) for r in rows], "total": len(rows)}


@router.get("/{entry_id}")
def get_time_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _serialize_time_entry(_entry_or_404(db, entry_id, user))


@router.post("", status_code=201)
def create_time_entry(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = _owned_project_or_404(db, payload.get("project_id"), user)

    start_time = datetime_or_400(payload.get("start_time"), "start_time")
    end_time = datetime_or_400(payload.get("end_time"), "end_time", required=False)
    if end_time is not None and end_time < start_time:
        raise HTTPException(status_code=400, detail='Field "end_time" cannot be before "start_time"')

    entry = TimeEntry(
        project_id=project.id,
        user_id=user.id,
        start_time=start_time,
        end_time=end_time,
        description=optional_str(payload, "description"),
        billable=bool(payload.get("billable", False)),
        billed=False,
    )
    entry.recalculate_duration()
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _serialize_time_entry(entry)


@router.post("/start", status_code=201)
def start_time_entry(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = _owned_project_or_404(db, payload.get("project_id"), user)
    entry = TimeEntry(
        project_id=project.id,
        user_id=user.id,
        start_time=utcnow(),
        end_time=None,
        description=optional_str(payload, "description"),
        billable=bool(payload.get("billable", False)),
        billed=False,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _serialize_time_entry(entry)


@router.put("/{entry_id}/stop")
def stop_time_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entry = _entry_or_404(db, entry_id, user)
    if entry.end_time is not None:
        raise HTTPException(status_code=400, detail="Time entry is not running")
    entry.end_time = max(utcnow(), entry.start_time) if entry.start_time else utcnow()
    entry.recalculate_duration()
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _serialize_time_entry(entry)


@router.put("/{entry_id}")
def update_time_entry(
    entry_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entry = _entry_or_404(db, entry_id, user)
    if entry.billed:
        raise HTTPException(status_code=400, detail="Cannot update a billed time entry")
    if "project_id" in payload:
        entry.project_id = _owned_project_or_404(db, payload.get("project_id"), user).id
    if "start_time" in payload:
        entry.start_time = datetime_or_400(payload.get("start_time"), "start_time")
    if "end_time" in payload:
        entry.end_time = datetime_or_400(payload.get("end_time"), "end_time", required=False)
    if entry.start_time and entry.end_time and entry.end_time < entry.start_time:
        raise HTTPException(status_code=400, detail='Field "end_time" cannot be before "start_time"')
    if "description" in payload:
        entry.description = optional_str(payload, "description")
    if "billable" in payload:
        entry.billable = bool(payload.get("billable"))

    if entry.end_time is None:
        entry.duration_seconds = None
        entry.hours = None
    entry.recalculate_duration()
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _serialize_time_entry(entry)


@router.delete("/{entry_id}", status_code=204)
def delete_time_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entry = _entry_or_404(db, entry_id, user)
    if entry.billed:
        raise HTTPException(status_code=400, detail="Cannot delete a billed time entry")
    db.delete(entry)
    db.commit()
