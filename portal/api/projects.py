from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.api.common import (
    ListParams,
    date_or_400,
    decimal_or_400,
    enum_or_400,
    int_or_400,
    list_params,
    optional_str,
    required_str,
    to_float,
    to_iso,
)
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.filtering.listing import paginated_response, query_fetcher
from portal.models.client import Client
from portal.models.common import utcnow
from portal.models.invoice import Invoice
from portal.models.project import Project, ProjectStatus
from portal.models.time_entry import TimeEntry
from portal.models.user import User
from portal.specifications.common import owned_by

router = APIRouter()


def _serialize_project(row: Project) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "status": row.status.value,
        "start_date": to_iso(row.start_date),
        "end_date": to_iso(row.end_date),
        "completed_at": to_iso(row.completed_at),
        "budget": to_float(row.budget),
        "hourly_rate": to_float(row.hourly_rate),
        "client_id": row.client_id,
        "client_name": row.client.name if row.client else None,
        "freelancer_id": row.freelancer_id,
        "created_at": to_iso(row.created_at),
        "updated_at": to_iso(row.updated_at),
    }


def _project_or_404(db: Session, project_id: int, user: User) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _owned_client_or_404(db: Session, raw, user: User) -> Client:
    client = db.get(Client, int_or_400(raw, "client_id"))
    if client is None or client.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("")
def list_projects(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return paginated_response(
        Project,
        query_fetcher(db, Project, base=owned_by(Project, user.id)),
        _serialize_project,
        params.query,
        params.page,
        params.size,
        params.sort_by,
        params.direction,
    )


@router.get("/{project_id}")
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _serialize_project(_project_or_404(db, project_id, user))


@router.post("", status_code=201)
def create_project(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = _owned_client_or_404(db, payload.get("client_id"), user)

    start_date = date_or_400(payload.get("start_date"), "start_date", required=False)
    end_date = date_or_400(payload.get("end_date"), "end_date", required=False)
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail='Field "end_date" cannot be before "start_date"')

    project = Project(
        name=required_str(payload, "name", 100),
        description=optional_str(payload, "description"),
        status=enum_or_400(ProjectStatus, payload.get("status"), "status", ProjectStatus.PENDING),
        start_date=start_date,
        end_date=end_date,
        budget=decimal_or_400(payload.get("budget"), "budget", required=False),
        hourly_rate=decimal_or_400(payload.get("hourly_rate"), "hourly_rate", required=False),
        client_id=client.id,
        freelancer_id=user.id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return _serialize_project(project)


@router.put("/{project_id}")
def update_project(
    project_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = _project_or_404(db, project_id, user)
    if "name" in payload:
        project.name = required_str(payload, "name", 100)
    if "description" in payload:
        project.description = optional_str(payload, "description")
    if "client_id" in payload:
        project.client_id = _owned_client_or_404(db, payload.get("client_id"), user).id
    if "start_date" in payload:
        project.start_date = date_or_400(payload.get("start_date"), "start_date", required=False)
    if "end_date" in payload:
        project.end_date = date_or_400(payload.get("end_date"), "end_date", required=False)
    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise HTTPException(status_code=400, detail='Field "end_date" cannot be before "start_date"')
    if "budget" in payload:
        project.budget = decimal_or_400(payload.get("budget"), "budget", required=False)
    if "hourly_rate" in payload:
        project.hourly_rate = decimal_or_400(payload.get("hourly_rate"), "hourly_rate", required=False)
    if "status" in payload:
        status = enum_or_400(ProjectStatus, payload.get("status"), "status", project.status)
        if status is ProjectStatus.COMPLETED and project.status is not ProjectStatus.COMPLETED:
            project.completed_at = utcnow()
        elif status is not ProjectStatus.COMPLETED:
            project.completed_at = None
        project.status = status

    db.add(project)
    db.commit()
    db.refresh(project)
    return _serialize_project(project)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = _project_or_404(db, project_id, user)
    in_use = (
        db.query(Invoice.id).filter(Invoice.project_id == project.id).first() is not None
        or db.query(TimeEntry.id).filter(TimeEntry.project_id == project.id).first() is not None
    )
    if in_use:
        raise HTTPException(status_code=400, detail="Project has invoices or time entries")
    db.delete(project)
    db.commit()
