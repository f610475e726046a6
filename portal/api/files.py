from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.api.common import int_or_400, optional_str, required_str, to_iso
from portal.core.deps import get_current_user
from portal.db.session import get_db
from portal.models.project import Project
from portal.models.user import User
from portal.services.file_metadata import (
    FileMetadata,
    FilenameTakenError,
    InMemoryFileMetadataStore,
    get_file_metadata_store,
)

router = APIRouter()


def _serialize_metadata(row: FileMetadata) -> dict:
    return {
        "id": row.id,
        "filename": row.filename,
        "original_filename": row.original_filename,
        "content_type": row.content_type,
        "size": row.size,
        "uploaded_at": to_iso(row.uploaded_at),
        "url": row.url,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "user_id": row.user_id,
        "project_id": row.project_id,
    }


def _owned_project_or_404(db: Session, project_id: int, user: User) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.freelancer_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("", status_code=201)
def register_file(
    payload: dict,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    store: InMemoryFileMetadataStore = Depends(get_file_metadata_store),
):
    project_id = None
    if payload.get("project_id") not in (None, ""):
        project_id = _owned_project_or_404(db, int_or_400(payload.get("project_id"), "project_id"), user).id

    filename = required_str(payload, "filename", 255)
    size = int_or_400(payload.get("size", 0), "size")
    if size < 0:
        raise HTTPException(status_code=400, detail='Field "size" cannot be negative')

    metadata = FileMetadata(
        filename=filename,
        original_filename=optional_str(payload, "original_filename", 255),
        content_type=optional_str(payload, "content_type", 100),
        size=size,
        url=optional_str(payload, "url", 1000),
        entity_type=optional_str(payload, "entity_type", 50),
        entity_id=int_or_400(payload.get("entity_id"), "entity_id") if payload.get("entity_id") is not None else None,
        user_id=user.id,
        project_id=project_id,
    )
    try:
        saved = store.save_if_owned(metadata)
    except FilenameTakenError:
        raise HTTPException(status_code=409, detail="Filename already registered")
    return _serialize_metadata(saved)


@router.get("/project/{project_id}")
def list_project_files(
    project_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    store: InMemoryFileMetadataStore = Depends(get_file_metadata_store),
):
    _owned_project_or_404(db, project_id, user)
    rows = sorted(store.find_all_by_project_id(project_id), key=lambda m: m.id)
    return {"rows": [_serialize_metadata(m) for m in rows], "total": len(rows)}


@router.get("/{filename}")
def get_file_metadata(
    filename: str,
    user: User = Depends(get_current_user),
    store: InMemoryFileMetadataStore = Depends(get_file_metadata_store),
):
    metadata = store.find_by_filename(filename)
    if metadata is None or metadata.user_id != user.id:
        raise HTTPException(status_code=404, detail="File not found")
    return _serialize_metadata(metadata)


@router.delete("/{filename}", status_code=204)
def delete_file_metadata(
    filename: str,
    user: User = Depends(get_current_user),
    store: InMemoryFileMetadataStore = Depends(get_file_metadata_store),
):
    metadata = store.find_by_filename(filename)
    if metadata is None or metadata.user_id != user.id:
        raise HTTPException(status_code=404, detail="File not found")
    store.delete(metadata)
