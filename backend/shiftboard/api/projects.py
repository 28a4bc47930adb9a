"""Project CRUD endpoints (staff only)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.api.clients import check_id
from shiftboard.middleware.auth import require_staff
from shiftboard.models.project import PROJECT_STATUSES
from shiftboard.schemas.common import UUID_RE, MessageResponse, Pagination
from shiftboard.schemas.project import ProjectCreate, ProjectListResponse, ProjectResponse, ProjectUpdate
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.store import ReferenceNotFoundError, Store, as_uuid, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    status: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    if status and status not in PROJECT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(PROJECT_STATUSES)}")
    if client_id and not UUID_RE.match(client_id):
        raise HTTPException(status_code=400, detail="Invalid client_id format")

    rows, total = await store.list_projects(status=status, client_id=client_id, limit=limit, offset=offset)
    return ProjectListResponse(
        data=[ProjectResponse.model_validate(r) for r in rows],
        pagination=Pagination.build(total, limit, offset),
    )


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    data: ProjectCreate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    fields = data.model_dump()
    fields["client_id"] = as_uuid(data.client_id) if data.client_id else None
    try:
        project = await store.create_project(**fields)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=404, detail="Client not found")

    logger.info("project_created", project_id=str(project.id), actor=user.email)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(project_id, "project")
    project = await store.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(project_id, "project")
    changes = data.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields provided for update")
    if changes.get("client_id"):
        changes["client_id"] = as_uuid(changes["client_id"])

    try:
        project = await store.update_project(project_id, changes)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=404, detail="Client not found")
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    logger.info("project_updated", project_id=project_id, fields=sorted(changes), actor=user.email)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(project_id, "project")
    try:
        deleted = await store.delete_project(project_id)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=409, detail="Project still has deliverables")
    if not deleted:
        raise HTTPException(status_code=404, detail="Project not found")

    logger.info("project_deleted", project_id=project_id, actor=user.email)
    return MessageResponse(message="Project deleted successfully")
