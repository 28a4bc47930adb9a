"""Task CRUD endpoints (staff only)."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.api.clients import check_id
from shiftboard.middleware.auth import require_staff
from shiftboard.models.project import TASK_STATUSES
from shiftboard.schemas.common import UUID_RE, MessageResponse, Pagination
from shiftboard.schemas.project import TaskCreate, TaskListResponse, TaskResponse, TaskUpdate
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.store import ReferenceNotFoundError, Store, as_uuid, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/tasks", tags=["tasks"])


def stamp_shipped(fields: dict, now: datetime) -> dict:
    """Set shipped_at when the status moves to shipped, clear it otherwise."""
    if "status" in fields:
        fields["shipped_at"] = now if fields["status"] == "shipped" else None
    return fields


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    project_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """List tasks in board order."""
    if project_id and not UUID_RE.match(project_id):
        raise HTTPException(status_code=400, detail="Invalid project_id format")
    if status and status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}")

    rows, total = await store.search_tasks(project_id=project_id, status=status, limit=limit, offset=offset)
    return TaskListResponse(
        data=[TaskResponse.model_validate(r) for r in rows],
        pagination=Pagination.build(total, limit, offset),
    )


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    data: TaskCreate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    fields = stamp_shipped(data.model_dump(), datetime.utcnow())
    fields["project_id"] = as_uuid(data.project_id)
    try:
        task = await store.create_task(**fields)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")

    logger.info("task_created", task_id=str(task.id), project_id=data.project_id, actor=user.email)
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(task_id, "task")
    task = await store.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(task_id, "task")
    changes = data.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields provided for update")

    task = await store.update_task(task_id, stamp_shipped(dict(changes), datetime.utcnow()))
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")

    logger.info("task_updated", task_id=task_id, fields=sorted(changes), actor=user.email)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(task_id, "task")
    try:
        deleted = await store.delete_task(task_id)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=409, detail="Task still has deliverables")
    if not deleted:
        raise HTTPException(status_code=404, detail="Task not found")

    logger.info("task_deleted", task_id=task_id, actor=user.email)
    return MessageResponse(message="Task deleted successfully")
