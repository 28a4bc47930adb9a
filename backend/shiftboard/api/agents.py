"""Worker agents: registration, heartbeat, and the task claim/complete cycle."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.api.clients import check_id
from shiftboard.middleware.auth import require_staff
from shiftboard.schemas.agent import (
    AgentRegister, AgentRegisterResponse, AgentResponse,
    AvailableTasksResponse, ClaimRequest, CompleteRequest,
    HeartbeatData, HeartbeatRequest, HeartbeatResponse,
    TaskWorkData, TaskWorkResponse,
)
from shiftboard.schemas.common import UUID_RE
from shiftboard.schemas.project import TaskResponse
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.store import Store, as_uuid, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/agent", tags=["agents"])

AVAILABLE_LIMIT = 20
MAX_AVAILABLE_LIMIT = 50


@router.post("/register", response_model=AgentRegisterResponse, status_code=201)
async def register_agent(
    data: AgentRegister,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    agent = await store.create_agent(
        name=data.name,
        description=data.description,
        capabilities=data.capabilities,
        session_id=data.session_id,
        extra_metadata=data.metadata,
        status="idle",
        total_tasks_completed=0,
        total_hours_logged=0.0,
    )
    logger.info("agent_registered", agent_id=str(agent.id), name=agent.name)
    return AgentRegisterResponse(agent_id=agent.id, agent=AgentResponse.model_validate(agent))


@router.get("/register", response_model=list[AgentResponse])
async def list_agents(
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    return [AgentResponse.model_validate(a) for a in await store.list_agents()]


@router.post("/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    data: HeartbeatRequest,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    agent = await store.record_heartbeat(data.agent_id, data.changes(), datetime.utcnow())
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return HeartbeatResponse(data=HeartbeatData.model_validate(agent))


@router.get("/tasks/available", response_model=AvailableTasksResponse)
async def available_tasks(
    project_id: Optional[str] = Query(None),
    limit: int = Query(AVAILABLE_LIMIT),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """Unclaimed, unshipped tasks in board order."""
    if project_id and not UUID_RE.match(project_id):
        raise HTTPException(status_code=400, detail="Invalid project_id format")
    limit = min(limit, MAX_AVAILABLE_LIMIT) if limit > 0 else AVAILABLE_LIMIT

    tasks = await store.list_available_tasks(project_id=project_id, limit=limit)
    return AvailableTasksResponse(count=len(tasks), data=[TaskResponse.model_validate(t) for t in tasks])


@router.post("/tasks/{task_id}/claim", response_model=TaskWorkResponse)
async def claim_task(
    task_id: str,
    data: ClaimRequest,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(task_id, "task")
    task = await store.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    if task.agent_id:
        raise HTTPException(status_code=409, detail="Task already claimed by another agent")
    if task.status == "shipped":
        raise HTTPException(status_code=400, detail="Task cannot be claimed - status is shipped")
    agent = await store.get_agent(data.agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    now = datetime.utcnow()
    claimed = await store.claim_task(task.id, agent.id, data.notes, data.session_id, now)
    if not claimed:
        raise HTTPException(status_code=409, detail="Task was claimed by another agent")

    logger.info("task_claimed", task_id=task_id, agent_id=str(agent.id))
    return TaskWorkResponse(
        message="Task claimed successfully",
        data=TaskWorkData(task=TaskResponse.model_validate(claimed), at=now),
    )


@router.post("/tasks/{task_id}/complete", response_model=TaskWorkResponse)
async def complete_task(
    task_id: str,
    data: CompleteRequest,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """Hand a claimed task to human review."""
    check_id(task_id, "task")
    task = await store.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    agent_id = as_uuid(data.agent_id)
    if task.agent_id != agent_id:
        raise HTTPException(status_code=403, detail="Task is not claimed by this agent")
    if task.status == "shipped":
        raise HTTPException(status_code=400, detail="Task is already shipped")
    if task.status == "review":
        raise HTTPException(status_code=400, detail="Task is already in review")

    files = list(dict.fromkeys([*(task.files_modified or []), *data.files_modified]))
    notes = task.agent_notes
    if data.notes:
        notes = f"{task.agent_notes or ''}\n\nCompletion: {data.notes}".strip()

    now = datetime.utcnow()
    done = await store.complete_task(task.id, agent_id, notes, files, now)
    if not done:
        raise HTTPException(status_code=409, detail="Task changed while completing; fetch it and retry")

    logger.info("task_completed", task_id=task_id, agent_id=data.agent_id, files=len(files))
    return TaskWorkResponse(
        message="Task completed and sent to review",
        data=TaskWorkData(task=TaskResponse.model_validate(done), at=now),
    )
