"""Deliverable endpoints - staff uploads, client approval."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.config import settings
from shiftboard.middleware.auth import get_current_user, require_staff
from shiftboard.models.deliverable import DELIVERABLE_STATUSES
from shiftboard.schemas.common import UUID_RE, Pagination
from shiftboard.schemas.deliverable import (
    DeliverableCreate, DeliverableCreateResponse, DeliverableListResponse, DeliverableResponse,
)
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.notifications import NotificationDispatcher, get_dispatcher
from shiftboard.services.store import ReferenceNotFoundError, Store, StoreError, as_uuid, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/deliverables", tags=["deliverables"])


@router.get("", response_model=DeliverableListResponse)
async def list_deliverables(
    project_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """List deliverables, most recently uploaded first."""
    if project_id and not UUID_RE.match(project_id):
        raise HTTPException(status_code=400, detail="Invalid project_id format")
    if status and status not in DELIVERABLE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(DELIVERABLE_STATUSES)}")

    rows, total = await store.list_deliverables(project_id=project_id, status=status, limit=limit, offset=offset)
    return DeliverableListResponse(
        data=[DeliverableResponse.model_validate(r) for r in rows],
        pagination=Pagination.build(total, limit, offset),
    )


async def owning_client(store: Store, deliverable):
    """The client whose project the deliverable belongs to, if any."""
    project = await store.get_project(deliverable.project_id)
    if not project or not project.client_id:
        return None
    return await store.get_client(project.client_id)


async def _notify_client(store: Store, dispatcher: NotificationDispatcher, deliverable) -> bool:
    """Tell the project's client a deliverable awaits review."""
    try:
        project = await store.get_project(deliverable.project_id)
        client = await store.get_client(project.client_id) if project and project.client_id else None
    except StoreError as e:
        logger.warning("deliverable_notify_lookup_failed", deliverable_id=str(deliverable.id), error=str(e))
        return False

    if not client or not client.email:
        logger.info("deliverable_notify_skipped_no_client", deliverable_id=str(deliverable.id))
        return False

    portal_url = f"{settings.portal_url.rstrip('/')}/{client.slug}" if client.slug else None
    return await dispatcher.deliverable_ready(client.email, deliverable.name, project.name, portal_url)


@router.post("", response_model=DeliverableCreateResponse, status_code=201)
async def create_deliverable(
    data: DeliverableCreate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    try:
        deliverable = await store.create_deliverable(
            project_id=as_uuid(data.project_id),
            task_id=as_uuid(data.task_id) if data.task_id else None,
            name=data.name,
            description=data.description,
            type=data.type,
            url=data.url,
            thumbnail_url=data.thumbnail_url,
            status=data.status,
            version=data.version,
            client_approved=False,
            uploaded_at=datetime.utcnow(),
        )
    except ReferenceNotFoundError:
        raise HTTPException(status_code=404, detail="Project or task not found")

    logger.info("deliverable_created", deliverable_id=str(deliverable.id), project_id=data.project_id, actor=user.email)

    notified = False
    if data.notify_client:
        notified = await _notify_client(store, dispatcher, deliverable)

    return DeliverableCreateResponse(
        data=DeliverableResponse.model_validate(deliverable),
        client_notified=notified,
    )


@router.post("/{deliverable_id}/approve", response_model=DeliverableResponse)
async def approve_deliverable(
    deliverable_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """Client sign-off on a deliverable. Clients may only approve their own project's work."""
    if not UUID_RE.match(deliverable_id):
        raise HTTPException(status_code=400, detail="Invalid deliverable ID format")

    deliverable = await store.get_deliverable(deliverable_id)
    if not deliverable:
        raise HTTPException(status_code=404, detail="Deliverable not found")

    if not user.is_staff:
        client = await owning_client(store, deliverable)
        if not client or client.slug != user.client_slug:
            raise HTTPException(status_code=403, detail="Not allowed to approve this deliverable")

    approved = await store.approve_deliverable(deliverable_id, approved_by=user.email, now=datetime.utcnow())
    logger.info("deliverable_approved", deliverable_id=deliverable_id, actor=user.email)
    return DeliverableResponse.model_validate(approved)
