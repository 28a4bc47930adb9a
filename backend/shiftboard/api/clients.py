"""Client CRUD endpoints (staff only)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.middleware.auth import require_staff
from shiftboard.models.project import CLIENT_STATUSES
from shiftboard.schemas.common import UUID_RE, MessageResponse, Pagination
from shiftboard.schemas.project import ClientCreate, ClientListResponse, ClientResponse, ClientUpdate
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.store import ConflictError, ReferenceNotFoundError, Store, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/clients", tags=["clients"])

DUPLICATE = "A client with this email or slug already exists"


def check_id(value: str, label: str) -> None:
    """400 unless the path id is a UUID."""
    if not UUID_RE.match(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")


@router.get("", response_model=ClientListResponse)
async def list_clients(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    if status and status not in CLIENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(CLIENT_STATUSES)}")

    rows, total = await store.list_clients(status=status, limit=limit, offset=offset)
    return ClientListResponse(
        data=[ClientResponse.model_validate(r) for r in rows],
        pagination=Pagination.build(total, limit, offset),
    )


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    try:
        client = await store.create_client(**data.fields())
    except ConflictError:
        raise HTTPException(status_code=409, detail=DUPLICATE)

    logger.info("client_created", client_id=str(client.id), actor=user.email)
    return ClientResponse.model_validate(client)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(client_id, "client")
    client = await store.get_client(client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return ClientResponse.model_validate(client)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    data: ClientUpdate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(client_id, "client")
    changes = data.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields provided for update")

    try:
        client = await store.update_client(client_id, changes)
    except ConflictError:
        raise HTTPException(status_code=409, detail=DUPLICATE)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    logger.info("client_updated", client_id=client_id, fields=sorted(changes), actor=user.email)
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", response_model=MessageResponse)
async def delete_client(
    client_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    check_id(client_id, "client")
    try:
        deleted = await store.delete_client(client_id)
    except ReferenceNotFoundError:
        raise HTTPException(status_code=409, detail="Client still has projects or feedback")
    if not deleted:
        raise HTTPException(status_code=404, detail="Client not found")

    logger.info("client_deleted", client_id=client_id, actor=user.email)
    return MessageResponse(message="Client deleted successfully")
