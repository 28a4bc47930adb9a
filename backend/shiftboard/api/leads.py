"""Lead CRUD and classification endpoints (staff only)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shiftboard.middleware.auth import require_staff
from shiftboard.models.lead import LEAD_STATUSES, LEAD_TIERS
from shiftboard.schemas.common import LEAD_ID_RE, Pagination, MessageResponse
from shiftboard.schemas.lead import (
    ClassifyRequest, ClassifyResponse, ClassifyMetadata,
    LeadCreate, LeadListResponse, LeadResponse, LeadUpdate,
)
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.classifier import LeadClassifier, classify_and_update, get_classifier
from shiftboard.services.store import ConflictError, Store, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/leads", tags=["leads"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def _check_lead_id(lead_id: str) -> None:
    if not LEAD_ID_RE.match(lead_id):
        raise HTTPException(status_code=400, detail="Invalid lead ID format")


@router.get("", response_model=LeadListResponse)
async def list_leads(
    status: Optional[str] = Query(None),
    tier: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_LIMIT),
    offset: int = Query(0),
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """List leads, newest first."""
    if status and status not in LEAD_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(LEAD_STATUSES)}")
    if tier and tier not in LEAD_TIERS:
        raise HTTPException(status_code=400, detail=f"Invalid tier. Must be one of: {', '.join(LEAD_TIERS)}")

    limit = min(limit, MAX_LIMIT) if limit > 0 else DEFAULT_LIMIT
    offset = max(offset, 0)

    rows, total = await store.list_leads(status=status, tier=tier, limit=limit, offset=offset)
    return LeadListResponse(
        data=[LeadResponse.model_validate(r) for r in rows],
        pagination=Pagination.build(total, limit, offset),
    )


@router.post("", response_model=LeadResponse, status_code=201)
async def create_lead(
    data: LeadCreate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    try:
        lead = await store.create_lead(
            name=data.name,
            email=data.email,
            company=data.company,
            phone=data.phone,
            message=data.message,
            source=data.source,
            status="incoming",
            tier=None,
            ai_assessment=None,
        )
    except ConflictError:
        raise HTTPException(status_code=409, detail="A lead with this email already exists")

    logger.info("lead_created", lead_id=str(lead.id), source=lead.source, actor=user.email)
    return LeadResponse.model_validate(lead)


@router.post("/classify", response_model=ClassifyResponse)
async def classify_lead(
    data: ClassifyRequest,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
    classifier: LeadClassifier = Depends(get_classifier),
):
    """Run the classifier on an existing lead and persist the result."""
    lead = await store.get_lead(data.lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    lead, classification, metadata = await classify_and_update(store, classifier, lead)
    return ClassifyResponse(
        message=f"Lead classified as {classification.tier}",
        data=LeadResponse.model_validate(lead),
        classification=classification.model_dump(),
        metadata=ClassifyMetadata(**metadata),
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    _check_lead_id(lead_id)
    lead = await store.get_lead(lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return LeadResponse.model_validate(lead)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    _check_lead_id(lead_id)
    changes = data.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields provided for update")

    try:
        lead = await store.update_lead(lead_id, changes)
    except ConflictError:
        raise HTTPException(status_code=409, detail="A lead with this email already exists")
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    logger.info("lead_updated", lead_id=str(lead.id), fields=sorted(changes), actor=user.email)
    return LeadResponse.model_validate(lead)


@router.delete("/{lead_id}", response_model=MessageResponse)
async def delete_lead(
    lead_id: str,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    _check_lead_id(lead_id)
    if not await store.get_lead(lead_id):
        raise HTTPException(status_code=404, detail="Lead not found")

    await store.delete_lead(lead_id)
    logger.info("lead_deleted", lead_id=lead_id, actor=user.email)
    return MessageResponse(message="Lead deleted successfully")
