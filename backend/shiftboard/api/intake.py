"""Intake questionnaire endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from shiftboard.middleware.auth import require_staff
from shiftboard.schemas.intake import (
    CreateTokenRequest, CreateTokenResponse, IntakePrefill,
    IntakeSubmission, IntakeSubmitResponse, LeadSummary,
)
from shiftboard.services import intake
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.notifications import NotificationDispatcher, get_dispatcher
from shiftboard.services.store import Store, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/intake", tags=["intake"])


@router.post("/create-token", response_model=CreateTokenResponse)
async def create_token(
    data: CreateTokenRequest,
    user: AuthenticatedUser = Depends(require_staff),
    store: Store = Depends(get_store),
):
    """Issue a questionnaire link for a lead. Returns the existing link while one is valid."""
    try:
        issued = await intake.issue_token(store, data.lead_id, data.expires_in_days)
    except intake.LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")

    lead = issued.lead
    return CreateTokenResponse(
        token=issued.token,
        intake_url=issued.intake_url,
        expires_at=issued.expires_at,
        reused=issued.reused,
        lead=LeadSummary(id=lead.id, name=lead.name, email=lead.email, company=lead.company),
    )


@router.post("/submit", response_model=IntakeSubmitResponse)
async def submit_intake(
    data: IntakeSubmission,
    store: Store = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    try:
        result = await intake.submit(store, dispatcher, data)
    except intake.IntakeLinkInvalid as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not result.succeeded:
        raise HTTPException(status_code=500, detail="Failed to submit intake")

    return IntakeSubmitResponse(
        success=True,
        message="Intake submitted successfully",
        saved_to_db=result.saved_to_db,
    )


@router.get("/{token}", response_model=IntakePrefill)
async def get_intake(token: str, store: Store = Depends(get_store)):
    """Prefill data for the public questionnaire form."""
    try:
        prefill = await intake.redeem(store, token)
    except intake.IntakeLinkInvalid as e:
        raise HTTPException(status_code=404, detail=str(e))
    return IntakePrefill(**prefill)
