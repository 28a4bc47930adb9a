"""Inbound automation webhook - callbacks from the external automation platform."""

import hmac
import time
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException

from shiftboard.api.health import ERRORS
from shiftboard.config import settings
from shiftboard.models.lead import LEAD_SOURCES, LEAD_STATUSES
from shiftboard.schemas.common import UUID_RE, normalize_email
from shiftboard.schemas.lead import LeadResponse
from shiftboard.schemas.webhook import WEBHOOK_ACTIONS, AutomationWebhookPayload, WebhookResponse
from shiftboard.services.classifier import LeadClassifier, classify_and_update, get_classifier
from shiftboard.services.store import ConflictError, Store, StoreError, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def verify_automation_secret(x_automation_secret: str | None = Header(None)) -> None:
    """Shared-secret check. With no secret configured the endpoint is open (development)."""
    secret = settings.automation_webhook_secret
    if not secret:
        logger.warning("automation_webhook_secret_not_configured")
        return
    if not x_automation_secret or not hmac.compare_digest(x_automation_secret, secret):
        ERRORS.labels(type="webhook_auth").inc()
        raise HTTPException(status_code=401, detail="Unauthorized - invalid webhook secret")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _lead_dict(lead) -> dict:
    return LeadResponse.model_validate(lead).model_dump(mode="json")


@router.get("/automation")
async def automation_webhook_status():
    return {
        "status": "active",
        "endpoint": f"{settings.api_prefix}/webhooks/automation",
        "supported_actions": list(WEBHOOK_ACTIONS),
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.post("/automation", response_model=WebhookResponse, response_model_exclude_none=True)
async def automation_webhook(
    payload: AutomationWebhookPayload,
    _: None = Depends(verify_automation_secret),
    store: Store = Depends(get_store),
    classifier: LeadClassifier = Depends(get_classifier),
):
    start = time.monotonic()
    action = payload.action
    logger.info("automation_webhook_received", action=action, has_lead=payload.lead is not None)

    if action == "ping":
        return WebhookResponse(success=True, action="ping", message="Webhook is active")

    if action == "classify":
        if not payload.lead_id:
            raise HTTPException(status_code=400, detail="lead_id is required for classify action")
        lead = await store.get_lead(payload.lead_id) if UUID_RE.match(payload.lead_id) else None
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")

        lead, classification, metadata = await classify_and_update(store, classifier, lead)
        return WebhookResponse(
            success=True,
            action="classify",
            lead=_lead_dict(lead),
            classification=classification.model_dump(),
            used_fallback=metadata["used_fallback"],
            duration_ms=_elapsed_ms(start),
        )

    if action == "create_and_classify":
        data = payload.lead
        if data is None:
            raise HTTPException(status_code=400, detail="lead object is required for create_and_classify action")
        if not (data.name or "").strip() or not (data.email or "").strip():
            raise HTTPException(status_code=400, detail="name and email are required in lead object")
        try:
            email = normalize_email(data.email)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            lead = await store.create_lead(
                name=data.name.strip(),
                email=email,
                company=(data.company or "").strip() or None,
                phone=(data.phone or "").strip() or None,
                message=(data.message or "").strip() or None,
                source=data.source if data.source in LEAD_SOURCES else "website",
                status="incoming",
                tier=None,
                answers=data.answers,
                ai_assessment=None,
            )
        except ConflictError:
            raise HTTPException(status_code=409, detail="A lead with this email already exists")

        try:
            lead, classification, metadata = await classify_and_update(store, classifier, lead)
        except StoreError as e:
            # The lead exists; only the classification write failed
            logger.error("webhook_classification_update_failed", lead_id=str(lead.id), error=str(e))
            return WebhookResponse(
                success=True,
                action="create_and_classify",
                warning="Lead created but classification update failed",
                lead=_lead_dict(lead),
                duration_ms=_elapsed_ms(start),
            )

        logger.info("webhook_lead_created", lead_id=str(lead.id), tier=classification.tier)
        return WebhookResponse(
            success=True,
            action="create_and_classify",
            lead=_lead_dict(lead),
            classification=classification.model_dump(),
            used_fallback=metadata["used_fallback"],
            duration_ms=_elapsed_ms(start),
        )

    if action == "status_update":
        if not payload.lead_id or not payload.status:
            raise HTTPException(status_code=400, detail="lead_id and status are required for status_update action")
        if payload.status not in LEAD_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(LEAD_STATUSES)}")
        lead = await store.update_lead(payload.lead_id, {"status": payload.status})
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        return WebhookResponse(
            success=True,
            action="status_update",
            lead=_lead_dict(lead),
            duration_ms=_elapsed_ms(start),
        )

    raise HTTPException(
        status_code=400,
        detail=f"Unknown action: {action}. Valid actions: {', '.join(WEBHOOK_ACTIONS)}",
    )
