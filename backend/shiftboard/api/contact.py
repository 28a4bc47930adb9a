"""Public contact form endpoint."""

from fastapi import APIRouter, Depends, HTTPException

from shiftboard.api.health import CONTACT_SUBMISSIONS
from shiftboard.config import settings
from shiftboard.schemas.lead import ContactRequest, ContactResponse
from shiftboard.services.classifier import LeadClassifier, classify_and_update, get_classifier
from shiftboard.services.notifications import NotificationDispatcher, get_dispatcher
from shiftboard.services.outcome import Outcome
from shiftboard.services.store import ConflictError, Store, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("", response_model=ContactResponse, status_code=201)
async def submit_contact(
    data: ContactRequest,
    store: Store = Depends(get_store),
    classifier: LeadClassifier = Depends(get_classifier),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Record the message, open a lead, classify it and notify.

    The stored copy and the admin alert are redundant channels: the request
    succeeds if either one lands.
    """
    outcome = Outcome("contact")

    await outcome.run(
        "contact_submission",
        lambda: store.record_contact_submission(data.name, data.email, data.message),
        primary=True,
    )

    async def create_lead():
        try:
            return await store.create_lead(
                name=data.name,
                email=data.email,
                message=data.message,
                source="website",
                status="incoming",
            )
        except ConflictError:
            # Returning visitor; the existing lead keeps its tier and status
            logger.info("contact_lead_exists", email=data.email)
            return None

    lead = await outcome.run("lead", create_lead)

    tier = None
    if lead is not None:
        classified = await outcome.run("classification", lambda: classify_and_update(store, classifier, lead))
        if classified:
            lead, classification, _ = classified
            tier = classification.tier

    await outcome.run(
        "lead_notification",
        lambda: dispatcher.lead_alert(data.name, data.email, data.message, source="website", tier=tier),
        primary=True,
    )
    await outcome.run("confirmation_email", lambda: dispatcher.contact_confirmation(data.name, data.email))

    if settings.automation_webhook_url:
        await outcome.run(
            "automation_webhook",
            lambda: dispatcher.post_webhook(settings.automation_webhook_url, {
                "event": "contact_submitted",
                "name": data.name,
                "email": data.email,
                "message": data.message,
                "lead_id": str(lead.id) if lead is not None else None,
                "tier": tier,
            }),
        )

    outcome.log()
    CONTACT_SUBMISSIONS.labels(result="ok" if outcome.succeeded else "failed").inc()

    if not outcome.succeeded:
        raise HTTPException(status_code=500, detail="Failed to submit form. Please try again or email us directly.")

    return ContactResponse(
        success=True,
        message="Thanks! We'll be in touch soon.",
        lead_id=lead.id if lead is not None else None,
        steps=outcome.summary(),
    )
