"""Inbound automation webhook payload schemas."""

from typing import Optional

from pydantic import BaseModel, Field

WEBHOOK_ACTIONS = ("create_and_classify", "classify", "status_update", "ping")


class WebhookLead(BaseModel):
    """Lead data carried by a create_and_classify callback."""
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None
    answers: Optional[dict] = None


class AutomationWebhookPayload(BaseModel):
    """Callback from the external automation platform."""
    action: str = "create_and_classify"
    lead: Optional[WebhookLead] = None
    lead_id: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[dict] = None


class WebhookResponse(BaseModel):
    """Standard webhook response."""
    success: bool
    action: str
    message: Optional[str] = None
    warning: Optional[str] = None
    lead: Optional[dict] = None
    classification: Optional[dict] = None
    used_fallback: Optional[bool] = None
    duration_ms: int = Field(default=0)
