"""Notification dispatcher - templated e-mail plus outbound automation webhooks.

Every send is best-effort: failures are logged and reported as ``False``,
never raised into the request that triggered them.
"""

import html
from enum import Enum

import structlog

from shiftboard.adapters import email as email_adapter
from shiftboard.adapters import webhook as webhook_adapter
from shiftboard.api.health import NOTIFICATIONS
from shiftboard.config import settings

logger = structlog.get_logger()


class NotificationType(str, Enum):
    LEAD_ALERT = "lead_alert"
    CONTACT_CONFIRMATION = "contact_confirmation"
    DELIVERABLE_READY = "deliverable_ready"
    FEEDBACK_RECEIVED = "feedback_received"
    INTAKE_SUBMITTED = "intake_submitted"


def _e(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def _wrap(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{_e(title)}</title></head>"
        "<body style=\"font-family: -apple-system, Helvetica, Arial, sans-serif; line-height: 1.6;\">"
        f"<h2>{_e(title)}</h2>{body}"
        f"<p style=\"color: #888; font-size: 12px;\">{_e(settings.app_name)}</p>"
        "</body></html>"
    )


def format_lead_alert(payload: dict) -> tuple[str, str]:
    subject = f"New Lead: {payload.get('name', 'Unknown')}"
    rows = [
        f"<p><strong>Name:</strong> {_e(payload.get('name'))}</p>",
        f"<p><strong>Email:</strong> <a href=\"mailto:{_e(payload.get('email'))}\">{_e(payload.get('email'))}</a></p>",
    ]
    if payload.get("company"):
        rows.append(f"<p><strong>Company:</strong> {_e(payload['company'])}</p>")
    if payload.get("source"):
        rows.append(f"<p><strong>Source:</strong> {_e(payload['source'])}</p>")
    if payload.get("tier"):
        rows.append(f"<p><strong>Tier:</strong> {_e(payload['tier'])}</p>")
    rows.append(f"<p><strong>Message:</strong></p><p style=\"white-space: pre-wrap;\">{_e(payload.get('message'))}</p>")
    return subject, _wrap("New Contact Form Submission", "".join(rows))


def format_contact_confirmation(payload: dict) -> tuple[str, str]:
    first_name = (payload.get("name") or "there").split(" ")[0]
    body = (
        f"<p>Hi {_e(first_name)},</p>"
        "<p>Thanks for reaching out. We received your message and will get back to you shortly.</p>"
    )
    return "We got your message!", _wrap("Thanks for reaching out", body)


def format_deliverable_ready(payload: dict) -> tuple[str, str]:
    name = payload.get("deliverable_name", "New deliverable")
    body = (
        f"<p>A new deliverable is ready for your review: <strong>{_e(name)}</strong></p>"
        f"<p>Project: {_e(payload.get('project_name'))}</p>"
    )
    if payload.get("portal_url"):
        body += f"<p><a href=\"{_e(payload['portal_url'])}\">Review it in your portal</a></p>"
    return f"Review Requested: {name}", _wrap("Review Requested", body)


def format_feedback_received(payload: dict) -> tuple[str, str]:
    client = payload.get("client_name", "Client")
    deliverable = payload.get("deliverable_name", "deliverable")
    body = (
        f"<p><strong>{_e(client)}</strong> left feedback on <strong>{_e(deliverable)}</strong>:</p>"
        f"<blockquote style=\"white-space: pre-wrap;\">{_e(payload.get('content'))}</blockquote>"
    )
    return f"Feedback from {client}: {deliverable}", _wrap("New Client Feedback", body)


def _with_other(value, other) -> str:
    if isinstance(value, list):
        text = ", ".join(str(v) for v in value)
        if "other" in value and other:
            text += f" ({other})"
        return text
    if value == "other" and other:
        return f"Other: {other}"
    return "" if value is None else str(value)


def format_intake_summary(data: dict) -> str:
    """Plain-text questionnaire summary for the admin inbox."""
    return "\n".join([
        "FULL INTAKE QUESTIONNAIRE SUBMITTED",
        "",
        "=== Contact Info ===",
        f"Name: {data.get('name', '')}",
        f"Email: {data.get('email', '')}",
        f"Company: {data.get('company') or 'Not provided'}",
        "",
        "=== About Them ===",
        f"Role: {data.get('role', '')}",
        f"Company Size: {data.get('company_size', '')}",
        f"Industry: {_with_other(data.get('industry'), data.get('industry_other'))}",
        "",
        "=== Project Details ===",
        f"Needs: {_with_other(data.get('project_type'), data.get('project_type_other'))}",
        f"Vision Clarity: {data.get('vision_clarity', '')}",
        "",
        "=== Timeline & Budget ===",
        f"Timeline: {data.get('timeline', '')}",
        f"Budget: {data.get('budget', '')}",
        f"Decision Maker: {data.get('decision_maker', '')}",
        "",
        "=== Current Situation ===",
        f"Current Tools: {data.get('current_tools', '')}",
        f"Biggest Frustration: {_with_other(data.get('frustration'), data.get('frustration_other'))}",
        f"Past Dev Experience: {data.get('past_experience', '')}",
        "",
        "=== Success Criteria ===",
        f"\"{data.get('success_criteria', '')}\"",
        "",
        "=== Lead Source ===",
        _with_other(data.get("source"), data.get("source_other")),
    ])


def format_intake_submitted(payload: dict) -> tuple[str, str]:
    subject = f"Intake Submitted: {payload.get('name', 'Unknown')}"
    if payload.get("company"):
        subject += f" ({payload['company']})"
    body = f"<pre style=\"white-space: pre-wrap;\">{_e(format_intake_summary(payload))}</pre>"
    return subject, _wrap("Intake Questionnaire Submitted", body)


FORMATTERS = {
    NotificationType.LEAD_ALERT: format_lead_alert,
    NotificationType.CONTACT_CONFIRMATION: format_contact_confirmation,
    NotificationType.DELIVERABLE_READY: format_deliverable_ready,
    NotificationType.FEEDBACK_RECEIVED: format_feedback_received,
    NotificationType.INTAKE_SUBMITTED: format_intake_submitted,
}

# Types delivered to the admin inbox with Reply-To set to the originating person
ADMIN_TYPES = {NotificationType.LEAD_ALERT, NotificationType.FEEDBACK_RECEIVED, NotificationType.INTAKE_SUBMITTED}


class NotificationDispatcher:
    """Sends templated notifications. Methods return a bool and never raise."""

    def __init__(self, admin_email: str | None = None):
        self.admin_email = admin_email or settings.admin_email

    def _recipient(self, kind: NotificationType, payload: dict) -> tuple[str | None, str | None]:
        if kind in ADMIN_TYPES:
            return self.admin_email, payload.get("email")
        if kind == NotificationType.DELIVERABLE_READY:
            return payload.get("client_email"), None
        return payload.get("email"), None

    async def dispatch(self, kind: NotificationType | str, payload: dict) -> bool:
        try:
            kind = NotificationType(kind)
            subject, body = FORMATTERS[kind](payload)
            to_email, reply_to = self._recipient(kind, payload)
            if not to_email:
                logger.info("notification_skipped_no_recipient", kind=kind.value)
                ok = False
            else:
                ok = await email_adapter.send_email(to_email, subject, body, reply_to=reply_to)
        except Exception as e:
            logger.error("notification_failed", kind=str(kind), error=str(e))
            ok = False

        NOTIFICATIONS.labels(channel="email", result="sent" if ok else "failed").inc()
        return ok

    async def post_webhook(self, url: str, payload: dict) -> bool:
        try:
            ok = await webhook_adapter.post_json(url, payload)
        except Exception as e:
            logger.error("webhook_dispatch_failed", error=str(e))
            ok = False
        NOTIFICATIONS.labels(channel="webhook", result="sent" if ok else "failed").inc()
        return ok

    async def lead_alert(self, name: str, email: str, message: str, **extra) -> bool:
        return await self.dispatch(NotificationType.LEAD_ALERT, {"name": name, "email": email, "message": message, **extra})

    async def contact_confirmation(self, name: str, email: str) -> bool:
        return await self.dispatch(NotificationType.CONTACT_CONFIRMATION, {"name": name, "email": email})

    async def deliverable_ready(self, client_email: str, deliverable_name: str, project_name: str, portal_url: str | None = None) -> bool:
        return await self.dispatch(NotificationType.DELIVERABLE_READY, {
            "client_email": client_email,
            "deliverable_name": deliverable_name,
            "project_name": project_name,
            "portal_url": portal_url,
        })

    async def feedback_received(self, client_name: str, deliverable_name: str, content: str, email: str | None = None) -> bool:
        return await self.dispatch(NotificationType.FEEDBACK_RECEIVED, {
            "client_name": client_name,
            "deliverable_name": deliverable_name,
            "content": content,
            "email": email,
        })

    async def intake_submitted(self, summary: dict) -> bool:
        return await self.dispatch(NotificationType.INTAKE_SUBMITTED, summary)


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency."""
    return NotificationDispatcher()
