"""Intake token workflow - issue, redeem and submit single-use questionnaire links.

Token lifecycle: issued -> consumed | expired. Consumption is a single
conditional update in the database, so two concurrent submissions of the
same token cannot both succeed.
"""

import re
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

import structlog

from shiftboard.config import settings
from shiftboard.schemas.intake import IntakeSubmission
from shiftboard.services.outcome import Outcome
from shiftboard.services.store import Store, StoreError

logger = structlog.get_logger()

# Used, expired and unknown tokens all get the same answer
INVALID_LINK_MESSAGE = "This intake link has expired"

_COMPANY_LINE_RE = re.compile(r"^Company:\s*(.+)$", re.MULTILINE)


class IntakeError(Exception):
    pass


class IntakeLinkInvalid(IntakeError):
    def __init__(self, message: str = INVALID_LINK_MESSAGE):
        super().__init__(message)


class LeadNotFound(IntakeError):
    pass


class TokenState(str, Enum):
    ISSUED = "issued"
    CONSUMED = "consumed"
    EXPIRED = "expired"


@dataclass
class IssuedToken:
    token: str
    intake_url: str
    expires_at: datetime
    reused: bool
    lead: object


@dataclass
class SubmitResult:
    saved_to_db: bool
    succeeded: bool
    lead_id: uuid.UUID | None = None
    steps: dict = field(default_factory=dict)


def generate_token() -> str:
    """64 hex chars of CSPRNG output."""
    return secrets.token_hex(32)


def build_intake_url(token: str) -> str:
    return f"{settings.site_url.rstrip('/')}/intake/{token}"


def token_state(row, now: datetime) -> TokenState | None:
    """State of a stored token row, or None for an unknown token."""
    if row is None:
        return None
    if row.used:
        return TokenState.CONSUMED
    if row.expires_at <= now:
        return TokenState.EXPIRED
    return TokenState.ISSUED


def company_from_message(message: str | None) -> str:
    """Contact-form leads carry the company as a ``Company: ...`` line in the message."""
    if not message:
        return ""
    match = _COMPANY_LINE_RE.search(message)
    return match.group(1).strip() if match else ""


async def issue_token(store: Store, lead_id, expires_in_days: int, now: datetime | None = None) -> IssuedToken:
    """Issue a link for a lead, or return the one that is still valid."""
    now = now or datetime.utcnow()
    lead = await store.get_lead(lead_id)
    if not lead:
        raise LeadNotFound("Lead not found")

    row, reused = await store.issue_intake_token(
        lead.id, generate_token(), now + timedelta(days=expires_in_days), now
    )
    if reused:
        logger.info("intake_token_reused", lead_id=str(lead.id))
    else:
        logger.info("intake_token_issued", lead_id=str(lead.id), expires_at=row.expires_at.isoformat())
    return IssuedToken(row.token, build_intake_url(row.token), row.expires_at, reused, lead)


async def redeem(store: Store, token: str, now: datetime | None = None) -> dict:
    """Prefill data for an issued token. Anything else raises IntakeLinkInvalid."""
    now = now or datetime.utcnow()
    row = await store.get_intake_token(token)
    state = token_state(row, now)
    if state is not TokenState.ISSUED:
        logger.info("intake_link_rejected", state=state.value if state else "unknown")
        raise IntakeLinkInvalid()

    lead = await store.get_lead(row.lead_id)
    if not lead:
        return {"name": "", "email": "", "company": ""}
    return {
        "name": lead.name or "",
        "email": lead.email or "",
        "company": lead.company or company_from_message(lead.message),
    }


async def submit(store: Store, dispatcher, submission: IntakeSubmission, now: datetime | None = None) -> SubmitResult:
    """Consume the token, then fan out to the record, webhook and e-mail channels.

    The database record and the admin e-mail are redundant channels; the
    submission fails only when both do.
    """
    now = now or datetime.utcnow()
    outcome = Outcome("intake_submission")
    answers = submission.answers()

    lead_id = None
    store_reachable = True
    try:
        lead_id = await store.consume_intake_token(submission.token, now)
    except StoreError as e:
        store_reachable = False
        logger.error("intake_store_unavailable", error=str(e))
    else:
        if lead_id is None:
            logger.info("intake_submit_rejected")
            raise IntakeLinkInvalid()

    lead = None
    if store_reachable:
        await outcome.run(
            "submission_record",
            lambda: store.record_intake_submission(lead_id, submission.token, answers),
            primary=True,
        )
        await outcome.run("lead_answers", lambda: store.record_intake_answers(lead_id, answers, now))
        lead = await outcome.run("lead_lookup", lambda: store.get_lead(lead_id))
    else:
        outcome.skip("submission_record", "store unavailable", primary=True)

    summary = {
        **answers,
        "name": submission.name or (lead.name if lead else ""),
        "email": submission.email or (lead.email if lead else ""),
        "company": submission.company or (lead.company if lead else None),
    }

    if settings.intake_webhook_url:
        webhook_payload = {
            "event": "intake_submitted",
            **submission.model_dump(by_alias=True),
            "answers": answers,
            "lead_id": str(lead_id) if lead_id else None,
            "submitted_at": now.isoformat(),
        }
        await outcome.run(
            "automation_webhook",
            lambda: dispatcher.post_webhook(settings.intake_webhook_url, webhook_payload),
        )

    await outcome.run("admin_email", lambda: dispatcher.intake_submitted(summary), primary=True)
    outcome.log()

    return SubmitResult(
        saved_to_db=outcome.ok("submission_record"),
        succeeded=outcome.succeeded,
        lead_id=lead_id,
        steps=outcome.summary(),
    )
