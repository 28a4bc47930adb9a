"""Health check and metrics endpoints."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST

from shiftboard.adapters.email import smtp_configured
from shiftboard.config import settings
from shiftboard.schemas.common import HealthResponse
from shiftboard.services.store import Store, StoreError, get_store

router = APIRouter(tags=["health"])

# Prometheus metrics
CONTACT_SUBMISSIONS = Counter("contact_submissions_total", "Contact form submissions", ["result"])
CLASSIFICATIONS = Counter("lead_classifications_total", "Lead classifications", ["source", "tier"])
NOTIFICATIONS = Counter("notifications_total", "Notification attempts", ["channel", "result"])
LOGIN_ATTEMPTS = Counter("login_attempts_total", "Login attempts", ["result"])
ERRORS = Counter("errors_total", "Total errors", ["type"])


@router.get("/health", response_model=HealthResponse)
async def health_check(store: Store = Depends(get_store)):
    """Health check endpoint."""
    db_status = "ok"
    if not store.is_configured:
        db_status = "disabled"
    else:
        try:
            await store.ping()
        except StoreError:
            db_status = "error"

    return HealthResponse(
        status="healthy" if db_status == "ok" else "degraded",
        db=db_status,
        email="ok" if smtp_configured() else "disabled",
        classifier="ok" if settings.anthropic_api_key else "heuristic",
    )


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
