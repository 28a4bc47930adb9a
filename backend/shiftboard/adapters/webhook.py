"""Outbound automation webhook adapter (httpx)."""

import httpx
import structlog

from shiftboard.config import settings

logger = structlog.get_logger()


async def post_json(url: str, payload: dict, timeout: float | None = None) -> bool:
    """POST a JSON payload. Returns False (and logs) on any failure; never raises."""
    if not url:
        logger.info("webhook_skipped_no_url", webhook_event=payload.get("event"))
        return False

    try:
        async with httpx.AsyncClient(timeout=timeout or settings.http_timeout) as client:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
        logger.info("webhook_sent", webhook_event=payload.get("event"), status_code=resp.status_code)
        return True
    except Exception as e:
        logger.error("webhook_failed", webhook_event=payload.get("event"), error=str(e))
        return False
