"""Email adapter - SMTP delivery via aiosmtplib."""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib
import structlog

from shiftboard.config import settings

logger = structlog.get_logger()


def smtp_configured() -> bool:
    return bool(settings.smtp_host) and settings.smtp_host != "localhost"


def build_message(
    to_email: str,
    subject: str,
    body_html: str,
    from_email: str | None = None,
    reply_to: str | None = None,
) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_email or settings.email_from
    msg["To"] = to_email
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(body_html, "html"))
    return msg


async def send_email(
    to_email: str,
    subject: str,
    body_html: str,
    from_email: str | None = None,
    reply_to: str | None = None,
) -> bool:
    """Send an HTML email. Returns False (and logs) on any failure; never raises.

    Args:
        to_email: Recipient address
        subject: Email subject
        body_html: HTML body content
        from_email: Sender address (defaults to settings.email_from)
        reply_to: Optional Reply-To header
    """
    if not smtp_configured():
        logger.info("email_skipped_smtp_not_configured", to=to_email, subject=subject)
        return False

    msg = build_message(to_email, subject, body_html, from_email=from_email, reply_to=reply_to)

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user or None,
            password=settings.smtp_password or None,
            start_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )
        logger.info("email_sent", to=to_email, subject=subject)
        return True
    except Exception as e:
        logger.error("email_send_failed", error=str(e), to=to_email, subject=subject)
        return False
