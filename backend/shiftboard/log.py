"""Structured logging setup and the PII redaction policy applied to every event."""

import re

import structlog

EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def redact_email(value: str) -> str:
    """Partially redact an address: ``kenneth@example.com`` -> ``ken***@example.com``."""
    if not isinstance(value, str) or "@" not in value:
        return value
    local, _, domain = value.rpartition("@")
    visible = local[:3] if len(local) > 3 else local[:1]
    return f"{visible}***@{domain}"


def _redact_value(value):
    if isinstance(value, str) and EMAIL_RE.fullmatch(value.strip()):
        return redact_email(value.strip())
    if isinstance(value, (list, tuple)):
        return [_redact_value(v) for v in value]
    return value


def redact_pii(logger, method_name, event_dict: dict) -> dict:
    """structlog processor: redact every value that is an e-mail address, whatever its key."""
    for key, value in event_dict.items():
        if key != "event":
            event_dict[key] = _redact_value(value)
    return event_dict


def configure_logging(debug: bool = False) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            redact_pii,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
