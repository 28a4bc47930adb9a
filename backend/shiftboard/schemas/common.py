"""Common request/response schemas and shared field types."""

import re
from typing import Annotated, Optional

from pydantic import BaseModel, StringConstraints

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)
LEAD_ID_RE = re.compile(r"^(\d+|[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12})$", re.IGNORECASE)

# Required, non-blank text; blank values are reported as missing
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def normalize_email(value: str) -> str:
    """Trim, lower-case and validate an e-mail address. Raises ValueError."""
    email = value.strip().lower() if isinstance(value, str) else ""
    if not EMAIL_RE.match(email):
        raise ValueError("Invalid email format")
    return email


def validate_uuid(value: str, field: str) -> str:
    if not isinstance(value, str) or not UUID_RE.match(value.strip()):
        raise ValueError(f"Invalid {field} format")
    return value.strip().lower()


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(total=total, limit=limit, offset=offset, has_more=offset + limit < total)


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    version: str = "1.0.0"
    db: str
    email: str
    classifier: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    details: Optional[dict] = None
