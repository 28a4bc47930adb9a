"""Lead and contact-form schemas."""

import uuid
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator

from shiftboard.models.lead import LEAD_SOURCES, LEAD_STATUSES, LEAD_TIERS
from shiftboard.schemas.common import NonEmptyStr, Pagination, normalize_email, validate_uuid


class ContactRequest(BaseModel):
    """Public contact form."""
    name: NonEmptyStr = Field(..., max_length=255)
    email: NonEmptyStr = Field(..., max_length=255)
    message: NonEmptyStr = Field(..., max_length=10000)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class ContactResponse(BaseModel):
    success: bool
    message: str
    lead_id: Optional[uuid.UUID] = None
    steps: dict[str, bool]


class LeadCreate(BaseModel):
    name: NonEmptyStr = Field(..., max_length=255)
    email: NonEmptyStr = Field(..., max_length=255)
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    source: str = "website"

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("source", mode="before")
    @classmethod
    def default_source(cls, v: Any) -> str:
        return v if v in LEAD_SOURCES else "website"

    @field_validator("company", "phone", "message")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class LeadUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied."""
    status: Optional[str] = None
    tier: Optional[str] = None
    ai_assessment: Optional[dict] = None
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    answers: Optional[dict] = None

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        if v not in LEAD_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(LEAD_STATUSES)}")
        return v

    @field_validator("tier", mode="before")
    @classmethod
    def check_tier(cls, v: Any) -> Optional[str]:
        if v is not None and v not in LEAD_TIERS:
            raise ValueError(f"Invalid tier. Must be one of: {', '.join(LEAD_TIERS)} or null")
        return v

    @field_validator("ai_assessment", mode="before")
    @classmethod
    def check_assessment(cls, v: Any) -> Optional[dict]:
        if v is not None and not isinstance(v, dict):
            raise ValueError("ai_assessment must be an object or null")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Name must be a non-empty string")
        return v.strip()

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator("company", "phone", "message", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("Must be a string or null")
        return v.strip() or None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class LeadResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    company: Optional[str]
    phone: Optional[str]
    message: Optional[str]
    source: Optional[str]
    status: str
    tier: Optional[str]
    ai_assessment: Optional[dict]
    answers: Optional[dict]
    intake_completed: Optional[bool]
    intake_completed_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class LeadListResponse(BaseModel):
    data: list[LeadResponse]
    pagination: Pagination


class ClassifyRequest(BaseModel):
    lead_id: NonEmptyStr

    @field_validator("lead_id")
    @classmethod
    def check_lead_id(cls, v: str) -> str:
        return validate_uuid(v, "lead_id")


class ClassifyMetadata(BaseModel):
    used_fallback: bool
    duration_ms: int
    classified_at: str


class ClassifyResponse(BaseModel):
    success: bool = True
    message: str
    data: LeadResponse
    classification: dict
    metadata: ClassifyMetadata
