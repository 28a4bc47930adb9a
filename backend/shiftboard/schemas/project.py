"""Client, project and task admin schemas."""

import re
import uuid
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator

from shiftboard.models.project import CLIENT_STATUSES, PROJECT_STATUSES, TASK_STATUSES
from shiftboard.schemas.common import NonEmptyStr, Pagination, normalize_email, validate_uuid

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _optional_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValueError("Must be a string or null")
    return v.strip() or None


def _required_text(v: Any, label: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{label} must be a non-empty string")
    return v.strip()


def _choice(v: Any, choices: tuple[str, ...]) -> str:
    if v not in choices:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(choices)}")
    return v


def _slug(v: Any) -> Optional[str]:
    if v in (None, ""):
        return None
    if not isinstance(v, str) or not SLUG_RE.match(v.strip().lower()):
        raise ValueError("Slug may only contain lowercase letters, digits and hyphens")
    return v.strip().lower()


def _hours(v: Any) -> float:
    if v is None:
        return 0.0
    if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
        raise ValueError("Hours must be a positive number")
    return float(v)


# --- Clients ----------------------------------------------------------------

class ClientCreate(BaseModel):
    name: NonEmptyStr = Field(..., max_length=255)
    company: NonEmptyStr = Field(..., max_length=255)
    email: NonEmptyStr = Field(..., max_length=255)
    phone: Optional[str] = None
    status: str = "prospect"
    slug: Optional[str] = None
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> str:
        return v if v in CLIENT_STATUSES else "prospect"

    @field_validator("phone", "primary_color", "accent_color", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("slug", mode="before")
    @classmethod
    def check_slug(cls, v: Any) -> Optional[str]:
        return _slug(v)

    def fields(self) -> dict:
        """Column values, leaving unset colours to the model defaults."""
        return self.model_dump(exclude_none=True)


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    slug: Optional[str] = None
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: Any) -> str:
        return _required_text(v, "Name")

    @field_validator("company", mode="before")
    @classmethod
    def check_company(cls, v: Any) -> str:
        return _required_text(v, "Company")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        return _choice(v, CLIENT_STATUSES)

    @field_validator("phone", "primary_color", "accent_color", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("slug", mode="before")
    @classmethod
    def check_slug(cls, v: Any) -> Optional[str]:
        return _slug(v)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    company: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    status: Optional[str]
    slug: Optional[str]
    primary_color: Optional[str]
    accent_color: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ClientListResponse(BaseModel):
    data: list[ClientResponse]
    pagination: Pagination


# --- Projects ---------------------------------------------------------------

class ProjectCreate(BaseModel):
    name: NonEmptyStr = Field(..., max_length=255)
    client_id: Optional[str] = None
    description: Optional[str] = None
    status: str = "active"

    @field_validator("client_id", mode="before")
    @classmethod
    def check_client_id(cls, v: Any) -> Optional[str]:
        if v in (None, ""):
            return None
        return validate_uuid(v, "client_id")

    @field_validator("description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> str:
        return v if v in PROJECT_STATUSES else "active"


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client_id: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: Any) -> str:
        return _required_text(v, "Name")

    @field_validator("client_id", mode="before")
    @classmethod
    def check_client_id(cls, v: Any) -> Optional[str]:
        if v in (None, ""):
            return None
        return validate_uuid(v, "client_id")

    @field_validator("description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        return _choice(v, PROJECT_STATUSES)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ProjectResponse(BaseModel):
    id: uuid.UUID
    client_id: Optional[uuid.UUID]
    name: str
    description: Optional[str]
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    data: list[ProjectResponse]
    pagination: Pagination


# --- Tasks ------------------------------------------------------------------

class TaskCreate(BaseModel):
    project_id: NonEmptyStr
    title: NonEmptyStr = Field(..., max_length=500)
    description: Optional[str] = None
    status: str = "backlog"
    shift_hours: float = 0.0
    traditional_hours_estimate: float = 0.0
    order_index: int = 0

    @field_validator("project_id")
    @classmethod
    def check_project_id(cls, v: str) -> str:
        return validate_uuid(v, "project_id")

    @field_validator("description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> str:
        return v if v in TASK_STATUSES else "backlog"

    @field_validator("shift_hours", "traditional_hours_estimate", mode="before")
    @classmethod
    def check_hours(cls, v: Any) -> float:
        return _hours(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    shift_hours: Optional[float] = None
    traditional_hours_estimate: Optional[float] = None
    order_index: Optional[int] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v: Any) -> str:
        return _required_text(v, "Title")

    @field_validator("description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        return _choice(v, TASK_STATUSES)

    @field_validator("shift_hours", "traditional_hours_estimate", mode="before")
    @classmethod
    def check_hours(cls, v: Any) -> float:
        return _hours(v)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: Optional[str]
    status: str
    shift_hours: Optional[float]
    traditional_hours_estimate: Optional[float]
    order_index: Optional[int]
    agent_id: Optional[uuid.UUID] = None
    agent_claimed_at: Optional[datetime] = None
    agent_notes: Optional[str] = None
    files_modified: Optional[list] = None
    shipped_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    data: list[TaskResponse]
    pagination: Pagination
