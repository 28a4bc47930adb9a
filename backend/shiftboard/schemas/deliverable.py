"""Deliverable and client feedback schemas."""

import uuid
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator

from shiftboard.models.deliverable import DELIVERABLE_STATUSES
from shiftboard.schemas.common import NonEmptyStr, Pagination, validate_uuid


class DeliverableCreate(BaseModel):
    project_id: NonEmptyStr
    task_id: Optional[str] = None
    name: NonEmptyStr = Field(..., max_length=255)
    description: Optional[str] = None
    type: NonEmptyStr = Field(..., max_length=50)
    url: NonEmptyStr
    thumbnail_url: Optional[str] = None
    status: str = "uploaded"
    version: int = Field(default=1, ge=1)
    notify_client: bool = True

    @field_validator("project_id")
    @classmethod
    def check_project_id(cls, v: str) -> str:
        return validate_uuid(v, "project_id")

    @field_validator("task_id", mode="before")
    @classmethod
    def check_task_id(cls, v: Any) -> Optional[str]:
        if v in (None, ""):
            return None
        return validate_uuid(v, "task_id")

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        if v in (None, ""):
            return "uploaded"
        if v not in DELIVERABLE_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(DELIVERABLE_STATUSES)}")
        return v


class DeliverableResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    task_id: Optional[uuid.UUID]
    name: str
    description: Optional[str]
    type: str
    url: str
    thumbnail_url: Optional[str]
    status: str
    version: int
    client_approved: Optional[bool]
    approved_at: Optional[datetime]
    approved_by: Optional[str]
    uploaded_at: Optional[datetime]

    model_config = {"from_attributes": True}


class DeliverableListResponse(BaseModel):
    data: list[DeliverableResponse]
    pagination: Pagination


class DeliverableCreateResponse(BaseModel):
    success: bool = True
    data: DeliverableResponse
    client_notified: bool


class FeedbackCreate(BaseModel):
    deliverable_id: NonEmptyStr
    client_id: NonEmptyStr
    content: NonEmptyStr = Field(..., max_length=10000)

    @field_validator("deliverable_id")
    @classmethod
    def check_deliverable_id(cls, v: str) -> str:
        return validate_uuid(v, "deliverable_id")

    @field_validator("client_id")
    @classmethod
    def check_client_id(cls, v: str) -> str:
        return validate_uuid(v, "client_id")


class FeedbackResponse(BaseModel):
    id: uuid.UUID
    deliverable_id: uuid.UUID
    client_id: uuid.UUID
    content: str
    resolved: Optional[bool]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class FeedbackCreateResponse(BaseModel):
    success: bool = True
    data: FeedbackResponse
    admin_notified: bool
