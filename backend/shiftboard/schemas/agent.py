"""Worker agent registration, heartbeat and task claim schemas."""

import uuid
from datetime import datetime
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator

from shiftboard.schemas.common import NonEmptyStr, validate_uuid
from shiftboard.schemas.project import TaskResponse


class AgentRegister(BaseModel):
    name: NonEmptyStr = Field(..., max_length=255)
    description: Optional[str] = None
    capabilities: list[str] = Field(default_factory=list)
    session_id: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator("capabilities", mode="before")
    @classmethod
    def check_capabilities(cls, v: Any) -> list:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("capabilities must be an array")
        return v


class AgentResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    status: str
    capabilities: Optional[list]
    session_id: Optional[str]
    last_heartbeat: Optional[datetime]
    total_tasks_completed: Optional[int]
    total_hours_logged: Optional[float]
    metadata: Optional[dict] = Field(default=None, validation_alias="extra_metadata")
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class AgentRegisterResponse(BaseModel):
    success: bool = True
    agent_id: uuid.UUID
    agent: AgentResponse


AGENT_STATUSES = ("active", "idle", "offline")


def _agent_id(v: str) -> str:
    return validate_uuid(v, "agent_id")


class HeartbeatRequest(BaseModel):
    agent_id: NonEmptyStr
    status: Optional[str] = None
    current_task_id: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("agent_id")
    @classmethod
    def check_agent_id(cls, v: str) -> str:
        return _agent_id(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in AGENT_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(AGENT_STATUSES)}")
        return v

    @field_validator("current_task_id")
    @classmethod
    def check_task_id(cls, v: Optional[str]) -> Optional[str]:
        return validate_uuid(v, "current_task_id") if v else None

    def changes(self) -> dict:
        """Agent columns to overwrite; an explicit null clears the task or session."""
        fields = self.model_dump(include={"current_task_id", "session_id"}, exclude_unset=True)
        if fields.get("current_task_id"):
            fields["current_task_id"] = uuid.UUID(fields["current_task_id"])
        if "session_id" in fields:
            fields["session_id"] = fields["session_id"] or None
        if self.status:
            fields["status"] = self.status
        return fields


class HeartbeatData(BaseModel):
    agent_id: uuid.UUID = Field(validation_alias="id")
    status: str
    current_task_id: Optional[uuid.UUID]
    last_heartbeat: Optional[datetime]

    model_config = {"from_attributes": True}


class HeartbeatResponse(BaseModel):
    success: bool = True
    message: str = "Heartbeat received"
    data: HeartbeatData


class ClaimRequest(BaseModel):
    agent_id: NonEmptyStr
    notes: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("agent_id")
    @classmethod
    def check_agent_id(cls, v: str) -> str:
        return _agent_id(v)


class CompleteRequest(BaseModel):
    agent_id: NonEmptyStr
    notes: Optional[str] = None
    files_modified: list[str] = Field(default_factory=list)

    @field_validator("agent_id")
    @classmethod
    def check_agent_id(cls, v: str) -> str:
        return _agent_id(v)

    @field_validator("files_modified", mode="before")
    @classmethod
    def check_files(cls, v: Any) -> list:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("files_modified must be an array")
        return v


class TaskWorkData(BaseModel):
    task: TaskResponse
    at: datetime


class TaskWorkResponse(BaseModel):
    success: bool = True
    message: str
    data: TaskWorkData


class AvailableTasksResponse(BaseModel):
    success: bool = True
    count: int
    data: list[TaskResponse]
