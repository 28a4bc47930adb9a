"""Client portal response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PhaseResponse(BaseModel):
    name: str
    status: str  # completed, active, upcoming


class PortalProjectResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: str
    description: Optional[str]

    model_config = {"from_attributes": True}


class PortalTaskResponse(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    shift_hours: Optional[float]
    traditional_hours_estimate: Optional[float]
    order_index: Optional[int]
    shipped_at: Optional[datetime]

    model_config = {"from_attributes": True}


class PortalSummary(BaseModel):
    client_slug: str
    client_name: str
    project: Optional[PortalProjectResponse]
    tasks: list[PortalTaskResponse]
    completion: int
    shift_hours: float
    traditional_estimate: float
    phases: list[PhaseResponse]
    pending_approvals: int
    new_deliverables: int
    primary_color: str
    accent_color: str
    discovery_required: bool
