"""Intake questionnaire schemas. The public form posts camelCase JSON."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shiftboard.config import settings
from shiftboard.schemas.common import NonEmptyStr, validate_uuid


class CreateTokenRequest(BaseModel):
    lead_id: NonEmptyStr
    expires_in_days: int = Field(default=settings.intake_default_expiry_days, ge=1, le=90)

    @field_validator("lead_id")
    @classmethod
    def check_lead_id(cls, v: str) -> str:
        return validate_uuid(v, "lead_id")


class LeadSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    company: Optional[str] = None


class CreateTokenResponse(BaseModel):
    success: bool = True
    token: str
    intake_url: str
    expires_at: datetime
    reused: bool
    lead: LeadSummary


class IntakePrefill(BaseModel):
    name: str
    email: str
    company: str = ""


class IntakeSubmission(BaseModel):
    """Full questionnaire. Field names arrive camelCase (``companySize``, ``visionClarity`` ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: NonEmptyStr
    name: str = ""
    email: str = ""
    company: Optional[str] = None

    role: NonEmptyStr
    company_size: NonEmptyStr
    industry: NonEmptyStr
    industry_other: Optional[str] = None
    needs: list[str] = Field(default_factory=list, validate_default=True)
    needs_other: Optional[str] = None
    vision_clarity: NonEmptyStr
    timeline: NonEmptyStr
    budget: NonEmptyStr
    decision_maker: NonEmptyStr
    current_tools: NonEmptyStr
    frustration: NonEmptyStr
    frustration_other: Optional[str] = None
    past_experience: NonEmptyStr
    success_criteria: NonEmptyStr
    source: NonEmptyStr
    source_other: Optional[str] = None

    @field_validator("needs")
    @classmethod
    def check_needs(cls, v: list[str]) -> list[str]:
        needs = [n for n in v if n]
        if not needs:
            raise ValueError("Please select at least one project need")
        return needs

    def answers(self) -> dict:
        """Stored answer set (snake_case keys)."""
        return {
            "role": self.role,
            "company_size": self.company_size,
            "industry": self.industry,
            "industry_other": self.industry_other or None,
            "project_type": self.needs,
            "project_type_other": self.needs_other or None,
            "vision_clarity": self.vision_clarity,
            "timeline": self.timeline,
            "budget": self.budget,
            "decision_maker": self.decision_maker,
            "current_tools": self.current_tools,
            "frustration": self.frustration,
            "frustration_other": self.frustration_other or None,
            "past_experience": self.past_experience,
            "success_criteria": self.success_criteria,
            "source": self.source,
            "source_other": self.source_other or None,
        }


class IntakeSubmitResponse(BaseModel):
    success: bool
    message: str
    saved_to_db: bool
