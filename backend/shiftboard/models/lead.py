"""Sales lead model and the raw contact-form copy."""

import uuid
from datetime import datetime

from sqlalchemy import String, Text, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from shiftboard.database import Base

LEAD_STATUSES = ("incoming", "qualified", "contacted", "converted", "disqualified")
LEAD_TIERS = ("SOFTBALL", "MEDIUM", "HARD", "DISQUALIFY")
LEAD_SOURCES = ("website", "referral", "linkedin", "other")


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Contact info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(30), default="website")  # website, referral, linkedin, other

    # Pipeline
    status: Mapped[str] = mapped_column(String(30), default="incoming", index=True)
    tier: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)  # SOFTBALL, MEDIUM, HARD, DISQUALIFY
    ai_assessment: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # Intake questionnaire
    answers: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    intake_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    intake_completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Lead {self.id} {self.status}>"


class ContactSubmission(Base):
    __tablename__ = "contact_submissions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
