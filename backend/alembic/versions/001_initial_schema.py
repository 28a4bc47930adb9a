"""Initial schema with all core tables.

Revision ID: 001
Revises: None
Create Date: 2025-01-01
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Leads
    op.create_table(
        "leads",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("source", sa.String(30), server_default="website"),
        sa.Column("status", sa.String(30), server_default="incoming"),
        sa.Column("tier", sa.String(20), nullable=True),
        sa.Column("ai_assessment", JSONB, nullable=True),
        sa.Column("answers", JSONB, nullable=True),
        sa.Column("intake_completed", sa.Boolean, server_default="false"),
        sa.Column("intake_completed_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            "tier IS NULL OR tier IN ('SOFTBALL', 'MEDIUM', 'HARD', 'DISQUALIFY')", name="ck_leads_tier"
        ),
        sa.CheckConstraint(
            "status IN ('incoming', 'qualified', 'contacted', 'converted', 'disqualified')", name="ck_leads_status"
        ),
    )
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_tier", "leads", ["tier"])

    # Raw contact form copies
    op.create_table(
        "contact_submissions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    # Intake
    op.create_table(
        "intake_tokens",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(128), unique=True, nullable=False),
        sa.Column("used", sa.Boolean, server_default="false", nullable=False),
        sa.Column("used_at", sa.DateTime, nullable=True),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_intake_tokens_lead_id", "intake_tokens", ["lead_id"])

    op.create_table(
        "intake_submissions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=True),
        sa.Column("token", sa.String(128), nullable=True),
        sa.Column("answers", JSONB, nullable=False),
        sa.Column("submitted_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_intake_submissions_lead_id", "intake_submissions", ["lead_id"])
    op.create_index("ix_intake_submissions_submitted_at", "intake_submissions", ["submitted_at"])

    # Clients, projects, tasks
    op.create_table(
        "clients",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), server_default="prospect"),
        sa.Column("slug", sa.String(100), unique=True, nullable=True),
        sa.Column("primary_color", sa.String(20), server_default="#00F0FF"),
        sa.Column("accent_color", sa.String(20), server_default="#BFFF00"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'completed', 'prospect', 'churned')", name="ck_clients_status"),
    )

    op.create_table(
        "projects",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("client_id", UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(30), server_default="active"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'on_hold', 'cancelled')", name="ck_projects_status"
        ),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    # Worker agents; created before tasks, which reference them
    op.create_table(
        "agents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), server_default="idle"),
        sa.Column("capabilities", JSONB, nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("last_heartbeat", sa.DateTime, nullable=True),
        sa.Column("current_task_id", UUID(as_uuid=True), nullable=True),
        sa.Column("total_tasks_completed", sa.Integer, server_default="0"),
        sa.Column("total_hours_logged", sa.Float, server_default="0"),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'idle', 'offline')", name="ck_agents_status"),
    )
    op.create_index("ix_agents_status", "agents", ["status"])

    op.create_table(
        "tasks",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), server_default="backlog"),
        sa.Column("shift_hours", sa.Float, server_default="0"),
        sa.Column("traditional_hours_estimate", sa.Float, server_default="0"),
        sa.Column("order_index", sa.Integer, server_default="0"),
        sa.Column("agent_id", UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("agent_claimed_at", sa.DateTime, nullable=True),
        sa.Column("agent_notes", sa.Text, nullable=True),
        sa.Column("files_modified", JSONB, nullable=True),
        sa.Column("shipped_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('backlog', 'active', 'review', 'shipped')", name="ck_tasks_status"),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_agent_id", "tasks", ["agent_id"])

    # Deliverables and feedback
    op.create_table(
        "deliverables",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("task_id", UUID(as_uuid=True), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("thumbnail_url", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), server_default="uploaded"),
        sa.Column("version", sa.Integer, server_default="1"),
        sa.Column("client_approved", sa.Boolean, server_default="false"),
        sa.Column("approved_at", sa.DateTime, nullable=True),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("uploaded_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'uploaded', 'in_review', 'approved', 'rejected')",
            name="ck_deliverables_status",
        ),
    )
    op.create_index("ix_deliverables_project_id", "deliverables", ["project_id"])
    op.create_index("ix_deliverables_status", "deliverables", ["status"])
    op.create_index("ix_deliverables_uploaded_at", "deliverables", ["uploaded_at"])

    op.create_table(
        "client_feedback",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("deliverable_id", UUID(as_uuid=True), sa.ForeignKey("deliverables.id"), nullable=False),
        sa.Column("client_id", UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("resolved", sa.Boolean, server_default="false"),
        sa.Column("resolved_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_client_feedback_deliverable_id", "client_feedback", ["deliverable_id"])

    # Users, sessions, security log
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), server_default="client"),
        sa.Column("client_slug", sa.String(100), nullable=True),
        sa.Column("failed_login_attempts", sa.Integer, server_default="0", nullable=False),
        sa.Column("locked_until", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'internal', 'client')", name="ck_users_role"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(128), unique=True, nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "security_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("event", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("success", sa.Boolean, server_default="false"),
        sa.Column("details", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_security_logs_event", "security_logs", ["event"])
    op.create_index("ix_security_logs_created_at", "security_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("security_logs")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("client_feedback")
    op.drop_table("deliverables")
    op.drop_table("tasks")
    op.drop_table("agents")
    op.drop_table("projects")
    op.drop_table("clients")
    op.drop_table("intake_submissions")
    op.drop_table("intake_tokens")
    op.drop_table("contact_submissions")
    op.drop_table("leads")
