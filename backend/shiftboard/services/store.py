"""Persistence gateway - every query against the hosted database goes through Store.

The database is the only shared state and the only serialization point.
Single-use and uniqueness guarantees are expressed as constraints and
conditional predicates evaluated by the database, never as in-process locks.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import structlog
from fastapi import Depends
from sqlalchemy import select, update, delete, func, text
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shiftboard.database import get_session
from shiftboard.models import (
    Agent, Client, ContactSubmission, Deliverable, Feedback, IntakeSubmission,
    IntakeToken, Lead, Project, SecurityLog, Session, Task, User,
)

logger = structlog.get_logger()

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class StoreError(Exception):
    """Base class for persistence failures."""


class StoreUnavailableError(StoreError):
    """The database is not configured or cannot be reached."""


class ConflictError(StoreError):
    """A unique constraint rejected the write."""


class ReferenceNotFoundError(StoreError):
    """A foreign key pointed at a row that does not exist."""


def as_uuid(value) -> uuid.UUID | None:
    """Coerce a path/body identifier to a UUID; anything else cannot match a row."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def translate_integrity_error(exc: IntegrityError) -> StoreError:
    """Map a driver integrity error onto the gateway's error taxonomy."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is None and orig is not None and orig.__cause__ is not None:
        code = getattr(orig.__cause__, "sqlstate", None)
    message = str(orig or exc).lower()

    if code == UNIQUE_VIOLATION or "unique" in message or "duplicate key" in message:
        return ConflictError(str(orig or exc))
    if code == FOREIGN_KEY_VIOLATION or "foreign key" in message:
        return ReferenceNotFoundError(str(orig or exc))
    return StoreError(str(orig or exc))


class Store:
    """Thin async wrapper issuing queries for leads, intake, deliverables, users and agents."""

    def __init__(self, session: AsyncSession | None):
        self.session = session

    @property
    def is_configured(self) -> bool:
        return self.session is not None

    @asynccontextmanager
    async def _guard(self, op: str) -> AsyncIterator[AsyncSession]:
        if self.session is None:
            raise StoreUnavailableError("Database is not configured")
        try:
            yield self.session
        except IntegrityError as e:
            await self._rollback(op)
            raise translate_integrity_error(e) from e
        except (OperationalError, InterfaceError, OSError, asyncio.TimeoutError) as e:
            await self._rollback(op)
            logger.error("store_unavailable", op=op, error=str(e))
            raise StoreUnavailableError(str(e)) from e
        except DBAPIError as e:
            await self._rollback(op)
            if e.connection_invalidated:
                raise StoreUnavailableError(str(e)) from e
            raise StoreError(str(e)) from e

    async def _rollback(self, op: str) -> None:
        try:
            await self.session.rollback()
        except Exception as e:
            logger.warning("store_rollback_failed", op=op, error=str(e))

    async def ping(self) -> None:
        async with self._guard("ping") as s:
            await s.execute(text("SELECT 1"))

    # --- Leads -------------------------------------------------------------

    async def list_leads(
        self,
        status: str | None = None,
        tier: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Lead], int]:
        async with self._guard("list_leads") as s:
            query = select(Lead)
            count_query = select(func.count()).select_from(Lead)
            if status:
                query = query.where(Lead.status == status)
                count_query = count_query.where(Lead.status == status)
            if tier:
                query = query.where(Lead.tier == tier)
                count_query = count_query.where(Lead.tier == tier)

            query = query.order_by(Lead.created_at.desc()).offset(offset).limit(limit)
            rows = (await s.execute(query)).scalars().all()
            total = (await s.execute(count_query)).scalar_one()
            return list(rows), total

    async def get_lead(self, lead_id) -> Lead | None:
        key = as_uuid(lead_id)
        if key is None:
            return None
        async with self._guard("get_lead") as s:
            result = await s.execute(select(Lead).where(Lead.id == key))
            return result.scalar_one_or_none()

    async def create_lead(self, **fields) -> Lead:
        async with self._guard("create_lead") as s:
            lead = Lead(**fields)
            s.add(lead)
            await s.commit()
            await s.refresh(lead)
            return lead

    async def update_lead(self, lead_id, fields: dict) -> Lead | None:
        key = as_uuid(lead_id)
        if key is None:
            return None
        async with self._guard("update_lead") as s:
            result = await s.execute(select(Lead).where(Lead.id == key))
            lead = result.scalar_one_or_none()
            if not lead:
                return None
            for field, value in fields.items():
                setattr(lead, field, value)
            lead.updated_at = datetime.utcnow()
            await s.commit()
            await s.refresh(lead)
            return lead

    async def delete_lead(self, lead_id) -> bool:
        key = as_uuid(lead_id)
        if key is None:
            return False
        async with self._guard("delete_lead") as s:
            result = await s.execute(delete(Lead).where(Lead.id == key))
            await s.commit()
            return result.rowcount > 0

    async def apply_classification(self, lead_id, tier: str, status: str, assessment: dict) -> Lead | None:
        return await self.update_lead(lead_id, {"tier": tier, "status": status, "ai_assessment": assessment})

    async def record_contact_submission(self, name: str, email: str, message: str) -> ContactSubmission:
        async with self._guard("record_contact_submission") as s:
            row = ContactSubmission(name=name, email=email, message=message)
            s.add(row)
            await s.commit()
            return row

    # --- Intake ------------------------------------------------------------

    async def issue_intake_token(
        self, lead_id: uuid.UUID, token: str, expires_at: datetime, now: datetime
    ) -> tuple[IntakeToken, bool]:
        """Return the lead's active token, or insert ``token`` as a new one.

        The lead row is locked first so concurrent issuers for one lead queue
        behind each other and at most one active token exists per lead.
        Returns ``(row, reused)``.
        """
        async with self._guard("issue_intake_token") as s:
            await s.execute(select(Lead.id).where(Lead.id == lead_id).with_for_update())
            result = await s.execute(
                select(IntakeToken)
                .where(
                    IntakeToken.lead_id == lead_id,
                    IntakeToken.used.is_(False),
                    IntakeToken.expires_at > now,
                )
                .order_by(IntakeToken.created_at.desc())
                .limit(1)
            )
            existing = result.scalar_one_or_none()
            if existing:
                await s.commit()
                return existing, True

            row = IntakeToken(lead_id=lead_id, token=token, expires_at=expires_at, used=False)
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return row, False

    async def get_intake_token(self, token: str) -> IntakeToken | None:
        async with self._guard("get_intake_token") as s:
            result = await s.execute(select(IntakeToken).where(IntakeToken.token == token))
            return result.scalar_one_or_none()

    async def consume_intake_token(self, token: str, now: datetime) -> uuid.UUID | None:
        """Flip an issued token to used. Returns its lead id, or None if it was not redeemable."""
        async with self._guard("consume_intake_token") as s:
            result = await s.execute(
                update(IntakeToken)
                .where(
                    IntakeToken.token == token,
                    IntakeToken.used.is_(False),
                    IntakeToken.expires_at > now,
                )
                .values(used=True, used_at=now)
                .returning(IntakeToken.lead_id)
                .execution_options(synchronize_session=False)
            )
            lead_id = result.scalar_one_or_none()
            await s.commit()
            return lead_id

    async def record_intake_submission(self, lead_id: uuid.UUID | None, token: str, answers: dict) -> IntakeSubmission:
        async with self._guard("record_intake_submission") as s:
            row = IntakeSubmission(lead_id=lead_id, token=token, answers=answers)
            s.add(row)
            await s.commit()
            return row

    async def record_intake_answers(self, lead_id: uuid.UUID, answers: dict, now: datetime) -> bool:
        async with self._guard("record_intake_answers") as s:
            result = await s.execute(
                update(Lead)
                .where(Lead.id == lead_id)
                .values(answers=answers, intake_completed=True, intake_completed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await s.commit()
            return result.rowcount > 0

    # --- Projects, deliverables, feedback ----------------------------------

    async def get_project(self, project_id) -> Project | None:
        key = as_uuid(project_id)
        if key is None:
            return None
        async with self._guard("get_project") as s:
            result = await s.execute(select(Project).where(Project.id == key))
            return result.scalar_one_or_none()

    async def get_client(self, client_id) -> Client | None:
        key = as_uuid(client_id)
        if key is None:
            return None
        async with self._guard("get_client") as s:
            result = await s.execute(select(Client).where(Client.id == key))
            return result.scalar_one_or_none()

    async def list_deliverables(
        self,
        project_id=None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Deliverable], int]:
        async with self._guard("list_deliverables") as s:
            query = select(Deliverable)
            count_query = select(func.count()).select_from(Deliverable)
            if project_id:
                query = query.where(Deliverable.project_id == as_uuid(project_id))
                count_query = count_query.where(Deliverable.project_id == as_uuid(project_id))
            if status:
                query = query.where(Deliverable.status == status)
                count_query = count_query.where(Deliverable.status == status)

            query = query.order_by(Deliverable.uploaded_at.desc()).offset(offset).limit(limit)
            rows = (await s.execute(query)).scalars().all()
            total = (await s.execute(count_query)).scalar_one()
            return list(rows), total

    async def get_deliverable(self, deliverable_id) -> Deliverable | None:
        key = as_uuid(deliverable_id)
        if key is None:
            return None
        async with self._guard("get_deliverable") as s:
            result = await s.execute(select(Deliverable).where(Deliverable.id == key))
            return result.scalar_one_or_none()

    async def create_deliverable(self, **fields) -> Deliverable:
        async with self._guard("create_deliverable") as s:
            row = Deliverable(**fields)
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return row

    async def approve_deliverable(self, deliverable_id, approved_by: str, now: datetime) -> Deliverable | None:
        key = as_uuid(deliverable_id)
        if key is None:
            return None
        async with self._guard("approve_deliverable") as s:
            result = await s.execute(select(Deliverable).where(Deliverable.id == key))
            row = result.scalar_one_or_none()
            if not row:
                return None
            row.status = "approved"
            row.client_approved = True
            row.approved_at = now
            row.approved_by = approved_by
            await s.commit()
            await s.refresh(row)
            return row

    async def create_feedback(self, deliverable_id: uuid.UUID, client_id: uuid.UUID, content: str) -> Feedback:
        async with self._guard("create_feedback") as s:
            row = Feedback(deliverable_id=deliverable_id, client_id=client_id, content=content, resolved=False)
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return row

    # --- Clients, projects, tasks (admin CRUD) -----------------------------

    async def _get_row(self, model, row_id, op: str):
        key = as_uuid(row_id)
        if key is None:
            return None
        async with self._guard(op) as s:
            result = await s.execute(select(model).where(model.id == key))
            return result.scalar_one_or_none()

    async def _insert_row(self, model, op: str, fields: dict):
        async with self._guard(op) as s:
            row = model(**fields)
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return row

    async def _update_row(self, model, row_id, fields: dict, op: str):
        key = as_uuid(row_id)
        if key is None:
            return None
        async with self._guard(op) as s:
            result = await s.execute(select(model).where(model.id == key))
            row = result.scalar_one_or_none()
            if not row:
                return None
            for field, value in fields.items():
                setattr(row, field, value)
            row.updated_at = datetime.utcnow()
            await s.commit()
            await s.refresh(row)
            return row

    async def _delete_row(self, model, row_id, op: str) -> bool:
        key = as_uuid(row_id)
        if key is None:
            return False
        async with self._guard(op) as s:
            result = await s.execute(delete(model).where(model.id == key))
            await s.commit()
            return result.rowcount > 0

    async def _page(self, model, filters: list, order_by: list, limit: int, offset: int, op: str):
        async with self._guard(op) as s:
            query = select(model).where(*filters).order_by(*order_by).offset(offset).limit(limit)
            count_query = select(func.count()).select_from(model).where(*filters)
            rows = (await s.execute(query)).scalars().all()
            total = (await s.execute(count_query)).scalar_one()
            return list(rows), total

    async def list_clients(self, status: str | None = None, limit: int = 50, offset: int = 0) -> tuple[list[Client], int]:
        filters = [Client.status == status] if status else []
        return await self._page(Client, filters, [Client.created_at.desc()], limit, offset, "list_clients")

    async def create_client(self, **fields) -> Client:
        return await self._insert_row(Client, "create_client", fields)

    async def update_client(self, client_id, fields: dict) -> Client | None:
        return await self._update_row(Client, client_id, fields, "update_client")

    async def delete_client(self, client_id) -> bool:
        return await self._delete_row(Client, client_id, "delete_client")

    async def list_projects(
        self,
        status: str | None = None,
        client_id=None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        filters = []
        if status:
            filters.append(Project.status == status)
        if client_id:
            filters.append(Project.client_id == as_uuid(client_id))
        return await self._page(Project, filters, [Project.created_at.desc()], limit, offset, "list_projects")

    async def create_project(self, **fields) -> Project:
        return await self._insert_row(Project, "create_project", fields)

    async def update_project(self, project_id, fields: dict) -> Project | None:
        return await self._update_row(Project, project_id, fields, "update_project")

    async def delete_project(self, project_id) -> bool:
        return await self._delete_row(Project, project_id, "delete_project")

    async def search_tasks(
        self,
        project_id=None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        filters = []
        if project_id:
            filters.append(Task.project_id == as_uuid(project_id))
        if status:
            filters.append(Task.status == status)
        order = [Task.order_index.asc(), Task.created_at.desc()]
        return await self._page(Task, filters, order, limit, offset, "search_tasks")

    async def get_task(self, task_id) -> Task | None:
        return await self._get_row(Task, task_id, "get_task")

    async def create_task(self, **fields) -> Task:
        return await self._insert_row(Task, "create_task", fields)

    async def update_task(self, task_id, fields: dict) -> Task | None:
        return await self._update_row(Task, task_id, fields, "update_task")

    async def delete_task(self, task_id) -> bool:
        return await self._delete_row(Task, task_id, "delete_task")

    # --- Portal ------------------------------------------------------------

    async def get_client_by_slug(self, slug: str) -> Client | None:
        async with self._guard("get_client_by_slug") as s:
            result = await s.execute(select(Client).where(Client.slug == slug))
            return result.scalar_one_or_none()

    async def get_project_for_client(self, client_id: uuid.UUID) -> Project | None:
        async with self._guard("get_project_for_client") as s:
            result = await s.execute(
                select(Project)
                .where(Project.client_id == client_id)
                .order_by(Project.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_tasks(self, project_id: uuid.UUID) -> list[Task]:
        async with self._guard("list_tasks") as s:
            result = await s.execute(
                select(Task).where(Task.project_id == project_id).order_by(Task.order_index.asc())
            )
            return list(result.scalars().all())

    async def count_deliverables(
        self,
        project_id: uuid.UUID,
        statuses: tuple[str, ...] | None = None,
        uploaded_since: datetime | None = None,
    ) -> int:
        async with self._guard("count_deliverables") as s:
            query = select(func.count()).select_from(Deliverable).where(Deliverable.project_id == project_id)
            if statuses:
                query = query.where(Deliverable.status.in_(statuses))
            if uploaded_since:
                query = query.where(Deliverable.uploaded_at >= uploaded_since)
            return (await s.execute(query)).scalar_one()

    # --- Users, sessions, security log -------------------------------------

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._guard("get_user_by_email") as s:
            result = await s.execute(select(User).where(User.email == email.strip().lower()))
            return result.scalar_one_or_none()

    async def increment_failed_logins(self, user_id: uuid.UUID) -> int:
        """Atomically bump the failure counter and return the new value."""
        async with self._guard("increment_failed_logins") as s:
            result = await s.execute(
                update(User)
                .where(User.id == user_id)
                .values(failed_login_attempts=User.failed_login_attempts + 1)
                .returning(User.failed_login_attempts)
                .execution_options(synchronize_session=False)
            )
            attempts = result.scalar_one_or_none() or 0
            await s.commit()
            return attempts

    async def lock_user(self, user_id: uuid.UUID, locked_until: datetime) -> None:
        async with self._guard("lock_user") as s:
            await s.execute(
                update(User)
                .where(User.id == user_id)
                .values(locked_until=locked_until)
                .execution_options(synchronize_session=False)
            )
            await s.commit()

    async def clear_failed_logins(self, user_id: uuid.UUID) -> None:
        async with self._guard("clear_failed_logins") as s:
            await s.execute(
                update(User)
                .where(User.id == user_id)
                .values(failed_login_attempts=0, locked_until=None)
                .execution_options(synchronize_session=False)
            )
            await s.commit()

    async def create_session(
        self,
        user_id: uuid.UUID,
        token: str,
        ip_address: str | None,
        user_agent: str | None,
        expires_at: datetime,
    ) -> Session:
        async with self._guard("create_session") as s:
            row = Session(user_id=user_id, token=token, ip_address=ip_address, user_agent=user_agent, expires_at=expires_at)
            s.add(row)
            await s.commit()
            return row

    async def get_session_user(self, token: str, now: datetime) -> User | None:
        async with self._guard("get_session_user") as s:
            result = await s.execute(
                select(User)
                .join(Session, Session.user_id == User.id)
                .where(Session.token == token, Session.expires_at > now)
            )
            return result.scalar_one_or_none()

    async def delete_session(self, token: str) -> None:
        async with self._guard("delete_session") as s:
            await s.execute(delete(Session).where(Session.token == token))
            await s.commit()

    async def delete_user_sessions(self, user_id) -> None:
        key = as_uuid(user_id)
        if key is None:
            return
        async with self._guard("delete_user_sessions") as s:
            await s.execute(delete(Session).where(Session.user_id == key))
            await s.commit()

    async def log_security_event(
        self,
        event: str,
        email: str | None,
        ip_address: str | None,
        user_agent: str | None,
        success: bool,
        details: dict | None = None,
    ) -> None:
        async with self._guard("log_security_event") as s:
            s.add(SecurityLog(
                event=event,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                success=success,
                details=details,
            ))
            await s.commit()

    # --- Agents ------------------------------------------------------------

    async def create_agent(self, **fields) -> Agent:
        async with self._guard("create_agent") as s:
            row = Agent(**fields)
            s.add(row)
            await s.commit()
            await s.refresh(row)
            return row

    async def list_agents(self) -> list[Agent]:
        async with self._guard("list_agents") as s:
            result = await s.execute(select(Agent).order_by(Agent.created_at.desc()))
            return list(result.scalars().all())

    async def get_agent(self, agent_id) -> Agent | None:
        return await self._get_row(Agent, agent_id, "get_agent")

    async def record_heartbeat(self, agent_id, fields: dict, now: datetime) -> Agent | None:
        return await self._update_row(Agent, agent_id, {**fields, "last_heartbeat": now}, "record_heartbeat")

    async def list_available_tasks(self, project_id=None, limit: int = 20) -> list[Task]:
        """Unclaimed tasks that are not shipped, in board order."""
        async with self._guard("list_available_tasks") as s:
            query = select(Task).where(Task.agent_id.is_(None), Task.status != "shipped")
            if project_id:
                query = query.where(Task.project_id == as_uuid(project_id))
            query = query.order_by(Task.order_index.asc(), Task.created_at.asc()).limit(limit)
            return list((await s.execute(query)).scalars().all())

    async def claim_task(
        self, task_id: uuid.UUID, agent_id: uuid.UUID, notes: str | None, session_id: str | None, now: datetime
    ) -> Task | None:
        """Assign an unclaimed task to an agent. None when another agent got there first."""
        async with self._guard("claim_task") as s:
            result = await s.execute(
                update(Task)
                .where(Task.id == task_id, Task.agent_id.is_(None), Task.status != "shipped")
                .values(agent_id=agent_id, agent_claimed_at=now, agent_notes=notes, status="active", updated_at=now)
                .returning(Task)
                .execution_options(synchronize_session=False)
            )
            task = result.scalar_one_or_none()
            if task:
                agent_values = {"current_task_id": task_id, "status": "active", "last_heartbeat": now, "updated_at": now}
                if session_id:
                    agent_values["session_id"] = session_id
                await s.execute(
                    update(Agent)
                    .where(Agent.id == agent_id)
                    .values(**agent_values)
                    .execution_options(synchronize_session=False)
                )
            await s.commit()
            return task

    async def complete_task(
        self, task_id: uuid.UUID, agent_id: uuid.UUID, notes: str | None, files_modified: list, now: datetime
    ) -> Task | None:
        """Move the agent's claimed task to review and free the agent."""
        async with self._guard("complete_task") as s:
            result = await s.execute(
                update(Task)
                .where(Task.id == task_id, Task.agent_id == agent_id, Task.status.not_in(("review", "shipped")))
                .values(status="review", agent_notes=notes, files_modified=files_modified, updated_at=now)
                .returning(Task)
                .execution_options(synchronize_session=False)
            )
            task = result.scalar_one_or_none()
            if task:
                await s.execute(
                    update(Agent)
                    .where(Agent.id == agent_id)
                    .values(
                        current_task_id=None,
                        status="idle",
                        total_tasks_completed=Agent.total_tasks_completed + 1,
                        last_heartbeat=now,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
            await s.commit()
            return task


async def get_store(session: AsyncSession | None = Depends(get_session)) -> Store:
    """FastAPI dependency: a Store bound to the request-scoped session."""
    return Store(session)
