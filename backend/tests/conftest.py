"""Shared fixtures: an in-memory Store stand-in and app dependency overrides."""

import uuid
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from shiftboard.main import app
from shiftboard.middleware.auth import get_auth_service, get_current_user
from shiftboard.models import (
    Agent, Client, ContactSubmission, Deliverable, Feedback, IntakeSubmission,
    IntakeToken, Lead, Project, Task, User,
)
from shiftboard.services.auth import AuthService, AuthenticatedUser, LockoutPolicy
from shiftboard.services.classifier import LeadClassifier, get_classifier
from shiftboard.services.notifications import NotificationDispatcher, get_dispatcher
from shiftboard.services.store import (
    ConflictError, ReferenceNotFoundError, StoreUnavailableError, as_uuid, get_store,
)

STAFF = AuthenticatedUser(id=str(uuid.uuid4()), email="staff@example.com", name="Staff", role="admin")
ACME_CLIENT = AuthenticatedUser(
    id=str(uuid.uuid4()), email="owner@acme.example", name="Acme Owner", role="client", client_slug="acme"
)


def intake_payload(token: str, **overrides) -> dict:
    """A complete questionnaire body as the public form posts it (camelCase)."""
    payload = {
        "token": token,
        "name": "Jordan Lee",
        "email": "jordan@lee.example",
        "company": "Lee Logistics",
        "role": "owner",
        "companySize": "11_50",
        "industry": "logistics",
        "needs": ["automation", "other"],
        "needsOther": "route planning",
        "visionClarity": "crystal_clear",
        "timeline": "1_2_weeks",
        "budget": "10k_25k",
        "decisionMaker": "yes",
        "currentTools": "Spreadsheets",
        "frustration": "manual_work",
        "pastExperience": "agency",
        "successCriteria": "Dispatch in half the time",
        "source": "referral",
    }
    payload.update(overrides)
    return payload


def make_lead(**fields) -> Lead:
    now = datetime.utcnow()
    values = {
        "id": uuid.uuid4(),
        "company": None,
        "phone": None,
        "message": None,
        "source": "website",
        "status": "incoming",
        "tier": None,
        "ai_assessment": None,
        "answers": None,
        "intake_completed": False,
        "intake_completed_at": None,
        "created_at": now,
        "updated_at": now,
    }
    values.update(fields)
    return Lead(**values)


class FakeStore:
    """Dict-backed Store with the same method surface and error taxonomy.

    Operation names listed in ``fail`` raise StoreUnavailableError; ``"*"``
    fails everything.
    """

    is_configured = True

    def __init__(self):
        self.fail: set[str] = set()
        self.leads: dict[uuid.UUID, Lead] = {}
        self.contact_submissions: list[ContactSubmission] = []
        self.tokens: dict[str, IntakeToken] = {}
        self.intake_submissions: list[IntakeSubmission] = []
        self.clients: dict[uuid.UUID, Client] = {}
        self.projects: dict[uuid.UUID, Project] = {}
        self.tasks: list[Task] = []
        self.deliverables: dict[uuid.UUID, Deliverable] = {}
        self.feedback: list[Feedback] = []
        self.users: dict[uuid.UUID, User] = {}
        self.sessions: dict[str, tuple[uuid.UUID, datetime]] = {}
        self.security_events: list[dict] = []
        self.agents: list[Agent] = []

    def _check(self, op: str) -> None:
        if op in self.fail or "*" in self.fail:
            raise StoreUnavailableError(f"{op}: database unreachable")

    # seeding helpers

    def add_lead(self, **fields) -> Lead:
        lead = make_lead(**fields)
        self.leads[lead.id] = lead
        return lead

    def add_client(self, slug: str = "acme", **fields) -> Client:
        client = Client(
            id=uuid.uuid4(),
            name=fields.get("name", "Acme Owner"),
            email=fields.get("email", "owner@acme.example"),
            company=fields.get("company", "Acme"),
            phone=fields.get("phone"),
            status=fields.get("status", "active"),
            slug=slug,
            primary_color=fields.get("primary_color", "#00F0FF"),
            accent_color=fields.get("accent_color", "#BFFF00"),
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        self.clients[client.id] = client
        return client

    def add_project(self, client: Client | None = None, name: str = "Acme Operations Portal") -> Project:
        now = datetime.utcnow()
        project = Project(
            id=uuid.uuid4(),
            client_id=client.id if client else None,
            name=name,
            description=None,
            status="active",
            created_at=now,
            updated_at=now,
        )
        self.projects[project.id] = project
        return project

    def add_task(self, project: Project, title: str, status: str = "backlog", shift_hours=0.0, traditional=0.0) -> Task:
        now = datetime.utcnow()
        task = Task(
            id=uuid.uuid4(),
            project_id=project.id,
            title=title,
            description=None,
            status=status,
            shift_hours=shift_hours,
            traditional_hours_estimate=traditional,
            order_index=len(self.tasks),
            agent_id=None,
            agent_claimed_at=None,
            agent_notes=None,
            files_modified=None,
            shipped_at=now if status == "shipped" else None,
            created_at=now,
            updated_at=now,
        )
        self.tasks.append(task)
        return task

    def add_deliverable(self, project: Project, **fields) -> Deliverable:
        values = {
            "id": uuid.uuid4(),
            "project_id": project.id,
            "task_id": None,
            "name": "Homepage mockup",
            "description": None,
            "type": "design",
            "url": "https://files.example.com/mockup.png",
            "thumbnail_url": None,
            "status": "uploaded",
            "version": 1,
            "client_approved": False,
            "approved_at": None,
            "approved_by": None,
            "uploaded_at": datetime.utcnow(),
        }
        values.update(fields)
        row = Deliverable(**values)
        self.deliverables[row.id] = row
        return row

    def add_user(self, email: str, password_hash: str, role: str = "client", client_slug: str | None = None) -> User:
        now = datetime.utcnow()
        user = User(
            id=uuid.uuid4(),
            email=email,
            password_hash=password_hash,
            name=email.split("@")[0],
            role=role,
            client_slug=client_slug,
            failed_login_attempts=0,
            locked_until=None,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    # Store surface

    async def ping(self) -> None:
        self._check("ping")

    async def list_leads(self, status=None, tier=None, limit=50, offset=0):
        self._check("list_leads")
        rows = [
            lead for lead in self.leads.values()
            if (not status or lead.status == status) and (not tier or lead.tier == tier)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[offset:offset + limit], len(rows)

    async def get_lead(self, lead_id):
        self._check("get_lead")
        return self.leads.get(as_uuid(lead_id))

    async def create_lead(self, **fields):
        self._check("create_lead")
        if any(lead.email == fields.get("email") for lead in self.leads.values()):
            raise ConflictError("duplicate key value violates unique constraint \"leads_email_key\"")
        return self.add_lead(**fields)

    async def update_lead(self, lead_id, fields: dict):
        self._check("update_lead")
        lead = self.leads.get(as_uuid(lead_id))
        if not lead:
            return None
        email = fields.get("email")
        if email and any(o.email == email and o.id != lead.id for o in self.leads.values()):
            raise ConflictError("duplicate key value violates unique constraint \"leads_email_key\"")
        for field, value in fields.items():
            setattr(lead, field, value)
        lead.updated_at = datetime.utcnow()
        return lead

    async def delete_lead(self, lead_id) -> bool:
        self._check("delete_lead")
        return self.leads.pop(as_uuid(lead_id), None) is not None

    async def apply_classification(self, lead_id, tier, status, assessment):
        return await self.update_lead(lead_id, {"tier": tier, "status": status, "ai_assessment": assessment})

    async def record_contact_submission(self, name, email, message):
        self._check("record_contact_submission")
        row = ContactSubmission(id=uuid.uuid4(), name=name, email=email, message=message, created_at=datetime.utcnow())
        self.contact_submissions.append(row)
        return row

    async def issue_intake_token(self, lead_id, token, expires_at, now):
        self._check("issue_intake_token")
        active = [
            t for t in self.tokens.values()
            if t.lead_id == as_uuid(lead_id) and not t.used and t.expires_at > now
        ]
        if active:
            return max(active, key=lambda t: t.created_at), True
        if token in self.tokens:
            raise ConflictError("duplicate token")
        row = IntakeToken(
            id=uuid.uuid4(), lead_id=lead_id, token=token, used=False,
            used_at=None, expires_at=expires_at, created_at=now,
        )
        self.tokens[token] = row
        return row, False

    async def get_intake_token(self, token):
        self._check("get_intake_token")
        return self.tokens.get(token)

    async def consume_intake_token(self, token, now):
        self._check("consume_intake_token")
        row = self.tokens.get(token)
        if row is None or row.used or row.expires_at <= now:
            return None
        row.used = True
        row.used_at = now
        return row.lead_id

    async def record_intake_submission(self, lead_id, token, answers):
        self._check("record_intake_submission")
        row = IntakeSubmission(
            id=uuid.uuid4(), lead_id=lead_id, token=token, answers=answers, submitted_at=datetime.utcnow()
        )
        self.intake_submissions.append(row)
        return row

    async def record_intake_answers(self, lead_id, answers, now) -> bool:
        self._check("record_intake_answers")
        lead = self.leads.get(lead_id)
        if not lead:
            return False
        lead.answers = answers
        lead.intake_completed = True
        lead.intake_completed_at = now
        lead.updated_at = now
        return True

    async def get_project(self, project_id):
        self._check("get_project")
        return self.projects.get(as_uuid(project_id))

    async def get_client(self, client_id):
        self._check("get_client")
        return self.clients.get(as_uuid(client_id))

    async def list_deliverables(self, project_id=None, status=None, limit=50, offset=0):
        self._check("list_deliverables")
        rows = [
            d for d in self.deliverables.values()
            if (not project_id or d.project_id == as_uuid(project_id)) and (not status or d.status == status)
        ]
        rows.sort(key=lambda r: r.uploaded_at, reverse=True)
        return rows[offset:offset + limit], len(rows)

    async def get_deliverable(self, deliverable_id):
        self._check("get_deliverable")
        return self.deliverables.get(as_uuid(deliverable_id))

    async def create_deliverable(self, **fields):
        self._check("create_deliverable")
        if fields["project_id"] not in self.projects:
            raise ReferenceNotFoundError("insert violates foreign key constraint \"deliverables_project_id_fkey\"")
        if fields.get("task_id") and not any(t.id == fields["task_id"] for t in self.tasks):
            raise ReferenceNotFoundError("insert violates foreign key constraint \"deliverables_task_id_fkey\"")
        project = self.projects[fields.pop("project_id")]
        return self.add_deliverable(project, **fields)

    async def approve_deliverable(self, deliverable_id, approved_by, now):
        self._check("approve_deliverable")
        row = self.deliverables.get(as_uuid(deliverable_id))
        if not row:
            return None
        row.status = "approved"
        row.client_approved = True
        row.approved_at = now
        row.approved_by = approved_by
        return row

    async def create_feedback(self, deliverable_id, client_id, content):
        self._check("create_feedback")
        if deliverable_id not in self.deliverables or client_id not in self.clients:
            raise ReferenceNotFoundError("insert violates foreign key constraint")
        row = Feedback(
            id=uuid.uuid4(), deliverable_id=deliverable_id, client_id=client_id, content=content,
            resolved=False, resolved_at=None, created_at=datetime.utcnow(),
        )
        self.feedback.append(row)
        return row

    def _unique_client(self, fields: dict, exclude=None) -> None:
        for other in self.clients.values():
            if other.id == exclude:
                continue
            if (fields.get("email") and other.email == fields["email"]) or (
                fields.get("slug") and other.slug == fields["slug"]
            ):
                raise ConflictError("duplicate key value violates unique constraint \"clients_email_key\"")

    @staticmethod
    def _page(rows, limit, offset):
        return rows[offset:offset + limit], len(rows)

    async def list_clients(self, status=None, limit=50, offset=0):
        self._check("list_clients")
        rows = [c for c in self.clients.values() if not status or c.status == status]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return self._page(rows, limit, offset)

    async def create_client(self, **fields):
        self._check("create_client")
        self._unique_client(fields)
        values = {"status": "prospect", **fields}
        return self.add_client(values.pop("slug", None), **values)

    async def update_client(self, client_id, fields):
        self._check("update_client")
        row = self.clients.get(as_uuid(client_id))
        if not row:
            return None
        self._unique_client(fields, exclude=row.id)
        for field, value in fields.items():
            setattr(row, field, value)
        row.updated_at = datetime.utcnow()
        return row

    async def delete_client(self, client_id) -> bool:
        self._check("delete_client")
        key = as_uuid(client_id)
        if key not in self.clients:
            return False
        if any(p.client_id == key for p in self.projects.values()) or any(f.client_id == key for f in self.feedback):
            raise ReferenceNotFoundError("update or delete on table \"clients\" violates foreign key constraint")
        del self.clients[key]
        return True

    async def list_projects(self, status=None, client_id=None, limit=50, offset=0):
        self._check("list_projects")
        rows = [
            p for p in self.projects.values()
            if (not status or p.status == status) and (not client_id or p.client_id == as_uuid(client_id))
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return self._page(rows, limit, offset)

    async def create_project(self, **fields):
        self._check("create_project")
        client_id = fields.get("client_id")
        if client_id and client_id not in self.clients:
            raise ReferenceNotFoundError("insert violates foreign key constraint \"projects_client_id_fkey\"")
        project = self.add_project(self.clients.get(client_id), name=fields["name"])
        project.description = fields.get("description")
        project.status = fields.get("status", "active")
        return project

    async def update_project(self, project_id, fields):
        self._check("update_project")
        row = self.projects.get(as_uuid(project_id))
        if not row:
            return None
        if fields.get("client_id") and fields["client_id"] not in self.clients:
            raise ReferenceNotFoundError("update violates foreign key constraint \"projects_client_id_fkey\"")
        for field, value in fields.items():
            setattr(row, field, value)
        row.updated_at = datetime.utcnow()
        return row

    async def delete_project(self, project_id) -> bool:
        self._check("delete_project")
        key = as_uuid(project_id)
        if key not in self.projects:
            return False
        if any(d.project_id == key for d in self.deliverables.values()):
            raise ReferenceNotFoundError("update or delete on table \"projects\" violates foreign key constraint")
        del self.projects[key]
        self.tasks = [t for t in self.tasks if t.project_id != key]
        return True

    async def search_tasks(self, project_id=None, status=None, limit=50, offset=0):
        self._check("search_tasks")
        rows = [
            t for t in self.tasks
            if (not project_id or t.project_id == as_uuid(project_id)) and (not status or t.status == status)
        ]
        rows.sort(key=lambda t: t.order_index)
        return self._page(rows, limit, offset)

    async def get_task(self, task_id):
        self._check("get_task")
        key = as_uuid(task_id)
        return next((t for t in self.tasks if t.id == key), None)

    async def create_task(self, **fields):
        self._check("create_task")
        project = self.projects.get(fields["project_id"])
        if not project:
            raise ReferenceNotFoundError("insert violates foreign key constraint \"tasks_project_id_fkey\"")
        task = self.add_task(project, fields["title"], status=fields.get("status", "backlog"))
        for field in ("description", "shift_hours", "traditional_hours_estimate", "order_index", "shipped_at"):
            if field in fields:
                setattr(task, field, fields[field])
        return task

    async def update_task(self, task_id, fields):
        self._check("update_task")
        task = await self.get_task(task_id)
        if not task:
            return None
        for field, value in fields.items():
            setattr(task, field, value)
        task.updated_at = datetime.utcnow()
        return task

    async def delete_task(self, task_id) -> bool:
        self._check("delete_task")
        key = as_uuid(task_id)
        if any(d.task_id == key for d in self.deliverables.values()):
            raise ReferenceNotFoundError("update or delete on table \"tasks\" violates foreign key constraint")
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != key]
        return len(self.tasks) < before

    async def get_client_by_slug(self, slug):
        self._check("get_client_by_slug")
        return next((c for c in self.clients.values() if c.slug == slug), None)

    async def get_project_for_client(self, client_id):
        self._check("get_project_for_client")
        projects = [p for p in self.projects.values() if p.client_id == client_id]
        return max(projects, key=lambda p: p.created_at) if projects else None

    async def list_tasks(self, project_id):
        self._check("list_tasks")
        return sorted((t for t in self.tasks if t.project_id == project_id), key=lambda t: t.order_index)

    async def count_deliverables(self, project_id, statuses=None, uploaded_since=None) -> int:
        self._check("count_deliverables")
        return sum(
            1 for d in self.deliverables.values()
            if d.project_id == project_id
            and (not statuses or d.status in statuses)
            and (not uploaded_since or d.uploaded_at >= uploaded_since)
        )

    async def get_user_by_email(self, email):
        self._check("get_user_by_email")
        email = email.strip().lower()
        return next((u for u in self.users.values() if u.email == email), None)

    async def increment_failed_logins(self, user_id) -> int:
        self._check("increment_failed_logins")
        user = self.users[user_id]
        user.failed_login_attempts += 1
        return user.failed_login_attempts

    async def lock_user(self, user_id, locked_until) -> None:
        self._check("lock_user")
        self.users[user_id].locked_until = locked_until

    async def clear_failed_logins(self, user_id) -> None:
        self._check("clear_failed_logins")
        self.users[user_id].failed_login_attempts = 0
        self.users[user_id].locked_until = None

    async def create_session(self, user_id, token, ip_address, user_agent, expires_at):
        self._check("create_session")
        self.sessions[token] = (user_id, expires_at)

    async def get_session_user(self, token, now):
        self._check("get_session_user")
        entry = self.sessions.get(token)
        if not entry or entry[1] <= now:
            return None
        return self.users.get(entry[0])

    async def delete_session(self, token) -> None:
        self._check("delete_session")
        self.sessions.pop(token, None)

    async def delete_user_sessions(self, user_id) -> None:
        self._check("delete_user_sessions")
        key = as_uuid(user_id)
        self.sessions = {t: s for t, s in self.sessions.items() if s[0] != key}

    async def log_security_event(self, event, email, ip_address, user_agent, success, details=None) -> None:
        self._check("log_security_event")
        self.security_events.append({"event": event, "email": email, "success": success, "details": details})

    async def create_agent(self, **fields):
        self._check("create_agent")
        now = datetime.utcnow()
        agent = Agent(
            id=uuid.uuid4(), last_heartbeat=None, current_task_id=None, created_at=now, updated_at=now, **fields
        )
        self.agents.append(agent)
        return agent

    async def list_agents(self):
        self._check("list_agents")
        return list(reversed(self.agents))

    async def get_agent(self, agent_id):
        self._check("get_agent")
        key = as_uuid(agent_id)
        return next((a for a in self.agents if a.id == key), None)

    async def record_heartbeat(self, agent_id, fields, now):
        self._check("record_heartbeat")
        agent = await self.get_agent(agent_id)
        if not agent:
            return None
        for field, value in fields.items():
            setattr(agent, field, value)
        agent.last_heartbeat = now
        agent.updated_at = now
        return agent

    async def list_available_tasks(self, project_id=None, limit=20):
        self._check("list_available_tasks")
        rows = [
            t for t in self.tasks
            if t.agent_id is None and t.status != "shipped"
            and (not project_id or t.project_id == as_uuid(project_id))
        ]
        return sorted(rows, key=lambda t: t.order_index)[:limit]

    async def claim_task(self, task_id, agent_id, notes, session_id, now):
        self._check("claim_task")
        task = await self.get_task(task_id)
        if not task or task.agent_id is not None or task.status == "shipped":
            return None
        task.agent_id = agent_id
        task.agent_claimed_at = now
        task.agent_notes = notes
        task.status = "active"
        agent = await self.get_agent(agent_id)
        agent.current_task_id = task.id
        agent.status = "active"
        agent.last_heartbeat = now
        if session_id:
            agent.session_id = session_id
        return task

    async def complete_task(self, task_id, agent_id, notes, files_modified, now):
        self._check("complete_task")
        task = await self.get_task(task_id)
        if not task or task.agent_id != agent_id or task.status in ("review", "shipped"):
            return None
        task.status = "review"
        task.agent_notes = notes
        task.files_modified = files_modified
        agent = await self.get_agent(agent_id)
        agent.current_task_id = None
        agent.status = "idle"
        agent.total_tasks_completed = (agent.total_tasks_completed or 0) + 1
        agent.last_heartbeat = now
        return task


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def sent_emails(monkeypatch):
    """Replaces SMTP delivery; the mock records every outgoing message."""
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr("shiftboard.adapters.email.send_email", mock)
    return mock


@pytest.fixture
def client(store, sent_emails):
    """TestClient wired to the fake store, heuristic classifier and a staff caller."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_classifier] = lambda: LeadClassifier(api_key="")
    app.dependency_overrides[get_dispatcher] = lambda: NotificationDispatcher(admin_email="admin@example.com")
    app.dependency_overrides[get_auth_service] = lambda: AuthService(store, LockoutPolicy(), fallback_users={})
    app.dependency_overrides[get_current_user] = lambda: STAFF
    yield TestClient(app)
    app.dependency_overrides.clear()


def act_as(user: AuthenticatedUser | None) -> None:
    """Switch the caller for subsequent requests; None restores real token resolution."""
    if user is None:
        app.dependency_overrides.pop(get_current_user, None)
    else:
        app.dependency_overrides[get_current_user] = lambda: user
