"""Client portal view layer - presentation-only aggregation over project data."""

from datetime import datetime, timedelta

import structlog

from shiftboard.services.store import Store

logger = structlog.get_logger()

PHASES = ("Discovery", "Design", "Build", "Launch")
PENDING_APPROVAL_STATUSES = ("in_review", "pending")
NEW_DELIVERABLE_WINDOW = timedelta(days=7)


class PortalNotFound(Exception):
    pass


def completion_percentage(tasks) -> int:
    if not tasks:
        return 0
    shipped = sum(1 for t in tasks if t.status == "shipped")
    return round(shipped / len(tasks) * 100)


def derive_phases(tasks, completion: int) -> list[dict]:
    """Map task progress onto the four delivery phases."""
    all_backlog = all(t.status == "backlog" for t in tasks)
    if completion == 0 and all_backlog:
        active = 0
    elif completion < 25:
        active = 1
    elif completion < 75:
        active = 2
    elif completion < 100:
        active = 3
    else:
        active = len(PHASES)

    phases = []
    for i, name in enumerate(PHASES):
        if i < active:
            status = "completed"
        elif i == active:
            status = "active"
        else:
            status = "upcoming"
        phases.append({"name": name, "status": status})
    return phases


async def build_portal_summary(store: Store, slug: str, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    client = await store.get_client_by_slug(slug)
    if not client:
        raise PortalNotFound(f"No portal for '{slug}'")

    project = await store.get_project_for_client(client.id)
    tasks = await store.list_tasks(project.id) if project else []
    completion = completion_percentage(tasks)

    pending_approvals = 0
    new_deliverables = 0
    if project:
        pending_approvals = await store.count_deliverables(project.id, statuses=PENDING_APPROVAL_STATUSES)
        new_deliverables = await store.count_deliverables(project.id, uploaded_since=now - NEW_DELIVERABLE_WINDOW)

    logger.info("portal_summary_built", client_slug=slug, completion=completion, tasks=len(tasks))
    return {
        "client_slug": slug,
        "client_name": client.name,
        "project": project,
        "tasks": tasks,
        "completion": completion,
        "shift_hours": round(sum(t.shift_hours or 0 for t in tasks), 2),
        "traditional_estimate": round(sum(t.traditional_hours_estimate or 0 for t in tasks), 2),
        "phases": derive_phases(tasks, completion),
        "pending_approvals": pending_approvals,
        "new_deliverables": new_deliverables,
        "primary_color": client.primary_color or "#00F0FF",
        "accent_color": client.accent_color or "#BFFF00",
        "discovery_required": len(tasks) == 0,
    }
