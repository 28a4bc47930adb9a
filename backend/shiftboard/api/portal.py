"""Client portal summary endpoint."""

from fastapi import APIRouter, Depends, HTTPException

from shiftboard.middleware.auth import get_current_user
from shiftboard.schemas.portal import PortalProjectResponse, PortalSummary, PortalTaskResponse
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.portal import PortalNotFound, build_portal_summary
from shiftboard.services.store import Store, get_store

router = APIRouter(prefix="/portal", tags=["portal"])


@router.get("/{client_slug}", response_model=PortalSummary)
async def get_portal(
    client_slug: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """Project progress for a client. Clients only see their own portal."""
    if not user.is_staff and user.client_slug != client_slug:
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        summary = await build_portal_summary(store, client_slug)
    except PortalNotFound:
        raise HTTPException(status_code=404, detail="Portal not found")

    project = summary.pop("project")
    tasks = summary.pop("tasks")
    return PortalSummary(
        project=PortalProjectResponse.model_validate(project) if project else None,
        tasks=[PortalTaskResponse.model_validate(t) for t in tasks],
        **summary,
    )
