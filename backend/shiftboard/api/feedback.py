"""Client feedback on deliverables."""

from fastapi import APIRouter, Depends, HTTPException

from shiftboard.api.deliverables import owning_client
from shiftboard.middleware.auth import get_current_user
from shiftboard.schemas.deliverable import FeedbackCreate, FeedbackCreateResponse, FeedbackResponse
from shiftboard.services.auth import AuthenticatedUser
from shiftboard.services.notifications import NotificationDispatcher, get_dispatcher
from shiftboard.services.store import ReferenceNotFoundError, Store, StoreError, as_uuid, get_store

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackCreateResponse, status_code=201)
async def create_feedback(
    data: FeedbackCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    store: Store = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if not user.is_staff:
        deliverable = await store.get_deliverable(data.deliverable_id)
        if not deliverable:
            raise HTTPException(status_code=404, detail="Deliverable or client not found")
        owner = await owning_client(store, deliverable)
        if not owner or owner.slug != user.client_slug or str(owner.id) != data.client_id:
            raise HTTPException(status_code=403, detail="Not allowed to comment on this deliverable")

    try:
        feedback = await store.create_feedback(
            deliverable_id=as_uuid(data.deliverable_id),
            client_id=as_uuid(data.client_id),
            content=data.content,
        )
    except ReferenceNotFoundError:
        raise HTTPException(status_code=404, detail="Deliverable or client not found")

    logger.info("feedback_created", feedback_id=str(feedback.id), deliverable_id=data.deliverable_id)

    try:
        deliverable = await store.get_deliverable(data.deliverable_id)
        client = await store.get_client(data.client_id)
    except StoreError as e:
        logger.warning("feedback_notify_lookup_failed", error=str(e))
        deliverable, client = None, None

    notified = await dispatcher.feedback_received(
        client_name=client.name if client else user.name,
        deliverable_name=deliverable.name if deliverable else "deliverable",
        content=data.content,
        email=client.email if client else user.email,
    )

    return FeedbackCreateResponse(data=FeedbackResponse.model_validate(feedback), admin_notified=notified)
