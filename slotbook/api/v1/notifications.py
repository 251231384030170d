"""In-app notification endpoints for the current actor."""

from fastapi import APIRouter, HTTPException, status

from slotbook.api.deps import CurrentActor, DbSession
from slotbook.schemas.notification import NotificationRead, UnreadCount
from slotbook.services.inbox import InboxService

router = APIRouter()


@router.get(
    "",
    response_model=list[NotificationRead],
    summary="Latest notifications",
)
async def list_notifications(
    session: DbSession,
    actor: CurrentActor,
) -> list[NotificationRead]:
    notifications = await InboxService(session).list_for_user(actor.actor_id)
    return [NotificationRead.model_validate(n) for n in notifications]


@router.get(
    "/unread-count",
    response_model=UnreadCount,
    summary="Unread notification count",
)
async def unread_count(
    session: DbSession,
    actor: CurrentActor,
) -> UnreadCount:
    count = await InboxService(session).unread_count(actor.actor_id)
    return UnreadCount(count=count)


@router.post(
    "/read-all",
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications read",
)
async def mark_all_read(
    session: DbSession,
    actor: CurrentActor,
) -> dict:
    updated = await InboxService(session).mark_all_read(actor.actor_id)
    return {"updated": updated}


@router.post(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark notification read",
)
async def mark_read(
    notification_id: str,
    session: DbSession,
    actor: CurrentActor,
) -> NotificationRead:
    notification = await InboxService(session).mark_read(notification_id, actor.actor_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return NotificationRead.model_validate(notification)
