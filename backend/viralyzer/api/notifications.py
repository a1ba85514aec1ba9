from uuid import UUID

from fastapi import APIRouter, Query
from sqlalchemy import select

from viralyzer.api.deps import CurrentUser, DbSession
from viralyzer.exceptions import NotificationNotFoundError
from viralyzer.models.notification import Notification
from viralyzer.schemas.project import NotificationResponse

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUser,
    db: DbSession,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[NotificationResponse]:
    """List the current user's notifications, newest first."""
    query = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return [NotificationResponse.model_validate(n) for n in result.scalars().all()]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> NotificationResponse:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotificationNotFoundError(f"Notification not found: {notification_id}")

    notification.is_read = True
    await db.flush()
    return NotificationResponse.model_validate(notification)
