import logging
from typing import Optional
from uuid import UUID
from fastapi import HTTPException, status
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.notifications.models import NotificationModel, NotificationType
from chatwave_app.chating.realtime.connection_manager import manager

logger = logging.getLogger(__name__)


async def send_notification(
    user: UserModel,
    title: str,
    body: str,
    type: NotificationType,
    related_entity_id: Optional[str] = None
) -> NotificationModel:
    """
    Store a notification for `user` and push it over the socket.

    The record is kept whether or not the user is connected; offline users
    pick it up from GET /api/notifications.
    """
    notification = NotificationModel(
        user_id=user.id,
        title=title,
        body=body,
        type=type,
        related_entity_id=related_entity_id,
    )
    await notification.insert()
    logger.info(f"{type.value} notification {notification.id} for user {user.id}")

    await manager.send_to_user(str(user.id), "notification", notification.push_payload())
    return notification


async def list_notifications(user_id: UUID, skip: int = 0, limit: int = 50) -> dict:
    owned = NotificationModel.find(NotificationModel.user_id == user_id)
    notifications = await owned.sort("-created_at").skip(skip).limit(limit).to_list()
    unread_count = await NotificationModel.find(
        NotificationModel.user_id == user_id,
        NotificationModel.is_read == False,
    ).count()
    return {"unread_count": unread_count, "notifications": notifications}


async def mark_read(user_id: UUID, notification_id: UUID) -> NotificationModel:
    notification = await NotificationModel.find_one(
        NotificationModel.id == notification_id,
        NotificationModel.user_id == user_id,
    )
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    if not notification.is_read:
        await notification.set({NotificationModel.is_read: True})
    return notification


async def mark_all_read(user_id: UUID) -> int:
    result = await NotificationModel.find(
        NotificationModel.user_id == user_id,
        NotificationModel.is_read == False,
    ).update({"$set": {"is_read": True}})
    return getattr(result, "modified_count", 0)
