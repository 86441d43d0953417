from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from chatwave_app.users.utils.get_current_user import get_current_user
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.notifications import utils as notifications
from chatwave_app.notifications.schemas import NotificationResponse, NotificationListResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=NotificationListResponse)
async def my_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
):
    return await notifications.list_notifications(current_user.id, skip=skip, limit=limit)


@router.patch("/read-all", status_code=status.HTTP_200_OK)
async def read_all(current_user: UserModel = Depends(get_current_user)):
    updated = await notifications.mark_all_read(current_user.id)
    return {"message": "All marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def read_one(notification_id: UUID, current_user: UserModel = Depends(get_current_user)):
    return await notifications.mark_read(current_user.id, notification_id)
