"""Authorization rules shared by every channel endpoint."""
from uuid import UUID
from fastapi import HTTPException, status
from chatwave_app.chating.models.chat_model import ChatModel


def is_channel_admin(channel: ChatModel, user_id: UUID) -> bool:
    return channel.is_channel and user_id in channel.admins


def is_channel_member(channel: ChatModel, user_id: UUID) -> bool:
    return channel.is_channel and user_id in channel.members


def can_view_channel(channel: ChatModel, user_id: UUID) -> bool:
    return not channel.is_private or is_channel_member(channel, user_id)


def ensure_channel_admin(channel: ChatModel, user_id: UUID, action: str = "manage this channel"):
    if not is_channel_admin(channel, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Only admins can {action}")


def ensure_not_last_admin(channel: ChatModel, user_id: UUID):
    """Reject any change that would leave the channel without an admin."""
    if user_id in channel.admins and len(channel.admins) == 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot remove the only admin")
