import logging
import re
from typing import List, Optional
from uuid import UUID
from beanie.operators import Or
from fastapi import HTTPException, status
from chatwave_app.core.base.base import utc_now
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.populate_users import fetch_user_map, public_profile
from chatwave_app.notifications.models import NotificationType
from chatwave_app.notifications.utils import send_notification
from chatwave_app.chating.models.chat_model import ChatModel, ChatType
from chatwave_app.chating.schemas.channel import ChannelCreate, ChannelUpdate
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.services import unread_counts
from chatwave_app.chating.services.channel_policy import (
    can_view_channel,
    ensure_channel_admin,
    ensure_not_last_admin,
    is_channel_member,
)

logger = logging.getLogger(__name__)


def _name_filter(name: str) -> dict:
    return {"type": ChatType.CHANNEL.value, "name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}


async def _ensure_unique_name(name: str, exclude: Optional[UUID] = None):
    existing = await ChatModel.find_one(_name_filter(name))
    if existing and existing.id != exclude:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A channel with this name already exists")


async def get_channel_or_404(channel_id: UUID) -> ChatModel:
    channel = await ChatModel.get(channel_id)
    if not channel or not channel.is_channel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return channel


async def serialize_channel(channel: ChatModel, viewer_id: UUID, users: dict = None) -> dict:
    if users is None:
        users = await fetch_user_map(
            list(channel.members) + list(channel.admins) + [channel.created_by, channel.last_message_sender]
        )
    return {
        "id": channel.id,
        "name": channel.name,
        "description": channel.description,
        "is_private": channel.is_private,
        "created_by": public_profile(users.get(channel.created_by)),
        "admins": [public_profile(users[uid]) for uid in channel.admins if uid in users],
        "members": [public_profile(users[uid]) for uid in channel.members if uid in users],
        "last_message": channel.last_message_text,
        "last_message_sender": public_profile(users.get(channel.last_message_sender)),
        "last_message_time": channel.last_message_time,
        "unread_count": channel.unread_for(viewer_id),
        "created_at": channel.created_at,
        "updated_at": channel.updated_at,
    }


async def create_channel(user: UserModel, data: ChannelCreate) -> ChatModel:
    name = (data.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Channel name is required")
    await _ensure_unique_name(name)

    requested = [uid for uid in dict.fromkeys(data.member_ids or []) if uid != user.id]
    invited = await fetch_user_map(requested)
    if len(invited) != len(requested):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="One or more member ids are invalid")

    members = [user.id] + requested
    channel = ChatModel(
        type=ChatType.CHANNEL,
        name=name,
        description=(data.description or "").strip(),
        is_private=data.is_private,
        created_by=user.id,
        admins=[user.id],
        members=members,
        unread_count={str(member): 0 for member in members},
    )
    await channel.insert()
    logger.info(f"User {user.id} created channel {channel.id} ({name}) with {len(members)} members")

    for member in invited.values():
        await send_notification(
            user=member,
            title="Added to a channel",
            body=f"{user.display_name} added you to #{name}",
            type=NotificationType.CHANNEL,
            related_entity_id=str(channel.id),
        )
    await manager.send_to_users(requested, "chatUpdated", {"chat_id": channel.id, "unread_count": 0})
    return channel


async def update_channel(channel: ChatModel, user: UserModel, data: ChannelUpdate) -> ChatModel:
    ensure_channel_admin(channel, user.id, "update this channel")

    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Channel name is required")
        await _ensure_unique_name(name, exclude=channel.id)
        changes["name"] = name
    if "description" in changes:
        changes["description"] = (changes["description"] or "").strip()
    if changes.get("is_private") is None:
        changes.pop("is_private", None)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one field is required for update")

    changes["updated_at"] = utc_now()
    await ChatModel.find_one({"_id": channel.id}).update({"$set": changes})
    await channel.fetch()
    await manager.send_to_users(channel.member_ids(), "chatUpdated", {"chat_id": channel.id, "name": channel.name})
    return channel


async def list_user_channels(user: UserModel) -> List[dict]:
    channels = await ChatModel.find(
        {"type": ChatType.CHANNEL.value},
        Or({"is_private": False}, {"members": user.id}),
    ).sort(-ChatModel.updated_at).to_list()

    ids = {user.id}
    for channel in channels:
        ids.update(channel.members)
        ids.update(channel.admins)
        ids.update([channel.created_by, channel.last_message_sender])
    users = await fetch_user_map(ids)
    return [await serialize_channel(channel, user.id, users) for channel in channels]


async def get_members(channel: ChatModel, user: UserModel) -> List[dict]:
    if not is_channel_member(channel, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this channel")
    users = await fetch_user_map(channel.members)
    return [
        {**public_profile(users[uid]), "is_admin": uid in channel.admins}
        for uid in channel.members if uid in users
    ]


async def add_member(channel: ChatModel, user: UserModel, member_id: UUID) -> ChatModel:
    ensure_channel_admin(channel, user.id, "add members")

    member = await UserModel.get(member_id)
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if member_id in channel.members:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is already a member")

    await ChatModel.find_one({"_id": channel.id}).update({
        "$addToSet": {"members": member_id},
        "$set": {"updated_at": utc_now()},
    })
    await channel.fetch()
    await unread_counts.sync_unread_for_user(channel, member_id)
    logger.info(f"User {user.id} added {member_id} to channel {channel.id}")

    await send_notification(
        user=member,
        title="Added to a channel",
        body=f"{user.display_name} added you to #{channel.name}",
        type=NotificationType.CHANNEL,
        related_entity_id=str(channel.id),
    )
    await manager.send_to_users(channel.member_ids(), "chatUpdated", {
        "chat_id": channel.id,
        "member_added": member_id,
    })
    return channel


async def remove_member(channel: ChatModel, user: UserModel, member_id: UUID) -> ChatModel:
    if member_id != user.id:
        ensure_channel_admin(channel, user.id, "remove members")
    if member_id not in channel.members:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not a member of this channel")
    ensure_not_last_admin(channel, member_id)

    await ChatModel.find_one({"_id": channel.id}).update({
        "$pull": {"members": member_id, "admins": member_id},
        "$set": {"updated_at": utc_now()},
    })
    await unread_counts.drop_unread(channel, [member_id])
    recipients = channel.member_ids()
    await channel.fetch()
    logger.info(f"User {user.id} removed {member_id} from channel {channel.id}")

    await manager.send_to_users(recipients, "chatUpdated", {
        "chat_id": channel.id,
        "member_removed": member_id,
    })
    return channel


async def set_admin(channel: ChatModel, user: UserModel, member_id: UUID, make_admin: bool) -> ChatModel:
    ensure_channel_admin(channel, user.id, "change admins")
    if member_id not in channel.members:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User must be a member of the channel")

    if make_admin:
        update = {"$addToSet": {"admins": member_id}}
    else:
        ensure_not_last_admin(channel, member_id)
        update = {"$pull": {"admins": member_id}}
    update["$set"] = {"updated_at": utc_now()}

    await ChatModel.find_one({"_id": channel.id}).update(update)
    await channel.fetch()
    await manager.send_to_users(channel.member_ids(), "chatUpdated", {
        "chat_id": channel.id,
        "admins": channel.admins,
    })
    return channel


async def common_channels(user: UserModel, user_id1: UUID, user_id2: UUID) -> List[dict]:
    channels = await ChatModel.find(
        {"type": ChatType.CHANNEL.value, "members": {"$all": [user_id1, user_id2]}}
    ).sort(-ChatModel.updated_at).to_list()
    visible = [c for c in channels if can_view_channel(c, user.id)]
    return [await serialize_channel(channel, user.id) for channel in visible]

