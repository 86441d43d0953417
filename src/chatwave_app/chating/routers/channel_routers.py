from typing import List
from fastapi import APIRouter, Depends, Query, status
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.get_current_user import get_current_user, parse_uuid
from chatwave_app.chating.schemas.channel import ChannelAdminUpdate, ChannelCreate, ChannelMemberAdd, ChannelResponse, ChannelUpdate
from chatwave_app.chating.schemas.message import MessageResponse
from chatwave_app.chating.services import channel_service, chat_service

router = APIRouter(prefix="/channels", tags=["Channels"])


@router.post("/create", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(data: ChannelCreate, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.create_channel(current_user, data)
    return await channel_service.serialize_channel(channel, current_user.id)


@router.get("/user-channels", response_model=List[ChannelResponse], status_code=status.HTTP_200_OK)
async def get_user_channels(current_user: UserModel = Depends(get_current_user)):
    """Public channels plus the private channels the caller belongs to, most active first."""
    return await channel_service.list_user_channels(current_user)


@router.get("/common-channels/{user_id1}/{user_id2}", response_model=List[ChannelResponse], status_code=status.HTTP_200_OK)
async def get_common_channels(user_id1: str, user_id2: str, current_user: UserModel = Depends(get_current_user)):
    return await channel_service.common_channels(
        current_user,
        parse_uuid(user_id1, "Invalid user ID"),
        parse_uuid(user_id2, "Invalid user ID"),
    )


@router.put("/{channel_id}", response_model=ChannelResponse, status_code=status.HTTP_200_OK)
async def update_channel(channel_id: str, data: ChannelUpdate, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    channel = await channel_service.update_channel(channel, current_user, data)
    return await channel_service.serialize_channel(channel, current_user.id)


@router.get("/{channel_id}/members", status_code=status.HTTP_200_OK)
async def get_channel_members(channel_id: str, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    return {"members": await channel_service.get_members(channel, current_user)}


@router.post("/{channel_id}/members", response_model=ChannelResponse, status_code=status.HTTP_200_OK)
async def add_channel_member(channel_id: str, data: ChannelMemberAdd, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    channel = await channel_service.add_member(channel, current_user, data.user_id)
    return await channel_service.serialize_channel(channel, current_user.id)


@router.delete("/{channel_id}/members/{user_id}", status_code=status.HTTP_200_OK)
async def remove_channel_member(channel_id: str, user_id: str, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    member_id = parse_uuid(user_id, "Invalid user ID")
    channel = await channel_service.remove_member(channel, current_user, member_id)
    return {"message": "Member removed", "channel_id": channel.id, "user_id": member_id}


@router.put("/{channel_id}/admin", response_model=ChannelResponse, status_code=status.HTTP_200_OK)
async def update_channel_admin(channel_id: str, data: ChannelAdminUpdate, current_user: UserModel = Depends(get_current_user)):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    channel = await channel_service.set_admin(channel, current_user, data.user_id, data.is_admin)
    return await channel_service.serialize_channel(channel, current_user.id)


@router.get("/{channel_id}/messages", response_model=List[MessageResponse], status_code=status.HTTP_200_OK)
async def get_channel_messages(
    channel_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: UserModel = Depends(get_current_user),
):
    channel = await channel_service.get_channel_or_404(parse_uuid(channel_id, "Invalid channel ID"))
    channel = await chat_service.get_readable_chat(channel.id, current_user)
    messages = await chat_service.list_messages(channel, current_user, skip, limit)
    return await chat_service.serialize_messages(messages)
