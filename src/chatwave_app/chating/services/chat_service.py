import logging
from datetime import timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from beanie.operators import In, Or
from fastapi import HTTPException, status
from pydantic import ValidationError
from chatwave_app.core import config
from chatwave_app.core.base.base import as_utc, utc_now
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.populate_users import fetch_user_map, public_profile
from chatwave_app.chating.models.chat_model import ChatModel, ChatType
from chatwave_app.chating.models.message_model import MessageModel, MessageType, EditHistoryEntry
from chatwave_app.chating.schemas.message import SendMessageRequest
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.services import unread_counts
from chatwave_app.chating.services.channel_policy import can_view_channel

logger = logging.getLogger(__name__)


def serialize_message(message: MessageModel, users: Dict[UUID, UserModel] = None) -> dict:
    data = message.model_dump(exclude={"is_deleted", "deleted_by", "deleted_at"})
    data["sender_profile"] = public_profile((users or {}).get(message.sender))
    return data


async def serialize_messages(messages: List[MessageModel]) -> List[dict]:
    users = await fetch_user_map(m.sender for m in messages)
    return [serialize_message(m, users) for m in messages]


async def get_chat_or_404(chat_id: UUID) -> ChatModel:
    chat = await ChatModel.get(chat_id)
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    return chat


async def get_member_chat(chat_id: UUID, user: UserModel) -> ChatModel:
    chat = await get_chat_or_404(chat_id)
    if not chat.has_member(user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this chat")
    return chat


async def get_readable_chat(chat_id: UUID, user: UserModel) -> ChatModel:
    """Members can read any chat; anyone can read a public channel."""
    chat = await get_chat_or_404(chat_id)
    if chat.has_member(user.id) or (chat.is_channel and can_view_channel(chat, user.id)):
        return chat
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this chat")


async def find_direct_chat(user_a: UUID, user_b: UUID) -> Optional[ChatModel]:
    return await ChatModel.find_one({
        "type": ChatType.DIRECT.value,
        "participants": {"$all": [user_a, user_b], "$size": 2},
    })


async def get_or_create_direct_chat(user: UserModel, other_id: UUID) -> Tuple[ChatModel, bool]:
    if other_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot start a chat with yourself")

    other = await UserModel.get(other_id)
    if not other:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = await find_direct_chat(user.id, other_id)
    if existing:
        return existing, False

    chat = ChatModel(
        type=ChatType.DIRECT,
        participants=[user.id, other_id],
        unread_count={str(user.id): 0, str(other_id): 0},
    )
    await chat.insert()
    logger.info(f"Created direct chat {chat.id} between {user.id} and {other_id}")
    return chat, True


async def send_message(user: UserModel, data: SendMessageRequest) -> MessageModel:
    chat = await get_member_chat(data.chat_id, user)

    try:
        message = MessageModel(
            chat_id=chat.id,
            sender=user.id,
            message_type=data.message_type,
            content=data.content.strip() if data.content else data.content,
            file_url=data.file_url,
            file_name=data.file_name,
            file_size=data.file_size,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors()[0]["msg"])

    await message.insert()
    await unread_counts.record_new_message(chat, message)
    await chat.fetch()

    payload = serialize_message(message, {user.id: user})
    members = [str(member) for member in chat.member_ids()]
    await manager.send_to_users(members, "newMessage", payload)
    for member in chat.member_ids():
        await manager.send_to_user(str(member), "chatUpdated", {
            "chat_id": chat.id,
            "last_message": chat.last_message_text,
            "last_message_sender": chat.last_message_sender,
            "last_message_time": chat.last_message_time,
            "unread_count": chat.unread_for(member),
        })
    return message


async def list_messages(chat: ChatModel, user: UserModel, skip: int = 0, limit: int = 50) -> List[MessageModel]:
    messages = await MessageModel.find(
        {"chat_id": chat.id, "is_deleted": False, "deleted_by": {"$ne": user.id}}
    ).sort(-MessageModel.created_at).skip(skip).limit(limit).to_list()
    # newest page first from the DB, chronological for the UI
    return messages[::-1]


async def list_user_direct_chats(user: UserModel) -> List[dict]:
    chats = await ChatModel.find(
        {"type": ChatType.DIRECT.value, "participants": user.id}
    ).sort(-ChatModel.updated_at).to_list()

    others = {chat.id: next((p for p in chat.participants if p != user.id), None) for chat in chats}
    users = await fetch_user_map(others.values())

    result = []
    for chat in chats:
        result.append({
            "id": chat.id,
            "type": chat.type,
            "other_user": public_profile(users.get(others[chat.id])),
            "last_message": chat.last_message_text,
            "last_message_sender": chat.last_message_sender,
            "last_message_time": chat.last_message_time,
            "unread_count": chat.unread_for(user.id),
        })
    return result


async def unread_counts_for(user: UserModel) -> Dict[str, int]:
    chats = await ChatModel.find(Or({"participants": user.id}, {"members": user.id})).to_list()
    return {str(chat.id): chat.unread_for(user.id) for chat in chats}


async def refresh_last_message(chat: ChatModel):
    last = await MessageModel.find(
        {"chat_id": chat.id, "is_deleted": False}
    ).sort(-MessageModel.created_at).first_or_none()
    await ChatModel.find_one({"_id": chat.id}).update({"$set": {
        "last_message": last.id if last else None,
        "last_message_text": last.preview() if last else None,
        "last_message_sender": last.sender if last else None,
        "last_message_time": last.created_at if last else None,
    }})
    await chat.fetch()


async def edit_message(message: MessageModel, chat: ChatModel, user: UserModel, content: str) -> MessageModel:
    if message.sender != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only edit your own messages")
    if message.is_hidden_for(user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deleted messages cannot be edited")
    if message.message_type != MessageType.TEXT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only text messages can be edited")

    window = timedelta(minutes=config.MESSAGE_EDIT_WINDOW_MINUTES)
    if utc_now() - as_utc(message.created_at) > window:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Messages can only be edited within {config.MESSAGE_EDIT_WINDOW_MINUTES} minutes of sending",
        )

    content = content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message content cannot be empty")
    if content == message.content:
        return message

    now = utc_now()
    await MessageModel.find_one({"_id": message.id}).update({
        "$push": {"edit_history": EditHistoryEntry(content=message.content, edited_at=now).model_dump()},
        "$set": {"content": content, "is_edited": True, "edited_at": now, "updated_at": now},
    })
    await message.fetch()

    if chat.last_message == message.id:
        await refresh_last_message(chat)

    await manager.send_to_users(chat.member_ids(), "messageUpdated", serialize_message(message, {user.id: user}))
    return message


async def delete_message(message: MessageModel, chat: ChatModel, user: UserModel, delete_for_everyone: bool) -> dict:
    if delete_for_everyone:
        if message.sender != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can delete a message for everyone")
        await message.delete()
        await _after_removal(chat)
        await manager.send_to_users(chat.member_ids(), "messageDeleted", {
            "message_id": message.id,
            "chat_id": chat.id,
            "delete_for_everyone": True,
        })
        return {"message": "Message deleted for everyone", "message_id": message.id}

    masked = {"deleted_at": utc_now()}
    if message.sender == user.id:
        masked["deleted_for_sender"] = True
    await MessageModel.find_one({"_id": message.id}).update(
        {"$addToSet": {"deleted_by": user.id}, "$set": masked}
    )
    await message.fetch()
    if set(chat.member_ids()) <= set(message.deleted_by):
        await MessageModel.find_one({"_id": message.id}).update({"$set": {"is_deleted": True}})
        message.is_deleted = True

    if message.is_deleted:
        await _after_removal(chat)
    else:
        await unread_counts.sync_unread_for_user(chat, user.id)
    await manager.send_to_user(str(user.id), "messageDeleted", {
        "message_id": message.id,
        "chat_id": chat.id,
        "delete_for_everyone": False,
    })
    return {"message": "Message deleted for you", "message_id": message.id}


async def _after_removal(chat: ChatModel):
    await refresh_last_message(chat)
    for member in chat.member_ids():
        await unread_counts.sync_unread_for_user(chat, member)


async def clear_chat(chat: ChatModel, user: UserModel, delete_for_everyone: bool) -> int:
    if delete_for_everyone:
        if chat.is_channel and user.id not in chat.admins:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can clear a channel for everyone")
        result = await MessageModel.find({"chat_id": chat.id}).delete()
        affected = result.deleted_count if result else 0
        await ChatModel.find_one({"_id": chat.id}).update({"$set": {
            "unread_count": {str(member): 0 for member in chat.member_ids()},
            "last_message": None,
            "last_message_text": None,
            "last_message_sender": None,
            "last_message_time": None,
        }})
        await chat.fetch()
        recipients = chat.member_ids()
    else:
        result = await MessageModel.find(
            {"chat_id": chat.id, "deleted_by": {"$ne": user.id}}
        ).update({"$addToSet": {"deleted_by": user.id}, "$set": {"deleted_at": utc_now()}})
        affected = result.modified_count if result else 0
        await MessageModel.find({"chat_id": chat.id, "sender": user.id}).update(
            {"$set": {"deleted_for_sender": True}}
        )
        await unread_counts.reset_unread(chat, user.id)
        recipients = [user.id]

    logger.info(f"User {user.id} cleared chat {chat.id} (for everyone: {delete_for_everyone}, {affected} messages)")
    await manager.send_to_users(recipients, "messagesCleared", {
        "chat_id": chat.id,
        "delete_for_everyone": delete_for_everyone,
        "cleared_by": user.id,
    })
    return affected


async def shared_media(user: UserModel, user_id1: UUID, user_id2: UUID, page: int, limit: int) -> dict:
    if user.id not in (user_id1, user_id2):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view media from your own chats")

    chat = await find_direct_chat(user_id1, user_id2)
    empty = {"media": [], "total_count": 0, "total_pages": 0, "current_page": page,
             "has_next_page": False, "has_prev_page": page > 1}
    if not chat:
        return empty

    query = MessageModel.find(
        {"chat_id": chat.id, "is_deleted": False, "deleted_by": {"$ne": user.id}},
        In(MessageModel.message_type, [MessageType.IMAGE.value, MessageType.FILE.value]),
    )
    total_count = await query.count()
    media = await query.sort(-MessageModel.created_at).skip((page - 1) * limit).limit(limit).to_list()
    total_pages = (total_count + limit - 1) // limit
    return {
        "media": await serialize_messages(media),
        "total_count": total_count,
        "total_pages": total_pages,
        "current_page": page,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
