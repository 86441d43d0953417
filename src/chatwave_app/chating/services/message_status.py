"""
Delivery and read tracking for messages.

A message moves `sent -> delivered -> read` and never back. `delivered_to` and
`read_by` are sets, and a reader gets exactly one read receipt (the first read
wins). Every change is pushed to the chat room and to the sender as
`messageStatusUpdate`.
"""
import logging
from typing import Iterable, List, Optional
from uuid import UUID
from beanie.operators import In, Or
from fastapi import HTTPException, status
from chatwave_app.core.base.base import utc_now
from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.models.message_model import MessageModel, MessageStatus
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.services import unread_counts

logger = logging.getLogger(__name__)


def advance_status(current: MessageStatus, target: MessageStatus) -> MessageStatus:
    return target if target.rank > current.rank else current


def status_payload(message: MessageModel) -> dict:
    return {
        "message_id": message.id,
        "chat_id": message.chat_id,
        "status": message.status,
        "delivered_to": message.delivered_to,
        "read_by": message.read_by,
    }


def status_detail(message: MessageModel) -> dict:
    return {**status_payload(message), "read_receipts": [r.model_dump() for r in message.read_receipts]}


async def emit_status_update(message: MessageModel):
    payload = status_payload(message)
    sender = str(message.sender)
    await manager.send_to_room(str(message.chat_id), "messageStatusUpdate", payload, exclude=sender)
    await manager.send_to_user(sender, "messageStatusUpdate", payload)


def _read_update(user_id: UUID) -> dict:
    return {
        "$addToSet": {"read_by": user_id, "delivered_to": user_id},
        "$push": {"read_receipts": {"user": user_id, "read_at": utc_now()}},
        "$set": {"status": MessageStatus.READ.value, "updated_at": utc_now()},
    }


def _unread_by(user_id: UUID) -> dict:
    return {"sender": {"$ne": user_id}, "read_by": {"$ne": user_id}}


async def get_message_for_member(message_id: UUID, user_id: UUID):
    message = await MessageModel.get(message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    chat = await ChatModel.get(message.chat_id)
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if not chat.has_member(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this chat")
    return message, chat


async def mark_delivered(message: MessageModel, user_id: UUID, emit: bool = True) -> MessageModel:
    if message.sender == user_id:
        return message

    await MessageModel.find_one({"_id": message.id}).update({"$addToSet": {"delivered_to": user_id}})
    await MessageModel.find_one({"_id": message.id, "status": MessageStatus.SENT.value}).update(
        {"$set": {"status": MessageStatus.DELIVERED.value}}
    )
    await message.fetch()
    if emit:
        await emit_status_update(message)
    return message


async def mark_read(message: MessageModel, chat: ChatModel, user_id: UUID) -> MessageModel:
    if message.sender == user_id:
        return message

    result = await MessageModel.find_one({"_id": message.id, **_unread_by(user_id)}).update(_read_update(user_id))
    await message.fetch()
    if result is not None and result.modified_count:
        await unread_counts.sync_unread_for_user(chat, user_id)
        await emit_status_update(message)
        await _notify_chat_updated(chat, user_id)
    return message


async def mark_messages_read(chat: ChatModel, message_ids: Iterable[UUID], user_id: UUID) -> List[MessageModel]:
    ids = list(message_ids)
    if not ids:
        return []
    pending = await MessageModel.find(
        In(MessageModel.id, ids), {"chat_id": chat.id, **_unread_by(user_id)}
    ).to_list()
    return await _apply_read(chat, pending, user_id, reset=False)


async def mark_all_read(chat: ChatModel, user_id: UUID) -> List[MessageModel]:
    pending = await MessageModel.find({"chat_id": chat.id, **_unread_by(user_id)}).to_list()
    return await _apply_read(chat, pending, user_id, reset=True)


async def _apply_read(chat: ChatModel, pending: List[MessageModel], user_id: UUID, reset: bool) -> List[MessageModel]:
    ids = [message.id for message in pending]
    if ids:
        # the read_by guard keeps receipts unique when two requests race
        await MessageModel.find(In(MessageModel.id, ids), _unread_by(user_id)).update(_read_update(user_id))

    if reset:
        await unread_counts.reset_unread(chat, user_id)
    elif ids:
        await unread_counts.sync_unread_for_user(chat, user_id)

    updated = await MessageModel.find(In(MessageModel.id, ids)).to_list() if ids else []
    for message in updated:
        await emit_status_update(message)
    await _notify_chat_updated(chat, user_id)
    logger.info(f"User {user_id} read {len(updated)} messages in chat {chat.id}")
    return updated


async def _notify_chat_updated(chat: ChatModel, user_id: UUID):
    await chat.fetch()
    await manager.send_to_user(str(user_id), "chatUpdated", {
        "chat_id": chat.id,
        "unread_count": chat.unread_for(user_id),
    })


async def deliver_pending(user_id: UUID, chat_ids: Optional[List[UUID]] = None) -> List[MessageModel]:
    """
    Mark every `sent` message addressed to the user as delivered.

    Runs for all of the user's chats when their socket connects, or for a single
    chat when they join its room.
    """
    if chat_ids is None:
        chats = await ChatModel.find(
            Or({"participants": user_id}, {"members": user_id})
        ).to_list()
        chat_ids = [chat.id for chat in chats]
    if not chat_ids:
        return []

    pending = await MessageModel.find(
        In(MessageModel.chat_id, chat_ids),
        {
            "status": MessageStatus.SENT.value,
            "sender": {"$ne": user_id},
            "delivered_to": {"$ne": user_id},
        },
    ).to_list()

    delivered = []
    for message in pending:
        delivered.append(await mark_delivered(message, user_id))
    if delivered:
        logger.info(f"Delivered {len(delivered)} pending messages to user {user_id}")
    return delivered
