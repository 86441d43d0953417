"""
Client -> server socket events.

Every frame is `{"type": <event>, "data": {...}}`. The acting user is always the
one the socket authenticated as; ids in the payload only name the target chat,
message or peer.
"""
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict
from fastapi import HTTPException, status
from pydantic import ValidationError
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.get_current_user import parse_uuid
from chatwave_app.users.utils.populate_users import public_profile
from chatwave_app.chating.schemas.message import SendMessageRequest
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.realtime.presence import presence
from chatwave_app.chating.services import chat_service, message_status, presence_service

logger = logging.getLogger(__name__)


@dataclass
class SocketSession:
    user: UserModel
    connection_id: str

    @property
    def user_id(self) -> str:
        return str(self.user.id)


Handler = Callable[[SocketSession, dict], Awaitable[None]]
HANDLERS: Dict[str, Handler] = {}


def on(*events: str):
    def register(func: Handler) -> Handler:
        for event in events:
            HANDLERS[event] = func
        return func
    return register


def _require(data: dict, key: str):
    value = data.get(key)
    if value in (None, ""):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} is required")
    return value


async def send_error(session: SocketSession, event: str, message: str, code: int):
    await manager.send_to_user(session.user_id, "error", {"event": event, "message": message, "code": code})


async def handle_frame(session: SocketSession, raw: str):
    """Decode one frame and run its handler, reporting failures back to the sender."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        await send_error(session, None, "Malformed frame", status.HTTP_400_BAD_REQUEST)
        return
    if not isinstance(frame, dict):
        await send_error(session, None, "Malformed frame", status.HTTP_400_BAD_REQUEST)
        return

    event = frame.get("type")
    handler = HANDLERS.get(event)
    if handler is None:
        await send_error(session, event, f"Unknown event: {event}", status.HTTP_400_BAD_REQUEST)
        return

    data = frame.get("data") or {}
    if not isinstance(data, dict):
        await send_error(session, event, "Event data must be an object", status.HTTP_400_BAD_REQUEST)
        return

    try:
        await handler(session, data)
    except HTTPException as e:
        await send_error(session, event, e.detail, e.status_code)
    except ValidationError as e:
        await send_error(session, event, e.errors()[0]["msg"], status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Socket handler {event} failed for user {session.user_id}: {e}", exc_info=True)
        await send_error(session, event, "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


@on("pong")
async def on_pong(session: SocketSession, data: dict):
    return None


@on("sendMessage")
async def on_send_message(session: SocketSession, data: dict):
    await chat_service.send_message(session.user, SendMessageRequest(**data))


@on("typing")
async def on_typing(session: SocketSession, data: dict):
    chat_id = parse_uuid(_require(data, "chat_id"), "Invalid chat ID")
    chat = await chat_service.get_member_chat(chat_id, session.user)
    await manager.send_to_users(chat.member_ids(), "typing", {
        "chat_id": chat.id,
        "user_id": session.user.id,
        "is_typing": bool(data.get("is_typing", True)),
    }, exclude=session.user_id)


@on("joinChat")
async def on_join_chat(session: SocketSession, data: dict):
    chat_id = parse_uuid(_require(data, "chat_id"), "Invalid chat ID")
    chat = await chat_service.get_readable_chat(chat_id, session.user)
    presence.join_room(session.user_id, str(chat.id))
    if chat.has_member(session.user.id):
        await message_status.deliver_pending(session.user.id, [chat.id])


@on("leaveChat")
async def on_leave_chat(session: SocketSession, data: dict):
    chat_id = parse_uuid(_require(data, "chat_id"), "Invalid chat ID")
    presence.leave_room(session.user_id, str(chat_id))


@on("markAsDelivered", "messageDelivered")
async def on_message_delivered(session: SocketSession, data: dict):
    message_id = parse_uuid(_require(data, "message_id"), "Invalid message ID")
    message, _ = await message_status.get_message_for_member(message_id, session.user.id)
    await message_status.mark_delivered(message, session.user.id)


@on("markAllMessagesDelivered")
async def on_mark_all_delivered(session: SocketSession, data: dict):
    chat_ids = None
    if data.get("chat_id"):
        chat = await chat_service.get_member_chat(parse_uuid(data["chat_id"], "Invalid chat ID"), session.user)
        chat_ids = [chat.id]
    await message_status.deliver_pending(session.user.id, chat_ids)


@on("messageRead")
async def on_message_read(session: SocketSession, data: dict):
    message_id = parse_uuid(_require(data, "message_id"), "Invalid message ID")
    message, chat = await message_status.get_message_for_member(message_id, session.user.id)
    await message_status.mark_read(message, chat, session.user.id)


@on("markMessagesAsRead")
async def on_mark_messages_read(session: SocketSession, data: dict):
    chat = await chat_service.get_member_chat(parse_uuid(_require(data, "chat_id"), "Invalid chat ID"), session.user)
    ids = [parse_uuid(mid, "Invalid message ID") for mid in data.get("message_ids") or []]
    await message_status.mark_messages_read(chat, ids, session.user.id)


@on("markAllMessagesAsRead")
async def on_mark_all_read(session: SocketSession, data: dict):
    chat = await chat_service.get_member_chat(parse_uuid(_require(data, "chat_id"), "Invalid chat ID"), session.user)
    await message_status.mark_all_read(chat, session.user.id)


@on("getOnlineUsers")
async def on_get_online_users(session: SocketSession, data: dict):
    await manager.send_to_user(session.user_id, "onlineUsers", {"users": presence.online_users()})


@on("updateUserStatus")
async def on_update_user_status(session: SocketSession, data: dict):
    is_online = bool(data.get("is_online", True))
    presence.set_hidden(session.user_id, not is_online)
    if is_online:
        await presence_service.mark_online(session.user.id)
        await manager.broadcast("userOnline", {"user_id": session.user_id}, exclude=session.user_id)
    else:
        await presence_service.mark_offline(session.user.id)
        await manager.broadcast("userOffline", {"user_id": session.user_id}, exclude=session.user_id)


# Call signaling. The server only relays; media never passes through it.

def _peer(data: dict) -> str:
    return str(parse_uuid(_require(data, "to"), "Invalid user ID"))


@on("start_call")
async def on_start_call(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "incoming_call", {
        "from": session.user_id,
        "caller": public_profile(session.user),
        "call_type": data.get("call_type", "audio"),
        "chat_id": data.get("chat_id"),
    })


@on("accept_call")
async def on_accept_call(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "call_accepted", {"from": session.user_id})


@on("reject_call")
async def on_reject_call(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "call_rejected", {"from": session.user_id, "reason": data.get("reason")})


@on("end_call")
async def on_end_call(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "call_ended", {"from": session.user_id})


@on("offer")
async def on_offer(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "offer", {"from": session.user_id, "offer": data.get("offer")})


@on("answer")
async def on_answer(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "answer", {"from": session.user_id, "answer": data.get("answer")})


@on("ice-candidate")
async def on_ice_candidate(session: SocketSession, data: dict):
    await manager.send_to_user(_peer(data), "ice-candidate", {
        "from": session.user_id,
        "candidate": data.get("candidate"),
    })
