import os
import uuid
import logging
from typing import Dict, List, Optional
from beanie.operators import Or
from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile, File, status
from chatwave_app.core import config
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.get_current_user import get_current_user, parse_uuid
from chatwave_app.chating.schemas.chat import (
    ChatResponse,
    CleanupResponse,
    ClearChatRequest,
    ClearChatResponse,
    CreateChatRequest,
    RepairResponse,
    UserChatResponse,
)
from chatwave_app.chating.schemas.message import (
    DeleteMessageRequest,
    EditMessageRequest,
    MessageResponse,
    MessageStatusResponse,
    SendMessageRequest,
    SharedMediaResponse,
    UploadFileResponse,
)
from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.services import chat_service, message_status
from chatwave_app.chating.maintenance import repair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])

ALLOWED_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "pdf", "doc", "docx", "mp3", "mp4", "wav", "mpeg"}


@router.post("/create-chat", response_model=ChatResponse)
async def create_chat(data: CreateChatRequest, response: Response, current_user: UserModel = Depends(get_current_user)):
    """Return the direct chat with `user_id`, creating it on first contact."""
    chat, created = await chat_service.get_or_create_direct_chat(current_user, data.user_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return chat


@router.post("/send-message", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(data: SendMessageRequest, current_user: UserModel = Depends(get_current_user)):
    message = await chat_service.send_message(current_user, data)
    return chat_service.serialize_message(message, {current_user.id: current_user})


@router.get("/get-messages/{chat_id}", response_model=List[MessageResponse], status_code=status.HTTP_200_OK)
async def get_messages(
    chat_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: UserModel = Depends(get_current_user),
):
    chat = await chat_service.get_readable_chat(parse_uuid(chat_id, "Invalid chat ID"), current_user)
    messages = await chat_service.list_messages(chat, current_user, skip, limit)
    return await chat_service.serialize_messages(messages)


@router.get("/get-user-chats", response_model=List[UserChatResponse], status_code=status.HTTP_200_OK)
async def get_user_chats(current_user: UserModel = Depends(get_current_user)):
    return await chat_service.list_user_direct_chats(current_user)


@router.post("/upload", response_model=UploadFileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(file: UploadFile = File(...), current_user: UserModel = Depends(get_current_user)):
    """Store a chat attachment under the upload directory and return its public URL."""
    if not file.filename or "." not in file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    file_extension = file.filename.rsplit(".", 1)[-1].lower()
    if file_extension not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File type not allowed")

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(contents) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is too large")

    file_name = f"chat_{uuid.uuid4()}.{file_extension}"
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    with open(os.path.join(config.UPLOAD_DIR, file_name), "wb") as buffer:
        buffer.write(contents)

    logger.info(f"User {current_user.id} uploaded {file_name} ({len(contents)} bytes)")
    return {"file_url": f"/uploads/{file_name}", "file_name": file.filename, "file_size": len(contents)}


@router.patch("/chats/{chat_id}/read", status_code=status.HTTP_200_OK)
async def mark_chat_read(chat_id: str, current_user: UserModel = Depends(get_current_user)):
    chat = await chat_service.get_member_chat(parse_uuid(chat_id, "Invalid chat ID"), current_user)
    updated = await message_status.mark_all_read(chat, current_user.id)
    return {"message": "Messages marked as read", "chat_id": chat.id, "updated": len(updated)}


@router.get("/chats/unread-counts", response_model=Dict[str, int], status_code=status.HTTP_200_OK)
async def get_unread_counts(current_user: UserModel = Depends(get_current_user)):
    return await chat_service.unread_counts_for(current_user)


@router.delete("/chats/cleanup", response_model=CleanupResponse, status_code=status.HTTP_200_OK)
async def cleanup_chats(current_user: UserModel = Depends(get_current_user)):
    deleted_empty, deleted_duplicates = await repair.cleanup_chats()
    logger.info(f"User {current_user.id} ran chat cleanup")
    return {"message": "Cleanup completed", "deleted_empty": deleted_empty, "deleted_duplicates": deleted_duplicates}


@router.post("/chats/fix-unread-counts", response_model=RepairResponse, status_code=status.HTTP_200_OK)
async def fix_unread_counts(current_user: UserModel = Depends(get_current_user)):
    """Recompute the caller's unread counters from their messages."""
    chats = await ChatModel.find(Or({"participants": current_user.id}, {"members": current_user.id})).to_list()
    checked, fixed = await repair.repair_unread_counts([chat.id for chat in chats])
    return {"message": "Unread counts repaired", "chats_checked": checked, "chats_fixed": fixed}


@router.get("/chats/shared-media", response_model=SharedMediaResponse, status_code=status.HTTP_200_OK)
async def get_shared_media(
    user_id1: str,
    user_id2: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
):
    return await chat_service.shared_media(
        current_user,
        parse_uuid(user_id1, "Invalid user ID"),
        parse_uuid(user_id2, "Invalid user ID"),
        page,
        limit,
    )


@router.delete("/chats/{chat_id}/messages", response_model=ClearChatResponse, status_code=status.HTTP_200_OK)
async def clear_chat(
    chat_id: str,
    data: Optional[ClearChatRequest] = None,
    current_user: UserModel = Depends(get_current_user),
):
    delete_for_everyone = bool(data and data.delete_for_everyone)
    chat = await chat_service.get_member_chat(parse_uuid(chat_id, "Invalid chat ID"), current_user)
    affected = await chat_service.clear_chat(chat, current_user, delete_for_everyone)
    return {
        "message": "Chat cleared for everyone" if delete_for_everyone else "Chat cleared for you",
        "chat_id": chat.id,
        "delete_for_everyone": delete_for_everyone,
        "affected": affected,
    }


@router.patch("/{message_id}/delivered", response_model=MessageStatusResponse, status_code=status.HTTP_200_OK)
async def mark_as_delivered(message_id: str, current_user: UserModel = Depends(get_current_user)):
    message, _ = await message_status.get_message_for_member(parse_uuid(message_id, "Invalid message ID"), current_user.id)
    message = await message_status.mark_delivered(message, current_user.id)
    return message_status.status_detail(message)


@router.patch("/{message_id}/read", response_model=MessageStatusResponse, status_code=status.HTTP_200_OK)
async def mark_as_read(message_id: str, current_user: UserModel = Depends(get_current_user)):
    message, chat = await message_status.get_message_for_member(parse_uuid(message_id, "Invalid message ID"), current_user.id)
    message = await message_status.mark_read(message, chat, current_user.id)
    return message_status.status_detail(message)


@router.get("/{message_id}/status", response_model=MessageStatusResponse, status_code=status.HTTP_200_OK)
async def get_message_status(message_id: str, current_user: UserModel = Depends(get_current_user)):
    message, _ = await message_status.get_message_for_member(parse_uuid(message_id, "Invalid message ID"), current_user.id)
    return message_status.status_detail(message)


@router.patch("/{message_id}/edit", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def edit_message(message_id: str, data: EditMessageRequest, current_user: UserModel = Depends(get_current_user)):
    message, chat = await message_status.get_message_for_member(parse_uuid(message_id, "Invalid message ID"), current_user.id)
    message = await chat_service.edit_message(message, chat, current_user, data.content)
    return chat_service.serialize_message(message, {current_user.id: current_user})


@router.delete("/{message_id}", status_code=status.HTTP_200_OK)
async def delete_message(
    message_id: str,
    data: Optional[DeleteMessageRequest] = None,
    current_user: UserModel = Depends(get_current_user),
):
    message, chat = await message_status.get_message_for_member(parse_uuid(message_id, "Invalid message ID"), current_user.id)
    return await chat_service.delete_message(message, chat, current_user, bool(data and data.delete_for_everyone))
