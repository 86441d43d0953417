from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime
from uuid import UUID
from chatwave_app.core.base.base import BaseResponse
from chatwave_app.chating.models.chat_model import ChatType
from chatwave_app.users.schemas.user_schemas import UserPublic


class CreateChatRequest(BaseModel):
    user_id: UUID


class ClearChatRequest(BaseModel):
    delete_for_everyone: bool = False


class ChatResponse(BaseResponse):
    type: ChatType
    participants: List[UUID] = []
    last_message: Optional[UUID] = None
    last_message_text: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: Dict[str, int] = {}
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserChatResponse(BaseModel):
    id: UUID
    type: ChatType
    other_user: Optional[UserPublic] = None
    last_message: Optional[str] = None
    last_message_sender: Optional[UUID] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0


class ClearChatResponse(BaseModel):
    message: str
    chat_id: UUID
    delete_for_everyone: bool
    affected: int


class CleanupResponse(BaseModel):
    message: str
    deleted_empty: int
    deleted_duplicates: int


class RepairResponse(BaseModel):
    message: str
    chats_checked: int
    chats_fixed: int
