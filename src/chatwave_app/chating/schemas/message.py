from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from chatwave_app.core.base.base import BaseResponse
from chatwave_app.chating.models.message_model import MessageType, MessageStatus
from chatwave_app.users.schemas.user_schemas import UserPublic


class SendMessageRequest(BaseModel):
    chat_id: UUID
    message_type: MessageType = MessageType.TEXT
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)


class EditMessageRequest(BaseModel):
    content: str = Field(min_length=1)


class DeleteMessageRequest(BaseModel):
    delete_for_everyone: bool = False


class ReadReceiptSchema(BaseModel):
    user: UUID
    read_at: datetime


class EditHistorySchema(BaseModel):
    content: Optional[str] = None
    edited_at: datetime


class MessageResponse(BaseResponse):
    chat_id: UUID
    sender: UUID
    sender_profile: Optional[UserPublic] = None
    message_type: MessageType
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    status: MessageStatus
    delivered_to: List[UUID] = []
    read_by: List[UUID] = []
    read_receipts: List[ReadReceiptSchema] = []
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    edit_history: List[EditHistorySchema] = []
    deleted_for_sender: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MessageStatusResponse(BaseModel):
    message_id: UUID
    chat_id: UUID
    status: MessageStatus
    delivered_to: List[UUID]
    read_by: List[UUID]
    read_receipts: List[ReadReceiptSchema]


class UploadFileResponse(BaseModel):
    file_url: str
    file_name: str
    file_size: int


class SharedMediaResponse(BaseModel):
    media: List[MessageResponse]
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_prev_page: bool
