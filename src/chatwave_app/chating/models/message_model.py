from enum import Enum
from uuid import UUID
from datetime import datetime
from typing import Optional, List
from beanie import before_event, Replace, Save
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from chatwave_app.core.base.base import BaseCollection, utc_now


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [MessageStatus.SENT, MessageStatus.DELIVERED, MessageStatus.READ]


class ReadReceipt(BaseModel):
    user: UUID
    read_at: datetime = Field(default_factory=utc_now)


class EditHistoryEntry(BaseModel):
    content: Optional[str] = None
    edited_at: datetime = Field(default_factory=utc_now)


class MessageModel(BaseCollection):
    chat_id: UUID
    sender: UUID
    message_type: MessageType = MessageType.TEXT
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None

    status: MessageStatus = MessageStatus.SENT
    delivered_to: List[UUID] = []
    read_by: List[UUID] = []
    read_receipts: List[ReadReceipt] = []

    is_edited: bool = False
    edited_at: Optional[datetime] = None
    edit_history: List[EditHistoryEntry] = []

    is_deleted: bool = False
    deleted_by: List[UUID] = []
    deleted_for_sender: bool = False
    deleted_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_payload(self):
        if self.message_type == MessageType.TEXT and not (self.content or "").strip():
            raise ValueError("Text messages need content")
        if self.message_type in (MessageType.IMAGE, MessageType.FILE) and not self.file_url:
            raise ValueError(f"{self.message_type.value} messages need a file_url")
        if self.message_type == MessageType.FILE and (not self.file_name or self.file_size is None):
            raise ValueError("file messages need file_name and file_size")
        return self

    @before_event([Save, Replace])
    def update_timestamp(self):
        self.updated_at = utc_now()

    def preview(self) -> str:
        if self.message_type == MessageType.IMAGE:
            return "Photo"
        if self.message_type == MessageType.FILE:
            return self.file_name or "File"
        return self.content or ""

    def is_hidden_for(self, user_id: UUID) -> bool:
        return self.is_deleted or user_id in self.deleted_by

    class Settings:
        name = "messages"
        indexes = [
            IndexModel([("chat_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("sender", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("read_by", ASCENDING)]),
            IndexModel([("status", ASCENDING)]),
        ]
