from enum import Enum
from uuid import UUID
from datetime import datetime
from typing import Optional, List, Dict
from beanie import before_event, Replace, Save
from pydantic import Field, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from chatwave_app.core.base.base import BaseCollection, utc_now


class ChatType(str, Enum):
    DIRECT = "direct"
    CHANNEL = "channel"


class ChatModel(BaseCollection):
    type: ChatType = ChatType.DIRECT

    # direct chats
    participants: List[UUID] = []

    # channels
    name: Optional[str] = None
    description: str = ""
    is_private: bool = False
    created_by: Optional[UUID] = None
    admins: List[UUID] = []
    members: List[UUID] = []

    last_message: Optional[UUID] = None
    last_message_text: Optional[str] = None
    last_message_sender: Optional[UUID] = None
    last_message_time: Optional[datetime] = None

    # stringified user id -> unread message count
    unread_count: Dict[str, int] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("unread_count", mode="before")
    @classmethod
    def coerce_unread_count(cls, value):
        # legacy documents carry [{user, count}] or null here
        if isinstance(value, dict):
            return {str(k): int(v or 0) for k, v in value.items()}
        if isinstance(value, list):
            return {
                str(entry["user"]): int(entry.get("count") or 0)
                for entry in value
                if isinstance(entry, dict) and entry.get("user") is not None
            }
        return {}

    @before_event([Save, Replace])
    def update_timestamp(self):
        self.updated_at = utc_now()

    @property
    def is_channel(self) -> bool:
        return self.type == ChatType.CHANNEL

    def member_ids(self) -> List[UUID]:
        return list(self.members if self.is_channel else self.participants)

    def has_member(self, user_id: UUID) -> bool:
        return user_id in self.member_ids()

    def unread_for(self, user_id) -> int:
        return self.unread_count.get(str(user_id), 0)

    class Settings:
        name = "chats"
        indexes = [
            IndexModel([("participants", ASCENDING)]),
            IndexModel([("members", ASCENDING)]),
            IndexModel([("type", ASCENDING), ("name", ASCENDING)]),
            IndexModel([("updated_at", DESCENDING)]),
        ]
