from datetime import datetime
from typing import Optional
from enum import Enum
from uuid import UUID
from pymongo import IndexModel
from pydantic import Field
from chatwave_app.core.base.base import BaseCollection, utc_now


class NotificationType(str, Enum):
    ACCOUNT = "ACCOUNT"
    MESSAGE = "MESSAGE"
    CHANNEL = "CHANNEL"
    SYSTEM = "SYSTEM"


class NotificationModel(BaseCollection):
    # plain id rather than a Link: notifications are only ever read per owner
    user_id: UUID
    type: NotificationType
    title: str
    body: str
    related_entity_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "notifications"
        indexes = [IndexModel([("user_id", 1), ("created_at", -1)])]

    def push_payload(self) -> dict:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "title": self.title,
            "body": self.body,
            "related_entity_id": self.related_entity_id,
            "created_at": self.created_at.isoformat(),
        }
