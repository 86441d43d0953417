from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from chatwave_app.core.base.base import BaseResponse
from chatwave_app.users.schemas.user_schemas import UserPublic


class ChannelCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_private: bool = False
    member_ids: Optional[List[UUID]] = None


class ChannelUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_private: Optional[bool] = None


class ChannelMemberAdd(BaseModel):
    user_id: UUID


class ChannelAdminUpdate(BaseModel):
    user_id: UUID
    is_admin: bool


class ChannelResponse(BaseResponse):
    name: str
    description: str = ""
    is_private: bool
    created_by: Optional[UserPublic] = None
    admins: List[UserPublic] = []
    members: List[UserPublic] = []
    last_message: Optional[str] = None
    last_message_sender: Optional[UserPublic] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime
