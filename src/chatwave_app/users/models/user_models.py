from beanie import before_event, Replace, Save
from pymongo import IndexModel
from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime
from chatwave_app.core.base.base import BaseCollection, utc_now


class UserModel(BaseCollection):

    email: EmailStr
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    profile_setup: bool = False

    is_online: bool = Field(default=False)
    last_seen: datetime = Field(default_factory=utc_now)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Auto-update "updated_at" on update
    @before_event([Save, Replace])
    def update_timestamp(self):
        self.updated_at = utc_now()

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email

    class Settings:
        name = "users"
        indexes = [IndexModel("email", unique=True)]
