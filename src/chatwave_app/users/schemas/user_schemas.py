from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from chatwave_app.core.base.base import BaseResponse


class UserCreate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserLogin(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserPublic(BaseResponse):
    """Profile fields safe to show to other users."""
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserResponse(UserPublic):
    phone: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    profile_setup: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(BaseModel):
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None


class UserListResponse(BaseModel):
    users: List[UserPublic]
    total_users: int
