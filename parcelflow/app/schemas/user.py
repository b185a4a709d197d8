"""
User Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List
from parcelflow.app.models.enums import UserRole


class UserCreate(BaseModel):
    """Schema for registering a user after identity-provider sign-up."""
    email: str = Field(..., min_length=3, max_length=255)
    display_name: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=500)


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserRoleResponse(BaseModel):
    role: UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: Optional[str]
    photo_url: Optional[str]
    role: UserRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreateResponse(BaseModel):
    """Returned by POST /users; ``created`` is False when the email already existed."""
    created: bool
    message: str
    user: UserResponse


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
