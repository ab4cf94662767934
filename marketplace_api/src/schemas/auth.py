from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class TokenPair(BaseModel):
    """Access and refresh tokens."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class RegisterRequest(BaseModel):
    """Registration details for creating a new profile."""
    email: EmailStr = Field(..., description="Profile email")
    password: str = Field(..., min_length=6, description="Password")
    display_name: Optional[str] = Field(None, description="Public display name")


class Message(BaseModel):
    """Simple message response."""
    message: str = Field(...)


class ProfileRead(BaseModel):
    """Profile as seen by its owner and by admins."""
    id: UUID = Field(..., description="Profile ID")
    email: EmailStr = Field(..., description="Profile email")
    display_name: Optional[str] = Field(None)
    profile_image_url: Optional[str] = Field(None)
    bio: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    role: str = Field(..., description="Authorization role: user | moderator | admin")
    is_active: bool = Field(..., description="Active flag")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True


class ProfilePublic(BaseModel):
    """Public profile fields."""
    id: UUID = Field(..., description="Profile ID")
    display_name: Optional[str] = Field(None)
    profile_image_url: Optional[str] = Field(None)
    bio: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    created_at: datetime = Field(..., description="Member since")

    class Config:
        from_attributes = True


class ProfileSummary(BaseModel):
    """Compact profile embedded in other resources."""
    id: UUID = Field(..., description="Profile ID")
    display_name: Optional[str] = Field(None)
    profile_image_url: Optional[str] = Field(None)

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Self-service profile update."""
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)


class AdminProfileUpdate(BaseModel):
    """Admin update of a profile's role or active flag."""
    role: Optional[Literal["user", "moderator", "admin"]] = Field(None)
    is_active: Optional[bool] = Field(None)


class NotificationPreferencesRead(BaseModel):
    """Notification channel toggles and quiet hours."""
    user_id: UUID = Field(..., description="Profile ID")
    in_app_new_messages: bool = Field(True)
    in_app_replies: bool = Field(True)
    in_app_mentions: bool = Field(True)
    email_new_messages: bool = Field(True)
    email_replies: bool = Field(True)
    email_mentions: bool = Field(True)
    email_daily_digest: bool = Field(False)
    push_new_messages: bool = Field(False)
    push_replies: bool = Field(False)
    push_mentions: bool = Field(False)
    quiet_hours_enabled: bool = Field(False)
    quiet_hours_start: Optional[str] = Field(None, description="HH:MM (24h)")
    quiet_hours_end: Optional[str] = Field(None, description="HH:MM (24h)")

    class Config:
        from_attributes = True


class NotificationPreferencesUpdate(BaseModel):
    """Partial update of notification preferences."""
    in_app_new_messages: Optional[bool] = Field(None)
    in_app_replies: Optional[bool] = Field(None)
    in_app_mentions: Optional[bool] = Field(None)
    email_new_messages: Optional[bool] = Field(None)
    email_replies: Optional[bool] = Field(None)
    email_mentions: Optional[bool] = Field(None)
    email_daily_digest: Optional[bool] = Field(None)
    push_new_messages: Optional[bool] = Field(None)
    push_replies: Optional[bool] = Field(None)
    push_mentions: Optional[bool] = Field(None)
    quiet_hours_enabled: Optional[bool] = Field(None)
    quiet_hours_start: Optional[str] = Field(None, description="HH:MM (24h)")
    quiet_hours_end: Optional[str] = Field(None, description="HH:MM (24h)")
