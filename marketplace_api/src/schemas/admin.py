from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from .auth import ProfileRead
from .common import OffsetPage


class AdminStats(BaseModel):
    """Platform-wide counters for the admin dashboard."""
    total_users: int = Field(0)
    active_listings: int = Field(0)
    total_listings: int = Field(0)
    pending_reports: int = Field(0)
    total_messages: int = Field(0)
    unread_messages: int = Field(0)
    total_offers: int = Field(0)
    pending_offers: int = Field(0)


class AdminListingUpdate(BaseModel):
    status: Literal["active", "sold", "deleted"] = Field(..., description="New listing status")


class ProfilePage(BaseModel):
    users: List[ProfileRead] = Field(default_factory=list)
    pagination: OffsetPage = Field(...)
