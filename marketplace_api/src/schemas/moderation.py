from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import OffsetPage

ReportReason = Literal["spam", "harassment", "inappropriate", "scam", "offensive", "other"]
ReportStatus = Literal["pending", "reviewed", "resolved", "dismissed"]


class ReportCreate(BaseModel):
    """Report a message."""
    message_id: UUID = Field(..., description="Reported message")
    reason: ReportReason = Field(..., description="Report reason")
    description: Optional[str] = Field(None, max_length=2000)


class ReportUpdate(BaseModel):
    """Moderator decision on a report."""
    status: ReportStatus = Field(...)
    resolution_notes: Optional[str] = Field(None, max_length=2000)


class ReportRead(BaseModel):
    id: UUID = Field(...)
    message_id: UUID = Field(...)
    reporter_id: UUID = Field(...)
    reported_user_id: UUID = Field(...)
    reason: str = Field(...)
    description: Optional[str] = Field(None)
    status: str = Field(...)
    resolution_notes: Optional[str] = Field(None)
    reviewed_at: Optional[datetime] = Field(None)
    reviewed_by: Optional[UUID] = Field(None)
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class ReportEnvelope(BaseModel):
    report: ReportRead = Field(...)


class ReportPage(BaseModel):
    reports: List[ReportRead] = Field(default_factory=list)
    pagination: OffsetPage = Field(...)
