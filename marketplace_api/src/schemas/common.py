from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class OffsetPage(BaseModel):
    """Offset pagination metadata."""
    total: int = Field(..., description="Total matching records")
    limit: int = Field(..., description="Page size")
    offset: int = Field(..., description="Number of records skipped")
    has_more: bool = Field(..., description="Whether more records exist after this page")


class NumberedPage(BaseModel):
    """Page-number pagination metadata."""
    page: int = Field(..., description="Current page (1-based)")
    limit: int = Field(..., description="Page size")
    total: int = Field(..., description="Total matching records")
    total_pages: int = Field(..., description="Number of pages")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class CountResponse(BaseModel):
    """Outcome of a bulk mutation."""
    success: bool = Field(True, description="Whether the operation succeeded")
    updated_count: Optional[int] = Field(default=None, description="Rows updated")
    deleted_count: Optional[int] = Field(default=None, description="Rows deleted")


class ErrorInfo(BaseModel):
    """Structured error description."""
    type: str = Field(..., description="Machine-readable error type code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")


def offset_page(total: int, limit: int, offset: int) -> OffsetPage:
    """Build offset pagination metadata for a page of results."""
    return OffsetPage(total=total, limit=limit, offset=offset, has_more=offset + limit < total)
