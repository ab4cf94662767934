from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, UUIDPkMixin, TimestampMixin


class SearchEvent(UUIDPkMixin, TimestampMixin, Base):
    """One executed search and, once known, the result the user clicked."""
    __tablename__ = "search_events"

    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    search_query: Mapped[str] = mapped_column(Text, nullable=False, default="")
    filters_used: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    results_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_by: Mapped[str] = mapped_column(Text, nullable=False, default="created_at")
    was_cached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    clicked_listing_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    clicked_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
