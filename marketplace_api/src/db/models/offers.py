from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base, UUIDPkMixin, TimestampMixin

if TYPE_CHECKING:
    from src.db.models.listings import Listing
    from src.db.models.profiles import Profile

OFFER_STATUSES = ("pending", "accepted", "rejected", "countered", "withdrawn", "expired")
OFFER_ACTIONS = ("created", "countered", "accepted", "rejected", "withdrawn", "expired", "viewed", "note")


class Offer(UUIDPkMixin, TimestampMixin, Base):
    """Price offer from a buyer to a seller for a listing."""
    __tablename__ = "offers"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    offer_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    cash_offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    financing_needed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inspection_contingency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_counter_offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_offer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("offers.id", ondelete="SET NULL"), nullable=True
    )
    counter_offer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    listing: Mapped["Listing"] = relationship("Listing", lazy="selectin", viewonly=True)
    buyer: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[buyer_id], lazy="selectin", viewonly=True
    )
    seller: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[seller_id], lazy="selectin", viewonly=True
    )


class OfferHistory(UUIDPkMixin, TimestampMixin, Base):
    """Audit trail of actions taken on an offer."""
    __tablename__ = "offer_history"

    offer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    action_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    offer: Mapped[Offer] = relationship("Offer", lazy="selectin", viewonly=True)
