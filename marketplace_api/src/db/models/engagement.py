from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base, UUIDPkMixin, TimestampMixin

if TYPE_CHECKING:
    from src.db.models.listings import Listing
    from src.db.models.profiles import Profile

TRANSACTION_TYPES = ("buyer", "seller")


class Favorite(UUIDPkMixin, TimestampMixin, Base):
    """Listing saved by a profile; one row per (user, listing)."""
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="uq_favorites_user_listing"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False
    )

    listing: Mapped["Listing"] = relationship("Listing", lazy="selectin", viewonly=True)


class Review(UUIDPkMixin, TimestampMixin, Base):
    """Rating left by one profile for another after a transaction on a listing."""
    __tablename__ = "user_reviews"
    __table_args__ = (
        UniqueConstraint(
            "reviewer_id", "reviewed_user_id", "listing_id", name="uq_user_reviews_reviewer_reviewed_listing"
        ),
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range"),
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    reviewed_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_text: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reviewer: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[reviewer_id], lazy="selectin", viewonly=True
    )
    listing: Mapped[Optional["Listing"]] = relationship("Listing", lazy="selectin", viewonly=True)
