from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base, UUIDPkMixin, TimestampMixin

if TYPE_CHECKING:
    from src.db.models.profiles import Profile

LISTING_STATUSES = ("active", "sold", "draft", "deleted")
MODIFICATION_CATEGORIES = (
    "engine",
    "suspension",
    "transmission",
    "interior",
    "body",
    "exhaust",
    "wheels/tires",
    "electrical",
    "brakes",
    "other",
)


class Listing(UUIDPkMixin, TimestampMixin, Base):
    """Vehicle offered for sale by a profile."""
    __tablename__ = "listings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    make: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    engine: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transmission: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="good")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active", index=True)
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    search_boost: Mapped[float] = mapped_column(
        Numeric(6, 2, asdecimal=False), nullable=False, default=0.0, server_default="0"
    )

    images: Mapped[list["ListingImage"]] = relationship(
        "ListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingImage.sort_order",
        lazy="selectin",
    )
    modifications: Mapped[list["Modification"]] = relationship(
        "Modification",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="Modification.created_at",
        lazy="selectin",
    )
    seller: Mapped["Profile"] = relationship("Profile", lazy="selectin", viewonly=True)

    @property
    def primary_image(self) -> Optional["ListingImage"]:
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def modification_count(self) -> int:
        return len(self.modifications)


class ListingImage(UUIDPkMixin, TimestampMixin, Base):
    """Image uploaded for a listing."""
    __tablename__ = "listing_images"

    listing_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=True, index=True
    )
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    listing: Mapped[Optional[Listing]] = relationship("Listing", back_populates="images")


class Modification(UUIDPkMixin, TimestampMixin, Base):
    """Aftermarket modification installed on a listed vehicle."""
    __tablename__ = "modifications"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    installed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    listing: Mapped[Listing] = relationship("Listing", back_populates="modifications")
