from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .auth import ProfileSummary
from .common import NumberedPage, OffsetPage
from .listings import ListingRead


class FavoriteCreate(BaseModel):
    """Save a listing to favorites."""
    listing_id: UUID = Field(..., description="Listing to save")


class FavoriteRead(BaseModel):
    """Saved listing."""
    id: UUID = Field(..., description="Favorite ID")
    user_id: UUID = Field(...)
    listing_id: UUID = Field(...)
    created_at: datetime = Field(...)
    listing: Optional[ListingRead] = Field(None)

    class Config:
        from_attributes = True


class FavoriteCreated(BaseModel):
    favorite: FavoriteRead = Field(...)
    message: str = Field(...)


class FavoritePage(BaseModel):
    favorites: List[FavoriteRead] = Field(default_factory=list)
    pagination: OffsetPage = Field(...)


class FavoriteStatus(BaseModel):
    is_favorited: bool = Field(...)
    favorite_id: Optional[UUID] = Field(None)


class ReviewCreate(BaseModel):
    """Review payload; presence and range are checked by the review service."""
    reviewed_user_id: Optional[UUID] = Field(None)
    rating: Optional[int] = Field(None, description="1..5")
    review_text: Optional[str] = Field(None)
    transaction_type: Optional[str] = Field(None, description="buyer | seller")
    listing_id: Optional[UUID] = Field(None)


class ReviewListingSummary(BaseModel):
    id: UUID = Field(...)
    title: str = Field(...)
    make: str = Field(...)
    model: str = Field(...)
    year: int = Field(...)

    class Config:
        from_attributes = True


class ReviewRead(BaseModel):
    """Review with reviewer and listing summaries."""
    id: UUID = Field(...)
    reviewer_id: UUID = Field(...)
    reviewed_user_id: UUID = Field(...)
    listing_id: UUID = Field(...)
    rating: int = Field(...)
    review_text: str = Field(...)
    transaction_type: str = Field(...)
    is_hidden: bool = Field(False)
    created_at: datetime = Field(...)
    reviewer: Optional[ProfileSummary] = Field(None)
    listing: Optional[ReviewListingSummary] = Field(None)

    class Config:
        from_attributes = True


class RatingSummary(BaseModel):
    total_reviews: int = Field(0)
    average_rating: float = Field(0.0)
    five_star: int = Field(0)
    four_star: int = Field(0)
    three_star: int = Field(0)
    two_star: int = Field(0)
    one_star: int = Field(0)


class ReviewPage(BaseModel):
    reviews: List[ReviewRead] = Field(default_factory=list)
    rating_summary: RatingSummary = Field(...)
    pagination: NumberedPage = Field(...)


class ReviewCreated(BaseModel):
    success: bool = Field(True)
    review: ReviewRead = Field(...)
    message: str = Field(...)
