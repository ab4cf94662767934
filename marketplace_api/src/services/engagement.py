from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.engagement import TRANSACTION_TYPES, Favorite, Review
from src.repositories.engagement import FavoriteRepository, ReviewRepository
from src.repositories.listings import ListingRepository
from src.repositories.profiles import ProfileRepository
from src.schemas.engagement import RatingSummary, ReviewCreate
from src.services.base import BaseService
from src.services.errors import ConflictError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

FAVORITE_SORT_FIELDS = ("created_at", "listing_price", "listing_year")
STAR_FIELDS = {5: "five_star", 4: "four_star", 3: "three_star", 2: "two_star", 1: "one_star"}


def log_favorite_operation(
    operation: str, user_id: UUID, listing_id: Any, success: bool, error: Optional[str] = None
) -> None:
    """One structured log line per favorite mutation attempt."""
    if success:
        logger.info("favorite op=%s user=%s listing=%s success=true", operation, user_id, listing_id)
    else:
        logger.warning("favorite op=%s user=%s listing=%s success=false error=%s", operation, user_id, listing_id, error)


def rating_summary(distribution: Dict[int, int]) -> RatingSummary:
    """Totals and average from a {rating: count} mapping; zeros when there are no reviews."""
    total = sum(distribution.values())
    weighted = sum(rating * count for rating, count in distribution.items())
    values: Dict[str, Any] = {name: distribution.get(stars, 0) for stars, name in STAR_FIELDS.items()}
    return RatingSummary(
        total_reviews=total,
        average_rating=round(weighted / total, 1) if total else 0.0,
        **values,
    )


class FavoriteService(BaseService):
    """Saved listings of a profile."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = FavoriteRepository(session)
        self.listings = ListingRepository(session)

    # PUBLIC_INTERFACE
    async def add_favorite(self, user_id: UUID, listing_id: UUID) -> Favorite:
        """
        Save a listing for the user.

        Raises:
            NotFoundError: listing does not exist.
            ValidationFailed: listing belongs to the user.
            ConflictError: listing already saved.
        """
        log_favorite_operation("add_favorite_start", user_id, listing_id, True)
        listing = await self.listings.get_listing(listing_id)
        if listing is None:
            log_favorite_operation("add_favorite_listing_not_found", user_id, listing_id, False, "Listing not found")
            raise NotFoundError("Listing not found")
        if listing.user_id == user_id:
            log_favorite_operation("add_favorite_own_listing", user_id, listing_id, False, "Own listing")
            raise ValidationFailed("Cannot favorite your own listing")
        if await self.repo.get_favorite(user_id, listing_id) is not None:
            log_favorite_operation("add_favorite_already_exists", user_id, listing_id, False, "Duplicate")
            raise ConflictError("Listing already favorited")

        try:
            favorite = await self.repo.create_favorite(user_id, listing_id)
        except IntegrityError:
            await self.session.rollback()
            log_favorite_operation("add_favorite_race", user_id, listing_id, False, "Unique constraint")
            raise ConflictError("Listing already favorited")
        log_favorite_operation("add_favorite_success", user_id, listing_id, True)
        return favorite

    # PUBLIC_INTERFACE
    async def list_favorites(
        self,
        user_id: UUID,
        *,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Favorite], int, int, int]:
        """Return (favorites, total, clamped limit, clamped offset)."""
        limit = min(max(limit, 1), 100)
        offset = max(offset, 0)
        if sort_by not in FAVORITE_SORT_FIELDS:
            sort_by = "created_at"
        if sort_order not in ("asc", "desc"):
            sort_order = "desc"
        favorites, total = await self.repo.list_favorites(
            user_id, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset
        )
        return favorites, total, limit, offset

    # PUBLIC_INTERFACE
    async def favorite_status(self, user_id: UUID, listing_id: UUID) -> Dict[str, Any]:
        favorite = await self.repo.get_favorite(user_id, listing_id)
        return {"is_favorited": favorite is not None, "favorite_id": favorite.id if favorite else None}

    # PUBLIC_INTERFACE
    async def remove_favorite(self, user_id: UUID, listing_id: UUID) -> None:
        favorite = await self.repo.get_favorite(user_id, listing_id)
        if favorite is None:
            log_favorite_operation("remove_favorite_not_found", user_id, listing_id, False, "Not favorited")
            raise NotFoundError("Favorite not found")
        await self.repo.delete_favorite(favorite)
        log_favorite_operation("remove_favorite_success", user_id, listing_id, True)


class ReviewService(BaseService):
    """Reviews left between buyers and sellers."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ReviewRepository(session)
        self.profiles = ProfileRepository(session)
        self.listings = ListingRepository(session)

    # PUBLIC_INTERFACE
    async def list_reviews(self, reviewed_user_id: UUID, *, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Visible reviews for a profile with rating summary and page metadata."""
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        reviews, total = await self.repo.list_visible_reviews(
            reviewed_user_id, limit=limit, offset=(page - 1) * limit
        )
        summary = rating_summary(await self.repo.rating_distribution(reviewed_user_id))
        return {
            "reviews": reviews,
            "rating_summary": summary,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }

    # PUBLIC_INTERFACE
    async def create_review(self, reviewer_id: UUID, payload: ReviewCreate) -> Review:
        """
        Create a review.

        Raises:
            ValidationFailed: missing fields, rating outside 1..5, self-review or duplicate.
            NotFoundError: reviewed profile or listing does not exist.
        """
        if payload.reviewed_user_id is None or payload.rating is None:
            raise ValidationFailed("Reviewed user ID and rating are required")
        missing = [
            name for name in ("review_text", "transaction_type", "listing_id") if not getattr(payload, name)
        ]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")
        if payload.rating < 1 or payload.rating > 5:
            raise ValidationFailed("Rating must be between 1 and 5")
        if payload.transaction_type not in TRANSACTION_TYPES:
            raise ValidationFailed("Transaction type must be 'buyer' or 'seller'")
        if payload.reviewed_user_id == reviewer_id:
            raise ValidationFailed("Cannot review yourself")

        if await self.profiles.get_profile_by_id(payload.reviewed_user_id) is None:
            raise NotFoundError("User not found")
        if await self.listings.get_listing(payload.listing_id) is None:  # type: ignore[arg-type]
            raise NotFoundError("Listing not found")
        existing = await self.repo.find_existing(reviewer_id, payload.reviewed_user_id, payload.listing_id)  # type: ignore[arg-type]
        if existing is not None:
            raise ValidationFailed("You have already reviewed this user for this listing")

        review = Review(
            reviewer_id=reviewer_id,
            reviewed_user_id=payload.reviewed_user_id,
            listing_id=payload.listing_id,
            rating=payload.rating,
            review_text=payload.review_text,
            transaction_type=payload.transaction_type,
        )
        async with self.translate_unique_violation(
            ValidationFailed("You have already reviewed this user for this listing")
        ):
            created = await self.repo.create_review(review)
        logger.info("Review %s created by %s for %s", created.id, reviewer_id, payload.reviewed_user_id)
        return created

    # PUBLIC_INTERFACE
    async def hide_review(self, review_id: UUID) -> Review:
        review = await self.repo.get_review(review_id)
        if review is None:
            raise NotFoundError("Review not found")
        review.is_hidden = True
        await self.repo.commit()
        return review
