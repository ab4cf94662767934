from __future__ import annotations

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select

from src.db.models.engagement import Favorite, Review
from src.db.models.listings import Listing
from .base import BaseRepository

FAVORITE_SORT_COLUMNS = {
    "created_at": Favorite.created_at,
    "listing_price": Listing.price,
    "listing_year": Listing.year,
}


class FavoriteRepository(BaseRepository):
    """Repository for saved listings."""

    async def get_favorite(self, user_id: UUID, listing_id: UUID) -> Optional[Favorite]:
        stmt = select(Favorite).where(Favorite.user_id == user_id, Favorite.listing_id == listing_id)
        return await self.scalar_one_or_none(stmt)

    async def create_favorite(self, user_id: UUID, listing_id: UUID) -> Favorite:
        fav = Favorite(user_id=user_id, listing_id=listing_id)
        await self.add(fav)
        await self.commit()
        stmt = select(Favorite).where(Favorite.id == fav.id).execution_options(populate_existing=True)
        return (await self.scalar_one_or_none(stmt))  # type: ignore

    async def delete_favorite(self, favorite: Favorite) -> None:
        await self.delete(favorite)
        await self.commit()

    async def list_favorites(
        self,
        user_id: UUID,
        *,
        sort_by: str,
        sort_order: str,
        limit: int,
        offset: int,
    ) -> Tuple[List[Favorite], int]:
        stmt = (
            select(Favorite)
            .join(Listing, Listing.id == Favorite.listing_id)
            .where(Favorite.user_id == user_id, Listing.status != "deleted")
        )
        total = await self.count(stmt)
        column = FAVORITE_SORT_COLUMNS.get(sort_by, Favorite.created_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc())
        stmt = stmt.offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total


class ReviewRepository(BaseRepository):
    """Repository for user reviews."""

    async def get_review(self, review_id: UUID) -> Optional[Review]:
        return await self.scalar_one_or_none(select(Review).where(Review.id == review_id))

    async def find_existing(self, reviewer_id: UUID, reviewed_user_id: UUID, listing_id: UUID) -> Optional[Review]:
        stmt = select(Review).where(
            Review.reviewer_id == reviewer_id,
            Review.reviewed_user_id == reviewed_user_id,
            Review.listing_id == listing_id,
        )
        return await self.scalar_one_or_none(stmt)

    async def list_visible_reviews(self, reviewed_user_id: UUID, *, limit: int, offset: int) -> Tuple[List[Review], int]:
        stmt = select(Review).where(Review.reviewed_user_id == reviewed_user_id, Review.is_hidden.is_(False))
        total = await self.count(stmt)
        stmt = stmt.order_by(Review.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def rating_distribution(self, reviewed_user_id: UUID) -> Dict[int, int]:
        stmt = (
            select(Review.rating, func.count(Review.id))
            .where(Review.reviewed_user_id == reviewed_user_id, Review.is_hidden.is_(False))
            .group_by(Review.rating)
        )
        res = await self.execute(stmt)
        return {int(rating): int(count) for rating, count in res.all()}

    async def create_review(self, review: Review) -> Review:
        await self.add(review)
        await self.commit()
        stmt = select(Review).where(Review.id == review.id).execution_options(populate_existing=True)
        return (await self.scalar_one_or_none(stmt))  # type: ignore
