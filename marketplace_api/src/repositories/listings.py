from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, update

from src.db.models.listings import Listing, ListingImage, Modification
from .base import BaseRepository

OWNER_SORT_COLUMNS = {
    "created_at": Listing.created_at,
    "updated_at": Listing.updated_at,
    "price": Listing.price,
    "year": Listing.year,
    "title": Listing.title,
}


class ListingRepository(BaseRepository):
    """Repository for listings, their images and modifications."""

    async def get_listing(self, listing_id: UUID, *, refresh: bool = False) -> Optional[Listing]:
        stmt = select(Listing).where(Listing.id == listing_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_listings(self, listing_ids: Iterable[UUID]) -> Dict[UUID, Listing]:
        ids = list({lid for lid in listing_ids if lid is not None})
        if not ids:
            return {}
        res = await self.scalars(select(Listing).where(Listing.id.in_(ids)))
        return {listing.id: listing for listing in res}

    async def get_owned_listing(self, listing_id: UUID, owner_id: UUID) -> Optional[Listing]:
        stmt = select(Listing).where(Listing.id == listing_id, Listing.user_id == owner_id)
        return await self.scalar_one_or_none(stmt)

    async def list_owner_listings(
        self,
        owner_id: UUID,
        *,
        status: Optional[str],
        sort_by: str,
        sort_order: str,
        limit: int,
        offset: int,
    ) -> Tuple[List[Listing], int]:
        stmt = select(Listing).where(Listing.user_id == owner_id)
        if status and status != "all":
            stmt = stmt.where(Listing.status == status)
        total = await self.count(stmt)
        column = OWNER_SORT_COLUMNS.get(sort_by, Listing.created_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc())
        stmt = stmt.offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def list_public_listings(
        self,
        *,
        exclude_user_id: Optional[UUID],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[Listing], int]:
        stmt = select(Listing).where(Listing.status == "active")
        if exclude_user_id is not None:
            stmt = stmt.where(Listing.user_id != exclude_user_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(Listing.title.ilike(like), Listing.make.ilike(like), Listing.model.ilike(like))
            )
        total = await self.count(stmt)
        stmt = stmt.order_by(Listing.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def list_all_listings(
        self, *, status: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Listing], int]:
        stmt = select(Listing)
        if status:
            stmt = stmt.where(Listing.status == status)
        total = await self.count(stmt)
        stmt = stmt.order_by(Listing.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def create_listing(self, listing: Listing) -> Listing:
        await self.add(listing)
        await self.commit()
        return (await self.get_listing(listing.id, refresh=True))  # type: ignore

    async def delete_listing(self, listing: Listing) -> None:
        await self.delete(listing)
        await self.commit()

    async def increment_view_count(self, listing_id: UUID) -> None:
        stmt = (
            update(Listing)
            .where(Listing.id == listing_id)
            .values(view_count=Listing.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.execute(stmt)
        await self.commit()

    async def modification_counts(self, listing_ids: Sequence[UUID]) -> dict[UUID, int]:
        if not listing_ids:
            return {}
        stmt = (
            select(Modification.listing_id, func.count(Modification.id))
            .where(Modification.listing_id.in_(list(listing_ids)))
            .group_by(Modification.listing_id)
        )
        res = await self.execute(stmt)
        return {row[0]: int(row[1]) for row in res.all()}

    async def owner_listing_rows(
        self,
        owner_id: UUID,
        *,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[tuple]:
        """Return (status, price, sold_price, created_at, sold_at) rows for seller analytics."""
        stmt = select(
            Listing.status, Listing.price, Listing.sold_price, Listing.created_at, Listing.sold_at
        ).where(Listing.user_id == owner_id)
        if created_from is not None:
            stmt = stmt.where(Listing.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(Listing.created_at <= created_to)
        res = await self.execute(stmt)
        return list(res.all())

    # Images
    async def add_image(self, image: ListingImage) -> ListingImage:
        await self.add(image)
        await self.commit()
        return image

    async def count_images(self, listing_id: UUID) -> int:
        res = await self.execute(
            select(func.count(ListingImage.id)).where(ListingImage.listing_id == listing_id)
        )
        return int(res.scalar_one())
