from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select

from src.db.models.listings import Listing
from src.db.models.messaging import Message
from src.db.models.moderation import MessageReport
from src.db.models.offers import Offer
from src.db.models.profiles import Profile
from .base import BaseRepository


class AdminRepository(BaseRepository):
    """Platform-wide counters and flat rows for staff exports."""

    async def _count(self, column, *criteria) -> int:
        stmt = select(func.count(column))
        if criteria:
            stmt = stmt.where(*criteria)
        return int((await self.execute(stmt)).scalar_one())

    async def platform_counts(self) -> Dict[str, int]:
        return {
            "total_users": await self._count(Profile.id),
            "active_listings": await self._count(Listing.id, Listing.status == "active"),
            "total_listings": await self._count(Listing.id),
            "pending_reports": await self._count(MessageReport.id, MessageReport.status == "pending"),
            "total_messages": await self._count(Message.id),
            "unread_messages": await self._count(Message.id, Message.is_read.is_(False)),
            "total_offers": await self._count(Offer.id),
            "pending_offers": await self._count(Offer.id, Offer.status == "pending"),
        }

    async def list_profiles_page(
        self, *, role: Optional[str], search: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Profile], int]:
        stmt = select(Profile)
        if role:
            stmt = stmt.where(Profile.role == role)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(Profile.email.ilike(like) | Profile.display_name.ilike(like))
        total = await self.count(stmt)
        stmt = stmt.order_by(Profile.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def listing_export_rows(self, status: Optional[str] = None) -> List[tuple]:
        stmt = select(
            Listing.id,
            Listing.title,
            Listing.make,
            Listing.model,
            Listing.year,
            Listing.price,
            Listing.location,
            Listing.status,
            Listing.view_count,
            Listing.sold_price,
            Listing.sold_at,
            Profile.email,
            Listing.created_at,
        ).join(Profile, Profile.id == Listing.user_id).order_by(Listing.created_at.desc())
        if status:
            stmt = stmt.where(Listing.status == status)
        return list((await self.execute(stmt)).all())

    async def report_export_rows(self, status: Optional[str] = None) -> List[tuple]:
        stmt = select(
            MessageReport.id,
            MessageReport.message_id,
            MessageReport.reporter_id,
            MessageReport.reported_user_id,
            MessageReport.reason,
            MessageReport.description,
            MessageReport.status,
            MessageReport.resolution_notes,
            MessageReport.reviewed_at,
            MessageReport.created_at,
        ).order_by(MessageReport.created_at.desc())
        if status:
            stmt = stmt.where(MessageReport.status == status)
        return list((await self.execute(stmt)).all())

    async def offer_export_rows(self, status: Optional[str] = None) -> List[tuple]:
        stmt = select(
            Offer.id,
            Listing.title,
            Offer.buyer_id,
            Offer.seller_id,
            Offer.offer_amount,
            Listing.price,
            Offer.status,
            Offer.is_counter_offer,
            Offer.counter_offer_count,
            Offer.expires_at,
            Offer.created_at,
        ).join(Listing, Listing.id == Offer.listing_id).order_by(Offer.created_at.desc())
        if status:
            stmt = stmt.where(Offer.status == status)
        return list((await self.execute(stmt)).all())
