from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_, select

from src.db.models.offers import Offer, OfferHistory
from .base import BaseRepository


class OfferRepository(BaseRepository):
    """Repository for offers and their history trail."""

    async def get_offer(self, offer_id: UUID, *, refresh: bool = False) -> Optional[Offer]:
        stmt = select(Offer).where(Offer.id == offer_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def find_pending_offer(self, listing_id: UUID, buyer_id: UUID) -> Optional[Offer]:
        stmt = select(Offer).where(
            Offer.listing_id == listing_id,
            Offer.buyer_id == buyer_id,
            Offer.status == "pending",
        ).limit(1)
        return await self.scalar_one_or_none(stmt)

    async def list_offers(
        self,
        user_id: UUID,
        *,
        offer_type: str,
        status: Optional[str],
        listing_id: Optional[UUID],
        limit: int,
        offset: int,
    ) -> Tuple[List[Offer], int]:
        stmt = select(Offer).where(_participant_filter(user_id, offer_type))
        if status:
            stmt = stmt.where(Offer.status == status)
        if listing_id:
            stmt = stmt.where(Offer.listing_id == listing_id)
        total = await self.count(stmt)
        stmt = stmt.order_by(Offer.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def offers_for_analytics(self, user_id: UUID, *, offer_type: str, since: datetime) -> List[Offer]:
        stmt = (
            select(Offer)
            .where(_participant_filter(user_id, offer_type), Offer.created_at >= since)
            .order_by(Offer.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def list_overdue_pending(self, now: datetime) -> List[Offer]:
        stmt = select(Offer).where(Offer.status == "pending", Offer.expires_at.is_not(None), Offer.expires_at < now)
        return list(await self.scalars(stmt))

    async def list_expiring_for_user(self, user_id: UUID, now: datetime, cutoff: datetime) -> List[Offer]:
        stmt = (
            select(Offer)
            .where(
                or_(Offer.buyer_id == user_id, Offer.seller_id == user_id),
                Offer.status == "pending",
                Offer.expires_at.is_not(None),
                Offer.expires_at > now,
                Offer.expires_at <= cutoff,
            )
            .order_by(Offer.expires_at.asc())
        )
        return list(await self.scalars(stmt))

    async def list_all_offers(self, *, limit: int = 5000) -> List[Offer]:
        stmt = select(Offer).order_by(Offer.created_at.desc()).limit(limit)
        return list(await self.scalars(stmt))

    # History
    def add_history(self, offer_id: UUID, user_id: UUID, action_type: str, details: Optional[dict] = None) -> OfferHistory:
        entry = OfferHistory(offer_id=offer_id, user_id=user_id, action_type=action_type, action_details=details or {})
        self.session.add(entry)
        return entry

    async def list_history(
        self,
        user_id: UUID,
        *,
        offer_id: Optional[UUID],
        participant_type: str,
        action_type: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[OfferHistory], int]:
        stmt = select(OfferHistory).join(Offer, Offer.id == OfferHistory.offer_id).where(
            _participant_filter(user_id, {"buyer": "sent", "seller": "received"}.get(participant_type, "all"))
        )
        if offer_id:
            stmt = stmt.where(OfferHistory.offer_id == offer_id)
        if action_type:
            stmt = stmt.where(OfferHistory.action_type == action_type)
        total = await self.count(stmt)
        stmt = stmt.order_by(OfferHistory.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def recent_history_for_offers(self, offer_ids: Sequence[UUID], limit: int = 20) -> List[OfferHistory]:
        if not offer_ids:
            return []
        stmt = (
            select(OfferHistory)
            .where(OfferHistory.offer_id.in_(list(offer_ids)))
            .order_by(OfferHistory.created_at.desc())
            .limit(limit)
        )
        return list(await self.scalars(stmt))


def _participant_filter(user_id: UUID, offer_type: str):
    """'sent' = offers the user made as buyer, 'received' = as seller, otherwise either."""
    if offer_type == "sent":
        return Offer.buyer_id == user_id
    if offer_type == "received":
        return Offer.seller_id == user_id
    return or_(Offer.buyer_id == user_id, Offer.seller_id == user_id)
