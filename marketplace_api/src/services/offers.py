from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.settings import get_app_settings
from src.db.base import as_utc, utcnow
from src.db.models.offers import OFFER_STATUSES, Offer, OfferHistory
from src.repositories.listings import ListingRepository
from src.repositories.offers import OfferRepository
from src.schemas.listings import ListingSummary
from src.schemas.offers import (
    MonthlyOfferActivity,
    OfferAnalytics,
    OfferCreate,
    OfferHistoryCreate,
    OfferHistoryRead,
    OfferStats,
    OfferUpdate,
    TopListing,
    ValueRange,
)
from src.services.base import BaseService
from src.services.errors import ForbiddenError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

HISTORY_DATE_FORMAT = "%b %d, %Y %I:%M %p"
TOP_LISTINGS_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 20

# (label, exclusive upper bound); the last bucket is open-ended
VALUE_RANGES: Tuple[Tuple[str, Optional[float]], ...] = (
    ("Under $10k", 10_000),
    ("$10k - $25k", 25_000),
    ("$25k - $50k", 50_000),
    ("$50k - $100k", 100_000),
    ("Over $100k", None),
)

# Offer list "type" aliases accepted by the API
OFFER_TYPE_ALIASES = {"sent": "sent", "buyer": "sent", "received": "received", "seller": "received", "all": "all"}


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def normalize_offer_type(value: Optional[str]) -> str:
    return OFFER_TYPE_ALIASES.get((value or "all").lower(), "all")


def value_range_label(amount: float) -> str:
    for label, upper in VALUE_RANGES:
        if upper is None or amount < upper:
            return label
    return VALUE_RANGES[-1][0]


def calculate_offer_analytics(offers: Sequence[Offer]) -> OfferStats:
    """
    Aggregate statistics over a set of offers.

    Rates are percentages rounded to 2 decimals; negotiation time is the mean
    hours between creation and last update of accepted or rejected offers.
    """
    total = len(offers)
    breakdown = {status: 0 for status in OFFER_STATUSES}
    if total == 0:
        return OfferStats(offer_status_breakdown=breakdown)

    counts = Counter(offer.status for offer in offers)
    for status in OFFER_STATUSES:
        breakdown[status] = counts.get(status, 0)

    completed = [
        offer for offer in offers
        if offer.status in ("accepted", "rejected") and offer.created_at and offer.updated_at
    ]
    negotiation_hours = 0.0
    if completed:
        seconds = sum(
            (as_utc(offer.updated_at) - as_utc(offer.created_at)).total_seconds()  # type: ignore[operator]
            for offer in completed
        )
        negotiation_hours = seconds / len(completed) / 3600

    monthly: Dict[str, Dict[str, int]] = {}
    for offer in offers:
        key = as_utc(offer.created_at).strftime("%Y-%m")  # type: ignore[union-attr]
        bucket = monthly.setdefault(key, {"total": 0})
        bucket["total"] += 1
        bucket[offer.status] = bucket.get(offer.status, 0) + 1

    ranges = Counter(value_range_label(float(offer.offer_amount)) for offer in offers)

    return OfferStats(
        total_offers=total,
        success_rate=_round2(counts.get("accepted", 0) / total * 100),
        average_negotiation_time=_round2(negotiation_hours),
        offer_status_breakdown=breakdown,
        counter_offer_rate=_round2(counts.get("countered", 0) / total * 100),
        monthly_activity=[
            MonthlyOfferActivity(month=month, **values) for month, values in sorted(monthly.items())
        ],
        offer_value_ranges=[
            ValueRange(range=label, count=ranges.get(label, 0), percentage=round(ranges.get(label, 0) / total * 100))
            for label, _ in VALUE_RANGES
        ],
    )


def calculate_top_listings(offers: Sequence[Offer], limit: int = TOP_LISTINGS_LIMIT) -> List[TopListing]:
    """Listings with the most offers, with highest/average amount and acceptance rate."""
    grouped: Dict[UUID, List[Offer]] = {}
    for offer in offers:
        grouped.setdefault(offer.listing_id, []).append(offer)

    stats: List[TopListing] = []
    for items in grouped.values():
        amounts = [float(item.offer_amount) for item in items]
        accepted = sum(1 for item in items if item.status == "accepted")
        listing = items[0].listing
        stats.append(
            TopListing(
                listing=ListingSummary.model_validate(listing) if listing is not None else None,
                total_offers=len(items),
                highest_offer=max(amounts),
                average_offer=sum(amounts) / len(amounts),
                accepted_offers=accepted,
                success_rate=accepted / len(items) * 100,
            )
        )
    stats.sort(key=lambda item: item.total_offers, reverse=True)
    return stats[:limit]


def format_history_entry(entry: OfferHistory, caller_id: UUID, offer: Optional[Offer] = None) -> OfferHistoryRead:
    """History entry decorated with the caller's perspective."""
    offer = offer if offer is not None else entry.offer
    return OfferHistoryRead(
        id=entry.id,
        offer_id=entry.offer_id,
        user_id=entry.user_id,
        action_type=entry.action_type,
        action_details=entry.action_details or {},
        created_at=entry.created_at,
        is_user_action=entry.user_id == caller_id,
        user_role=("buyer" if offer is not None and offer.buyer_id == caller_id else "seller"),
        formatted_date=as_utc(entry.created_at).strftime(HISTORY_DATE_FORMAT),  # type: ignore[union-attr]
    )


class OfferService(BaseService):
    """Offer negotiation between buyers and sellers, including expiry and analytics."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = OfferRepository(session)
        self.listings = ListingRepository(session)

    def _expiry(self) -> datetime:
        return utcnow() + timedelta(hours=get_app_settings().OFFER_EXPIRY_HOURS)

    # PUBLIC_INTERFACE
    async def create_offer(self, user_id: UUID, payload: OfferCreate) -> Offer:
        """
        Create an offer, or a counter-offer when original_offer_id is given.

        Raises:
            NotFoundError: listing (or original offer) missing.
            ValidationFailed: own listing, duplicate pending offer, original not pending.
            ForbiddenError: caller not a party of the original offer.
        """
        if payload.original_offer_id is not None:
            return await self._create_counter_offer(user_id, payload)

        if payload.listing_id is None:
            raise ValidationFailed("listing_id is required")
        listing = await self.listings.get_listing(payload.listing_id)
        if listing is None or listing.status != "active":
            raise NotFoundError("Listing not found or inactive")
        if listing.user_id == user_id:
            raise ValidationFailed("Cannot make an offer on your own listing")
        if await self.repo.find_pending_offer(listing.id, user_id) is not None:
            raise ValidationFailed("You already have a pending offer on this listing")

        offer = Offer(
            listing_id=listing.id,
            buyer_id=user_id,
            seller_id=listing.user_id,
            offer_amount=payload.offer_amount,
            message=payload.message,
            status="pending",
            cash_offer=payload.cash_offer,
            financing_needed=payload.financing_needed,
            inspection_contingency=payload.inspection_contingency,
            expires_at=self._expiry(),
        )
        await self.repo.add(offer)
        await self.repo.flush()
        self.repo.add_history(
            offer.id,
            user_id,
            "created",
            {
                "offer_amount": payload.offer_amount,
                "terms": {
                    "cash_offer": payload.cash_offer,
                    "financing_needed": payload.financing_needed,
                    "inspection_contingency": payload.inspection_contingency,
                },
            },
        )
        await self.repo.commit()
        logger.info("Offer %s created on listing %s by %s", offer.id, listing.id, user_id)
        return await self.repo.get_offer(offer.id, refresh=True)  # type: ignore[return-value]

    async def _create_counter_offer(self, user_id: UUID, payload: OfferCreate) -> Offer:
        original = await self.repo.get_offer(payload.original_offer_id)  # type: ignore[arg-type]
        if original is None:
            raise NotFoundError("Original offer not found")
        if original.status != "pending":
            raise ValidationFailed("Can only counter pending offers")
        if user_id not in (original.buyer_id, original.seller_id):
            raise ForbiddenError("You can only counter offers you are involved in")

        # The counter-offer flips the parties of the original
        if user_id == original.buyer_id:
            buyer_id, seller_id = original.seller_id, user_id
        else:
            buyer_id, seller_id = user_id, original.buyer_id

        counter = Offer(
            listing_id=original.listing_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            offer_amount=payload.offer_amount,
            message=payload.message,
            status="pending",
            cash_offer=payload.cash_offer,
            financing_needed=payload.financing_needed,
            inspection_contingency=payload.inspection_contingency,
            is_counter_offer=True,
            original_offer_id=original.id,
            counter_offer_count=(original.counter_offer_count or 0) + 1,
            expires_at=self._expiry(),
        )
        await self.repo.add(counter)
        original.status = "countered"
        await self.repo.flush()

        self.repo.add_history(
            original.id,
            user_id,
            "countered",
            {
                "counter_offer_id": str(counter.id),
                "counter_offer_amount": payload.offer_amount,
                "counter_type": "original_offer_countered",
            },
        )
        self.repo.add_history(
            counter.id,
            user_id,
            "created",
            {
                "offer_amount": payload.offer_amount,
                "terms": {
                    "cash_offer": payload.cash_offer,
                    "financing_needed": payload.financing_needed,
                    "inspection_contingency": payload.inspection_contingency,
                },
                "original_offer_id": str(original.id),
                "counter_offer_count": counter.counter_offer_count,
            },
        )
        await self.repo.commit()
        logger.info("Offer %s countered by %s with offer %s", original.id, user_id, counter.id)
        return await self.repo.get_offer(counter.id, refresh=True)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    async def list_offers(
        self,
        user_id: UUID,
        *,
        offer_type: Optional[str] = "all",
        status: Optional[str] = None,
        listing_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Offer], int]:
        return await self.repo.list_offers(
            user_id,
            offer_type=normalize_offer_type(offer_type),
            status=status,
            listing_id=listing_id,
            limit=limit,
            offset=offset,
        )

    # PUBLIC_INTERFACE
    async def update_offer(self, user_id: UUID, payload: OfferUpdate) -> Offer:
        """
        Accept, reject or withdraw a pending offer.

        Accepting marks the listing sold at the offered amount. An overdue pending
        offer is flipped to expired and rejected with 400.
        """
        if payload.offer_id is None:
            raise ValidationFailed("offer_id is required")
        offer = await self.repo.get_offer(payload.offer_id)
        if offer is None:
            raise NotFoundError("Offer not found")

        now = utcnow()
        if offer.status == "pending" and offer.expires_at is not None and as_utc(offer.expires_at) < now:
            offer.status = "expired"
            await self.repo.commit()
            raise ValidationFailed("This offer has expired and cannot be modified")
        if offer.status != "pending":
            raise ValidationFailed(f"Cannot update offer with status: {offer.status}")

        if payload.status == "withdrawn":
            if offer.buyer_id != user_id:
                raise ForbiddenError("Only the buyer can withdraw an offer")
        elif offer.seller_id != user_id:
            raise ForbiddenError("Only the seller can accept or reject an offer")

        old_status = offer.status
        offer.status = payload.status
        if payload.status == "accepted":
            offer.accepted_at = now
        elif payload.status == "rejected":
            offer.rejected_at = now
            offer.rejection_reason = payload.rejection_reason

        self.repo.add_history(
            offer.id,
            user_id,
            payload.status,
            {
                "old_status": old_status,
                "new_status": payload.status,
                "rejection_reason": payload.rejection_reason,
            },
        )

        if payload.status == "accepted":
            listing = await self.listings.get_listing(offer.listing_id)
            if listing is not None:
                listing.status = "sold"
                listing.sold_at = now
                listing.sold_price = offer.offer_amount

        await self.repo.commit()
        logger.info("Offer %s %s by %s", offer.id, payload.status, user_id)
        return await self.repo.get_offer(offer.id, refresh=True)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    async def expire_overdue(self) -> int:
        """Set every pending offer past its expires_at to expired; returns how many changed."""
        overdue = await self.repo.list_overdue_pending(utcnow())
        for offer in overdue:
            offer.status = "expired"
        if overdue:
            await self.repo.commit()
        logger.info("Expired %d overdue offers", len(overdue))
        return len(overdue)

    # PUBLIC_INTERFACE
    async def expiring(self, user_id: UUID, hours: int = 24) -> Tuple[List[Offer], datetime]:
        now = utcnow()
        cutoff = now + timedelta(hours=hours)
        return await self.repo.list_expiring_for_user(user_id, now, cutoff), cutoff

    # PUBLIC_INTERFACE
    async def list_history(
        self,
        user_id: UUID,
        *,
        offer_id: Optional[UUID] = None,
        participant_type: str = "all",
        action_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        entries, total = await self.repo.list_history(
            user_id,
            offer_id=offer_id,
            participant_type=participant_type,
            action_type=action_type,
            limit=limit,
            offset=offset,
        )
        return {
            "history": [format_history_entry(entry, user_id) for entry in entries],
            "total": total,
            "has_more": offset + len(entries) < total,
        }

    # PUBLIC_INTERFACE
    async def add_history(self, user_id: UUID, payload: OfferHistoryCreate) -> OfferHistoryRead:
        offer = await self.repo.get_offer(payload.offer_id)
        if offer is None:
            raise NotFoundError("Offer not found")
        if user_id not in (offer.buyer_id, offer.seller_id):
            raise ForbiddenError("You can only add history to offers you are involved in")
        entry = self.repo.add_history(offer.id, user_id, payload.action_type, payload.action_details)
        await self.repo.commit()
        return format_history_entry(entry, user_id, offer)

    # PUBLIC_INTERFACE
    async def analytics(self, user_id: UUID, *, timeframe_days: int = 30, offer_type: Optional[str] = "all") -> OfferAnalytics:
        """Offer statistics for the caller over the last timeframe_days days."""
        since = utcnow() - timedelta(days=timeframe_days)
        normalized = normalize_offer_type(offer_type)
        offers = await self.repo.offers_for_analytics(user_id, offer_type=normalized, since=since)

        if normalized == "sent":
            top_source: List[Offer] = []
        elif normalized == "received":
            top_source = offers
        else:
            top_source = [offer for offer in offers if offer.seller_id == user_id]

        history = await self.repo.recent_history_for_offers([offer.id for offer in offers], RECENT_ACTIVITY_LIMIT)
        return OfferAnalytics(
            analytics=calculate_offer_analytics(offers),
            recent_activity=[format_history_entry(entry, user_id) for entry in history],
            top_listings=calculate_top_listings(top_source),
            timeframe=timeframe_days,
            total_offers=len(offers),
        )
