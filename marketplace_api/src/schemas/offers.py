from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .auth import ProfileSummary
from .common import OffsetPage
from .listings import ListingSummary

OfferActionType = Literal["created", "countered", "accepted", "rejected", "withdrawn", "expired", "viewed", "note"]


class OfferCreate(BaseModel):
    """
    Create an offer.

    Supplying original_offer_id makes this a counter-offer to that pending offer;
    otherwise listing_id is required.
    """
    listing_id: Optional[UUID] = Field(None, description="Listing the offer is for")
    original_offer_id: Optional[UUID] = Field(None, description="Offer being countered")
    offer_amount: float = Field(..., gt=0, description="Offered amount")
    message: Optional[str] = Field(None, max_length=2000)
    cash_offer: bool = Field(False)
    financing_needed: bool = Field(False)
    inspection_contingency: bool = Field(True)


class OfferUpdate(BaseModel):
    """Respond to an offer."""
    offer_id: Optional[UUID] = Field(None, description="Offer to update")
    status: Literal["accepted", "rejected", "withdrawn"] = Field(...)
    rejection_reason: Optional[str] = Field(None, max_length=2000)


class OfferRead(BaseModel):
    id: UUID = Field(...)
    listing_id: UUID = Field(...)
    buyer_id: UUID = Field(...)
    seller_id: UUID = Field(...)
    offer_amount: float = Field(...)
    message: Optional[str] = Field(None)
    status: str = Field(...)
    cash_offer: bool = Field(False)
    financing_needed: bool = Field(False)
    inspection_contingency: bool = Field(True)
    is_counter_offer: bool = Field(False)
    original_offer_id: Optional[UUID] = Field(None)
    counter_offer_count: int = Field(0)
    expires_at: Optional[datetime] = Field(None)
    accepted_at: Optional[datetime] = Field(None)
    rejected_at: Optional[datetime] = Field(None)
    rejection_reason: Optional[str] = Field(None)
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)
    listing: Optional[ListingSummary] = Field(None)
    buyer: Optional[ProfileSummary] = Field(None)
    seller: Optional[ProfileSummary] = Field(None)

    class Config:
        from_attributes = True


class OfferEnvelope(BaseModel):
    offer: OfferRead = Field(...)
    message: str = Field(...)


class OfferPage(BaseModel):
    offers: List[OfferRead] = Field(default_factory=list)
    pagination: OffsetPage = Field(...)


class ExpireResult(BaseModel):
    expired_count: int = Field(0)
    message: str = Field(...)


class ExpiringOffers(BaseModel):
    offers: List[OfferRead] = Field(default_factory=list)
    count: int = Field(0)
    cutoff_time: datetime = Field(...)


class CronHealth(BaseModel):
    service: str = Field("offer-expiration-cron")
    status: str = Field("healthy")
    timestamp: datetime = Field(...)


class OfferHistoryCreate(BaseModel):
    offer_id: UUID = Field(...)
    action_type: OfferActionType = Field(...)
    action_details: Dict[str, Any] = Field(default_factory=dict)


class OfferHistoryRead(BaseModel):
    id: UUID = Field(...)
    offer_id: UUID = Field(...)
    user_id: UUID = Field(...)
    action_type: str = Field(...)
    action_details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(...)
    is_user_action: bool = Field(False, description="Whether the caller performed the action")
    user_role: Optional[str] = Field(None, description="Caller's side of the offer: buyer | seller")
    formatted_date: Optional[str] = Field(None)

    class Config:
        from_attributes = True


class OfferHistoryPage(BaseModel):
    history: List[OfferHistoryRead] = Field(default_factory=list)
    total: int = Field(0)
    has_more: bool = Field(False)


class OfferHistoryEnvelope(BaseModel):
    history_entry: OfferHistoryRead = Field(...)


class ValueRange(BaseModel):
    range: str = Field(...)
    count: int = Field(0)
    percentage: int = Field(0)


class MonthlyOfferActivity(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    total: int = Field(0)
    accepted: int = Field(0)
    rejected: int = Field(0)
    pending: int = Field(0)
    expired: int = Field(0)
    countered: int = Field(0)
    withdrawn: int = Field(0)


class OfferStats(BaseModel):
    total_offers: int = Field(0)
    success_rate: float = Field(0.0)
    average_negotiation_time: float = Field(0.0, description="Hours")
    offer_status_breakdown: Dict[str, int] = Field(default_factory=dict)
    counter_offer_rate: float = Field(0.0)
    monthly_activity: List[MonthlyOfferActivity] = Field(default_factory=list)
    offer_value_ranges: List[ValueRange] = Field(default_factory=list)


class TopListing(BaseModel):
    listing: Optional[ListingSummary] = Field(None)
    total_offers: int = Field(0)
    highest_offer: float = Field(0.0)
    average_offer: float = Field(0.0)
    accepted_offers: int = Field(0)
    success_rate: float = Field(0.0)


class OfferAnalytics(BaseModel):
    analytics: OfferStats = Field(...)
    recent_activity: List[OfferHistoryRead] = Field(default_factory=list)
    top_listings: List[TopListing] = Field(default_factory=list)
    timeframe: int = Field(30)
    total_offers: int = Field(0)
