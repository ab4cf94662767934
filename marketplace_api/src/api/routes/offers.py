from __future__ import annotations

import logging
import secrets
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_optional_user, get_session, optional_oauth2_scheme
from src.core.settings import get_app_settings
from src.db.models.profiles import Profile
from src.schemas.common import offset_page
from src.schemas.offers import (
    ExpireResult,
    ExpiringOffers,
    OfferAnalytics,
    OfferCreate,
    OfferEnvelope,
    OfferHistoryCreate,
    OfferHistoryEnvelope,
    OfferHistoryPage,
    OfferPage,
    OfferRead,
    OfferUpdate,
)
from src.services.offers import OfferService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/offers", tags=["Offers"])


def is_system_token(token: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of a bearer token against a configured machine key."""
    return bool(token and expected and secrets.compare_digest(token, expected))


async def _system_or_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> Optional[Profile]:
    """None for the system caller, the profile for a signed-in user; 401 otherwise."""
    if is_system_token(token, get_app_settings().SYSTEM_API_KEY):
        return None
    user = await get_optional_user(token, session)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=OfferEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Make or counter an offer",
    description="With original_offer_id the offer counters that pending offer and the parties swap.",
)
async def create_offer(
    payload: OfferCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferEnvelope:
    offer = await OfferService(session).create_offer(user.id, payload)
    message = "Counter offer created successfully" if offer.is_counter_offer else "Offer created successfully"
    return OfferEnvelope(offer=OfferRead.model_validate(offer), message=message)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=OfferPage,
    summary="List offers",
    description="type: sent | received | all (buyer and seller are accepted as aliases).",
)
async def list_offers(
    type: str = Query("all", description="sent | received | all"),
    status_filter: Optional[str] = Query(None, alias="status"),
    listing_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferPage:
    offers, total = await OfferService(session).list_offers(
        user.id, offer_type=type, status=status_filter, listing_id=listing_id, limit=limit, offset=offset
    )
    return OfferPage(
        offers=[OfferRead.model_validate(o) for o in offers],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.patch(
    "",
    response_model=OfferEnvelope,
    summary="Respond to an offer",
    description="Seller accepts or rejects; buyer withdraws. Accepting marks the listing sold.",
)
async def update_offer(
    payload: OfferUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferEnvelope:
    offer = await OfferService(session).update_offer(user.id, payload)
    return OfferEnvelope(offer=OfferRead.model_validate(offer), message=f"Offer {payload.status} successfully")


# PUBLIC_INTERFACE
@router.post(
    "/expire",
    response_model=ExpireResult,
    summary="Expire overdue offers",
    description="Callable with the system API key or by any signed-in user.",
)
async def expire_offers(
    caller: Optional[Profile] = Depends(_system_or_user),
    session: AsyncSession = Depends(get_session),
) -> ExpireResult:
    expired = await OfferService(session).expire_overdue()
    logger.info("Offer expiry run by %s: %d expired", caller.id if caller else "system", expired)
    return ExpireResult(expired_count=expired, message=f"Expired {expired} offers")


# PUBLIC_INTERFACE
@router.get(
    "/expire",
    response_model=ExpiringOffers,
    summary="Offers expiring soon",
    description="Caller's pending offers that expire within the next `hours` hours.",
)
async def expiring_offers(
    hours: int = Query(24, ge=1, le=24 * 30),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ExpiringOffers:
    offers, cutoff = await OfferService(session).expiring(user.id, hours)
    return ExpiringOffers(
        offers=[OfferRead.model_validate(o) for o in offers],
        count=len(offers),
        cutoff_time=cutoff,
    )


# PUBLIC_INTERFACE
@router.get(
    "/history",
    response_model=OfferHistoryPage,
    summary="Offer history",
    description="History entries of the caller's offers, newest first.",
)
async def offer_history(
    offer_id: Optional[UUID] = Query(None),
    type: str = Query("all", description="buyer | seller | all"),
    action_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferHistoryPage:
    result = await OfferService(session).list_history(
        user.id, offer_id=offer_id, participant_type=type, action_type=action_type, limit=limit, offset=offset
    )
    return OfferHistoryPage(**result)


# PUBLIC_INTERFACE
@router.post(
    "/history",
    response_model=OfferHistoryEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Add offer history entry",
)
async def add_offer_history(
    payload: OfferHistoryCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferHistoryEnvelope:
    entry = await OfferService(session).add_history(user.id, payload)
    return OfferHistoryEnvelope(history_entry=entry)


# PUBLIC_INTERFACE
@router.get(
    "/analytics",
    response_model=OfferAnalytics,
    summary="Offer analytics",
    description="Success rate, negotiation time, status breakdown, monthly activity, value ranges and top listings.",
)
async def offer_analytics(
    timeframe: int = Query(30, ge=1, le=3650, description="Days"),
    type: str = Query("all", description="sent | received | all"),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> OfferAnalytics:
    return await OfferService(session).analytics(user.id, timeframe_days=timeframe, offer_type=type)
