from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_optional_user, get_session
from src.db.models.profiles import Profile
from src.schemas.common import MessageResponse, offset_page
from src.schemas.listings import (
    ListingCreate,
    ListingPage,
    ListingRead,
    ListingResponse,
    ListingUpdate,
    MarkSoldRequest,
    UploadedImage,
)
from src.services.listings import ListingService

router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])


# PUBLIC_INTERFACE
@router.get(
    "/mine",
    response_model=ListingPage,
    summary="List own listings",
    description="Seller's listings with primary image, image count and modification count.",
)
async def list_my_listings(
    status_filter: str = Query("all", alias="status", description="Listing status or 'all'"),
    sort_by: Literal["created_at", "updated_at", "price", "year", "title"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingPage:
    listings, total = await ListingService(session).list_mine(
        user.id, status=status_filter, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset
    )
    return ListingPage(
        listings=[ListingRead.model_validate(item) for item in listings],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.get(
    "/public",
    response_model=ListingPage,
    summary="Browse listings",
    description="Active listings of other sellers, newest first; search matches title, make and model.",
)
async def list_public_listings(
    search: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingPage:
    listings, total = await ListingService(session).list_public(user.id, search=search, limit=limit, offset=offset)
    return ListingPage(
        listings=[ListingRead.model_validate(item) for item in listings],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.get(
    "/analytics",
    summary="Seller analytics",
    description="Overview, pricing, recent activity and six-month history of the caller's listings.",
)
async def listing_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
):
    return await ListingService(session).analytics(user.id, start_date=start_date, end_date=end_date)


# PUBLIC_INTERFACE
@router.post(
    "/upload-image",
    response_model=UploadedImage,
    status_code=status.HTTP_201_CREATED,
    summary="Upload listing image",
    description="JPEG, PNG or WebP up to 5MB. With listing_id the image is attached to that owned listing.",
)
async def upload_listing_image(
    file: UploadFile = File(...),
    listing_id: Optional[UUID] = Form(None),
    caption: Optional[str] = Form(None),
    is_primary: bool = Form(False),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> UploadedImage:
    return await ListingService(session).upload_image(
        user.id, file, listing_id=listing_id, caption=caption, is_primary=is_primary
    )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ListingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create listing",
    description="Create a listing with optional modifications.",
)
async def create_listing(
    payload: ListingCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await ListingService(session).create_listing(user.id, payload)
    return ListingResponse(listing=ListingRead.model_validate(listing), message="Listing created successfully")


# PUBLIC_INTERFACE
@router.get(
    "/{listing_id}",
    response_model=ListingRead,
    summary="Get listing",
    description="Public listing detail. Non-owners only see active listings; their views are counted.",
)
async def get_listing(
    listing_id: UUID,
    user: Optional[Profile] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> ListingRead:
    listing = await ListingService(session).get_listing(listing_id, user.id if user else None)
    return ListingRead.model_validate(listing)


# PUBLIC_INTERFACE
@router.put(
    "/{listing_id}",
    response_model=ListingResponse,
    summary="Update listing",
    description="Owner update; a supplied modifications list replaces the existing one.",
)
async def update_listing(
    listing_id: UUID,
    payload: ListingUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await ListingService(session).update_listing(listing_id, user.id, payload)
    return ListingResponse(listing=ListingRead.model_validate(listing), message="Listing updated successfully")


# PUBLIC_INTERFACE
@router.delete(
    "/{listing_id}",
    response_model=MessageResponse,
    summary="Delete listing",
)
async def delete_listing(
    listing_id: UUID,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await ListingService(session).delete_listing(listing_id, user.id)
    return MessageResponse(message="Listing deleted successfully")


# PUBLIC_INTERFACE
@router.patch(
    "/{listing_id}/sold",
    response_model=ListingResponse,
    summary="Mark listing sold",
    description="sold_price defaults to the asking price.",
)
async def mark_listing_sold(
    listing_id: UUID,
    payload: Optional[MarkSoldRequest] = None,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await ListingService(session).mark_sold(listing_id, user.id, payload or MarkSoldRequest())
    return ListingResponse(listing=ListingRead.model_validate(listing), message="Listing marked as sold")


# PUBLIC_INTERFACE
@router.put(
    "/{listing_id}/sold",
    response_model=ListingResponse,
    summary="Reactivate sold listing",
)
async def reactivate_listing(
    listing_id: UUID,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await ListingService(session).reactivate(listing_id, user.id)
    return ListingResponse(listing=ListingRead.model_validate(listing), message="Listing reactivated")
