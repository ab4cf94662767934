from __future__ import annotations

import json
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session
from src.db.models.profiles import Profile
from src.schemas.common import MessageResponse, offset_page
from src.schemas.engagement import (
    FavoriteCreate,
    FavoriteCreated,
    FavoritePage,
    FavoriteRead,
    FavoriteStatus,
)
from src.services.engagement import FavoriteService, log_favorite_operation
from src.services.errors import PayloadTooLarge, ValidationFailed

router = APIRouter(prefix="/api/v1/favorites", tags=["Favorites"])

MAX_FAVORITE_BODY_BYTES = 1024


async def _read_favorite_body(request: Request, user_id: UUID) -> FavoriteCreate:
    raw = await request.body()
    if len(raw) > MAX_FAVORITE_BODY_BYTES:
        log_favorite_operation("add_favorite_payload_too_large", user_id, None, False, f"{len(raw)} bytes")
        raise PayloadTooLarge("Request body too large")
    try:
        data = json.loads(raw or b"null")
    except ValueError:
        log_favorite_operation("add_favorite_invalid_json", user_id, None, False, "Invalid JSON")
        raise ValidationFailed("Invalid JSON in request body")
    if not isinstance(data, dict) or not data.get("listing_id"):
        raise ValidationFailed("listing_id is required")
    try:
        return FavoriteCreate.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed("Invalid listing_id", details=exc.errors(include_url=False))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=FavoriteCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Save listing",
    description="Body is {listing_id}; bodies over 1KB are rejected with 413.",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": FavoriteCreate.model_json_schema()}},
        }
    },
)
async def add_favorite(
    request: Request,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> FavoriteCreated:
    payload = await _read_favorite_body(request, user.id)
    favorite = await FavoriteService(session).add_favorite(user.id, payload.listing_id)
    return FavoriteCreated(
        favorite=FavoriteRead.model_validate(favorite),
        message="Listing added to favorites",
    )


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=FavoritePage,
    summary="List favorites",
    description="Saved listings, excluding deleted ones. sort_by: created_at, listing_price or listing_year.",
)
async def list_favorites(
    limit: int = Query(50),
    offset: int = Query(0),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> FavoritePage:
    favorites, total, limit, offset = await FavoriteService(session).list_favorites(
        user.id, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset
    )
    return FavoritePage(
        favorites=[FavoriteRead.model_validate(f) for f in favorites],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.get("/{listing_id}", response_model=FavoriteStatus, summary="Favorite status")
async def favorite_status(
    listing_id: UUID,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> FavoriteStatus:
    return FavoriteStatus(**await FavoriteService(session).favorite_status(user.id, listing_id))


# PUBLIC_INTERFACE
@router.delete("/{listing_id}", response_model=MessageResponse, summary="Remove favorite")
async def remove_favorite(
    listing_id: UUID,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await FavoriteService(session).remove_favorite(user.id, listing_id)
    return MessageResponse(message="Listing removed from favorites")
