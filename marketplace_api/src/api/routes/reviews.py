from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session
from src.db.models.profiles import Profile
from src.schemas.engagement import ReviewCreate, ReviewCreated, ReviewPage, ReviewRead
from src.services.engagement import ReviewService
from src.services.errors import ValidationFailed

router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ReviewPage,
    summary="List reviews of a profile",
    description="Visible reviews newest first, with a rating summary.",
)
async def list_reviews(
    user_id: Optional[UUID] = Query(None, description="Reviewed profile"),
    page: int = Query(1),
    limit: int = Query(10),
    session: AsyncSession = Depends(get_session),
) -> ReviewPage:
    if user_id is None:
        raise ValidationFailed("User ID is required")
    result = await ReviewService(session).list_reviews(user_id, page=page, limit=limit)
    return ReviewPage(
        reviews=[ReviewRead.model_validate(r) for r in result["reviews"]],
        rating_summary=result["rating_summary"],
        pagination=result["pagination"],
    )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ReviewCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create review",
    description="One review per reviewer, reviewed profile and listing.",
)
async def create_review(
    payload: ReviewCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ReviewCreated:
    review = await ReviewService(session).create_review(user.id, payload)
    return ReviewCreated(review=ReviewRead.model_validate(review), message="Review submitted successfully")
