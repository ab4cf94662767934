from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.routes.offers import is_system_token
from src.core.deps import get_session, optional_oauth2_scheme
from src.core.settings import get_app_settings
from src.db.base import utcnow
from src.schemas.offers import CronHealth, ExpireResult
from src.services.offers import OfferService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cron", tags=["Cron"])


async def _require_cron_secret(token: Optional[str] = Depends(optional_oauth2_scheme)) -> None:
    if not is_system_token(token, get_app_settings().CRON_SECRET):
        logger.warning("Rejected cron call without a valid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


# PUBLIC_INTERFACE
@router.post(
    "/expire-offers",
    response_model=ExpireResult,
    summary="Scheduled offer expiry",
    description="Requires `Authorization: Bearer <CRON_SECRET>`.",
    dependencies=[Depends(_require_cron_secret)],
)
async def run_offer_expiry(session: AsyncSession = Depends(get_session)) -> ExpireResult:
    expired = await OfferService(session).expire_overdue()
    return ExpireResult(expired_count=expired, message=f"Expired {expired} offers")


# PUBLIC_INTERFACE
@router.get("/expire-offers", response_model=CronHealth, summary="Cron health check")
async def offer_expiry_health() -> CronHealth:
    return CronHealth(timestamp=utcnow())
