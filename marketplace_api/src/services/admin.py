from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import utcnow
from src.db.models.listings import Listing
from src.db.models.profiles import Profile
from src.repositories.admin import AdminRepository
from src.repositories.listings import ListingRepository
from src.repositories.profiles import ProfileRepository
from src.schemas.admin import AdminStats
from src.schemas.auth import AdminProfileUpdate
from src.services.base import BaseService
from src.services.errors import NotFoundError

logger = logging.getLogger(__name__)

LISTING_EXPORT_COLUMNS = [
    "id", "title", "make", "model", "year", "price", "location", "status",
    "view_count", "sold_price", "sold_at", "seller_email", "created_at",
]
REPORT_EXPORT_COLUMNS = [
    "id", "message_id", "reporter_id", "reported_user_id", "reason", "description",
    "status", "resolution_notes", "reviewed_at", "created_at",
]
OFFER_EXPORT_COLUMNS = [
    "id", "listing_title", "buyer_id", "seller_id", "offer_amount", "asking_price",
    "offer_percent_of_asking", "status", "is_counter_offer", "counter_offer_count",
    "expires_at", "created_at",
]


def _stringify_ids(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    for column in columns:
        df[column] = df[column].map(lambda value: str(value) if value is not None else None)
    return df


def offers_frame(rows: List[tuple]) -> pd.DataFrame:
    """Offer export rows with the offered amount as a percentage of the asking price."""
    df = pd.DataFrame(
        [tuple(row) for row in rows],
        columns=[c for c in OFFER_EXPORT_COLUMNS if c != "offer_percent_of_asking"],
    )
    asking = df["asking_price"].astype(float)
    df.insert(
        OFFER_EXPORT_COLUMNS.index("offer_percent_of_asking"),
        "offer_percent_of_asking",
        (df["offer_amount"].astype(float) / asking.where(asking > 0) * 100).round(2),
    )
    return _stringify_ids(df, ["id", "buyer_id", "seller_id"])


class AdminService(BaseService):
    """Staff-only views over profiles, listings, reviews and platform counters."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = AdminRepository(session)
        self.profiles = ProfileRepository(session)
        self.listings = ListingRepository(session)

    # PUBLIC_INTERFACE
    async def stats(self) -> AdminStats:
        return AdminStats(**await self.repo.platform_counts())

    # PUBLIC_INTERFACE
    async def list_users(
        self, *, role: Optional[str] = None, search: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Profile], int]:
        return await self.repo.list_profiles_page(role=role, search=search, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def update_user(self, profile_id: UUID, payload: AdminProfileUpdate, actor_id: UUID) -> Profile:
        profile = await self.profiles.get_profile_by_id(profile_id)
        if profile is None:
            raise NotFoundError("User not found")
        if payload.role is not None:
            profile.role = payload.role
        if payload.is_active is not None:
            profile.is_active = payload.is_active
        await self.repo.commit()
        logger.info("Profile %s updated by %s (role=%s, is_active=%s)", profile_id, actor_id, profile.role, profile.is_active)
        return profile

    # PUBLIC_INTERFACE
    async def list_listings(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Listing], int]:
        return await self.listings.list_all_listings(status=status, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def set_listing_status(self, listing_id: UUID, status: str, actor_id: UUID) -> Listing:
        listing = await self.listings.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")
        listing.status = status
        if status == "sold" and listing.sold_at is None:
            listing.sold_at = utcnow()
        await self.repo.commit()
        logger.info("Listing %s set to %s by %s", listing_id, status, actor_id)
        return await self.listings.get_listing(listing_id, refresh=True)  # type: ignore[return-value]

    # Exports

    # PUBLIC_INTERFACE
    async def listings_frame(self, status: Optional[str] = None) -> pd.DataFrame:
        df = pd.DataFrame([tuple(r) for r in await self.repo.listing_export_rows(status)], columns=LISTING_EXPORT_COLUMNS)
        return _stringify_ids(df, ["id"])

    # PUBLIC_INTERFACE
    async def reports_frame(self, status: Optional[str] = None) -> pd.DataFrame:
        df = pd.DataFrame([tuple(r) for r in await self.repo.report_export_rows(status)], columns=REPORT_EXPORT_COLUMNS)
        return _stringify_ids(df, ["id", "message_id", "reporter_id", "reported_user_id"])

    # PUBLIC_INTERFACE
    async def offers_frame(self, status: Optional[str] = None) -> pd.DataFrame:
        return offers_frame(await self.repo.offer_export_rows(status))
