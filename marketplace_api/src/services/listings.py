from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import as_utc, utcnow
from src.db.models.listings import MODIFICATION_CATEGORIES, Listing, ListingImage, Modification
from src.repositories.listings import ListingRepository
from src.schemas.listings import (
    ListingAnalytics,
    ListingCreate,
    ListingUpdate,
    MarkSoldRequest,
    ModificationIn,
    UploadedImage,
)
from src.services.base import BaseService
from src.services.errors import NotFoundError, ValidationFailed
from src.services.storage import store_image

logger = logging.getLogger(__name__)

REQUIRED_LISTING_FIELDS = ("title", "make", "model", "year", "price", "location")
UPDATABLE_LISTING_FIELDS = (
    "title", "make", "model", "year", "price", "location", "description",
    "engine", "transmission", "mileage", "condition", "status",
)
MAX_MODIFICATION_COST = 1_000_000
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def validate_modifications(modifications: Sequence[ModificationIn]) -> List[str]:
    """Return one message per invalid modification (empty when all are valid)."""
    errors: List[str] = []
    for index, mod in enumerate(modifications, start=1):
        description = (mod.description or "").strip()
        if not mod.category or not description:
            errors.append(f"Modification {index}: Category and description are required")
        elif mod.category not in MODIFICATION_CATEGORIES:
            errors.append(
                f'Modification {index}: Invalid category "{mod.category}". '
                f"Must be one of: {', '.join(MODIFICATION_CATEGORIES)}"
            )
        elif len(description) < 10:
            errors.append(f"Modification {index}: Description must be at least 10 characters long")
        elif mod.cost is not None and (mod.cost < 0 or mod.cost > MAX_MODIFICATION_COST):
            errors.append(f"Modification {index}: Cost must be between $0 and $1,000,000")
    return errors


def _build_modifications(modifications: Sequence[ModificationIn]) -> List[Modification]:
    return [
        Modification(
            name=(mod.name or mod.description or "")[:100],
            category=mod.category,
            description=mod.description,
            cost=mod.cost,
            installed_at=mod.installed_at,
        )
        for mod in modifications
    ]


def _month_start(now: datetime, months_back: int) -> datetime:
    index = now.year * 12 + now.month - 1 - months_back
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def compute_listing_analytics(rows: Sequence[Tuple[Any, ...]], now: Optional[datetime] = None) -> ListingAnalytics:
    """
    Seller analytics from (status, price, sold_price, created_at, sold_at) rows.

    Monthly buckets cover the current month and the five before it.
    """
    now = as_utc(now) or utcnow()
    listings = [
        {
            "status": status,
            "price": float(price or 0),
            "sold_price": float(sold_price) if sold_price is not None else None,
            "created_at": as_utc(created_at),
            "sold_at": as_utc(sold_at),
        }
        for status, price, sold_price, created_at, sold_at in rows
    ]

    total = len(listings)
    by_status = {s: sum(1 for item in listings if item["status"] == s) for s in ("active", "sold", "draft")}
    active_prices = [item["price"] for item in listings if item["status"] == "active"]
    sold_prices = [item["sold_price"] or item["price"] for item in listings if item["status"] == "sold"]

    sold_durations = [
        round((item["sold_at"] - item["created_at"]).total_seconds() / 86400)
        for item in listings
        if item["status"] == "sold" and item["sold_at"] and item["created_at"]
    ]

    thirty_days_ago = now - timedelta(days=30)
    recent = [item for item in listings if item["created_at"] and item["created_at"] >= thirty_days_ago]

    monthly = []
    for months_back in range(5, -1, -1):
        start = _month_start(now, months_back)
        end = _month_start(now, months_back - 1)
        monthly.append(
            {
                "month": f"{MONTH_NAMES[start.month - 1]} {start.year}",
                "listed": sum(1 for item in listings if item["created_at"] and start <= item["created_at"] < end),
                "sold": sum(1 for item in listings if item["sold_at"] and start <= item["sold_at"] < end),
            }
        )

    return ListingAnalytics(
        overview={
            "total_listings": total,
            "active_listings": by_status["active"],
            "sold_listings": by_status["sold"],
            "draft_listings": by_status["draft"],
            "conversion_rate": round(by_status["sold"] / total * 100, 2) if total else 0.0,
            "avg_days_to_sell": round(sum(sold_durations) / len(sold_durations)) if sold_durations else 0,
        },
        pricing={
            "avg_active_price": round(sum(active_prices) / len(active_prices)) if active_prices else 0,
            "avg_sold_price": round(sum(sold_prices) / len(sold_prices)) if sold_prices else 0,
            "total_active_value": round(sum(active_prices)),
            "total_sold_value": round(sum(sold_prices)),
        },
        recent={
            "new_listings": len(recent),
            "sold_listings": sum(1 for item in recent if item["status"] == "sold"),
        },
        monthly=monthly,
    )


class ListingService(BaseService):
    """Listing lifecycle for sellers plus public browsing and image uploads."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ListingRepository(session)

    async def _owned(self, listing_id: UUID, owner_id: UUID) -> Listing:
        listing = await self.repo.get_owned_listing(listing_id, owner_id)
        if listing is None:
            raise NotFoundError("Listing not found or unauthorized")
        return listing

    # PUBLIC_INTERFACE
    async def list_mine(
        self,
        owner_id: UUID,
        *,
        status: str = "all",
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Listing], int]:
        """Seller's own listings with total count."""
        return await self.repo.list_owner_listings(
            owner_id, status=status, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def create_listing(self, owner_id: UUID, payload: ListingCreate) -> Listing:
        """
        Create a listing with optional modifications.

        Raises:
            ValidationFailed: missing required fields or invalid modifications.
        """
        missing = [name for name in REQUIRED_LISTING_FIELDS if not getattr(payload, name)]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

        modifications = payload.modifications or []
        errors = validate_modifications(modifications)
        if errors:
            raise ValidationFailed("Invalid modifications", details=errors)

        listing = Listing(
            user_id=owner_id,
            title=payload.title,
            make=payload.make,
            model=payload.model,
            year=payload.year,
            price=payload.price,
            location=payload.location,
            description=payload.description or None,
            engine=payload.engine or None,
            transmission=payload.transmission or None,
            mileage=payload.mileage or None,
            condition=payload.condition or "good",
            status=payload.status or "active",
            modifications=_build_modifications(modifications),
        )
        created = await self.repo.create_listing(listing)
        logger.info("Created listing %s with %d modifications", created.id, len(modifications))
        return created

    # PUBLIC_INTERFACE
    async def get_listing(self, listing_id: UUID, viewer_id: Optional[UUID]) -> Listing:
        """
        Public listing detail; non-owners only see active listings and bump the view counter.
        """
        listing = await self.repo.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")
        is_owner = viewer_id is not None and listing.user_id == viewer_id
        if not is_owner and listing.status != "active":
            raise NotFoundError("Listing not found")
        if not is_owner:
            await self.repo.increment_view_count(listing.id)
        return listing

    # PUBLIC_INTERFACE
    async def update_listing(self, listing_id: UUID, owner_id: UUID, payload: ListingUpdate) -> Listing:
        listing = await self._owned(listing_id, owner_id)
        values = payload.model_dump(exclude_unset=True)
        for name in UPDATABLE_LISTING_FIELDS:
            if name in values:
                setattr(listing, name, values[name])

        if payload.modifications is not None:
            errors = validate_modifications(payload.modifications)
            if errors:
                raise ValidationFailed("Invalid modifications", details=errors)
            listing.modifications = _build_modifications(payload.modifications)

        listing.updated_at = utcnow()
        await self.repo.commit()
        return await self.repo.get_listing(listing.id, refresh=True)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    async def delete_listing(self, listing_id: UUID, owner_id: UUID) -> None:
        listing = await self._owned(listing_id, owner_id)
        await self.repo.delete_listing(listing)
        logger.info("Deleted listing %s", listing_id)

    # PUBLIC_INTERFACE
    async def mark_sold(self, listing_id: UUID, owner_id: UUID, payload: MarkSoldRequest) -> Listing:
        """
        Mark an owned listing as sold; sold_price defaults to the asking price.
        """
        listing = await self._owned(listing_id, owner_id)
        if listing.status == "sold":
            raise ValidationFailed("Listing is already marked as sold")
        if payload.sold_price is not None and payload.sold_price <= 0:
            raise ValidationFailed("Invalid sold price")

        listing.status = "sold"
        listing.sold_price = payload.sold_price if payload.sold_price is not None else listing.price
        listing.sold_at = utcnow()
        await self.repo.commit()
        logger.info("Listing %s marked sold for %s", listing_id, listing.sold_price)
        return listing

    # PUBLIC_INTERFACE
    async def reactivate(self, listing_id: UUID, owner_id: UUID) -> Listing:
        listing = await self._owned(listing_id, owner_id)
        if listing.status != "sold":
            raise ValidationFailed("Listing is not marked as sold")
        listing.status = "active"
        listing.sold_at = None
        listing.sold_price = None
        await self.repo.commit()
        return listing

    # PUBLIC_INTERFACE
    async def list_public(
        self, viewer_id: UUID, *, search: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Listing], int]:
        """Active listings of other sellers, newest first."""
        return await self.repo.list_public_listings(
            exclude_user_id=viewer_id, search=search, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def upload_image(
        self,
        owner_id: UUID,
        upload: UploadFile,
        *,
        listing_id: Optional[UUID] = None,
        caption: Optional[str] = None,
        is_primary: bool = False,
    ) -> UploadedImage:
        """
        Store an image under {owner}/listings/ and, when listing_id is given, attach it
        to that owned listing.
        """
        listing: Optional[Listing] = None
        if listing_id is not None:
            listing = await self._owned(listing_id, owner_id)

        stored = await store_image(upload, owner_id, "listings")
        image = ListingImage(
            listing_id=listing.id if listing else None,
            uploaded_by=owner_id,
            image_url=stored.url,
            file_path=stored.file_path,
            caption=caption,
            is_primary=is_primary,
            sort_order=await self.repo.count_images(listing.id) if listing else 0,
        )
        await self.repo.add_image(image)
        return UploadedImage(
            id=image.id,
            url=stored.url,
            file_path=stored.file_path,
            caption=caption,
            is_primary=is_primary,
            original_name=stored.original_name,
            size=stored.size,
            type=stored.content_type,
        )

    # PUBLIC_INTERFACE
    async def analytics(
        self,
        owner_id: UUID,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        rows = await self.repo.owner_listing_rows(owner_id, created_from=start_date, created_to=end_date)
        return {"analytics": compute_listing_analytics(rows)}
