from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .auth import ProfileSummary
from .common import OffsetPage


class ListingImageRead(BaseModel):
    """Image attached to a listing."""
    id: UUID = Field(..., description="Image ID")
    image_url: str = Field(..., description="Public URL of the image")
    caption: Optional[str] = Field(None)
    is_primary: bool = Field(False, description="Whether this is the cover image")
    sort_order: int = Field(0, description="Display order")

    class Config:
        from_attributes = True


class ModificationIn(BaseModel):
    """Modification supplied when creating or updating a listing (checked by the listing service)."""
    name: Optional[str] = Field(None, description="Modification name")
    category: Optional[str] = Field(None, description="Modification category")
    description: Optional[str] = Field(None, description="What was done (at least 10 characters)")
    cost: Optional[float] = Field(None, description="Cost, 0..1,000,000")
    installed_at: Optional[datetime] = Field(None, description="Installation date")


class ModificationRead(BaseModel):
    """Modification installed on a listed vehicle."""
    id: UUID = Field(..., description="Modification ID")
    name: str = Field(...)
    category: str = Field(...)
    description: str = Field(...)
    cost: Optional[float] = Field(None)
    installed_at: Optional[datetime] = Field(None)
    created_at: datetime = Field(...)

    class Config:
        from_attributes = True


class SellerSummary(ProfileSummary):
    """Seller fields embedded in a listing."""
    location: Optional[str] = Field(None)


class ListingCreate(BaseModel):
    """Create listing payload; required fields are reported together when missing."""
    title: Optional[str] = Field(None, max_length=200)
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = Field(None, ge=1886, le=2100)
    price: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None)
    engine: Optional[str] = Field(None)
    transmission: Optional[str] = Field(None)
    mileage: Optional[int] = Field(None, ge=0)
    condition: Optional[str] = Field(None, description="Defaults to 'good'")
    status: Optional[str] = Field(None, pattern="^(active|draft)$", description="Defaults to 'active'")
    modifications: Optional[List[ModificationIn]] = Field(None)


class ListingUpdate(BaseModel):
    """Owner update payload; modifications, when given, replace the existing set."""
    title: Optional[str] = Field(None, max_length=200)
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    year: Optional[int] = Field(None, ge=1886, le=2100)
    price: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None)
    engine: Optional[str] = Field(None)
    transmission: Optional[str] = Field(None)
    mileage: Optional[int] = Field(None, ge=0)
    condition: Optional[str] = Field(None)
    status: Optional[str] = Field(None, pattern="^(active|sold|draft|deleted)$")
    modifications: Optional[List[ModificationIn]] = Field(None)


class ListingRead(BaseModel):
    """Listing with images, modifications and seller summary."""
    id: UUID = Field(..., description="Listing ID")
    user_id: UUID = Field(..., description="Seller profile ID")
    title: str = Field(...)
    make: str = Field(...)
    model: str = Field(...)
    year: int = Field(...)
    price: float = Field(...)
    location: str = Field(...)
    description: Optional[str] = Field(None)
    engine: Optional[str] = Field(None)
    transmission: Optional[str] = Field(None)
    mileage: Optional[int] = Field(None)
    condition: Optional[str] = Field(None)
    status: str = Field(...)
    sold_at: Optional[datetime] = Field(None)
    sold_price: Optional[float] = Field(None)
    view_count: int = Field(0)
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)
    primary_image: Optional[ListingImageRead] = Field(None)
    image_count: int = Field(0)
    modification_count: int = Field(0)
    images: List[ListingImageRead] = Field(default_factory=list)
    modifications: List[ModificationRead] = Field(default_factory=list)
    seller: Optional[SellerSummary] = Field(None)

    class Config:
        from_attributes = True


class ListingSummary(BaseModel):
    """Short listing reference embedded in other resources."""
    id: UUID = Field(...)
    title: str = Field(...)
    make: str = Field(...)
    model: str = Field(...)
    year: int = Field(...)
    price: Optional[float] = Field(None)
    status: Optional[str] = Field(None)

    class Config:
        from_attributes = True


class ListingPage(BaseModel):
    """Offset-paginated listings."""
    listings: List[ListingRead] = Field(default_factory=list)
    pagination: OffsetPage = Field(...)


class MarkSoldRequest(BaseModel):
    """Mark a listing as sold."""
    sold_price: Optional[float] = Field(None, description="Final price; defaults to the asking price")
    notes: Optional[str] = Field(None, description="Free-form sale notes")


class ListingResponse(BaseModel):
    """Listing plus a human-readable message."""
    listing: ListingRead = Field(...)
    message: str = Field(...)


class UploadedImage(BaseModel):
    """Stored upload metadata."""
    id: UUID = Field(..., description="Image ID")
    url: str = Field(..., description="Public URL")
    file_path: str = Field(..., description="Storage path relative to the upload root")
    caption: Optional[str] = Field(None)
    is_primary: bool = Field(False)
    original_name: str = Field(...)
    size: int = Field(..., description="Size in bytes")
    type: str = Field(..., description="MIME type")


class ListingOverview(BaseModel):
    total_listings: int = Field(0)
    active_listings: int = Field(0)
    sold_listings: int = Field(0)
    draft_listings: int = Field(0)
    conversion_rate: float = Field(0.0, description="Sold / total * 100, 2 decimals")
    avg_days_to_sell: int = Field(0)


class ListingPricing(BaseModel):
    avg_active_price: int = Field(0)
    avg_sold_price: int = Field(0)
    total_active_value: int = Field(0)
    total_sold_value: int = Field(0)


class ListingRecent(BaseModel):
    new_listings: int = Field(0, description="Listings created in the last 30 days")
    sold_listings: int = Field(0, description="Listings sold in the last 30 days")


class MonthlyBucket(BaseModel):
    month: str = Field(..., description="'Mon YYYY'")
    listed: int = Field(0)
    sold: int = Field(0)


class ListingAnalytics(BaseModel):
    """Seller dashboard analytics."""
    overview: ListingOverview = Field(...)
    pricing: ListingPricing = Field(...)
    recent: ListingRecent = Field(...)
    monthly: List[MonthlyBucket] = Field(default_factory=list)
