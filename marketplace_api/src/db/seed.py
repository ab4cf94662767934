"""
Database seeding utilities for a usable development marketplace.

Seeds:
- Admin profile (SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD) with default notification preferences
- Demo seller profile
- Sample active listings with modifications

Seeding is idempotent: existing profiles are reused and listings are only
created for a seller that has none.

Usage:
  python -m src.db.run_migrations upgrade head
  python -m src.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.security import get_password_hash
from src.core.settings import get_app_settings
from src.db.models import Listing, Modification, NotificationPreference, Profile
from src.db.session import get_session_maker

logger = logging.getLogger(__name__)

DEMO_SELLER_EMAIL = "seller@example.com"
DEMO_SELLER_PASSWORD = "change-me-seller"

SAMPLE_LISTINGS: List[Dict[str, Any]] = [
    {
        "title": "1999 Toyota Supra Turbo",
        "make": "Toyota",
        "model": "Supra",
        "year": 1999,
        "price": 58000,
        "location": "Los Angeles, CA",
        "mileage": 82000,
        "transmission": "manual",
        "condition": "excellent",
        "engine": "2JZ-GTE",
        "modifications": [
            {"name": "Single turbo conversion", "category": "engine", "description": "Precision 6266 on a T4 manifold"},
            {"name": "Coilovers", "category": "suspension", "description": "Adjustable damping, lowered 1.5 in"},
        ],
    },
    {
        "title": "2006 Honda S2000 AP2",
        "make": "Honda",
        "model": "S2000",
        "year": 2006,
        "price": 31500,
        "location": "Austin, TX",
        "mileage": 64000,
        "transmission": "manual",
        "condition": "good",
        "engine": "F22C1",
        "modifications": [
            {"name": "Cat-back exhaust", "category": "exhaust", "description": "Stainless dual tip"},
        ],
    },
    {
        "title": "2015 Subaru WRX STI",
        "make": "Subaru",
        "model": "WRX STI",
        "year": 2015,
        "price": 27900,
        "location": "Denver, CO",
        "mileage": 71000,
        "transmission": "manual",
        "condition": "good",
        "engine": "EJ257",
        "modifications": [],
    },
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with an admin, a demo seller and sample listings.

    This function:
      - Creates or retrieves the admin profile and grants it the admin role
      - Creates or retrieves the demo seller profile
      - Creates sample listings for the seller when it has none
    """
    settings = get_app_settings()
    maker = get_session_maker()
    async with maker() as session:
        admin = await _ensure_profile(
            session, settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD, "Administrator", role="admin"
        )
        seller = await _ensure_profile(session, DEMO_SELLER_EMAIL, DEMO_SELLER_PASSWORD, "Demo Seller")
        created = await _seed_listings(session, seller)
        await session.commit()
        logger.info("Seeded admin %s, seller %s and %d listings", admin.email, seller.email, created)


async def _ensure_profile(
    session: AsyncSession, email: str, password: str, display_name: str, role: str = "user"
) -> Profile:
    """Return the profile with this email, creating it and its preferences when missing."""
    res = await session.execute(select(Profile).where(Profile.email == email))
    profile = res.scalar_one_or_none()
    if profile is not None:
        if profile.role != role and role == "admin":
            profile.role = role
        return profile

    profile = Profile(
        email=email,
        hashed_password=get_password_hash(password),
        display_name=display_name,
        role=role,
        is_active=True,
    )
    session.add(profile)
    await session.flush()
    session.add(NotificationPreference(user_id=profile.id))
    await session.flush()
    return profile


async def _seed_listings(session: AsyncSession, seller: Profile) -> int:
    """
    Create sample listings for the seller.

    Returns:
      number of listings created (0 when the seller already has listings)
    """
    existing = await session.scalar(select(func.count(Listing.id)).where(Listing.user_id == seller.id))
    if existing:
        return 0

    for data in SAMPLE_LISTINGS:
        fields = {key: value for key, value in data.items() if key != "modifications"}
        listing = Listing(user_id=seller.id, status="active", **fields)
        session.add(listing)
        await session.flush()
        for mod in data["modifications"]:
            session.add(Modification(listing_id=listing.id, **mod))
    await session.flush()
    return len(SAMPLE_LISTINGS)


if __name__ == "__main__":
    asyncio.run(seed_all())
