from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_session, require_roles
from src.db.models.profiles import STAFF_ROLES, Profile
from src.schemas.admin import AdminListingUpdate, AdminStats, ProfilePage
from src.schemas.auth import AdminProfileUpdate, ProfileRead
from src.schemas.common import offset_page
from src.schemas.engagement import ReviewRead
from src.schemas.listings import ListingPage, ListingRead, ListingResponse
from src.services.admin import AdminService
from src.services.engagement import ReviewService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Admin"],
)

ExportFormat = Literal["csv", "xlsx", "pdf"]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _csv_response(df: pd.DataFrame, filename_base: str) -> StreamingResponse:
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename_base}.csv"'}
    return StreamingResponse(buffer, media_type="text/csv", headers=headers)


def _export_dataframe(df: pd.DataFrame, filename_base: str, export_format: str) -> StreamingResponse:
    """
    Convert DataFrame to the requested format and return a StreamingResponse.

    Supported formats:
      - csv: text/csv
      - xlsx: spreadsheet written with openpyxl
      - pdf: landscape table rendered with reportlab
    """
    export_format = (export_format or "csv").lower()
    if export_format == "xlsx":
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Export")
        buffer.seek(0)
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'}
        return StreamingResponse(buffer, media_type=XLSX_MEDIA_TYPE, headers=headers)

    if export_format == "pdf":
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import landscape, letter
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=landscape(letter), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
        )
        styles = getSampleStyleSheet()
        generated = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        elements: list = [Paragraph(f"{filename_base.replace('_', ' ').title()} ({generated})", styles["Title"])]

        data = [list(df.columns)] + df.fillna("").astype(str).values.tolist()
        table = Table(data, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 7),
                    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ]
            )
        )
        elements.append(table)
        doc.build(elements)
        buffer.seek(0)
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.pdf"'}
        return StreamingResponse(buffer, media_type="application/pdf", headers=headers)

    return _csv_response(df, filename_base)


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=AdminStats,
    summary="Platform statistics",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def platform_stats(session: AsyncSession = Depends(get_session)) -> AdminStats:
    return await AdminService(session).stats()


# PUBLIC_INTERFACE
@router.get(
    "/users",
    response_model=ProfilePage,
    summary="List profiles",
    dependencies=[Depends(require_roles("admin"))],
)
async def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    search: Optional[str] = Query(None, description="Match email or display name"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> ProfilePage:
    profiles, total = await AdminService(session).list_users(role=role, search=search, limit=limit, offset=offset)
    return ProfilePage(
        users=[ProfileRead.model_validate(p) for p in profiles],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.patch(
    "/users/{profile_id}",
    response_model=ProfileRead,
    summary="Update profile role or active flag",
)
async def update_user(
    profile_id: UUID,
    payload: AdminProfileUpdate,
    admin: Profile = Depends(require_roles("admin")),
    session: AsyncSession = Depends(get_session),
) -> ProfileRead:
    profile = await AdminService(session).update_user(profile_id, payload, admin.id)
    return ProfileRead.model_validate(profile)


# PUBLIC_INTERFACE
@router.get(
    "/listings",
    response_model=ListingPage,
    summary="List all listings",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def list_listings(
    status: Optional[str] = Query(None, description="active | sold | deleted"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> ListingPage:
    listings, total = await AdminService(session).list_listings(status=status, limit=limit, offset=offset)
    return ListingPage(
        listings=[ListingRead.model_validate(item) for item in listings],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.patch(
    "/listings/{listing_id}",
    response_model=ListingResponse,
    summary="Set listing status",
)
async def set_listing_status(
    listing_id: UUID,
    payload: AdminListingUpdate,
    staff: Profile = Depends(require_roles(*STAFF_ROLES)),
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await AdminService(session).set_listing_status(listing_id, payload.status, staff.id)
    return ListingResponse(listing=ListingRead.model_validate(listing), message=f"Listing set to {payload.status}")


# PUBLIC_INTERFACE
@router.patch(
    "/reviews/{review_id}/hide",
    response_model=ReviewRead,
    summary="Hide review",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def hide_review(review_id: UUID, session: AsyncSession = Depends(get_session)) -> ReviewRead:
    review = await ReviewService(session).hide_review(review_id)
    return ReviewRead.model_validate(review)


# PUBLIC_INTERFACE
@router.get(
    "/exports/listings",
    summary="Listings export",
    description="All listings with seller email and sale data.",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def export_listings(
    status: Optional[str] = Query(None, description="Filter by listing status"),
    format: ExportFormat = Query("csv", description="Export format: csv | xlsx | pdf"),
    session: AsyncSession = Depends(get_session),
):
    df = await AdminService(session).listings_frame(status)
    return _export_dataframe(df, "listings", format)


# PUBLIC_INTERFACE
@router.get(
    "/exports/reports",
    summary="Message reports export",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def export_reports(
    status: Optional[str] = Query(None, description="Filter by report status"),
    format: ExportFormat = Query("csv", description="Export format: csv | xlsx | pdf"),
    session: AsyncSession = Depends(get_session),
):
    df = await AdminService(session).reports_frame(status)
    return _export_dataframe(df, "message_reports", format)


# PUBLIC_INTERFACE
@router.get(
    "/exports/offers",
    summary="Offers export",
    description="Offers with listing title and the offer as a percentage of the asking price.",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def export_offers(
    status: Optional[str] = Query(None, description="Filter by offer status"),
    format: ExportFormat = Query("csv", description="Export format: csv | xlsx | pdf"),
    session: AsyncSession = Depends(get_session),
):
    df = await AdminService(session).offers_frame(status)
    return _export_dataframe(df, "offers", format)
