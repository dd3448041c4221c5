import io
from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

import pandas as pd

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_roles, require_admin
from studyspace.auth.permissions import MERCHANT, ADMIN
from studyspace.models import User
from studyspace.reports.report_service import ReportService, export, to_records

router = APIRouter()

FORMAT_PATTERN = "^(json|csv|xlsx)$"

def _respond(df: pd.DataFrame, report_name: str, format: str):
    if format == "json":
        return to_records(df)
    try:
        content, media_type, filename = export(df, report_name, format)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )

def _merchant_id(current_user: User, merchant_id: Optional[int]) -> int:
    if current_user.role == ADMIN and merchant_id:
        return merchant_id
    if current_user.role == MERCHANT:
        return current_user.id
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="merchant_id is required")

# Admin reports
@router.get("/reports/admin/revenue")
def admin_revenue_report(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    format: str = Query("json", pattern=FORMAT_PATTERN),
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Revenue by merchant"""
    return _respond(ReportService(db).revenue_by_merchant(date_from, date_to), "revenue_by_merchant", format)

@router.get("/reports/admin/bookings")
def admin_booking_summary(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    format: str = Query("json", pattern=FORMAT_PATTERN),
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Bookings by status"""
    return _respond(ReportService(db).booking_summary(date_from, date_to), "booking_summary", format)

# Merchant reports
@router.get("/reports/merchant/revenue")
def merchant_revenue_report(
    merchant_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    format: str = Query("json", pattern=FORMAT_PATTERN),
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Revenue by hall"""
    df = ReportService(db).merchant_revenue_by_hall(_merchant_id(current_user, merchant_id), date_from, date_to)
    return _respond(df, "revenue_by_hall", format)

@router.get("/reports/merchant/occupancy")
def merchant_occupancy_report(
    merchant_id: Optional[int] = Query(None),
    format: str = Query("json", pattern=FORMAT_PATTERN),
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Today's seat occupancy per study hall"""
    df = ReportService(db).occupancy(_merchant_id(current_user, merchant_id))
    return _respond(df, "occupancy", format)

# Student reports
@router.get("/reports/student/bookings")
def student_booking_history(
    format: str = Query("json", pattern=FORMAT_PATTERN),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Current user's booking history"""
    return _respond(ReportService(db).student_history(current_user.id), "booking_history", format)
