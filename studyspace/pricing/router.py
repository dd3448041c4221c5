from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal

from studyspace.database import get_db
from studyspace.auth.dependencies import require_roles
from studyspace.auth.permissions import MERCHANT
from studyspace.merchants.dependencies import require_verified_merchant
from studyspace.models import User
from studyspace.pricing.schemas import (
    PricingPlanCreate, PricingPlan, MonthlyQuote, MonthlyQuoteRequest, BookingQuote, DisplayPrice,
    FeeQuote, CabinQuote
)
from studyspace.pricing.service import PricingService
from studyspace.pricing import calculations

router = APIRouter()

# Monthly pricing plans
@router.post("/pricing-plans", response_model=PricingPlan)
def save_pricing_plan(
    plan_data: PricingPlanCreate,
    merchant: User = Depends(require_verified_merchant),
    db: Session = Depends(get_db)
):
    """Create or replace the monthly pricing plan of a study hall"""
    try:
        return PricingService(db).save_pricing_plan(merchant.id, plan_data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/pricing-plans/mine", response_model=List[PricingPlan])
def list_my_pricing_plans(merchant: User = Depends(require_roles(MERCHANT)), db: Session = Depends(get_db)):
    """Current merchant's pricing plans"""
    return PricingService(db).list_merchant_pricing_plans(merchant.id)

@router.get("/pricing-plans/study-hall/{study_hall_id}", response_model=PricingPlan)
def get_pricing_plan(study_hall_id: int, db: Session = Depends(get_db)):
    """Pricing plan of a study hall"""
    plan = PricingService(db).get_pricing_plan(study_hall_id)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing plan not found")
    return plan

# Quotes
@router.post("/pricing/monthly-quote", response_model=MonthlyQuote)
def monthly_quote(request: MonthlyQuoteRequest):
    """Price a date range under a pricing plan without saving it"""
    try:
        return calculations.calculate_monthly_booking_amount(request.start_date, request.end_date, request.plan.dict())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/pricing/quote/study-hall", response_model=BookingQuote)
def quote_study_hall(
    study_hall_id: int = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """Seat booking price including the platform fee"""
    try:
        quote = PricingService(db).quote_study_hall(study_hall_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not quote:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Study hall not found")
    return quote

@router.get("/pricing/quote/cabin", response_model=CabinQuote)
def quote_cabin(
    private_hall_id: int = Query(...),
    cabin_id: int = Query(...),
    start_date: date = Query(...),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """Cabin booking price; one calendar month when no end date is given"""
    try:
        quote = PricingService(db).quote_cabin(private_hall_id, cabin_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not quote:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cabin not found")
    return quote

@router.get("/pricing/display-price", response_model=DisplayPrice)
def display_price(merchant_price: Decimal = Query(..., gt=0)):
    """Customer-facing price for a merchant price"""
    return calculations.format_price_with_discount(merchant_price)

@router.get("/pricing/quote/fees", response_model=FeeQuote)
def quote_with_fees(
    start_date: date = Query(...),
    end_date: date = Query(...),
    daily_price: Decimal = Query(..., gt=0),
    weekly_price: Decimal = Query(..., gt=0),
    monthly_price: Decimal = Query(..., gt=0)
):
    """Cheapest of daily, weekly and monthly billing with the gateway fee"""
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")
    return calculations.calculate_booking_amount_with_fees(
        start_date, end_date, daily_price, weekly_price, monthly_price
    )
