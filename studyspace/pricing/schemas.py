from pydantic import BaseModel, validator
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal

class PricingPlanBase(BaseModel):
    months_1_enabled: bool = False
    months_1_price: Optional[Decimal] = None
    months_2_enabled: bool = False
    months_2_price: Optional[Decimal] = None
    months_3_enabled: bool = False
    months_3_price: Optional[Decimal] = None
    months_6_enabled: bool = False
    months_6_price: Optional[Decimal] = None
    months_12_enabled: bool = False
    months_12_price: Optional[Decimal] = None
    
    @validator("months_1_price", "months_2_price", "months_3_price", "months_6_price", "months_12_price")
    def price_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v

class PricingPlanCreate(PricingPlanBase):
    study_hall_id: int

class PricingPlan(PricingPlanBase):
    id: int
    merchant_id: int
    study_hall_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class MonthlyQuote(BaseModel):
    amount: Decimal
    months: int
    days: int
    period_type: str
    available_periods: List[str]
    breakdown: Dict[str, Decimal]

class BookingQuote(BaseModel):
    study_hall_id: int
    start_date: date
    end_date: date
    months: int
    period_type: str
    base_amount: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    breakdown: Dict[str, Decimal] = {}
    available_periods: List[str] = []

class DisplayPrice(BaseModel):
    base_price: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    actual_discount: Decimal
    display_text: str

class FeeBreakdown(BaseModel):
    base_daily: Decimal
    base_weekly: Decimal
    base_monthly: Decimal

class FeeQuote(BaseModel):
    base_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    days: int
    method: str
    price_breakdown: FeeBreakdown

class CabinQuote(BaseModel):
    start_date: date
    end_date: date
    months: int
    monthly_amount: Decimal
    booking_amount: Decimal
    deposit_amount: Decimal
    total_amount: Decimal

class MonthlyQuoteRequest(BaseModel):
    start_date: date
    end_date: date
    plan: PricingPlanBase
