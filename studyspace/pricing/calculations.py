"""
Booking price calculations.

Amounts are Decimal throughout. Whole-unit rounding is half-up, so a fee of
12.5 becomes 13.
"""
import calendar
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

MONTH_TIERS = [1, 2, 3, 6, 12]

PERIOD_TYPES = {
    1: "1_month",
    2: "2_months",
    3: "3_months",
    6: "6_months",
    12: "12_months",
}

# Customer-facing prices hide a fixed margin and the 2% payment gateway fee
GATEWAY_MARGIN = Decimal("100")
GATEWAY_FEE_RATE = Decimal("0.02")

MAX_BOOKING_DAYS = 365

def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))

def round_whole(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

def round_money(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def inclusive_days(start_date: date, end_date: date) -> int:
    """Number of calendar days covered, counting both ends"""
    return (end_date - start_date).days + 1

def months_for_days(days: int) -> int:
    """Billable 30-day months"""
    return math.ceil(days / 30)

def add_months(start_date: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months"""
    month_index = start_date.month - 1 + months
    year = start_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)

# ================================
# Monthly pricing plans
# ================================
def _tier(plan: Any, months: int):
    if isinstance(plan, dict):
        enabled = plan.get(f"months_{months}_enabled")
        price = plan.get(f"months_{months}_price")
    else:
        enabled = getattr(plan, f"months_{months}_enabled", False)
        price = getattr(plan, f"months_{months}_price", None)
    return bool(enabled), to_decimal(price)

def available_periods(plan: Any) -> list:
    """Period types that are enabled and priced"""
    periods = []
    for tier in MONTH_TIERS:
        enabled, price = _tier(plan, tier)
        if enabled and price:
            periods.append(PERIOD_TYPES[tier])
    return periods

def calculate_monthly_booking_amount(start_date: date, end_date: date, plan: Any) -> Dict[str, Any]:
    """Cheapest amount for a date range under a monthly pricing plan.
    
    Each tier bills whole blocks of its length: a 2-month tier for 5 months is
    3 blocks. The 6 and 12 month tiers are only offered when the stay is at
    least that long. Tiers are compared longest first and a shorter tier only
    wins when strictly cheaper.
    """
    days = inclusive_days(start_date, end_date)
    months = months_for_days(days)
    
    breakdown: Dict[str, Decimal] = {}
    for tier in MONTH_TIERS:
        enabled, price = _tier(plan, tier)
        if not (enabled and price):
            continue
        if tier >= 6 and months < tier:
            continue
        breakdown[PERIOD_TYPES[tier]] = math.ceil(months / tier) * price
    
    best_amount: Optional[Decimal] = None
    best_period = PERIOD_TYPES[1]
    for tier in reversed(MONTH_TIERS):
        period = PERIOD_TYPES[tier]
        if period not in breakdown or months < tier:
            continue
        if best_amount is None or breakdown[period] < best_amount:
            best_amount = breakdown[period]
            best_period = period
    
    if best_amount is None:
        raise ValueError("No pricing period is available for the selected dates")
    
    return {
        "amount": best_amount,
        "months": months,
        "days": days,
        "period_type": best_period,
        "available_periods": available_periods(plan),
        "breakdown": breakdown,
    }

def validate_pricing_plan(plan: Any):
    """At least one tier must be enabled with a positive price"""
    for tier in MONTH_TIERS:
        enabled, price = _tier(plan, tier)
        if enabled and price > 0:
            return
    raise ValueError("At least one pricing period must be enabled with a valid price")

# ================================
# Platform fee
# ================================
def compute_platform_fee(base_amount, fee_enabled: bool, fee_type: Optional[str], fee_value) -> Decimal:
    """Platform fee added to a booking.
    
    ``flat`` charges the value itself; any other type is a percentage of the
    base amount. The fee never exceeds the base amount.
    """
    value = to_decimal(fee_value)
    base = to_decimal(base_amount)
    if not fee_enabled or value <= 0:
        return Decimal("0")
    
    if fee_type == "flat":
        fee = round_whole(value)
    else:
        fee = round_whole(base * value / Decimal("100"))
    
    fee = max(fee, Decimal("0"))
    return min(fee, round_whole(base))

def platform_fee_from_settings(base_amount, business_settings) -> Decimal:
    """Platform fee using the configured business settings (None means no fee)"""
    if business_settings is None:
        return Decimal("0")
    return compute_platform_fee(
        base_amount,
        business_settings.platform_fee_enabled,
        business_settings.platform_fee_type,
        business_settings.platform_fee_value,
    )

# ================================
# Payment gateway fee presentation
# ================================
def calculate_base_price(merchant_price) -> Decimal:
    return to_decimal(merchant_price) - GATEWAY_MARGIN

def calculate_discount_amount(base_price) -> Decimal:
    return round_whole(to_decimal(base_price) * GATEWAY_FEE_RATE)

def calculate_final_amount(base_price) -> Decimal:
    base = to_decimal(base_price)
    return base + round_whole(base * GATEWAY_FEE_RATE) + 1

def format_price_with_discount(merchant_price) -> Dict[str, Any]:
    """Customer-facing price for a merchant price"""
    base_price = calculate_base_price(merchant_price)
    final_amount = calculate_final_amount(base_price)
    return {
        "base_price": base_price,
        "discount_amount": calculate_discount_amount(base_price),
        "final_amount": final_amount,
        "actual_discount": to_decimal(merchant_price) - final_amount,
        "display_text": f"₹{base_price}",
    }

def calculate_booking_amount_with_fees(
    start_date: date,
    end_date: date,
    daily_price,
    weekly_price,
    monthly_price
) -> Dict[str, Any]:
    """Cheapest of daily, weekly and monthly billing, with the gateway fee"""
    days = inclusive_days(start_date, end_date)
    
    base_daily = calculate_base_price(daily_price)
    base_weekly = calculate_base_price(weekly_price)
    base_monthly = calculate_base_price(monthly_price)
    
    daily_total = days * base_daily
    weekly_total = math.ceil(days / 7) * base_weekly
    monthly_total = math.ceil(days / 30) * base_monthly
    
    base_amount = daily_total
    method = "daily"
    if days >= 7 and weekly_total < base_amount:
        base_amount = weekly_total
        method = "weekly"
    if days >= 30 and monthly_total < base_amount:
        base_amount = monthly_total
        method = "monthly"
    
    return {
        "base_amount": base_amount,
        "discount_amount": calculate_discount_amount(base_amount),
        "final_amount": calculate_final_amount(base_amount),
        "days": days,
        "method": method,
        "price_breakdown": {
            "base_daily": base_daily,
            "base_weekly": base_weekly,
            "base_monthly": base_monthly,
        },
    }

# ================================
# Cabins
# ================================
def calculate_cabin_booking(start_date: date, end_date: date, cabin_price, hall_price, deposit=0) -> Dict[str, Any]:
    """Cabin rent for a date range plus the refundable deposit"""
    days = inclusive_days(start_date, end_date)
    months = months_for_days(days)
    monthly_amount = to_decimal(cabin_price) if cabin_price else to_decimal(hall_price)
    booking_amount = months * monthly_amount
    deposit_amount = to_decimal(deposit)
    return {
        "days": days,
        "months": months,
        "monthly_amount": monthly_amount,
        "booking_amount": booking_amount,
        "deposit_amount": deposit_amount,
        "total_amount": booking_amount + deposit_amount,
    }

def calculate_simple_cabin_booking(start_date: date, cabin_price, hall_price, deposit=0) -> Dict[str, Any]:
    """One calendar month of cabin rent from the start date"""
    monthly_amount = to_decimal(cabin_price) if cabin_price else to_decimal(hall_price)
    deposit_amount = to_decimal(deposit)
    return {
        "start_date": start_date,
        "end_date": add_months(start_date, 1),
        "months": 1,
        "monthly_amount": monthly_amount,
        "booking_amount": monthly_amount,
        "deposit_amount": deposit_amount,
        "total_amount": monthly_amount + deposit_amount,
    }

# ================================
# Date validation
# ================================
def validate_booking_dates(start_date: date, end_date: date, today: Optional[date] = None):
    """Reject past starts, inverted ranges and stays longer than a year"""
    today = today or date.today()
    if start_date < today:
        raise ValueError("Start date cannot be in the past")
    if end_date <= start_date:
        raise ValueError("End date must be after start date")
    if (end_date - start_date).days > MAX_BOOKING_DAYS:
        raise ValueError(f"Booking cannot exceed {MAX_BOOKING_DAYS} days")

def validate_cabin_start(start_date: date, today: Optional[date] = None):
    today = today or date.today()
    if start_date < today:
        raise ValueError("Start date cannot be in the past")