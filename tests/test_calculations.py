from datetime import date, timedelta
from decimal import Decimal

import pytest

from studyspace.pricing import calculations
from studyspace.halls.service import default_row_name, seat_layout
from studyspace.promotions.coupon_service import calculate_discount

PLAN = {
    "months_1_enabled": True, "months_1_price": Decimal("2000"),
    "months_3_enabled": True, "months_3_price": Decimal("5500"),
    "months_6_enabled": True, "months_6_price": Decimal("10000"),
}

def test_monthly_amount_single_month():
    result = calculations.calculate_monthly_booking_amount(date(2025, 1, 1), date(2025, 1, 30), PLAN)

    assert result["days"] == 30
    assert result["months"] == 1
    assert result["amount"] == Decimal("2000")
    assert result["period_type"] == "1_month"
    # The 6-month tier is only offered for stays of six months or more
    assert "6_months" not in result["breakdown"]

def test_monthly_amount_prefers_cheaper_longer_tier():
    result = calculations.calculate_monthly_booking_amount(date(2025, 1, 1), date(2025, 3, 31), PLAN)

    assert result["months"] == 3
    assert result["breakdown"]["1_month"] == Decimal("6000")
    assert result["amount"] == Decimal("5500")
    assert result["period_type"] == "3_months"

def test_monthly_amount_shorter_tier_wins_when_blocks_overshoot():
    # 100 days bills 4 months: two 3-month blocks cost more than four single months
    start = date(2025, 1, 1)
    result = calculations.calculate_monthly_booking_amount(start, start + timedelta(days=99), PLAN)

    assert result["months"] == 4
    assert result["breakdown"]["3_months"] == Decimal("11000")
    assert result["amount"] == Decimal("8000")
    assert result["period_type"] == "1_month"

def test_monthly_amount_tie_keeps_longer_tier():
    plan = {
        "months_1_enabled": True, "months_1_price": Decimal("2000"),
        "months_2_enabled": True, "months_2_price": Decimal("4000"),
    }
    result = calculations.calculate_monthly_booking_amount(date(2025, 1, 1), date(2025, 3, 1), plan)

    assert result["months"] == 2
    assert result["period_type"] == "2_months"
    assert result["amount"] == Decimal("4000")

def test_monthly_amount_without_enabled_tiers():
    with pytest.raises(ValueError):
        calculations.calculate_monthly_booking_amount(date(2025, 1, 1), date(2025, 1, 30), {
            "months_1_enabled": False, "months_1_price": Decimal("2000"),
        })

def test_available_periods_and_plan_validation():
    assert calculations.available_periods(PLAN) == ["1_month", "3_months", "6_months"]
    calculations.validate_pricing_plan(PLAN)
    with pytest.raises(ValueError):
        calculations.validate_pricing_plan({"months_3_enabled": True, "months_3_price": Decimal("0")})

def test_platform_fee_flat_and_percentage():
    assert calculations.compute_platform_fee(Decimal("1000"), True, "flat", Decimal("20")) == Decimal("20")
    # 12.5 rounds half up
    assert calculations.compute_platform_fee(Decimal("100"), True, "percentage", Decimal("12.5")) == Decimal("13")
    assert calculations.compute_platform_fee(Decimal("100"), True, "flat", Decimal("500")) == Decimal("100")
    assert calculations.compute_platform_fee(Decimal("1000"), False, "flat", Decimal("20")) == Decimal("0")
    assert calculations.platform_fee_from_settings(Decimal("1000"), None) == Decimal("0")

def test_price_with_gateway_fee():
    price = calculations.format_price_with_discount(Decimal("1100"))

    assert price["base_price"] == Decimal("1000")
    assert price["discount_amount"] == Decimal("20")
    assert price["final_amount"] == Decimal("1021")
    assert price["actual_discount"] == Decimal("79")

def test_booking_amount_with_fees_picks_cheapest_method():
    start = date(2025, 1, 1)

    daily = calculations.calculate_booking_amount_with_fees(start, start + timedelta(days=2), 300, 1000, 3100)
    assert daily["method"] == "daily"
    assert daily["base_amount"] == Decimal("600")

    weekly = calculations.calculate_booking_amount_with_fees(start, start + timedelta(days=6), 300, 1000, 3100)
    assert weekly["method"] == "weekly"
    assert weekly["base_amount"] == Decimal("900")

    monthly = calculations.calculate_booking_amount_with_fees(start, start + timedelta(days=29), 300, 1000, 3100)
    assert monthly["method"] == "monthly"
    assert monthly["base_amount"] == Decimal("3000")
    assert monthly["final_amount"] == Decimal("3061")

def test_cabin_booking_uses_hall_price_when_cabin_has_none():
    result = calculations.calculate_cabin_booking(date(2025, 1, 1), date(2025, 3, 2), None, Decimal("3500"), Decimal("1000"))

    assert result["days"] == 61
    assert result["months"] == 3
    assert result["booking_amount"] == Decimal("10500")
    assert result["total_amount"] == Decimal("11500")

def test_simple_cabin_booking_is_one_calendar_month():
    result = calculations.calculate_simple_cabin_booking(date(2024, 1, 31), Decimal("3000"), Decimal("2500"))

    assert result["end_date"] == date(2024, 2, 29)
    assert result["monthly_amount"] == Decimal("3000")
    assert result["total_amount"] == Decimal("3000")

def test_add_months_clamps_to_month_end():
    assert calculations.add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert calculations.add_months(date(2023, 11, 15), 3) == date(2024, 2, 15)

def test_validate_booking_dates():
    today = date(2025, 6, 1)
    calculations.validate_booking_dates(today, today + timedelta(days=30), today=today)
    with pytest.raises(ValueError, match="past"):
        calculations.validate_booking_dates(today - timedelta(days=1), today, today=today)
    with pytest.raises(ValueError, match="after start"):
        calculations.validate_booking_dates(today, today, today=today)
    with pytest.raises(ValueError, match="exceed"):
        calculations.validate_booking_dates(today, today + timedelta(days=366), today=today)

def test_coupon_discount():
    assert calculate_discount("percentage", Decimal("10"), Decimal("2000")) == Decimal("200")
    assert calculate_discount("percentage", Decimal("50"), Decimal("2000"), Decimal("300")) == Decimal("300")
    assert calculate_discount("flat", Decimal("500"), Decimal("300")) == Decimal("300")

def test_row_names_and_seat_layout():
    assert [default_row_name(i) for i in (0, 25, 26, 27)] == ["A", "Z", "AA", "AB"]

    layout = seat_layout(2, 3)
    assert [seat["seat_label"] for seat in layout] == ["A1", "A2", "A3", "B1", "B2", "B3"]

    custom = seat_layout(1, 2, ["VIP"])
    assert custom[1] == {"seat_label": "VIP2", "row_name": "VIP", "seat_number": 2}

    with pytest.raises(ValueError):
        seat_layout(2, 2, ["A"])
