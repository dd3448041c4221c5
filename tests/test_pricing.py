from datetime import timedelta
from decimal import Decimal

import pytest

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.schemas import BookingCreate
from studyspace.pricing.schemas import PricingPlanCreate
from studyspace.pricing.service import PricingService

def plan_for(hall, **overrides):
    data = {
        "study_hall_id": hall.id,
        "months_1_enabled": True, "months_1_price": Decimal("1800"),
        "months_3_enabled": True, "months_3_price": Decimal("5000"),
    }
    data.update(overrides)
    return PricingPlanCreate(**data)

def test_save_pricing_plan_replaces_existing(db, merchant, study_hall):
    service = PricingService(db)
    first = service.save_pricing_plan(merchant.id, plan_for(study_hall))
    second = service.save_pricing_plan(merchant.id, plan_for(study_hall, months_1_price=Decimal("1700")))

    assert first.id == second.id
    assert service.get_pricing_plan(study_hall.id).months_1_price == Decimal("1700")
    assert len(service.list_merchant_pricing_plans(merchant.id)) == 1

def test_save_pricing_plan_checks_owner_and_tiers(db, make_user, merchant, study_hall):
    service = PricingService(db)

    with pytest.raises(PermissionError):
        service.save_pricing_plan(make_user("merchant").id, plan_for(study_hall))
    with pytest.raises(ValueError):
        service.save_pricing_plan(merchant.id, plan_for(study_hall, months_1_enabled=False, months_3_enabled=False))

def test_quote_without_plan_uses_monthly_price(db, study_hall, tomorrow):
    quote = PricingService(db).quote_study_hall(study_hall.id, tomorrow, tomorrow + timedelta(days=44))

    assert quote["months"] == 2
    assert quote["base_amount"] == Decimal("4000")
    assert quote["platform_fee"] == Decimal("0")

def test_quote_uses_plan_and_platform_fee(db, merchant, study_hall, tomorrow):
    PricingService(db).save_pricing_plan(merchant.id, plan_for(study_hall))
    BusinessSettingsService.update(db, {
        "platform_fee_enabled": True, "platform_fee_type": "flat", "platform_fee_value": Decimal("25")
    })

    quote = PricingService(db).quote_study_hall(study_hall.id, tomorrow, tomorrow + timedelta(days=89))

    assert quote["period_type"] == "3_months"
    assert quote["base_amount"] == Decimal("5000")
    assert quote["total_amount"] == Decimal("5025")

def test_booking_uses_pricing_plan(db, merchant, student, study_hall, tomorrow):
    PricingService(db).save_pricing_plan(merchant.id, plan_for(study_hall))

    booking = BookingService(db).create_booking(student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[0].id,
        start_date=tomorrow, end_date=tomorrow + timedelta(days=89),
    ))

    assert booking.period_type == "3_months"
    assert booking.months == 3
    assert booking.base_amount == Decimal("5000")

def test_cabin_quote(db, private_hall, tomorrow):
    service = PricingService(db)

    simple = service.quote_cabin(private_hall.id, private_hall.cabins[0].id, tomorrow)
    assert simple["monthly_amount"] == Decimal("3000")
    assert simple["total_amount"] == Decimal("3500")

    assert service.quote_cabin(private_hall.id, 9999, tomorrow) is None

# API
def test_pricing_endpoints(client, auth_headers, merchant, study_hall, tomorrow):
    response = client.post("/api/v1/pricing-plans", headers=auth_headers(merchant), json={
        "study_hall_id": study_hall.id, "months_1_enabled": True, "months_1_price": "1900",
    })
    assert response.status_code == 200
    plan = client.get(f"/api/v1/pricing-plans/study-hall/{study_hall.id}").json()
    assert Decimal(plan["months_1_price"]) == Decimal("1900")

    quote = client.get("/api/v1/pricing/quote/study-hall", params={
        "study_hall_id": study_hall.id,
        "start_date": tomorrow.isoformat(),
        "end_date": (tomorrow + timedelta(days=29)).isoformat(),
    })
    assert quote.status_code == 200
    assert Decimal(quote.json()["base_amount"]) == Decimal("1900")

    past = client.get("/api/v1/pricing/quote/study-hall", params={
        "study_hall_id": study_hall.id,
        "start_date": (tomorrow - timedelta(days=5)).isoformat(),
        "end_date": tomorrow.isoformat(),
    })
    assert past.status_code == 400

    display = client.get("/api/v1/pricing/display-price", params={"merchant_price": "1100"})
    assert Decimal(display.json()["final_amount"]) == Decimal("1021")
