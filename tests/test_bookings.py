from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.cabin_booking_service import CabinBookingService
from studyspace.bookings.schemas import BookingCreate, CabinBookingCreate
from studyspace.halls.cabin_service import PrivateHallService
from studyspace.halls.service import StudyHallService
from studyspace.models import Booking, Transaction, Reward, Notification
from studyspace.notifications.change_feed import change_feed
from studyspace.promotions.coupon_service import CouponService
from studyspace.promotions.referral_service import ReferralService
from studyspace.promotions.reward_service import RewardService
from studyspace.promotions.schemas import CouponCreate

def book(db, student, hall, seat_index=0, start=None, days=30, **extra):
    start = start or date.today() + timedelta(days=1)
    return BookingService(db).create_booking(student, BookingCreate(
        study_hall_id=hall.id,
        seat_id=hall.seats[seat_index].id,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        **extra
    ))

def test_create_booking_prices_and_holds_seat(db, student, study_hall):
    booking = book(db, student, study_hall)

    assert booking.booking_number == "BK000001"
    assert booking.status == "pending"
    assert booking.payment_status == "unpaid"
    assert booking.base_amount == Decimal("2000")
    assert booking.total_amount == Decimal("2000")
    assert booking.expires_at is not None

    availability = StudyHallService(db).seat_availability(study_hall.id, booking.start_date, booking.end_date)
    assert availability["A1"] is False
    assert availability["A2"] is True

    events = change_feed.events_since(0, [f"merchant:{study_hall.merchant_id}"])
    assert any(e["resource"] == "booking" and e["event"] == "created" for e in events)

def test_overlapping_booking_is_rejected(db, student, other_student, study_hall):
    first = book(db, student, study_hall)

    with pytest.raises(ValueError, match="already booked"):
        book(db, other_student, study_hall, start=first.end_date)

    # Adjacent ranges do not overlap
    assert book(db, other_student, study_hall, start=first.end_date + timedelta(days=1))

def test_booking_applies_coupon_rewards_and_platform_fee(db, admin, student, study_hall):
    BusinessSettingsService.update(db, {
        "platform_fee_enabled": True, "platform_fee_type": "percentage", "platform_fee_value": Decimal("5")
    })
    CouponService(db).create_coupon(admin, CouponCreate(code="SAVE10", type="percentage", value=Decimal("10")))
    RewardService(db).earn_points(student.id, 1000, "Welcome")

    booking = book(db, student, study_hall, coupon_code="save10", reward_points=500)

    assert booking.discount_amount == Decimal("200.00")
    assert booking.rewards_discount == Decimal("50.00")
    # Fee is charged on 1750 after discounts
    assert booking.platform_fee == Decimal("88")
    assert booking.total_amount == Decimal("1838.00")
    # Points are only spent once the booking is paid
    assert RewardService(db).get_account(student.id).available_points == 1000

def test_booking_rejects_invalid_coupon(db, student, study_hall):
    with pytest.raises(ValueError, match="Invalid or expired coupon code"):
        book(db, student, study_hall, coupon_code="MISSING")

def test_booking_rejects_unavailable_seat_and_inactive_hall(db, merchant, student, study_hall):
    halls = StudyHallService(db)
    halls.set_seat_available(merchant, study_hall.seats[0].id, False)
    with pytest.raises(ValueError, match="Seat is not available"):
        book(db, student, study_hall)

    halls.set_status(merchant, study_hall.id, "inactive")
    with pytest.raises(ValueError, match="not accepting bookings"):
        book(db, student, study_hall, seat_index=1)

def test_confirm_payment(db, student, study_hall):
    booking = book(db, student, study_hall)

    confirmed = BookingService(db).confirm_payment(student, booking.id, "upi", payment_id="pay_123")

    assert confirmed.status == "confirmed"
    assert confirmed.payment_status == "paid"
    assert len(confirmed.ticket_code) == 16
    transaction = db.query(Transaction).filter(Transaction.booking_id == booking.id).one()
    assert transaction.amount == Decimal("2000")
    assert transaction.merchant_id == study_hall.merchant_id
    assert transaction.status == "completed"
    reward = db.query(Reward).filter(Reward.user_id == student.id).one()
    assert reward.available_points == BusinessSettingsService.get(db).points_per_booking
    assert db.query(Notification).filter(Notification.user_id == study_hall.merchant_id).count() == 1

    with pytest.raises(ValueError, match="not awaiting payment"):
        BookingService(db).confirm_payment(student, booking.id, "upi")

def test_confirm_payment_spends_points_and_completes_referral(db, student, other_student, study_hall):
    code = ReferralService(db).get_or_create_code(other_student.id).code
    ReferralService(db).process_referral(student, code)
    RewardService(db).earn_points(student.id, 100, "Welcome")
    booking = book(db, student, study_hall, reward_points=100)

    BookingService(db).confirm_payment(student, booking.id, "online")

    business_settings = BusinessSettingsService.get(db)
    student_points = RewardService(db).get_account(student.id).available_points
    assert student_points == business_settings.points_per_booking + business_settings.referee_points
    assert RewardService(db).get_account(other_student.id).available_points == business_settings.referrer_points

def test_rewards_spend_only_what_the_booking_needs(db, admin, student, study_hall):
    CouponService(db).create_coupon(admin, CouponCreate(code="BIGCUT", type="flat", value=Decimal("1990")))
    RewardService(db).earn_points(student.id, 1000, "Welcome")

    booking = book(db, student, study_hall, coupon_code="BIGCUT", reward_points=500)

    assert booking.rewards_discount == Decimal("10")
    assert booking.reward_points_used == 100
    assert booking.total_amount == Decimal("0")

    BookingService(db).confirm_payment(student, booking.id, "online")
    points_per_booking = BusinessSettingsService.get(db).points_per_booking
    assert RewardService(db).get_account(student.id).available_points == 900 + points_per_booking

def test_confirm_payment_after_window_expires_booking(db, student, study_hall):
    booking = book(db, student, study_hall)
    late = datetime.now() + timedelta(hours=2)

    with pytest.raises(ValueError, match="Payment window has expired"):
        BookingService(db).confirm_payment(student, booking.id, "online", now=late)

    assert db.get(Booking, booking.id).status == "expired"
    assert not db.query(Transaction).count()

def test_only_owner_or_staff_can_pay(db, student, other_student, study_hall):
    booking = book(db, student, study_hall)

    with pytest.raises(PermissionError):
        BookingService(db).confirm_payment(other_student, booking.id, "online")

def test_cancel_paid_booking_refunds(db, student, other_student, study_hall):
    booking = book(db, student, study_hall)
    service = BookingService(db)
    service.confirm_payment(student, booking.id, "online")

    with pytest.raises(PermissionError):
        service.cancel_booking(other_student, booking.id)

    cancelled = service.cancel_booking(student, booking.id, reason="Exams postponed")
    assert cancelled.status == "cancelled"
    assert cancelled.payment_status == "refunded"
    assert cancelled.cancellation_reason == "Exams postponed"
    assert db.query(Transaction).one().status == "refunded"

    with pytest.raises(ValueError):
        service.cancel_booking(student, booking.id)

def test_booking_lifecycle(db, student, other_student, study_hall):
    service = BookingService(db)
    today = date.today() + timedelta(days=1)
    unpaid = book(db, student, study_hall, start=today, days=10)
    running = book(db, other_student, study_hall, seat_index=1, start=today, days=10)
    service.confirm_payment(other_student, running.id, "online")

    counts = service.progress_booking_statuses(today=today, now=datetime.now() + timedelta(hours=1))
    assert counts == {"expired": 1, "activated": 1, "completed": 0}
    assert db.get(Booking, unpaid.id).status == "expired"
    assert db.get(Booking, running.id).status == "active"

    later = today + timedelta(days=10)
    counts = service.progress_booking_statuses(today=later, now=datetime.now() + timedelta(days=10))
    assert counts["completed"] == 1
    assert db.get(Booking, running.id).status == "completed"

    metrics = service.health_metrics(today=later + timedelta(days=1))
    assert metrics["total_bookings"] == 2
    assert metrics["expired_but_active"] == 0

def test_merchant_booking_filters(db, merchant, student, study_hall):
    booking = book(db, student, study_hall)
    service = BookingService(db)
    service.confirm_payment(student, booking.id, "online")
    book(db, student, study_hall, seat_index=1)

    assert len(service.list_merchant_bookings(merchant.id)) == 2
    assert [b.id for b in service.list_merchant_bookings(merchant.id, payment_status="paid")] == [booking.id]
    assert service.list_merchant_bookings(merchant.id, date_from=booking.end_date + timedelta(days=1)) == []

# Cabins
def test_cabin_booking_defaults_to_one_month(db, student, private_hall):
    start = date.today() + timedelta(days=1)
    booking = CabinBookingService(db).create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=private_hall.cabins[0].id, start_date=start
    ))

    assert booking.booking_number == "CB000001"
    assert booking.months == 1
    assert booking.monthly_amount == Decimal("3000")
    assert booking.total_amount == Decimal("3500")
    assert booking.end_date > start

def test_cabin_payment_blocks_cabin(db, student, other_student, private_hall):
    service = CabinBookingService(db)
    start = date.today()
    cabin = private_hall.cabins[1]
    booking = service.create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=cabin.id, start_date=start,
        end_date=start + timedelta(days=59)
    ))
    assert booking.booking_amount == Decimal("7000")

    service.confirm_cabin_payment(student, booking.id, "online")

    with pytest.raises(ValueError, match="already booked"):
        service.create_cabin_booking(other_student, CabinBookingCreate(
            private_hall_id=private_hall.id, cabin_id=cabin.id, start_date=start + timedelta(days=5)
        ))
    statuses = {c["cabin_id"]: c["status"] for c in PrivateHallService(db).cabin_availability(private_hall.id)}
    assert statuses[cabin.id] == "occupied"
    assert statuses[private_hall.cabins[0].id] == "available"

    hall_status = PrivateHallService(db).hall_cabin_status(private_hall.id)
    assert hall_status["status"] == "booked"
    assert hall_status["booked_until"] == booking.end_date
    assert hall_status["occupied_cabins"] == 1

def test_vacate_and_auto_expire_cabin_bookings(db, merchant, student, private_hall):
    service = CabinBookingService(db)
    start = date.today()
    first = service.create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=private_hall.cabins[0].id, start_date=start
    ))
    second = service.create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=private_hall.cabins[1].id, start_date=start
    ))
    service.confirm_cabin_payment(student, first.id, "online")
    service.confirm_cabin_payment(student, second.id, "online")

    with pytest.raises(PermissionError):
        service.vacate_cabin_booking(student, first.id)
    vacated = service.vacate_cabin_booking(merchant, first.id, reason="Left early")
    assert vacated.is_vacated is True
    assert vacated.status == "vacated"
    assert vacated.vacated_by == merchant.id

    expired = service.auto_expire_cabin_bookings(today=second.end_date + timedelta(days=1))
    assert expired == 1
    assert service.get_cabin_booking(second.id).vacate_reason == "Auto-expired"
    assert PrivateHallService(db).hall_cabin_status(private_hall.id)["status"] == "available"

def test_cabin_under_maintenance_cannot_be_booked(db, merchant, student, private_hall):
    PrivateHallService(db).set_cabin_status(merchant, private_hall.cabins[0].id, "maintenance")

    with pytest.raises(ValueError, match="maintenance"):
        CabinBookingService(db).create_cabin_booking(student, CabinBookingCreate(
            private_hall_id=private_hall.id, cabin_id=private_hall.cabins[0].id, start_date=date.today()
        ))

def test_combined_bookings_lists_seats_and_cabins(client, db, auth_headers, student, study_hall, private_hall):
    seat_booking = book(db, student, study_hall)
    cabin_booking = CabinBookingService(db).create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=private_hall.cabins[0].id,
        start_date=date.today() + timedelta(days=1),
    ))
    seat_booking.created_at = datetime.now() - timedelta(hours=1)
    cabin_booking.created_at = datetime.now()
    db.commit()

    combined = BookingService(db).combined_bookings(student.id)

    assert [item["booking_type"] for item in combined] == ["cabin", "study_hall"]
    assert [item["unit_label"] for item in combined] == ["Cabin 1", "A1"]
    assert combined[0]["hall_name"] == private_hall.name
    assert combined[1]["booking_number"] == seat_booking.booking_number

    response = client.get("/api/v1/bookings/combined", headers=auth_headers(student))
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [cabin_booking.id, seat_booking.id]
