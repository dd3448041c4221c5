from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.models import Coupon, ReferralReward, RewardTransaction
from studyspace.promotions.coupon_service import CouponService
from studyspace.promotions.referral_service import ReferralService
from studyspace.promotions.reward_service import RewardService
from studyspace.promotions.schemas import CouponCreate

def make_coupon(db, actor, **overrides):
    data = {"code": "welcome10", "type": "percentage", "value": Decimal("10")}
    data.update(overrides)
    return CouponService(db).create_coupon(actor, CouponCreate(**data))

def test_coupon_code_is_stored_upper_case(db, admin):
    coupon = make_coupon(db, admin)

    assert coupon.code == "WELCOME10"
    with pytest.raises(ValueError, match="already exists"):
        make_coupon(db, admin)

def test_merchant_coupon_is_scoped_to_own_halls(db, merchant, student, study_hall, admin):
    coupon = make_coupon(db, merchant, code="HALL50", type="flat", value=Decimal("50"), merchant_id=admin.id)
    assert coupon.merchant_id == merchant.id

    service = CouponService(db)
    valid = service.validate_coupon(student.id, "hall50", Decimal("2000"), study_hall_id=study_hall.id)
    assert valid["valid"] is True
    assert valid["discount_amount"] == Decimal("50")

    elsewhere = service.validate_coupon(student.id, "HALL50", Decimal("2000"))
    assert elsewhere["valid"] is False
    assert "not valid for this study hall" in elsewhere["error"]

def test_coupon_validation_rules(db, admin, student):
    service = CouponService(db)
    make_coupon(db, admin, code="BIGSPEND", min_booking_amount=Decimal("1000"))
    make_coupon(db, admin, code="OLDCODE", end_date=datetime.now() + timedelta(days=1))

    assert service.validate_coupon(student.id, "NOPE", Decimal("500"))["error"] == "Invalid or expired coupon code"
    assert "Minimum booking amount" in service.validate_coupon(student.id, "BIGSPEND", Decimal("500"))["error"]

    later = datetime.now() + timedelta(days=2)
    assert service.validate_coupon(student.id, "OLDCODE", Decimal("500"), now=later)["error"] == "Coupon has expired"

    make_coupon(db, admin, code="SOON", start_date=datetime.now() + timedelta(days=3))
    assert service.validate_coupon(student.id, "SOON", Decimal("500"))["error"] == "Coupon has expired"

def test_coupon_usage_limits(db, admin, student, other_student):
    coupon = make_coupon(db, admin, code="ONCE", usage_limit=1)
    service = CouponService(db)

    service.record_usage(coupon.id, student.id, None, Decimal("20"))
    db.commit()

    assert service.validate_coupon(student.id, "ONCE", Decimal("500"))["valid"] is False
    assert service.validate_coupon(other_student.id, "ONCE", Decimal("500"))["error"] == "Coupon usage limit reached"
    assert db.get(Coupon, coupon.id).used_count == 1

def test_student_sees_only_usable_coupons(db, admin, student):
    make_coupon(db, admin, code="LIVE")
    off = make_coupon(db, admin, code="PAUSED")
    CouponService(db).set_status(admin, off.id, "inactive")

    codes = [coupon.code for coupon in CouponService(db).list_coupons(student)]
    assert codes == ["LIVE"]

def test_earn_and_redeem_points(db, student):
    rewards = RewardService(db)
    rewards.earn_points(student.id, 200, "Booking reward")

    quote = rewards.redeem_points(student.id, 100, validate_only=True)
    assert quote["discount_amount"] == Decimal("10.00")
    assert rewards.get_account(student.id).available_points == 200

    result = rewards.redeem_points(student.id, 100)
    account = rewards.get_account(student.id)
    assert result["remaining_points"] == 100
    assert account.available_points == 100
    assert account.lifetime_redeemed == 100
    assert [t.type for t in rewards.history(student.id)] == ["redeemed", "earned"]

def test_redeem_rejects_small_and_excessive_amounts(db, student):
    rewards = RewardService(db)
    rewards.earn_points(student.id, 50, "Booking reward")

    with pytest.raises(ValueError, match="Minimum redemption"):
        rewards.redeem_points(student.id, 5)
    with pytest.raises(ValueError, match="Insufficient points"):
        rewards.redeem_points(student.id, 60)

def test_redeem_when_rewards_disabled(db, student):
    BusinessSettingsService.update(db, {"rewards_enabled": False})

    with pytest.raises(ValueError, match="disabled"):
        RewardService(db).redeem_points(student.id, 10)

def test_referral_stays_pending_until_first_paid_booking(db, student, other_student):
    referrals = ReferralService(db)
    code = referrals.get_or_create_code(student.id)

    reward = referrals.process_referral(other_student, code.code.lower())
    assert reward.status == "pending"
    assert RewardService(db).get_account(student.id).available_points == 0

    completed = referrals.complete_pending_referral(other_student.id, None)
    db.commit()

    assert completed.status == "completed"
    business_settings = BusinessSettingsService.get(db)
    assert RewardService(db).get_account(student.id).available_points == business_settings.referrer_points
    assert RewardService(db).get_account(other_student.id).available_points == business_settings.referee_points
    assert referrals.referral_stats(student.id)["successful_referrals"] == 1

def test_referral_rules(db, student, other_student):
    referrals = ReferralService(db)
    code = referrals.get_or_create_code(student.id).code

    with pytest.raises(ValueError, match="own referral code"):
        referrals.process_referral(student, code)

    referrals.process_referral(other_student, code)
    with pytest.raises(ValueError, match="already used"):
        referrals.process_referral(other_student, code)

def test_monthly_referral_limit(db, student, make_user):
    BusinessSettingsService.update(db, {"monthly_referral_limit": 1})
    referrals = ReferralService(db)
    code = referrals.get_or_create_code(student.id).code

    first = make_user("student")
    referrals.process_referral(first, code, booking_id=None)
    referrals.complete_pending_referral(first.id, None)
    db.commit()

    with pytest.raises(ValueError, match="limit reached"):
        referrals.process_referral(make_user("student"), code)
    assert db.query(ReferralReward).count() == 1
    assert db.query(RewardTransaction).filter(RewardTransaction.referral_id != None).count() == 2  # noqa: E711

# API
def test_coupon_endpoints(client, auth_headers, admin, student):
    assert client.post("/api/v1/coupons", json={"code": "STUDENT50", "type": "flat", "value": "50"},
                       headers=auth_headers(student)).status_code == 403

    created = client.post("/api/v1/coupons", json={"code": "save50", "type": "flat", "value": "50"},
                          headers=auth_headers(admin))
    assert created.status_code == 201
    assert created.json()["code"] == "SAVE50"

    validation = client.post("/api/v1/coupons/validate", json={"code": "SAVE50", "booking_amount": "2000"},
                             headers=auth_headers(student)).json()
    assert validation["valid"] is True
    assert Decimal(validation["final_amount"]) == Decimal("1950")

    coupon_id = created.json()["id"]
    paused = client.patch(f"/api/v1/coupons/{coupon_id}/status", json={"status": "inactive"},
                          headers=auth_headers(admin))
    assert paused.json()["status"] == "inactive"
    assert client.get("/api/v1/coupons", headers=auth_headers(student)).json() == []
    assert client.get(f"/api/v1/coupons/{coupon_id}/usage", headers=auth_headers(admin)).json() == []

def test_reward_endpoints(client, auth_headers, student):
    config = client.get("/api/v1/rewards/config").json()
    assert config["enabled"] is True

    account = client.get("/api/v1/rewards/me", headers=auth_headers(student)).json()
    assert account["user_id"] == student.id
    assert account["available_points"] == 0
