from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from studyspace.halls.schemas import StudyHallCreate
from studyspace.halls.service import StudyHallService
from studyspace.merchants.onboarding_service import OnboardingService
from studyspace.merchants.incharge_service import InchargeService
from studyspace.merchants.schemas import BusinessInfoStep, KYCStep, BankDetailsStep, SubscriptionPlanCreate, InchargeCreate
from studyspace.merchants.subscription_service import SubscriptionService
from studyspace.models import AuditLog, Notification, Transaction, User

BUSINESS = {
    "business_name": "Lakeside Study Hub",
    "business_address": "12 Lake Road",
    "business_email": "hub@example.com",
    "phone": "98765-43210",
}
KYC = {"trade_license_number": "TL-99", "gstin_pan": "abcde1234f"}
BANK = {
    "account_holder_name": "Lakeside Study Hub",
    "account_number": "001234567890",
    "bank_name": "State Bank",
    "ifsc_code": "sbin0001234",
}

@pytest.fixture
def new_merchant(make_user):
    return make_user("merchant")

def complete_onboarding(db, merchant_id):
    service = OnboardingService(db)
    service.save_business_info(merchant_id, BusinessInfoStep(**BUSINESS))
    service.save_kyc(merchant_id, KYCStep(**KYC))
    return service.save_bank_details(merchant_id, BankDetailsStep(**BANK))

def test_step_validation():
    assert BusinessInfoStep(**BUSINESS).phone == "9876543210"
    assert KYCStep(**KYC).gstin_pan == "ABCDE1234F"
    assert BankDetailsStep(**BANK).ifsc_code == "SBIN0001234"

    with pytest.raises(ValueError):
        BusinessInfoStep(**dict(BUSINESS, phone="12345"))
    with pytest.raises(ValueError):
        KYCStep(**dict(KYC, gstin_pan="NOT-A-PAN"))
    with pytest.raises(ValueError):
        BankDetailsStep(**dict(BANK, account_number="12ab"))

def test_onboarding_progress(db, new_merchant):
    service = OnboardingService(db)
    status = service.onboarding_status(new_merchant.id)
    assert status["onboarding_step"] == 1
    assert status["can_access_dashboard"] is False

    service.save_business_info(new_merchant.id, BusinessInfoStep(**BUSINESS))
    with pytest.raises(ValueError, match="step 2"):
        service.submit(new_merchant.id)

    complete_onboarding(db, new_merchant.id)
    status = service.onboarding_status(new_merchant.id)
    assert status["steps_completed"] == [1, 2, 3]
    assert status["onboarding_step"] == 3

def test_submit_and_approve(db, admin, new_merchant):
    complete_onboarding(db, new_merchant.id)
    service = OnboardingService(db)

    profile = service.submit(new_merchant.id)
    assert profile.verification_status == "pending"
    with pytest.raises(ValueError, match="under review"):
        service.save_kyc(new_merchant.id, KYCStep(**KYC))
    assert [p.merchant_id for p in service.list_profiles("pending")] == [new_merchant.id]

    approved = service.verify(admin, new_merchant.id, approve=True, notes="Documents checked")
    assert approved.verification_status == "approved"
    assert approved.verified_by == admin.id
    assert service.onboarding_status(new_merchant.id)["can_access_dashboard"] is True
    assert db.query(AuditLog).filter(AuditLog.action == "merchant_verified").count() == 1
    assert db.query(Notification).filter(Notification.user_id == new_merchant.id).count() == 1

    with pytest.raises(ValueError, match="not awaiting"):
        service.verify(admin, new_merchant.id, approve=False)

def test_rejected_merchant_can_resubmit(db, admin, new_merchant):
    complete_onboarding(db, new_merchant.id)
    service = OnboardingService(db)
    service.submit(new_merchant.id)

    rejected = service.verify(admin, new_merchant.id, approve=False, notes="Blurry license")
    assert rejected.is_onboarding_complete is False
    assert "rejected" in service.onboarding_status(new_merchant.id)["message"]

    service.save_kyc(new_merchant.id, KYCStep(**dict(KYC, trade_license_number="TL-100")))
    assert service.submit(new_merchant.id).verification_status == "pending"

def test_trial_is_granted_once(db, new_merchant):
    service = SubscriptionService(db)
    assert service.subscription_limits(new_merchant.id)["can_create_study_hall"] is False

    trial = service.start_trial(new_merchant.id)
    assert trial.status == "trial"
    assert trial.max_study_halls == 1
    limits = service.subscription_limits(new_merchant.id)
    assert limits["plan_name"] == "Free Trial"
    assert limits["can_create_study_hall"] is True

    with pytest.raises(ValueError, match="already been used"):
        service.start_trial(new_merchant.id)

def test_expired_trial_blocks_new_halls(db, new_merchant):
    service = SubscriptionService(db)
    trial = service.start_trial(new_merchant.id)

    later = trial.end_date + timedelta(days=1)
    limits = service.subscription_limits(new_merchant.id, now=later)
    assert limits["can_create_study_hall"] is False
    assert "trial has expired" in limits["message"]

    assert service.expire_subscriptions(now=later) == 1
    assert service.get_current_subscription(new_merchant.id) is None

def test_subscribe_supersedes_trial(db, new_merchant):
    service = SubscriptionService(db)
    service.start_trial(new_merchant.id)
    plan = service.create_plan(SubscriptionPlanCreate(
        name="Growth", price=Decimal("999"), duration="quarterly", max_study_halls=5
    ))

    subscription = service.subscribe(new_merchant.id, plan.id, payment_id="pay_1")

    assert subscription.status == "active"
    assert subscription.max_study_halls == 5
    assert (subscription.end_date - subscription.start_date).days >= 89
    assert [s.status for s in service.history(new_merchant.id)] == ["active", "superseded"]
    transaction = db.query(Transaction).one()
    assert transaction.transaction_type == "subscription"
    assert transaction.amount == Decimal("999")
    assert service.subscription_limits(new_merchant.id)["plan_name"] == "Growth"

def test_plan_limit_message(db, merchant, study_hall):
    service = SubscriptionService(db)
    subscription = service.get_current_subscription(merchant.id)
    subscription.max_study_halls = 1
    db.commit()

    limits = service.subscription_limits(merchant.id, now=datetime.now())
    assert limits["can_create_study_hall"] is False
    assert "allows 1 study hall" in limits["message"]

# API
def test_onboarding_endpoints(client, auth_headers, admin, new_merchant, student):
    headers = auth_headers(new_merchant)

    assert client.put("/api/v1/merchants/onboarding/business-info", json=BUSINESS, headers=headers).status_code == 200
    assert client.put("/api/v1/merchants/onboarding/kyc", json=KYC, headers=headers).status_code == 200
    assert client.put("/api/v1/merchants/onboarding/bank-details", json=BANK, headers=headers).status_code == 200

    # Not verified yet
    assert client.post("/api/v1/study-halls", headers=headers, json={
        "name": "Hub", "rows": 1, "seats_per_row": 1,
    }).status_code == 403

    assert client.post("/api/v1/merchants/onboarding/submit", headers=headers).json()["verification_status"] == "pending"
    assert client.post(
        f"/api/v1/merchants/{new_merchant.id}/verify", json={"approve": True}, headers=auth_headers(student)
    ).status_code == 403

    response = client.post(f"/api/v1/merchants/{new_merchant.id}/verify", json={"approve": True}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert client.get("/api/v1/merchants/onboarding", headers=headers).json()["can_access_dashboard"] is True

    assert client.post("/api/v1/subscriptions/trial", headers=headers).status_code == 201
    assert client.get("/api/v1/subscriptions/limits", headers=headers).json()["max_study_halls"] == 1

def test_incharge_halls_must_belong_to_merchant(db, merchant, make_user, study_hall):
    service = InchargeService(db)
    other_merchant = make_user("merchant")

    with pytest.raises(ValueError, match="Assign at least one study hall"):
        service.create_incharge(merchant, InchargeCreate(
            full_name="Desk", email="desk@example.com", password="secret12", study_hall_ids=[]
        ))
    with pytest.raises(ValueError, match=f"Study halls not found: {study_hall.id}"):
        service.create_incharge(other_merchant, InchargeCreate(
            full_name="Desk", email="desk@example.com", password="secret12", study_hall_ids=[study_hall.id]
        ))
    assert db.query(User).filter(User.email == "desk@example.com").first() is None

def test_incharge_reassignment(db, merchant, study_hall):
    service = InchargeService(db)
    incharge = service.create_incharge(merchant, InchargeCreate(
        full_name="Desk", email="desk@example.com", password="secret12", study_hall_ids=[study_hall.id]
    ))
    assert incharge.user.role == "incharge"
    assert service.is_assigned(incharge.user_id, study_hall.id)

    annex = StudyHallService(db).create_study_hall(merchant, StudyHallCreate(
        name="Annex", rows=1, seats_per_row=2, monthly_price=2000
    ))
    service.update_assignments(merchant, incharge.id, [annex.id, study_hall.id])
    assert [hall.id for hall in service.assigned_halls(incharge.user_id)] == sorted([study_hall.id, annex.id])

    service.update_assignments(merchant, incharge.id, [annex.id])
    assert not service.is_assigned(incharge.user_id, study_hall.id)
    assert service.is_assigned(incharge.user_id, annex.id)

def test_incharge_endpoints(client, db, auth_headers, admin, merchant, make_user, study_hall):
    headers = auth_headers(merchant)
    body = {
        "full_name": "Front Desk",
        "email": "desk@example.com",
        "phone": "9000000001",
        "password": "secret12",
        "study_hall_ids": [study_hall.id],
    }

    response = client.post("/api/v1/merchants/incharges", json=body, headers=headers)
    assert response.status_code == 201
    incharge = response.json()
    assert incharge["study_hall_ids"] == [study_hall.id]
    assert incharge["is_active"] is True
    assert db.query(AuditLog).filter(AuditLog.action == "incharge_created").count() == 1

    assert client.post("/api/v1/merchants/incharges", json=body, headers=headers).status_code == 400
    unverified = make_user("merchant")
    response = client.post("/api/v1/merchants/incharges", json=body, headers=auth_headers(unverified))
    assert response.status_code == 403

    desk = db.query(User).filter(User.id == incharge["user_id"]).first()
    halls = client.get("/api/v1/incharge/study-halls", headers=auth_headers(desk))
    assert [hall["id"] for hall in halls.json()] == [study_hall.id]

    listing = client.get("/api/v1/merchants/incharges", headers=headers).json()
    assert [i["id"] for i in listing] == [incharge["id"]]
    assert client.get("/api/v1/merchants/incharges", headers=auth_headers(unverified)).json() == []
    assert len(client.get("/api/v1/merchants/incharges", headers=auth_headers(admin)).json()) == 1

    url = f"/api/v1/merchants/incharges/{incharge['id']}/active"
    assert client.patch(url, json={"is_active": False}, headers=auth_headers(unverified)).status_code == 403
    response = client.patch(url, json={"is_active": False}, headers=headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get("/api/v1/incharge/study-halls", headers=auth_headers(desk)).status_code == 401

    missing = client.put("/api/v1/merchants/incharges/999/halls", json={"study_hall_ids": [study_hall.id]}, headers=headers)
    assert missing.status_code == 404
