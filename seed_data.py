#!/usr/bin/env python3

from datetime import datetime
from decimal import Decimal

from studyspace.database import SessionLocal, init_db
from studyspace.auth.utils import get_password_hash
from studyspace.models import (
    User, MerchantProfile, StudyHall, Seat, MonthlyPricingPlan, PrivateHall, Cabin,
    SubscriptionPlan, SMSTemplate, Reward, Incharge, InchargeStudyHall
)
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.halls.service import seat_layout
from studyspace.merchants.subscription_service import SubscriptionService
from studyspace.notifications.sms_service import DEFAULT_TEMPLATES

DEMO_PASSWORD = "password123"

def get_or_create_user(db, email, full_name, role, phone=None, merchant_number=None):
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"  - {email} already exists")
        return user
    user = User(
        email=email,
        full_name=full_name,
        phone=phone,
        password=get_password_hash(DEMO_PASSWORD),
        role=role,
        is_active=True,
        phone_verified=phone is not None,
        merchant_number=merchant_number
    )
    db.add(user)
    db.flush()
    print(f"  - {role}: {email} / {DEMO_PASSWORD}")
    return user

def create_seed_data():
    init_db()
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for StudySpace...")

        # 1. Business settings
        print("Creating business settings...")
        business_settings = BusinessSettingsService.get(db)
        business_settings.platform_fee_enabled = True
        business_settings.platform_fee_type = "flat"
        business_settings.platform_fee_value = Decimal("20.00")
        business_settings.support_email = "support@studyspace.com"
        db.flush()

        # 2. SMS templates
        print("Creating SMS templates...")
        templates_created = 0
        for purpose, template in DEFAULT_TEMPLATES.items():
            if db.query(SMSTemplate).filter(SMSTemplate.purpose == purpose).first():
                continue
            db.add(SMSTemplate(purpose=purpose, template=template, is_active=True))
            templates_created += 1
        db.flush()

        # 3. Subscription plans
        print("Creating subscription plans...")
        plans = []
        if not db.query(SubscriptionPlan).count():
            plans = [
                SubscriptionPlan(
                    name="Starter", description="One study hall", price=Decimal("499.00"),
                    duration="monthly", max_study_halls=1, features=["1 study hall", "QR booking"]
                ),
                SubscriptionPlan(
                    name="Growth", description="Up to five study halls", price=Decimal("1999.00"),
                    duration="monthly", max_study_halls=5,
                    features=["5 study halls", "QR booking", "Reports export"]
                ),
                SubscriptionPlan(
                    name="Enterprise", description="Unlimited study halls, billed yearly", price=Decimal("19999.00"),
                    duration="yearly", max_study_halls=None,
                    features=["Unlimited study halls", "QR booking", "Reports export", "Priority support"]
                ),
            ]
            db.add_all(plans)
            db.flush()

        # 4. Demo users
        print("Creating demo users...")
        admin = get_or_create_user(db, "admin@studyspace.com", "Platform Admin", "admin")
        get_or_create_user(db, "settlements@studyspace.com", "Settlement Manager", "settlement_manager")
        incharge_user = get_or_create_user(db, "incharge@studyspace.com", "Hall Incharge", "incharge")
        merchant = get_or_create_user(
            db, "merchant@studyspace.com", "Demo Merchant", "merchant", phone="9876543210", merchant_number=1
        )
        student = get_or_create_user(db, "student@studyspace.com", "Demo Student", "student", phone="9123456780")

        if not merchant.merchant_profile:
            db.add(MerchantProfile(
                merchant_id=merchant.id,
                business_name="Demo Study Centre",
                business_address="12 MG Road, Bengaluru",
                business_email="merchant@studyspace.com",
                phone="9876543210",
                trade_license_number="TL-2024-0001",
                gstin_pan="ABCDE1234F",
                account_holder_name="Demo Merchant",
                account_number="123456789012",
                bank_name="State Bank",
                ifsc_code="SBIN0001234",
                onboarding_step=4,
                is_onboarding_complete=True,
                verification_status="approved",
                submitted_at=datetime.now(),
                verified_by=admin.id,
                verified_at=datetime.now()
            ))
        if not db.query(Reward).filter(Reward.user_id == student.id).first():
            db.add(Reward(user_id=student.id))
        db.commit()

        # 5. Trial subscription and sample halls
        print("Creating sample study hall and private hall...")
        subscriptions = SubscriptionService(db)
        if not subscriptions.get_current_subscription(merchant.id):
            try:
                subscriptions.start_trial(merchant.id)
            except ValueError as e:
                print(f"⚠️  Trial not started: {e}")

        hall = db.query(StudyHall).filter(StudyHall.merchant_id == merchant.id).first()
        if not hall:
            layout = seat_layout(4, 8)
            hall = StudyHall(
                merchant_id=merchant.id,
                hall_number=1,
                name="Focus Study Hall",
                description="Quiet air-conditioned hall with reading lamps",
                location="Bengaluru",
                formatted_address="12 MG Road, Bengaluru 560001",
                rows=4,
                seats_per_row=8,
                total_seats=len(layout),
                daily_price=Decimal("100.00"),
                weekly_price=Decimal("600.00"),
                monthly_price=Decimal("2000.00"),
                amenities=["wifi", "ac", "locker", "water"],
                status="active"
            )
            hall.seats = [Seat(**seat) for seat in layout]
            db.add(hall)
            db.flush()
            db.add(MonthlyPricingPlan(
                merchant_id=merchant.id,
                study_hall_id=hall.id,
                months_1_enabled=True, months_1_price=Decimal("2000.00"),
                months_3_enabled=True, months_3_price=Decimal("5500.00"),
                months_6_enabled=True, months_6_price=Decimal("10500.00"),
                months_12_enabled=True, months_12_price=Decimal("20000.00")
            ))

        private_hall = db.query(PrivateHall).filter(PrivateHall.merchant_id == merchant.id).first()
        if not private_hall:
            private_hall = PrivateHall(
                merchant_id=merchant.id,
                name="Focus Private Cabins",
                location="Bengaluru",
                cabin_count=6,
                monthly_price=Decimal("3500.00"),
                status="active"
            )
            private_hall.cabins = [
                Cabin(cabin_number=number, cabin_name=f"Cabin {number}", monthly_price=Decimal("3500.00"))
                for number in range(1, 7)
            ]
            db.add(private_hall)

        if not db.query(Incharge).filter(Incharge.user_id == incharge_user.id).first():
            db.flush()
            incharge = Incharge(merchant_id=merchant.id, user_id=incharge_user.id, is_active=True)
            incharge.assignments = [InchargeStudyHall(study_hall_id=hall.id)]
            db.add(incharge)

        db.commit()
        print("✅ Successfully created seed data for StudySpace!")
        print("Created:")
        print(f"  - {templates_created} SMS templates")
        print(f"  - {len(plans)} subscription plans")
        print(f"  - study hall '{hall.name}' with {hall.total_seats} seats")
        print(f"  - private hall '{private_hall.name}' with {private_hall.cabin_count} cabins")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
