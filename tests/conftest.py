import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studyspace.database import Base, get_db
from studyspace.main import app
from studyspace.auth.utils import get_password_hash, create_access_token
from studyspace.models import User, MerchantProfile, MerchantSubscription, PrivateHall, Cabin
from studyspace.halls.schemas import StudyHallCreate
from studyspace.halls.service import StudyHallService
from studyspace.notifications.change_feed import change_feed

PASSWORD = "password123"

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    change_feed.clear()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()

@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role="student", email=None, phone=None, **kwargs):
        counter["n"] += 1
        user = User(
            full_name=kwargs.pop("full_name", f"{role.title()} {counter['n']}"),
            email=email or f"{role}{counter['n']}@example.com",
            phone=phone,
            password=get_password_hash(PASSWORD),
            role=role,
            is_active=True,
            **kwargs
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user

@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers

@pytest.fixture
def admin(make_user):
    return make_user("admin")

@pytest.fixture
def student(make_user):
    return make_user("student", phone="9123456780")

@pytest.fixture
def other_student(make_user):
    return make_user("student")

@pytest.fixture
def merchant(db, make_user):
    """Approved merchant on an active trial"""
    user = make_user("merchant", phone="9876543210", merchant_number=1)
    db.add(MerchantProfile(
        merchant_id=user.id,
        business_name="Quiet Corner",
        business_address="1 Library Road",
        business_email=user.email,
        phone="9876543210",
        trade_license_number="TL-1",
        gstin_pan="ABCDE1234F",
        account_holder_name=user.full_name,
        account_number="123456789012",
        bank_name="State Bank",
        ifsc_code="SBIN0001234",
        onboarding_step=4,
        is_onboarding_complete=True,
        verification_status="approved",
    ))
    now = datetime.now()
    db.add(MerchantSubscription(
        merchant_id=user.id,
        status="trial",
        is_trial=True,
        max_study_halls=3,
        start_date=now,
        end_date=now + timedelta(days=14),
        trial_expires_at=now + timedelta(days=14),
        payment_amount=0,
    ))
    db.commit()
    db.refresh(user)
    return user

@pytest.fixture
def study_hall(db, merchant):
    return StudyHallService(db).create_study_hall(merchant, StudyHallCreate(
        name="Quiet Corner Hall",
        location="Pune",
        rows=2,
        seats_per_row=3,
        monthly_price=Decimal("2000"),
    ))

@pytest.fixture
def private_hall(db, merchant):
    hall = PrivateHall(
        merchant_id=merchant.id,
        name="Quiet Corner Cabins",
        cabin_count=2,
        monthly_price=Decimal("3000"),
        deposit=Decimal("500"),
        status="active",
    )
    hall.cabins = [
        Cabin(cabin_number=1, cabin_name="Cabin 1"),
        Cabin(cabin_number=2, cabin_name="Cabin 2", monthly_price=Decimal("3500")),
    ]
    db.add(hall)
    db.commit()
    db.refresh(hall)
    return hall

@pytest.fixture
def tomorrow():
    return date.today() + timedelta(days=1)
