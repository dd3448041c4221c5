import pytest

from studyspace.auth.service import UserService
from studyspace.models import MerchantProfile, ReferralReward, User
from studyspace.promotions.referral_service import ReferralService

PASSWORD = "password123"

def register(client, **overrides):
    data = {"full_name": "Ravi Kumar", "email": "Ravi@Example.com", "password": "secret1", "phone": "9000000001"}
    data.update(overrides)
    return client.post("/api/v1/auth/register", json=data)

def test_register_student(client):
    response = register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "ravi@example.com"
    assert body["role"] == "student"
    assert "password" not in body

    duplicate = register(client, email="RAVI@example.com")
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Email already registered"

def test_register_rejects_staff_roles_and_short_passwords(client):
    assert register(client, role="admin").status_code == 422
    assert register(client, password="123").status_code == 422

def test_register_merchant_creates_profile(client, db):
    response = register(client, role="merchant", email="owner@example.com")

    merchant = db.get(User, response.json()["id"])
    assert merchant.merchant_number == 1001
    profile = db.query(MerchantProfile).filter(MerchantProfile.merchant_id == merchant.id).one()
    assert profile.verification_status == "not_submitted"

def test_register_with_referral_code(client, db, student):
    code = ReferralService(db).get_or_create_code(student.id).code

    assert register(client, referral_code="NOPE1234").status_code == 400

    response = register(client, referral_code=code)
    assert response.status_code == 201
    reward = db.query(ReferralReward).one()
    assert reward.referrer_id == student.id
    assert reward.status == "pending"

def test_login_redirects_by_role(client, student, merchant):
    response = client.post("/api/v1/auth/login", json={"email": student.email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/student"
    assert response.json()["user"]["id"] == student.id

    response = client.post("/api/v1/auth/login", json={"email": merchant.email, "password": PASSWORD})
    assert response.json()["redirect_to"] == "/merchant"

    token = client.post("/api/v1/auth/token", data={"username": student.email, "password": PASSWORD})
    assert token.json()["token_type"] == "bearer"

def test_login_failures(client, db, student):
    response = client.post("/api/v1/auth/login", json={"email": student.email, "password": "wrong-password"})
    assert response.status_code == 401

    UserService.set_active(db, student.id, False)
    response = client.post("/api/v1/auth/login", json={"email": student.email, "password": PASSWORD})
    assert response.status_code == 403

def test_me_requires_valid_token(client, auth_headers, student):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.get("/api/v1/auth/me", headers=auth_headers(student)).json()["email"] == student.email

def test_update_profile(client, db, auth_headers, student):
    student.phone_verified = True
    db.commit()

    response = client.put("/api/v1/auth/me", json={"full_name": "New Name", "phone": "9111111111"},
                          headers=auth_headers(student))

    assert response.json()["full_name"] == "New Name"
    assert response.json()["phone_verified"] is False
    assert client.put("/api/v1/auth/me", json={"password": "123"}, headers=auth_headers(student)).status_code == 400

def test_phone_verification(db, student, other_student):
    code = UserService.request_phone_otp(db, student)

    wrong_code = str((int(code) + 1) % 1000000).zfill(6)
    assert UserService.verify_phone_otp(db, student, wrong_code) is False
    assert UserService.verify_phone_otp(db, student, code) is True
    assert student.phone_verified is True

    with pytest.raises(ValueError):
        UserService.request_phone_otp(db, other_student)
    with pytest.raises(ValueError):
        UserService.verify_phone_otp(db, other_student, code)
