import re
from pydantic import BaseModel, EmailStr, validator
from typing import Optional, List, Any
from datetime import datetime
from decimal import Decimal

PHONE_PATTERN = re.compile(r"^(\+91)?[6-9]\d{9}$")
GSTIN_PATTERN = re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}\d{4}[A-Z]$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

# Onboarding steps
class BusinessInfoStep(BaseModel):
    business_name: str
    business_address: str
    business_email: EmailStr
    phone: str
    
    @validator("business_name", "business_address")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("This field is required")
        return v.strip()
    
    @validator("phone")
    def valid_phone(cls, v):
        phone = v.replace(" ", "").replace("-", "")
        if not PHONE_PATTERN.match(phone):
            raise ValueError("Enter a valid 10-digit mobile number")
        return phone

class KYCStep(BaseModel):
    trade_license_number: str
    gstin_pan: str
    trade_license_document_url: Optional[str] = None
    identity_document_url: Optional[str] = None
    
    @validator("trade_license_number")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Trade license number is required")
        return v.strip()
    
    @validator("gstin_pan")
    def valid_gstin_or_pan(cls, v):
        value = v.strip().upper()
        if not (GSTIN_PATTERN.match(value) or PAN_PATTERN.match(value)):
            raise ValueError("Enter a valid GSTIN (15 characters) or PAN (e.g. ABCDE1234F)")
        return value

class BankDetailsStep(BaseModel):
    account_holder_name: str
    account_number: str
    bank_name: str
    ifsc_code: str
    
    @validator("account_holder_name", "bank_name")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("This field is required")
        return v.strip()
    
    @validator("account_number")
    def valid_account_number(cls, v):
        value = v.strip()
        if not ACCOUNT_NUMBER_PATTERN.match(value):
            raise ValueError("Account number must be 9 to 18 digits")
        return value
    
    @validator("ifsc_code")
    def valid_ifsc(cls, v):
        value = v.strip().upper()
        if not IFSC_PATTERN.match(value):
            raise ValueError("Enter a valid IFSC code (e.g. SBIN0001234)")
        return value

class MerchantProfile(BaseModel):
    id: int
    merchant_id: int
    business_name: Optional[str] = None
    business_address: Optional[str] = None
    business_email: Optional[str] = None
    phone: Optional[str] = None
    trade_license_number: Optional[str] = None
    trade_license_document_url: Optional[str] = None
    identity_document_url: Optional[str] = None
    gstin_pan: Optional[str] = None
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None
    onboarding_step: int
    is_onboarding_complete: bool
    verification_status: str
    verification_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class OnboardingStatus(BaseModel):
    onboarding_step: int
    steps_completed: List[int]
    is_onboarding_complete: bool
    verification_status: str
    can_access_dashboard: bool
    message: str

class VerificationDecision(BaseModel):
    approve: bool
    notes: Optional[str] = None

# Subscriptions
class SubscriptionPlanCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal
    duration: str = "monthly"
    max_study_halls: Optional[int] = None
    features: Optional[List[str]] = None
    status: str = "active"
    
    @validator("duration")
    def valid_duration(cls, v):
        if v not in ("monthly", "quarterly", "yearly"):
            raise ValueError("Duration must be monthly, quarterly or yearly")
        return v
    
    @validator("price")
    def price_not_negative(cls, v):
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v

class SubscriptionPlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    max_study_halls: Optional[int] = None
    features: Optional[List[str]] = None
    status: Optional[str] = None

class SubscriptionPlan(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    duration: str
    max_study_halls: Optional[int] = None
    features: Optional[Any] = None
    status: str
    
    class Config:
        from_attributes = True

class SubscribeRequest(BaseModel):
    plan_id: int
    payment_method: str = "online"
    payment_id: Optional[str] = None

class MerchantSubscription(BaseModel):
    id: int
    merchant_id: int
    plan_id: Optional[int] = None
    status: str
    is_trial: bool
    max_study_halls: Optional[int] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_expires_at: Optional[datetime] = None
    payment_amount: Optional[Decimal] = None
    
    class Config:
        from_attributes = True

class SubscriptionLimits(BaseModel):
    max_study_halls: Optional[int] = None
    current_study_halls: int
    is_trial: bool
    trial_expires_at: Optional[datetime] = None
    plan_name: str
    status: str
    can_create_study_hall: bool
    message: Optional[str] = None

# Incharges
class InchargeCreate(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    password: str
    study_hall_ids: List[int]
    
    @validator("password")
    def password_length(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

class InchargeAssignment(BaseModel):
    study_hall_ids: List[int]

class InchargeActiveUpdate(BaseModel):
    is_active: bool

class Incharge(BaseModel):
    id: int
    merchant_id: int
    user_id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    is_active: bool
    study_hall_ids: List[int]
    created_at: Optional[datetime] = None
