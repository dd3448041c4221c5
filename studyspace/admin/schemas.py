from pydantic import BaseModel, EmailStr, validator
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal

# Business settings
class BusinessSettings(BaseModel):
    id: int
    platform_fee_enabled: bool
    platform_fee_type: str
    platform_fee_value: Decimal
    platform_fee_percentage: Decimal
    minimum_settlement_amount: Decimal
    minimum_withdrawal_amount: Decimal
    withdrawal_processing_days: int
    rewards_enabled: bool
    points_conversion_rate: Decimal
    min_redemption_points: int
    points_per_booking: int
    referrer_points: int
    referee_points: int
    points_profile_completion: int
    monthly_referral_limit: int
    sms_enabled: bool
    sms_merchant_created: bool
    sms_user_created: bool
    sms_booking_confirmation: bool
    sms_otp_verification: bool
    sms_password_reset: bool
    sms_merchant_approved: bool
    sms_booking_alert_merchant: bool
    trial_enabled: bool
    trial_days: int
    trial_max_study_halls: int
    booking_payment_window_minutes: int
    brand_name: Optional[str] = None
    support_email: Optional[str] = None
    support_phone: Optional[str] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BusinessSettingsUpdate(BaseModel):
    platform_fee_enabled: Optional[bool] = None
    platform_fee_type: Optional[str] = None
    platform_fee_value: Optional[Decimal] = None
    platform_fee_percentage: Optional[Decimal] = None
    minimum_settlement_amount: Optional[Decimal] = None
    minimum_withdrawal_amount: Optional[Decimal] = None
    withdrawal_processing_days: Optional[int] = None
    rewards_enabled: Optional[bool] = None
    points_conversion_rate: Optional[Decimal] = None
    min_redemption_points: Optional[int] = None
    points_per_booking: Optional[int] = None
    referrer_points: Optional[int] = None
    referee_points: Optional[int] = None
    points_profile_completion: Optional[int] = None
    monthly_referral_limit: Optional[int] = None
    sms_enabled: Optional[bool] = None
    sms_merchant_created: Optional[bool] = None
    sms_user_created: Optional[bool] = None
    sms_booking_confirmation: Optional[bool] = None
    sms_otp_verification: Optional[bool] = None
    sms_password_reset: Optional[bool] = None
    sms_merchant_approved: Optional[bool] = None
    sms_booking_alert_merchant: Optional[bool] = None
    trial_enabled: Optional[bool] = None
    trial_days: Optional[int] = None
    trial_max_study_halls: Optional[int] = None
    booking_payment_window_minutes: Optional[int] = None
    brand_name: Optional[str] = None
    support_email: Optional[EmailStr] = None
    support_phone: Optional[str] = None

    @validator(
        "withdrawal_processing_days", "min_redemption_points", "points_per_booking", "referrer_points",
        "referee_points", "points_profile_completion", "monthly_referral_limit", "trial_days"
    )
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Value cannot be negative")
        return v

    @validator("trial_max_study_halls", "booking_payment_window_minutes")
    def positive(cls, v):
        if v is not None and v < 1:
            raise ValueError("Value must be at least 1")
        return v

# Users
class UserActiveUpdate(BaseModel):
    is_active: bool

# Audit
class AuditLog(BaseModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Dashboard & health
class DashboardStats(BaseModel):
    total_users: int
    users_by_role: Dict[str, int]
    study_halls: int
    active_study_halls: int
    private_halls: int
    total_bookings: int
    bookings_by_status: Dict[str, int]
    cabin_bookings: int
    occupied_cabins: int
    gross_revenue: Decimal
    generated_at: datetime

class DatabaseHealth(BaseModel):
    status: str
    message: str
    response_time_ms: Optional[float] = None

class HostMetrics(BaseModel):
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    uptime_seconds: int

class SystemHealth(BaseModel):
    overall_status: str
    database: DatabaseHealth
    host: HostMetrics
    bookings: Dict[str, int]
    last_updated: datetime
