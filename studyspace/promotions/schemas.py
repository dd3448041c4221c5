from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

COUPON_TYPES = ("flat", "percentage")
TARGET_AUDIENCES = ("all", "new_users", "returning_users")

# Coupons
class CouponCreate(BaseModel):
    code: str
    title: Optional[str] = None
    description: Optional[str] = None
    type: str
    value: Decimal
    max_discount: Optional[Decimal] = None
    min_booking_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    user_usage_limit: int = 1
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    merchant_id: Optional[int] = None
    target_audience: str = "all"
    status: str = "active"
    
    @validator("code")
    def code_format(cls, v):
        code = v.strip().upper()
        if len(code) < 3 or len(code) > 50 or not code.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Coupon code must be 3-50 letters, digits, dashes or underscores")
        return code
    
    @validator("type")
    def known_type(cls, v):
        if v not in COUPON_TYPES:
            raise ValueError("Coupon type must be flat or percentage")
        return v
    
    @validator("value")
    def value_range(cls, v, values):
        if v <= 0:
            raise ValueError("Coupon value must be greater than zero")
        if values.get("type") == "percentage" and v > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return v
    
    @validator("target_audience")
    def known_audience(cls, v):
        if v not in TARGET_AUDIENCES:
            raise ValueError("Target audience must be all, new_users or returning_users")
        return v
    
    @validator("end_date")
    def end_after_start(cls, v, values):
        if v and values.get("start_date") and v < values["start_date"]:
            raise ValueError("End date must be after start date")
        return v

class CouponUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    max_discount: Optional[Decimal] = None
    min_booking_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    user_usage_limit: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_audience: Optional[str] = None
    
    @validator("target_audience")
    def known_audience(cls, v):
        if v is not None and v not in TARGET_AUDIENCES:
            raise ValueError("Target audience must be all, new_users or returning_users")
        return v

class CouponStatusUpdate(BaseModel):
    status: str

class Coupon(BaseModel):
    id: int
    code: str
    title: Optional[str] = None
    description: Optional[str] = None
    type: str
    value: Decimal
    max_discount: Optional[Decimal] = None
    min_booking_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    user_usage_limit: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    merchant_id: Optional[int] = None
    target_audience: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class CouponValidateRequest(BaseModel):
    code: str
    booking_amount: Decimal
    study_hall_id: Optional[int] = None
    private_hall_id: Optional[int] = None

class CouponValidation(BaseModel):
    valid: bool
    error: Optional[str] = None
    coupon_id: Optional[int] = None
    code: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    final_amount: Optional[Decimal] = None

class CouponUsage(BaseModel):
    id: int
    coupon_id: int
    user_id: int
    booking_id: Optional[int] = None
    discount_amount: Decimal
    used_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

# Rewards
class RewardAccount(BaseModel):
    user_id: int
    total_points: int
    available_points: int
    lifetime_earned: int
    lifetime_redeemed: int
    
    class Config:
        from_attributes = True

class RewardTransaction(BaseModel):
    id: int
    type: str
    points: int
    reason: Optional[str] = None
    booking_id: Optional[int] = None
    referral_id: Optional[int] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class RewardsConfig(BaseModel):
    enabled: bool
    conversion_rate: Decimal
    min_redemption_points: int

class RedeemRequest(BaseModel):
    points: int
    booking_id: Optional[int] = None
    validate_only: bool = True

class RedeemResult(BaseModel):
    success: bool
    discount_amount: Decimal
    points_redeemed: int
    remaining_points: int

# Referrals
class ReferralApply(BaseModel):
    code: str

class ReferralReward(BaseModel):
    id: int
    referrer_id: int
    referee_id: int
    booking_id: Optional[int] = None
    referrer_points: int
    referee_points: int
    status: str
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class ReferralStats(BaseModel):
    code: str
    status: str
    total_referrals: int
    successful_referrals: int
    pending_referrals: int
    total_earnings: int
    referrals: List[ReferralReward] = []
