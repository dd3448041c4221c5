"""
Promotions Module

- coupon_service.py: discount coupons and their usage limits
- reward_service.py: reward points earned on bookings and redeemed as discounts
- referral_service.py: referral codes and referral bonuses
- router.py: coupon, reward and referral endpoints
"""

from .schemas import Coupon, CouponValidation, RewardAccount, ReferralStats

__all__ = [
    "Coupon",
    "CouponValidation",
    "RewardAccount",
    "ReferralStats",
]
