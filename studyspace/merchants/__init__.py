"""
Merchants Module

- onboarding_service.py: three-step onboarding and verification
- subscription_service.py: subscription plans, trials and study hall limits
- incharge_service.py: hall staff logins scoped to a merchant's study halls
- dependencies.py: merchant and verified-merchant guards
- router.py: onboarding, verification, subscription and incharge endpoints
"""

from .schemas import MerchantProfile, OnboardingStatus, SubscriptionPlan, MerchantSubscription, SubscriptionLimits

__all__ = [
    "MerchantProfile",
    "OnboardingStatus",
    "SubscriptionPlan",
    "MerchantSubscription",
    "SubscriptionLimits",
]
