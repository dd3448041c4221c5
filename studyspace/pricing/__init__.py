"""
Pricing Module

- calculations.py: monthly tier selection, platform and gateway fees, cabin rent
- service.py: monthly pricing plans and booking quotes
- router.py: pricing plan and quote endpoints
"""

from .schemas import PricingPlan, MonthlyQuote, BookingQuote, CabinQuote

__all__ = [
    "PricingPlan",
    "MonthlyQuote",
    "BookingQuote",
    "CabinQuote",
]
