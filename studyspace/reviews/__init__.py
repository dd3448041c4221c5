"""
Reviews Module

- review_service.py: study hall reviews, merchant replies, moderation and hall ratings
- router.py: review endpoints
"""

from .schemas import Review, ReviewableBooking

__all__ = [
    "Review",
    "ReviewableBooking",
]
