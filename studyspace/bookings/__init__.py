"""
Bookings Module

Seat and cabin bookings from reservation to check-in:

- booking_service.py: seat bookings, payment confirmation, cancellation and lifecycle
- cabin_booking_service.py: monthly cabin bookings, vacating and auto-expiry
- ticket_service.py: signed QR tickets, PDF tickets and check-in verification
- router.py: booking, ticket and cabin booking endpoints
"""

from .schemas import Booking, CabinBooking, CombinedBooking, Ticket

__all__ = [
    "Booking",
    "CabinBooking",
    "CombinedBooking",
    "Ticket",
]
