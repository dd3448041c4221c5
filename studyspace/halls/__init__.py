"""
Halls Module

Study halls booked by seat and private halls booked by cabin:

- service.py: study halls, seat grids, seat availability and booking QR codes
- cabin_service.py: private halls, cabins and cabin availability
- router.py: hall, seat and cabin endpoints
"""

from .schemas import StudyHall, StudyHallDetail, Seat, PrivateHall, PrivateHallDetail, Cabin

__all__ = [
    "StudyHall",
    "StudyHallDetail",
    "Seat",
    "PrivateHall",
    "PrivateHallDetail",
    "Cabin",
]
