import logging
import string
from datetime import date
from io import BytesIO
from typing import Optional, List, Dict, Any

import qrcode
from qrcode import constants
from PIL import Image
from sqlalchemy import func
from sqlalchemy.orm import Session

from studyspace.config import settings
from studyspace.models import StudyHall, Seat, Booking, User
from studyspace.auth.permissions import ADMIN
from studyspace.halls.schemas import StudyHallCreate, StudyHallUpdate
from studyspace.merchants.subscription_service import SubscriptionService
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

# Bookings in these states hold their seat
OCCUPYING_STATUSES = ("pending", "confirmed", "active")

def default_row_name(index: int) -> str:
    """A, B, ... Z, AA, AB, ..."""
    letters = string.ascii_uppercase
    name = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        name = letters[remainder] + name
    return name

def seat_layout(rows: int, seats_per_row: int, custom_row_names: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """Seats of a grid layout labelled by row name and number, e.g. B7"""
    if custom_row_names and len(custom_row_names) != rows:
        raise ValueError("Provide one row name per row")
    layout = []
    for row_index in range(rows):
        row_name = custom_row_names[row_index] if custom_row_names else default_row_name(row_index)
        for seat_number in range(1, seats_per_row + 1):
            layout.append({
                "seat_label": f"{row_name}{seat_number}",
                "row_name": row_name,
                "seat_number": seat_number,
            })
    return layout

def overlapping_bookings(db: Session, start_date: date, end_date: date):
    """Query of seat-holding bookings whose dates overlap a range"""
    return db.query(Booking).filter(
        Booking.status.in_(OCCUPYING_STATUSES),
        Booking.start_date <= end_date,
        Booking.end_date >= start_date
    )

class StudyHallService:
    """Study halls and their seat grids"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def check_owner(self, actor: User, hall: StudyHall):
        if actor.role != ADMIN and hall.merchant_id != actor.id:
            raise PermissionError("You can only manage your own study halls")
    
    def create_study_hall(self, merchant: User, hall_data: StudyHallCreate) -> StudyHall:
        """Create a study hall and generate its seats"""
        limits = SubscriptionService(self.db).subscription_limits(merchant.id)
        if not limits["can_create_study_hall"]:
            raise PermissionError(limits["message"])
        
        layout = seat_layout(hall_data.rows, hall_data.seats_per_row, hall_data.custom_row_names)
        hall_count = self.db.query(func.count(StudyHall.id)).filter(StudyHall.merchant_id == merchant.id).scalar()
        
        hall = StudyHall(
            merchant_id=merchant.id,
            hall_number=(hall_count or 0) + 1,
            total_seats=len(layout),
            status="active",
            **hall_data.dict()
        )
        hall.seats = [Seat(**seat) for seat in layout]
        self.db.add(hall)
        self.db.commit()
        self.db.refresh(hall)
        
        change_feed.publish_many([f"merchant:{merchant.id}", "staff"], "created", "study_hall", hall.id)
        logger.info(f"Study hall {hall.id} '{hall.name}' created with {hall.total_seats} seats by merchant {merchant.id}")
        return hall
    
    def get_study_hall(self, hall_id: int) -> Optional[StudyHall]:
        return self.db.query(StudyHall).filter(StudyHall.id == hall_id).first()
    
    def list_study_halls(
        self,
        merchant_id: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[StudyHall]:
        query = self.db.query(StudyHall)
        if merchant_id:
            query = query.filter(StudyHall.merchant_id == merchant_id)
        if status:
            query = query.filter(StudyHall.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                func.lower(StudyHall.name).like(pattern) | func.lower(StudyHall.location).like(pattern)
            )
        return query.order_by(StudyHall.created_at.desc(), StudyHall.id.desc()).offset(offset).limit(limit).all()
    
    def update_study_hall(self, actor: User, hall_id: int, hall_update: StudyHallUpdate) -> Optional[StudyHall]:
        """Update hall details; layout changes add or remove seats"""
        hall = self.get_study_hall(hall_id)
        if not hall:
            return None
        self.check_owner(actor, hall)
        
        update_data = hall_update.dict(exclude_unset=True)
        layout_fields = {"rows", "seats_per_row", "custom_row_names"}
        for field, value in update_data.items():
            if field not in layout_fields:
                setattr(hall, field, value)
        
        if layout_fields & set(update_data):
            rows = update_data.get("rows") or hall.rows
            seats_per_row = update_data.get("seats_per_row") or hall.seats_per_row
            if "custom_row_names" in update_data:
                row_names = update_data["custom_row_names"]
            elif hall.custom_row_names and len(hall.custom_row_names) == rows:
                row_names = hall.custom_row_names
            else:
                row_names = None
            self._sync_seats(hall, seat_layout(rows, seats_per_row, row_names))
            hall.rows, hall.seats_per_row, hall.custom_row_names = rows, seats_per_row, row_names
        
        self.db.commit()
        self.db.refresh(hall)
        change_feed.publish(f"merchant:{hall.merchant_id}", "updated", "study_hall", hall.id)
        return hall
    
    def _sync_seats(self, hall: StudyHall, layout: List[Dict[str, Any]]):
        wanted = {seat["seat_label"]: seat for seat in layout}
        existing = {seat.seat_label: seat for seat in hall.seats}
        
        for label, seat in existing.items():
            if label in wanted:
                continue
            has_bookings = self.db.query(Booking.id).filter(Booking.seat_id == seat.id).first()
            if has_bookings:
                raise ValueError(f"Seat {label} has bookings and cannot be removed")
            hall.seats.remove(seat)
        
        for label, seat in wanted.items():
            if label not in existing:
                hall.seats.append(Seat(**seat))
        hall.total_seats = len(wanted)
    
    def set_status(self, actor: User, hall_id: int, status: str) -> Optional[StudyHall]:
        if status not in ("active", "inactive"):
            raise ValueError("Status must be active or inactive")
        hall = self.get_study_hall(hall_id)
        if not hall:
            return None
        self.check_owner(actor, hall)
        hall.status = status
        self.db.commit()
        self.db.refresh(hall)
        change_feed.publish(f"merchant:{hall.merchant_id}", "updated", "study_hall", hall.id, {"status": status})
        return hall
    
    def set_seat_available(self, actor: User, seat_id: int, is_available: bool) -> Optional[Seat]:
        """Take a seat out of service or put it back"""
        seat = self.db.query(Seat).filter(Seat.id == seat_id).first()
        if not seat:
            return None
        self.check_owner(actor, seat.study_hall)
        seat.is_available = is_available
        self.db.commit()
        self.db.refresh(seat)
        return seat
    
    # Availability
    def seat_availability(self, hall_id: int, start_date: date, end_date: date) -> Optional[Dict[str, bool]]:
        """Map of seat label to whether it is free for the whole range"""
        hall = self.get_study_hall(hall_id)
        if not hall:
            return None
        if end_date < start_date:
            raise ValueError("End date must not be before start date")
        
        occupied = {
            seat_id for (seat_id,) in overlapping_bookings(self.db, start_date, end_date).filter(
                Booking.study_hall_id == hall_id
            ).with_entities(Booking.seat_id).all()
        }
        return {
            seat.seat_label: bool(seat.is_available) and seat.id not in occupied
            for seat in hall.seats
        }
    
    def check_seat(self, seat_id: int, start_date: date, end_date: date) -> Optional[Dict[str, Any]]:
        """Whether one seat is free, with the bookings in the way"""
        seat = self.db.query(Seat).filter(Seat.id == seat_id).first()
        if not seat:
            return None
        conflicts = overlapping_bookings(self.db, start_date, end_date).filter(Booking.seat_id == seat_id).all()
        return {
            "seat_id": seat.id,
            "seat_label": seat.seat_label,
            "available": bool(seat.is_available) and not conflicts,
            "conflicting_bookings": [booking.booking_number for booking in conflicts],
        }
    
    def date_availability(self, hall_id: int, dates: List[date]) -> Optional[List[Dict[str, Any]]]:
        """Free and occupied seat counts for each date"""
        hall = self.get_study_hall(hall_id)
        if not hall:
            return None
        total = len(hall.seats)
        results = []
        for day in sorted(set(dates)):
            occupied = overlapping_bookings(self.db, day, day).filter(
                Booking.study_hall_id == hall_id
            ).with_entities(Booking.seat_id).distinct().count()
            results.append({
                "date": day,
                "total_seats": total,
                "occupied_seats": occupied,
                "available_seats": max(total - occupied, 0),
            })
        return results
    
    # QR booking
    @staticmethod
    def booking_url(hall: StudyHall) -> str:
        return f"{settings.PUBLIC_DOMAIN.rstrip('/')}/studyhall/{hall.id}/booking"
    
    def booking_qr(self, hall_id: int, size: int = 300) -> Optional[bytes]:
        """PNG QR code linking to the hall's booking page"""
        hall = self.get_study_hall(hall_id)
        if not hall:
            return None
        if not hall.qr_booking_enabled:
            raise ValueError("QR booking is disabled for this study hall")
        
        qr = qrcode.QRCode(
            version=1,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.booking_url(hall))
        qr.make(fit=True)
        
        qr_image = qr.make_image(fill_color="black", back_color="white")
        qr_image = qr_image.resize((size, size), Image.LANCZOS)
        
        buffer = BytesIO()
        qr_image.save(buffer, format="PNG")
        return buffer.getvalue()
