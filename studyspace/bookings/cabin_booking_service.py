import logging
from datetime import date, datetime
from typing import Optional, List, Dict

from sqlalchemy.orm import Session

from studyspace.models import CabinBooking, PrivateHall, Cabin, Transaction, User
from studyspace.auth.permissions import ADMIN, is_operational
from studyspace.bookings.schemas import CabinBookingCreate
from studyspace.bookings.booking_service import BookingService, booking_channels
from studyspace.halls.cabin_service import blocking_cabin_bookings
from studyspace.pricing import calculations
from studyspace.promotions.referral_service import ReferralService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.change_feed import change_feed
from studyspace.finances.numbering import next_number

logger = logging.getLogger(__name__)

class CabinBookingService:
    """Monthly cabin bookings in private halls"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _cabin_conflict(self, cabin_id: int, start_date: date, end_date: date, exclude_id: Optional[int] = None):
        query = blocking_cabin_bookings(self.db).filter(
            CabinBooking.cabin_id == cabin_id,
            CabinBooking.start_date <= end_date,
            CabinBooking.end_date >= start_date
        )
        if exclude_id:
            query = query.filter(CabinBooking.id != exclude_id)
        return query.first()
    
    def create_cabin_booking(
        self,
        student: User,
        booking_data: CabinBookingCreate,
        today: Optional[date] = None
    ) -> Optional[CabinBooking]:
        """Reserve a cabin; without an end date the stay is one calendar month"""
        private_hall = self.db.query(PrivateHall).filter(PrivateHall.id == booking_data.private_hall_id).first()
        cabin = self.db.query(Cabin).filter(
            Cabin.id == booking_data.cabin_id,
            Cabin.private_hall_id == booking_data.private_hall_id
        ).first()
        if not private_hall or not cabin:
            return None
        if private_hall.status != "active":
            raise ValueError("This private hall is not accepting bookings")
        
        calculations.validate_cabin_start(booking_data.start_date, today=today)
        if booking_data.end_date is None:
            amounts = calculations.calculate_simple_cabin_booking(
                booking_data.start_date, cabin.monthly_price, private_hall.monthly_price, private_hall.deposit
            )
            end_date = amounts["end_date"]
        else:
            calculations.validate_booking_dates(booking_data.start_date, booking_data.end_date, today=today)
            amounts = calculations.calculate_cabin_booking(
                booking_data.start_date, booking_data.end_date,
                cabin.monthly_price, private_hall.monthly_price, private_hall.deposit
            )
            end_date = booking_data.end_date
        
        if cabin.status == "maintenance":
            raise ValueError("Cabin is under maintenance")
        if self._cabin_conflict(cabin.id, booking_data.start_date, end_date):
            raise ValueError("Cabin is already booked for the selected dates")
        
        booking = CabinBooking(
            booking_number=next_number(self.db, CabinBooking, CabinBooking.booking_number, "CB"),
            user_id=student.id,
            private_hall_id=private_hall.id,
            cabin_id=cabin.id,
            start_date=booking_data.start_date,
            end_date=end_date,
            months=amounts["months"],
            monthly_amount=amounts["monthly_amount"],
            booking_amount=amounts["booking_amount"],
            deposit_amount=amounts["deposit_amount"],
            total_amount=amounts["total_amount"],
            status="pending",
            payment_status="unpaid"
        )
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            booking_channels(student.id, private_hall.merchant_id), "created", "cabin_booking", booking.id
        )
        logger.info(f"Cabin booking {booking.booking_number} created for cabin {cabin.id}")
        return booking
    
    def confirm_cabin_payment(
        self,
        actor: User,
        booking_id: int,
        payment_method: str,
        payment_id: Optional[str] = None
    ) -> Optional[CabinBooking]:
        """Record a cabin payment; the cabin is blocked from then on"""
        booking = self.get_cabin_booking(booking_id)
        if not booking:
            return None
        if actor.id != booking.user_id and not is_operational(actor.role):
            raise PermissionError("You can only pay for your own bookings")
        if booking.status != "pending" or booking.payment_status != "unpaid":
            raise ValueError("Booking is not awaiting payment")
        if self._cabin_conflict(booking.cabin_id, booking.start_date, booking.end_date, exclude_id=booking.id):
            raise ValueError("Cabin has been booked by someone else for these dates")
        
        private_hall = booking.private_hall
        transaction = Transaction(
            transaction_number=next_number(self.db, Transaction, Transaction.transaction_number, "TXN"),
            user_id=booking.user_id,
            merchant_id=private_hall.merchant_id,
            cabin_booking_id=booking.id,
            transaction_type="cabin_booking",
            amount=booking.total_amount,
            payment_method=payment_method,
            payment_id=payment_id,
            status="completed"
        )
        self.db.add(transaction)
        
        booking.status = "confirmed"
        booking.payment_status = "paid"
        booking.payment_method = payment_method
        
        BookingService(self.db).award_booking_points(booking.user_id, cabin_booking_id=booking.id)
        ReferralService(self.db).complete_pending_referral(booking.user_id, None)
        
        notifications = NotificationService(self.db)
        notifications.notify(
            booking.user_id, "Cabin Booking Confirmed",
            f"{booking.cabin.cabin_name} at {private_hall.name} is yours from {booking.start_date} to {booking.end_date}.",
            type="success", commit=False
        )
        notifications.notify(
            private_hall.merchant_id, "New Cabin Booking",
            f"{booking.cabin.cabin_name} at {private_hall.name} was booked ({booking.booking_number}).",
            type="info", commit=False
        )
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            booking_channels(booking.user_id, private_hall.merchant_id), "updated", "cabin_booking", booking.id,
            {"status": booking.status, "payment_status": booking.payment_status}
        )
        logger.info(f"Cabin booking {booking.booking_number} paid via {payment_method}")
        return booking
    
    def vacate_cabin_booking(
        self,
        actor: User,
        booking_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[CabinBooking]:
        """Release a cabin before its booking ends"""
        booking = self.get_cabin_booking(booking_id)
        if not booking:
            return None
        if actor.role != ADMIN and actor.id != booking.private_hall.merchant_id:
            raise PermissionError("Only the hall owner or an admin can vacate a cabin")
        if booking.is_vacated:
            raise ValueError("Cabin booking is already vacated")
        
        booking.is_vacated = True
        booking.vacated_at = now or datetime.now()
        booking.vacated_by = actor.id
        booking.vacate_reason = reason
        booking.status = "vacated"
        NotificationService(self.db).notify(
            booking.user_id, "Cabin Vacated",
            f"Your cabin booking {booking.booking_number} has been vacated." + (f" Reason: {reason}" if reason else ""),
            type="warning", commit=False
        )
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            booking_channels(booking.user_id, booking.private_hall.merchant_id), "updated", "cabin_booking", booking.id,
            {"is_vacated": True}
        )
        logger.info(f"Cabin booking {booking.booking_number} vacated by user {actor.id}")
        return booking
    
    def auto_expire_cabin_bookings(self, today: Optional[date] = None, now: Optional[datetime] = None) -> int:
        """Vacate paid cabin bookings whose end date has passed"""
        today = today or date.today()
        now = now or datetime.now()
        lapsed = self.db.query(CabinBooking).filter(
            CabinBooking.payment_status == "paid",
            CabinBooking.is_vacated == False,  # noqa: E712
            CabinBooking.end_date < today
        ).all()
        for booking in lapsed:
            booking.is_vacated = True
            booking.vacated_at = now
            booking.vacate_reason = "Auto-expired"
            booking.status = "completed"
        self.db.commit()
        
        if lapsed:
            change_feed.publish("staff", "updated", "cabin_booking", None, {"vacated": len(lapsed)})
            logger.info(f"Auto-expired {len(lapsed)} cabin bookings")
        return len(lapsed)
    
    # Queries
    def get_cabin_booking(self, booking_id: int) -> Optional[CabinBooking]:
        return self.db.query(CabinBooking).filter(CabinBooking.id == booking_id).first()
    
    def list_cabin_bookings(
        self,
        user_id: Optional[int] = None,
        merchant_id: Optional[int] = None,
        private_hall_id: Optional[int] = None,
        include_vacated: bool = True
    ) -> List[CabinBooking]:
        query = self.db.query(CabinBooking).join(PrivateHall, CabinBooking.private_hall_id == PrivateHall.id)
        if user_id:
            query = query.filter(CabinBooking.user_id == user_id)
        if merchant_id:
            query = query.filter(PrivateHall.merchant_id == merchant_id)
        if private_hall_id:
            query = query.filter(CabinBooking.private_hall_id == private_hall_id)
        if not include_vacated:
            query = query.filter(CabinBooking.is_vacated == False)  # noqa: E712
        return query.order_by(CabinBooking.created_at.desc(), CabinBooking.id.desc()).all()
    
    def can_view(self, user: User, booking: CabinBooking) -> bool:
        if user.id == booking.user_id or is_operational(user.role):
            return True
        return booking.private_hall.merchant_id == user.id
    
    def counts(self) -> Dict[str, int]:
        return {
            "total": self.db.query(CabinBooking).count(),
            "blocking": blocking_cabin_bookings(self.db).count(),
        }
