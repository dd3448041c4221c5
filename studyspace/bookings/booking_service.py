import logging
import secrets
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_CEILING
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import Booking, CabinBooking, StudyHall, Seat, Transaction, User
from studyspace.auth.permissions import ADMIN, is_operational
from studyspace.bookings.schemas import BookingCreate
from studyspace.halls.service import overlapping_bookings
from studyspace.pricing import calculations
from studyspace.pricing.service import PricingService
from studyspace.promotions.coupon_service import CouponService
from studyspace.promotions.reward_service import RewardService
from studyspace.promotions.referral_service import ReferralService
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.sms_service import SMSService
from studyspace.notifications.change_feed import change_feed
from studyspace.finances.numbering import next_number

logger = logging.getLogger(__name__)

def booking_channels(user_id: int, merchant_id: int) -> List[str]:
    return [f"user:{user_id}", f"merchant:{merchant_id}", "staff"]

def can_view_booking(user: User, booking: Booking) -> bool:
    if user.id == booking.user_id or is_operational(user.role):
        return True
    return booking.study_hall is not None and booking.study_hall.merchant_id == user.id

class BookingService:
    """Seat bookings: pricing, payment, cancellation and lifecycle"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def create_booking(self, student: User, booking_data: BookingCreate, now: Optional[datetime] = None) -> Optional[Booking]:
        """Reserve a seat and price the booking.
        
        The amount is the hall's rent less the coupon and rewards discounts,
        plus the platform fee on what remains. The booking holds the seat
        until it is paid or its payment window lapses.
        """
        now = now or datetime.now()
        calculations.validate_booking_dates(booking_data.start_date, booking_data.end_date, today=now.date())
        
        hall = self.db.query(StudyHall).filter(StudyHall.id == booking_data.study_hall_id).first()
        if not hall:
            return None
        if hall.status != "active":
            raise ValueError("This study hall is not accepting bookings")
        
        seat = self.db.query(Seat).filter(Seat.id == booking_data.seat_id).first()
        if not seat or seat.study_hall_id != hall.id:
            raise ValueError("Seat does not belong to this study hall")
        if not seat.is_available:
            raise ValueError("Seat is not available")
        conflict = overlapping_bookings(self.db, booking_data.start_date, booking_data.end_date).filter(
            Booking.seat_id == seat.id
        ).first()
        if conflict:
            raise ValueError("Seat is already booked for the selected dates")
        
        pricing = PricingService(self.db).base_amount_for_hall(hall, booking_data.start_date, booking_data.end_date)
        base_amount = calculations.to_decimal(pricing["amount"])
        
        coupon_id = coupon_code = None
        discount_amount = Decimal("0")
        if booking_data.coupon_code:
            result = CouponService(self.db).validate_coupon(
                student.id, booking_data.coupon_code, base_amount, study_hall_id=hall.id, now=now
            )
            if not result["valid"]:
                raise ValueError(result["error"])
            coupon_id, coupon_code = result["coupon_id"], result["code"]
            discount_amount = calculations.to_decimal(result["discount_amount"])
        
        rewards_discount = Decimal("0")
        reward_points = 0
        if booking_data.reward_points:
            rewards = RewardService(self.db)
            quote = rewards.redeem_points(student.id, booking_data.reward_points, validate_only=True)
            remaining = max(base_amount - discount_amount, Decimal("0"))
            if quote["discount_amount"] <= remaining:
                reward_points, rewards_discount = booking_data.reward_points, quote["discount_amount"]
            elif remaining > 0:
                # Only spend the points the remaining amount needs
                config = rewards.rewards_config()
                needed = int((remaining / config["conversion_rate"]).to_integral_value(rounding=ROUND_CEILING))
                reward_points = max(needed, config["min_redemption_points"])
                rewards_discount = remaining
        
        subtotal = max(base_amount - discount_amount - rewards_discount, Decimal("0"))
        business_settings = BusinessSettingsService.get(self.db)
        platform_fee = calculations.platform_fee_from_settings(subtotal, business_settings)
        
        booking = Booking(
            booking_number=next_number(self.db, Booking, Booking.booking_number, "BK"),
            user_id=student.id,
            study_hall_id=hall.id,
            seat_id=seat.id,
            start_date=booking_data.start_date,
            end_date=booking_data.end_date,
            period_type=pricing["period_type"],
            months=pricing["months"],
            base_amount=base_amount,
            coupon_id=coupon_id,
            coupon_code=coupon_code,
            discount_amount=discount_amount,
            reward_points_used=reward_points,
            rewards_discount=rewards_discount,
            platform_fee=platform_fee,
            total_amount=subtotal + platform_fee,
            status="pending",
            payment_status="unpaid",
            expires_at=now + timedelta(minutes=business_settings.booking_payment_window_minutes or 30)
        )
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            booking_channels(student.id, hall.merchant_id), "created", "booking", booking.id,
            {"booking_number": booking.booking_number, "status": booking.status}
        )
        logger.info(f"Booking {booking.booking_number} created for seat {seat.seat_label} at hall {hall.id}")
        return booking
    
    def confirm_payment(
        self,
        actor: User,
        booking_id: int,
        payment_method: str,
        payment_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[Booking]:
        """Record a successful payment and confirm the booking"""
        now = now or datetime.now()
        booking = self.get_booking(booking_id)
        if not booking:
            return None
        if actor.id != booking.user_id and not is_operational(actor.role):
            raise PermissionError("You can only pay for your own bookings")
        if booking.status != "pending" or booking.payment_status != "unpaid":
            raise ValueError("Booking is not awaiting payment")
        if booking.expires_at and booking.expires_at < now:
            booking.status = "expired"
            self.db.commit()
            raise ValueError("Payment window has expired. Please book again")
        
        hall = booking.study_hall
        student = booking.user
        
        if booking.reward_points_used:
            RewardService(self.db).redeem_points(
                student.id, booking.reward_points_used, booking_id=booking.id, commit=False
            )
        if booking.coupon_id:
            CouponService(self.db).record_usage(booking.coupon_id, student.id, booking.id, booking.discount_amount)
        
        transaction = Transaction(
            transaction_number=next_number(self.db, Transaction, Transaction.transaction_number, "TXN"),
            user_id=student.id,
            merchant_id=hall.merchant_id,
            booking_id=booking.id,
            transaction_type="booking",
            amount=booking.total_amount,
            payment_method=payment_method,
            payment_id=payment_id,
            status="completed"
        )
        self.db.add(transaction)
        
        booking.status = "confirmed"
        booking.payment_status = "paid"
        booking.payment_method = payment_method
        booking.ticket_code = secrets.token_hex(8).upper()
        
        self.award_booking_points(student.id, booking_id=booking.id)
        ReferralService(self.db).complete_pending_referral(student.id, booking.id, now)
        
        notifications = NotificationService(self.db)
        notifications.notify(
            student.id, "Booking Confirmed",
            f"Your booking {booking.booking_number} at {hall.name} (seat {booking.seat.seat_label}) is confirmed.",
            type="success", action_url=f"/student/bookings/{booking.id}", commit=False
        )
        notifications.notify(
            hall.merchant_id, "New Booking",
            f"{student.full_name} booked seat {booking.seat.seat_label} at {hall.name} ({booking.booking_number}).",
            type="info", action_url=f"/merchant/bookings/{booking.id}", commit=False
        )
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"Booking {booking.booking_number} paid via {payment_method}, transaction {transaction.transaction_number}")
        
        self._send_confirmation_sms(booking)
        change_feed.publish_many(
            booking_channels(student.id, hall.merchant_id), "updated", "booking", booking.id,
            {"status": booking.status, "payment_status": booking.payment_status}
        )
        change_feed.publish_many(
            [f"merchant:{hall.merchant_id}", "staff"], "created", "transaction", transaction.id
        )
        return booking
    
    def award_booking_points(self, user_id: int, booking_id: Optional[int] = None, cabin_booking_id: Optional[int] = None):
        business_settings = BusinessSettingsService.get(self.db)
        points = business_settings.points_per_booking or 0
        if not business_settings.rewards_enabled or points <= 0:
            return
        reason = "Booking reward" if booking_id else "Cabin booking reward"
        RewardService(self.db).earn_points(user_id, points, reason, booking_id=booking_id, commit=False)
    
    def _send_confirmation_sms(self, booking: Booking):
        sms = SMSService(self.db)
        hall = booking.study_hall
        variables = {
            "booking_number": booking.booking_number,
            "hall_name": hall.name,
            "seat": booking.seat.seat_label,
            "start_date": booking.start_date.isoformat(),
            "end_date": booking.end_date.isoformat(),
            "amount": booking.total_amount,
            "student_name": booking.user.full_name,
        }
        sms.send("booking_confirmation", booking.user.phone, variables, user_id=booking.user_id)
        if hall.merchant:
            sms.send("booking_alert_merchant", hall.merchant.phone, variables, user_id=hall.merchant_id)
    
    def cancel_booking(
        self,
        actor: User,
        booking_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[Booking]:
        """Cancel a booking; paid bookings are marked for refund"""
        booking = self.get_booking(booking_id)
        if not booking:
            return None
        hall = booking.study_hall
        if actor.role != ADMIN and actor.id not in (booking.user_id, hall.merchant_id):
            raise PermissionError("You cannot cancel this booking")
        if booking.status in ("completed", "cancelled"):
            raise ValueError(f"Cannot cancel a {booking.status} booking")
        
        booking.status = "cancelled"
        booking.cancelled_at = now or datetime.now()
        booking.cancellation_reason = reason
        if booking.payment_status == "paid":
            booking.payment_status = "refunded"
            for transaction in booking.transactions:
                if transaction.status == "completed":
                    transaction.status = "refunded"
        
        if actor.id != booking.user_id:
            NotificationService(self.db).notify(
                booking.user_id, "Booking Cancelled",
                f"Your booking {booking.booking_number} was cancelled." + (f" Reason: {reason}" if reason else ""),
                type="warning", commit=False
            )
        self.db.commit()
        self.db.refresh(booking)
        
        change_feed.publish_many(
            booking_channels(booking.user_id, hall.merchant_id), "updated", "booking", booking.id,
            {"status": booking.status, "payment_status": booking.payment_status}
        )
        logger.info(f"Booking {booking.booking_number} cancelled by user {actor.id}")
        return booking
    
    def progress_booking_statuses(self, today: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, int]:
        """Move bookings along pending -> expired and confirmed -> active -> completed"""
        now = now or datetime.now()
        today = today or now.date()
        
        expired = self.db.query(Booking).filter(
            Booking.status == "pending",
            Booking.payment_status == "unpaid",
            Booking.expires_at < now
        ).all()
        for booking in expired:
            booking.status = "expired"
        
        completed = self.db.query(Booking).filter(
            Booking.status.in_(("confirmed", "active")),
            Booking.end_date < today
        ).all()
        for booking in completed:
            booking.status = "completed"
        
        activated = self.db.query(Booking).filter(
            Booking.status == "confirmed",
            Booking.start_date <= today,
            Booking.end_date >= today
        ).all()
        for booking in activated:
            booking.status = "active"
        
        self.db.commit()
        counts = {"expired": len(expired), "activated": len(activated), "completed": len(completed)}
        if any(counts.values()):
            change_feed.publish("staff", "updated", "booking", None, counts)
            logger.info(f"Booking lifecycle: {counts}")
        return counts
    
    # Queries
    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()
    
    def list_user_bookings(self, user_id: int, status: Optional[str] = None) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.user_id == user_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
    
    def list_merchant_bookings(
        self,
        merchant_id: Optional[int] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        study_hall_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Booking]:
        """Bookings on a merchant's halls; all bookings when no merchant is given"""
        query = self.db.query(Booking).join(StudyHall, Booking.study_hall_id == StudyHall.id)
        if merchant_id:
            query = query.filter(StudyHall.merchant_id == merchant_id)
        if status:
            query = query.filter(Booking.status == status)
        if payment_status:
            query = query.filter(Booking.payment_status == payment_status)
        if study_hall_id:
            query = query.filter(Booking.study_hall_id == study_hall_id)
        if date_from:
            query = query.filter(Booking.end_date >= date_from)
        if date_to:
            query = query.filter(Booking.start_date <= date_to)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset).limit(limit).all()
    
    def combined_bookings(self, user_id: int) -> List[Dict[str, Any]]:
        """Seat and cabin bookings of a user in one list, newest first"""
        combined = []
        for booking in self.list_user_bookings(user_id):
            combined.append({
                "id": booking.id,
                "booking_type": "study_hall",
                "booking_number": booking.booking_number,
                "hall_id": booking.study_hall_id,
                "hall_name": booking.study_hall.name if booking.study_hall else None,
                "unit_label": booking.seat.seat_label if booking.seat else None,
                "start_date": booking.start_date,
                "end_date": booking.end_date,
                "total_amount": booking.total_amount,
                "status": booking.status,
                "payment_status": booking.payment_status,
                "created_at": booking.created_at,
            })
        
        cabin_bookings = self.db.query(CabinBooking).filter(CabinBooking.user_id == user_id).all()
        for booking in cabin_bookings:
            combined.append({
                "id": booking.id,
                "booking_type": "cabin",
                "booking_number": booking.booking_number,
                "hall_id": booking.private_hall_id,
                "hall_name": booking.private_hall.name if booking.private_hall else None,
                "unit_label": booking.cabin.cabin_name if booking.cabin else None,
                "start_date": booking.start_date,
                "end_date": booking.end_date,
                "total_amount": booking.total_amount,
                "status": booking.status,
                "payment_status": booking.payment_status,
                "created_at": booking.created_at,
            })
        
        combined.sort(key=lambda item: (item["created_at"] or datetime.min, item["id"]), reverse=True)
        return combined
    
    def health_metrics(self, today: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, int]:
        """Counts that show whether the booking lifecycle is keeping up"""
        now = now or datetime.now()
        today = today or now.date()
        query = self.db.query(Booking)
        return {
            "total_bookings": query.count(),
            "pending_unpaid": query.filter(
                Booking.status == "pending", Booking.payment_status == "unpaid"
            ).count(),
            "expired_but_active": query.filter(
                Booking.status.in_(("confirmed", "active")), Booking.end_date < today
            ).count(),
            "confirmed_future": query.filter(
                Booking.status == "confirmed", Booking.start_date > today
            ).count(),
            "completed_today": query.filter(
                Booking.status == "completed", Booking.end_date == today - timedelta(days=1)
            ).count(),
        }
