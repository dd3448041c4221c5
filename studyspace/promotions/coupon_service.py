import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import Coupon, CouponUsage, Booking, CabinBooking, StudyHall, PrivateHall, User
from studyspace.auth.permissions import ADMIN, MERCHANT
from studyspace.pricing.calculations import round_money, to_decimal

logger = logging.getLogger(__name__)

def calculate_discount(coupon_type: str, value, amount, max_discount=None) -> Decimal:
    """Discount a coupon gives on an amount"""
    amount = to_decimal(amount)
    value = to_decimal(value)
    if coupon_type == "flat":
        return round_money(min(value, amount))
    cap = to_decimal(max_discount) if max_discount else amount
    return round_money(min(amount * value / Decimal("100"), cap))

class CouponService:
    
    def __init__(self, db: Session):
        self.db = db
    
    def create_coupon(self, actor: User, coupon_data) -> Coupon:
        """Create a coupon; merchants can only create coupons for their own halls"""
        data = coupon_data.dict()
        data["code"] = data["code"].strip().upper()
        if actor.role == MERCHANT:
            data["merchant_id"] = actor.id
        elif actor.role != ADMIN:
            raise PermissionError("Only admins and merchants can create coupons")
        
        if self.db.query(Coupon).filter(Coupon.code == data["code"]).first():
            raise ValueError("Coupon code already exists")
        
        coupon = Coupon(created_by=actor.id, used_count=0, **data)
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        logger.info(f"Coupon {coupon.code} created by user {actor.id}")
        return coupon
    
    def get_coupon(self, coupon_id: int) -> Optional[Coupon]:
        return self.db.query(Coupon).filter(Coupon.id == coupon_id).first()
    
    def list_coupons(self, user: User, now: Optional[datetime] = None) -> List[Coupon]:
        """Admins see all coupons, merchants their own, students the usable ones"""
        query = self.db.query(Coupon)
        if user.role == MERCHANT:
            query = query.filter(Coupon.merchant_id == user.id)
        elif user.role != ADMIN:
            now = now or datetime.now()
            query = query.filter(
                Coupon.status == "active",
                (Coupon.end_date == None) | (Coupon.end_date >= now)  # noqa: E711
            )
        return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
    
    def _editable(self, actor: User, coupon_id: int) -> Optional[Coupon]:
        coupon = self.get_coupon(coupon_id)
        if not coupon:
            return None
        if actor.role != ADMIN and coupon.merchant_id != actor.id:
            raise PermissionError("You can only manage your own coupons")
        return coupon
    
    def update_coupon(self, actor: User, coupon_id: int, coupon_update) -> Optional[Coupon]:
        coupon = self._editable(actor, coupon_id)
        if not coupon:
            return None
        for field, value in coupon_update.dict(exclude_unset=True).items():
            setattr(coupon, field, value)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon
    
    def set_status(self, actor: User, coupon_id: int, status: str) -> Optional[Coupon]:
        if status not in ("active", "inactive"):
            raise ValueError("Status must be active or inactive")
        coupon = self._editable(actor, coupon_id)
        if not coupon:
            return None
        coupon.status = status
        self.db.commit()
        self.db.refresh(coupon)
        return coupon
    
    def usage_history(self, actor: User, coupon_id: int) -> Optional[List[CouponUsage]]:
        coupon = self._editable(actor, coupon_id)
        if not coupon:
            return None
        return self.db.query(CouponUsage).filter(
            CouponUsage.coupon_id == coupon_id
        ).order_by(CouponUsage.used_at.desc(), CouponUsage.id.desc()).all()
    
    def _hall_merchant(self, study_hall_id: Optional[int], private_hall_id: Optional[int]) -> Optional[int]:
        if study_hall_id:
            hall = self.db.query(StudyHall).filter(StudyHall.id == study_hall_id).first()
            return hall.merchant_id if hall else None
        if private_hall_id:
            hall = self.db.query(PrivateHall).filter(PrivateHall.id == private_hall_id).first()
            return hall.merchant_id if hall else None
        return None
    
    def _has_paid_booking(self, user_id: int) -> bool:
        paid_seat = self.db.query(Booking.id).filter(
            Booking.user_id == user_id, Booking.payment_status == "paid"
        ).first()
        if paid_seat:
            return True
        return self.db.query(CabinBooking.id).filter(
            CabinBooking.user_id == user_id, CabinBooking.payment_status == "paid"
        ).first() is not None
    
    def validate_coupon(
        self,
        user_id: int,
        code: str,
        booking_amount,
        study_hall_id: Optional[int] = None,
        private_hall_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Check a coupon for a booking and compute its discount.
        
        Returns a dict with ``valid`` and either ``discount_amount`` or ``error``.
        """
        now = now or datetime.now()
        amount = to_decimal(booking_amount)
        
        def invalid(message: str) -> Dict[str, Any]:
            return {"valid": False, "error": message, "discount_amount": Decimal("0"), "coupon_id": None, "code": code}
        
        coupon = self.db.query(Coupon).filter(
            Coupon.code == (code or "").strip().upper(),
            Coupon.status == "active"
        ).first()
        if not coupon:
            return invalid("Invalid or expired coupon code")
        
        if coupon.start_date and coupon.start_date > now:
            return invalid("Coupon has expired")
        if coupon.end_date and coupon.end_date < now:
            return invalid("Coupon has expired")
        
        if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
            return invalid("Coupon usage limit reached")
        
        user_usage = self.db.query(CouponUsage).filter(
            CouponUsage.coupon_id == coupon.id,
            CouponUsage.user_id == user_id
        ).count()
        if user_usage >= (coupon.user_usage_limit or 1):
            return invalid("You have already used this coupon")
        
        if coupon.min_booking_amount and amount < to_decimal(coupon.min_booking_amount):
            return invalid(f"Minimum booking amount is ₹{coupon.min_booking_amount}")
        
        if coupon.merchant_id:
            hall_merchant = self._hall_merchant(study_hall_id, private_hall_id)
            if hall_merchant != coupon.merchant_id:
                return invalid("This coupon is not valid for this study hall")
        
        if coupon.target_audience == "new_users" and self._has_paid_booking(user_id):
            return invalid("This coupon is only for new users")
        if coupon.target_audience == "returning_users" and not self._has_paid_booking(user_id):
            return invalid("This coupon is only for returning users")
        
        discount = calculate_discount(coupon.type, coupon.value, amount, coupon.max_discount)
        return {
            "valid": True,
            "error": None,
            "coupon_id": coupon.id,
            "code": coupon.code,
            "coupon_type": coupon.type,
            "discount_amount": discount,
            "final_amount": amount - discount,
        }
    
    def record_usage(self, coupon_id: int, user_id: int, booking_id: Optional[int], discount_amount) -> CouponUsage:
        """Count a coupon use against its limits (caller commits)"""
        coupon = self.get_coupon(coupon_id)
        usage = CouponUsage(
            coupon_id=coupon_id,
            user_id=user_id,
            booking_id=booking_id,
            discount_amount=discount_amount
        )
        self.db.add(usage)
        coupon.used_count = (coupon.used_count or 0) + 1
        return usage
