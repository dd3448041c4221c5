from pydantic import BaseModel, validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

# Seat bookings
class BookingCreate(BaseModel):
    study_hall_id: int
    seat_id: int
    start_date: date
    end_date: date
    coupon_code: Optional[str] = None
    reward_points: int = 0
    
    @validator("reward_points")
    def points_not_negative(cls, v):
        if v < 0:
            raise ValueError("Reward points cannot be negative")
        return v

class PaymentConfirmation(BaseModel):
    payment_method: str = "online"
    payment_id: Optional[str] = None

class BookingCancel(BaseModel):
    reason: Optional[str] = None

class Booking(BaseModel):
    id: int
    booking_number: str
    user_id: int
    study_hall_id: int
    seat_id: int
    start_date: date
    end_date: date
    period_type: Optional[str] = None
    months: Optional[int] = None
    base_amount: Decimal
    coupon_code: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    reward_points_used: int = 0
    rewards_discount: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    total_amount: Decimal
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    expires_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

# Cabin bookings
class CabinBookingCreate(BaseModel):
    private_hall_id: int
    cabin_id: int
    start_date: date
    end_date: Optional[date] = None

class VacateRequest(BaseModel):
    reason: Optional[str] = None

class CabinBooking(BaseModel):
    id: int
    booking_number: str
    user_id: int
    private_hall_id: int
    cabin_id: int
    start_date: date
    end_date: date
    months: int
    monthly_amount: Decimal
    booking_amount: Decimal
    deposit_amount: Decimal = Decimal("0")
    total_amount: Decimal
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    is_vacated: bool = False
    vacated_at: Optional[datetime] = None
    vacated_by: Optional[int] = None
    vacate_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class CombinedBooking(BaseModel):
    id: int
    booking_type: str
    booking_number: str
    hall_id: int
    hall_name: Optional[str] = None
    unit_label: Optional[str] = None
    start_date: date
    end_date: date
    total_amount: Decimal
    status: str
    payment_status: str
    created_at: Optional[datetime] = None

# Lifecycle and health
class LifecycleResult(BaseModel):
    expired: int = 0
    activated: int = 0
    completed: int = 0

class CabinExpiryResult(BaseModel):
    vacated: int = 0

class BookingHealth(BaseModel):
    total_bookings: int
    pending_unpaid: int
    expired_but_active: int
    confirmed_future: int
    completed_today: int

# Tickets
class Ticket(BaseModel):
    booking_id: int
    booking_number: str
    hall_name: str
    seat_label: str
    start_date: date
    end_date: date
    payload: str

class TicketVerifyRequest(BaseModel):
    payload: str
    study_hall_id: int

class TicketVerifyResponse(BaseModel):
    valid: bool
    message: str
    booking_id: Optional[int] = None
    booking_number: Optional[str] = None
    seat_label: Optional[str] = None
    student_name: Optional[str] = None
    checked_in_at: Optional[datetime] = None
