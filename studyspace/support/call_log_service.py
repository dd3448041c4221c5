import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyspace.models import CallLog, Booking, CabinBooking, User
from studyspace.auth.permissions import ADMIN, MERCHANT
from studyspace.support.schemas import CallLogCreate, CallLogUpdate

logger = logging.getLogger(__name__)

class CallLogService:
    """Calls made by telemarketing executives and pending-payment callers"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def create_call_log(self, caller: User, data: CallLogCreate) -> CallLog:
        contact = self.db.query(User).filter(User.id == data.contact_id).first()
        if not contact:
            raise ValueError("Contact not found")
        if data.contact_type == "merchant" and contact.role != MERCHANT:
            raise ValueError("Contact is not a merchant")
        if data.booking_id:
            booking = self.db.query(Booking).filter(Booking.id == data.booking_id).first()
            if not booking or booking.user_id != contact.id:
                raise ValueError("Booking not found for this contact")
        
        call_log = CallLog(caller_id=caller.id, **data.dict())
        self.db.add(call_log)
        self.db.commit()
        self.db.refresh(call_log)
        logger.info(f"User {caller.id} logged a {data.call_purpose} call to user {contact.id}: {data.call_status}")
        return call_log
    
    def _visible(self, actor: User, call_log: Optional[CallLog]) -> Optional[CallLog]:
        if call_log and actor.role != ADMIN and call_log.caller_id != actor.id:
            raise PermissionError("You can only access your own call logs")
        return call_log
    
    def get_call_log(self, actor: User, call_log_id: int) -> Optional[CallLog]:
        return self._visible(actor, self.db.query(CallLog).filter(CallLog.id == call_log_id).first())
    
    def list_call_logs(
        self,
        actor: User,
        contact_id: Optional[int] = None,
        call_purpose: Optional[str] = None,
        limit: int = 100
    ) -> List[CallLog]:
        """Callers see their own calls, admins see every call"""
        query = self.db.query(CallLog)
        if actor.role != ADMIN:
            query = query.filter(CallLog.caller_id == actor.id)
        if contact_id:
            query = query.filter(CallLog.contact_id == contact_id)
        if call_purpose:
            query = query.filter(CallLog.call_purpose == call_purpose)
        return query.order_by(CallLog.created_at.desc(), CallLog.id.desc()).limit(limit).all()
    
    def update_call_log(self, actor: User, call_log_id: int, data: CallLogUpdate) -> Optional[CallLog]:
        call_log = self.get_call_log(actor, call_log_id)
        if not call_log:
            return None
        for field, value in data.dict(exclude_unset=True).items():
            setattr(call_log, field, value)
        self.db.commit()
        self.db.refresh(call_log)
        return call_log
    
    def follow_ups(self, actor: User, on_date: Optional[date] = None) -> List[CallLog]:
        """Calls with a follow-up due on or before the given day"""
        on_date = on_date or date.today()
        query = self.db.query(CallLog).filter(
            CallLog.follow_up_date.isnot(None),
            CallLog.follow_up_date <= on_date
        )
        if actor.role != ADMIN:
            query = query.filter(CallLog.caller_id == actor.id)
        return query.order_by(CallLog.follow_up_date, CallLog.id).all()
    
    def pending_payments(self) -> List[Dict[str, Any]]:
        """Unpaid pending seat and cabin bookings with the student's contact details, oldest first"""
        last_calls = dict(
            self.db.query(CallLog.contact_id, func.max(CallLog.created_at)).filter(
                CallLog.call_purpose == "payment_follow_up"
            ).group_by(CallLog.contact_id).all()
        )
        
        def entry(booking_type, booking, unit_label, expires_at):
            return {
                "booking_type": booking_type,
                "booking_id": booking.id,
                "booking_number": booking.booking_number,
                "user_id": booking.user_id,
                "full_name": booking.user.full_name,
                "phone": booking.user.phone,
                "email": booking.user.email,
                "unit_label": unit_label,
                "total_amount": booking.total_amount,
                "expires_at": expires_at,
                "created_at": booking.created_at,
                "last_called_at": last_calls.get(booking.user_id),
            }
        
        queue = []
        seats = self.db.query(Booking).filter(Booking.status == "pending", Booking.payment_status == "unpaid")
        for booking in seats:
            label = booking.seat.seat_label if booking.seat else ""
            queue.append(entry("study_hall", booking, label, booking.expires_at))
        cabins = self.db.query(CabinBooking).filter(
            CabinBooking.status == "pending", CabinBooking.payment_status == "unpaid"
        )
        for booking in cabins:
            label = booking.cabin.cabin_name if booking.cabin else ""
            queue.append(entry("cabin", booking, label, None))
        
        queue.sort(key=lambda item: (item["created_at"] or datetime.min, item["booking_id"]))
        return queue
