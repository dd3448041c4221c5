import logging
from datetime import date
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import PrivateHall, Cabin, CabinBooking, User
from studyspace.auth.permissions import ADMIN
from studyspace.halls.schemas import PrivateHallCreate, PrivateHallUpdate, CabinUpdate
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

CABIN_STATUSES = ("available", "maintenance")

def blocking_cabin_bookings(db: Session, today: Optional[date] = None):
    """Query of paid, unvacated cabin bookings that have not ended"""
    today = today or date.today()
    return db.query(CabinBooking).filter(
        CabinBooking.payment_status == "paid",
        CabinBooking.is_vacated == False,  # noqa: E712
        CabinBooking.end_date >= today
    )

class PrivateHallService:
    """Private halls and their lockable cabins"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def check_owner(self, actor: User, private_hall: PrivateHall):
        if actor.role != ADMIN and private_hall.merchant_id != actor.id:
            raise PermissionError("You can only manage your own private halls")
    
    def create_private_hall(self, merchant: User, hall_data: PrivateHallCreate) -> PrivateHall:
        """Create a private hall with cabins numbered from 1"""
        private_hall = PrivateHall(merchant_id=merchant.id, status="active", **hall_data.dict())
        private_hall.cabins = [
            Cabin(cabin_number=number, cabin_name=f"Cabin {number}", status="available")
            for number in range(1, hall_data.cabin_count + 1)
        ]
        self.db.add(private_hall)
        self.db.commit()
        self.db.refresh(private_hall)
        
        change_feed.publish_many([f"merchant:{merchant.id}", "staff"], "created", "private_hall", private_hall.id)
        logger.info(f"Private hall {private_hall.id} created with {private_hall.cabin_count} cabins by merchant {merchant.id}")
        return private_hall
    
    def get_private_hall(self, private_hall_id: int) -> Optional[PrivateHall]:
        return self.db.query(PrivateHall).filter(PrivateHall.id == private_hall_id).first()
    
    def get_cabin(self, cabin_id: int) -> Optional[Cabin]:
        return self.db.query(Cabin).filter(Cabin.id == cabin_id).first()
    
    def list_private_halls(
        self,
        merchant_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[PrivateHall]:
        query = self.db.query(PrivateHall)
        if merchant_id:
            query = query.filter(PrivateHall.merchant_id == merchant_id)
        if status:
            query = query.filter(PrivateHall.status == status)
        return query.order_by(PrivateHall.created_at.desc(), PrivateHall.id.desc()).offset(offset).limit(limit).all()
    
    def update_private_hall(self, actor: User, private_hall_id: int, hall_update: PrivateHallUpdate) -> Optional[PrivateHall]:
        private_hall = self.get_private_hall(private_hall_id)
        if not private_hall:
            return None
        self.check_owner(actor, private_hall)
        
        update_data = hall_update.dict(exclude_unset=True)
        if update_data.get("status") not in (None, "active", "inactive"):
            raise ValueError("Status must be active or inactive")
        for field in ("monthly_price", "deposit"):
            if update_data.get(field) is not None and update_data[field] < 0:
                raise ValueError("Amount cannot be negative")
        
        for field, value in update_data.items():
            setattr(private_hall, field, value)
        self.db.commit()
        self.db.refresh(private_hall)
        change_feed.publish(f"merchant:{private_hall.merchant_id}", "updated", "private_hall", private_hall.id)
        return private_hall
    
    def update_cabin(self, actor: User, cabin_id: int, cabin_update: CabinUpdate) -> Optional[Cabin]:
        """Rename a cabin, set its own monthly price or change its status"""
        cabin = self.get_cabin(cabin_id)
        if not cabin:
            return None
        self.check_owner(actor, cabin.private_hall)
        
        update_data = cabin_update.dict(exclude_unset=True)
        if "status" in update_data and update_data["status"] not in CABIN_STATUSES:
            raise ValueError("Cabin status must be available or maintenance")
        if update_data.get("monthly_price") is not None and update_data["monthly_price"] <= 0:
            raise ValueError("Cabin price must be greater than zero")
        
        for field, value in update_data.items():
            setattr(cabin, field, value)
        self.db.commit()
        self.db.refresh(cabin)
        change_feed.publish(
            f"merchant:{cabin.private_hall.merchant_id}", "updated", "cabin", cabin.id, {"status": cabin.status}
        )
        return cabin
    
    def set_cabin_status(self, actor: User, cabin_id: int, status: str) -> Optional[Cabin]:
        return self.update_cabin(actor, cabin_id, CabinUpdate(status=status))
    
    # Availability
    def cabin_availability(self, private_hall_id: int, today: Optional[date] = None) -> Optional[List[Dict[str, Any]]]:
        """Status of every cabin: maintenance, occupied or available"""
        private_hall = self.get_private_hall(private_hall_id)
        if not private_hall:
            return None
        
        blocking = blocking_cabin_bookings(self.db, today).filter(
            CabinBooking.private_hall_id == private_hall_id
        ).all()
        by_cabin: Dict[int, List[CabinBooking]] = {}
        for booking in blocking:
            by_cabin.setdefault(booking.cabin_id, []).append(booking)
        
        results = []
        for cabin in private_hall.cabins:
            bookings = by_cabin.get(cabin.id, [])
            if cabin.status == "maintenance":
                status = "maintenance"
            elif bookings:
                status = "occupied"
            else:
                status = "available"
            results.append({
                "cabin_id": cabin.id,
                "cabin_number": cabin.cabin_number,
                "cabin_name": cabin.cabin_name,
                "status": status,
                "active_bookings": len(bookings),
                "booked_until": max((b.end_date for b in bookings), default=None),
            })
        return results
    
    def hall_cabin_status(self, private_hall_id: int, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
        """Whether a private hall has any cabin booked, and until when"""
        today = today or date.today()
        private_hall = self.get_private_hall(private_hall_id)
        if not private_hall:
            return None
        
        blocking = blocking_cabin_bookings(self.db, today).filter(
            CabinBooking.private_hall_id == private_hall_id
        ).all()
        status = {
            "private_hall_id": private_hall.id,
            "status": "available",
            "booked_until": None,
            "days_remaining": 0,
            "occupied_cabins": len({b.cabin_id for b in blocking}),
            "total_cabins": len(private_hall.cabins),
        }
        if blocking:
            booked_until = max(b.end_date for b in blocking)
            status.update({
                "status": "booked",
                "booked_until": booked_until,
                "days_remaining": max(0, (booked_until - today).days),
            })
        return status
