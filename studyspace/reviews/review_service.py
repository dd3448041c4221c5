import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from studyspace.models import StudyHallReview, Booking, StudyHall, User
from studyspace.auth.permissions import ADMIN, MERCHANT
from studyspace.admin.audit_service import AuditService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.change_feed import change_feed
from studyspace.pricing.calculations import round_money
from studyspace.reviews.schemas import ReviewCreate, ReviewUpdate

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = ("confirmed", "active", "completed")

class ReviewService:
    """Student reviews of study halls and the ratings derived from them"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def refresh_rating(self, study_hall_id: int) -> StudyHall:
        """Recompute a hall's average rating from its approved reviews"""
        hall = self.db.query(StudyHall).filter(StudyHall.id == study_hall_id).first()
        average, count = self.db.query(
            func.avg(StudyHallReview.rating), func.count(StudyHallReview.id)
        ).filter(
            StudyHallReview.study_hall_id == study_hall_id,
            StudyHallReview.status == "approved"
        ).one()
        hall.total_reviews = count
        hall.average_rating = round_money(Decimal(str(average))) if count else None
        return hall
    
    def _reviewable(self, booking: Booking, today: date) -> bool:
        return (
            booking.status in REVIEWABLE_STATUSES
            and booking.payment_status == "paid"
            and booking.start_date <= today
        )
    
    def create_review(self, student: User, data: ReviewCreate, today: Optional[date] = None) -> StudyHallReview:
        """Review a hall once per paid booking that has started"""
        today = today or date.today()
        booking = self.db.query(Booking).filter(Booking.id == data.booking_id).first()
        if not booking or booking.user_id != student.id:
            raise ValueError("Booking not found")
        if not self._reviewable(booking, today):
            raise ValueError("Only paid bookings that have started can be reviewed")
        if self.db.query(StudyHallReview.id).filter(StudyHallReview.booking_id == booking.id).first():
            raise ValueError("You have already reviewed this booking")
        
        hall = booking.study_hall
        review = StudyHallReview(
            user_id=student.id,
            merchant_id=hall.merchant_id,
            study_hall_id=hall.id,
            booking_id=booking.id,
            rating=data.rating,
            review_text=data.review_text,
            status="approved"
        )
        self.db.add(review)
        self.db.flush()
        self.refresh_rating(hall.id)
        NotificationService(self.db).notify(
            hall.merchant_id, "New review",
            f"{student.full_name} rated {hall.name} {data.rating}/5", commit=False
        )
        self.db.commit()
        self.db.refresh(review)
        
        change_feed.publish(f"merchant:{hall.merchant_id}", "created", "review", review.id, {"rating": review.rating})
        logger.info(f"User {student.id} reviewed study hall {hall.id} ({data.rating}/5)")
        return review
    
    def reviewable_bookings(self, student: User, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Bookings the student can still review"""
        today = today or date.today()
        reviewed = select(StudyHallReview.booking_id).where(StudyHallReview.user_id == student.id)
        bookings = self.db.query(Booking).filter(
            Booking.user_id == student.id,
            Booking.status.in_(REVIEWABLE_STATUSES),
            Booking.payment_status == "paid",
            Booking.start_date <= today,
            Booking.id.notin_(reviewed)
        ).order_by(Booking.start_date.desc(), Booking.id.desc()).all()
        return [
            {
                "booking_id": b.id,
                "booking_number": b.booking_number,
                "study_hall_id": b.study_hall_id,
                "study_hall_name": b.study_hall.name,
                "start_date": b.start_date,
                "end_date": b.end_date,
            }
            for b in bookings
        ]
    
    def hall_reviews(self, study_hall_id: int) -> List[StudyHallReview]:
        """Public reviews of a hall"""
        return self.db.query(StudyHallReview).filter(
            StudyHallReview.study_hall_id == study_hall_id,
            StudyHallReview.status == "approved"
        ).order_by(StudyHallReview.created_at.desc(), StudyHallReview.id.desc()).all()
    
    def list_reviews(
        self,
        actor: User,
        status: Optional[str] = None,
        study_hall_id: Optional[int] = None
    ) -> List[StudyHallReview]:
        query = self.db.query(StudyHallReview)
        if actor.role == MERCHANT:
            query = query.filter(StudyHallReview.merchant_id == actor.id)
        elif actor.role != ADMIN:
            query = query.filter(StudyHallReview.user_id == actor.id)
        if status:
            query = query.filter(StudyHallReview.status == status)
        if study_hall_id:
            query = query.filter(StudyHallReview.study_hall_id == study_hall_id)
        return query.order_by(StudyHallReview.created_at.desc(), StudyHallReview.id.desc()).all()
    
    def get_review(self, review_id: int) -> Optional[StudyHallReview]:
        return self.db.query(StudyHallReview).filter(StudyHallReview.id == review_id).first()
    
    def update_review(self, student: User, review_id: int, data: ReviewUpdate) -> Optional[StudyHallReview]:
        review = self.get_review(review_id)
        if not review:
            return None
        if review.user_id != student.id:
            raise PermissionError("You can only edit your own reviews")
        for field, value in data.dict(exclude_unset=True).items():
            if value is not None:
                setattr(review, field, value)
        self.db.flush()
        self.refresh_rating(review.study_hall_id)
        self.db.commit()
        self.db.refresh(review)
        return review
    
    def delete_review(self, actor: User, review_id: int) -> bool:
        review = self.get_review(review_id)
        if not review:
            return False
        if actor.role != ADMIN and review.user_id != actor.id:
            raise PermissionError("You can only delete your own reviews")
        study_hall_id = review.study_hall_id
        self.db.delete(review)
        self.db.flush()
        self.refresh_rating(study_hall_id)
        if actor.role == ADMIN:
            AuditService.log(self.db, actor.id, "review_deleted", "review", review_id, commit=False)
        self.db.commit()
        return True
    
    def respond(self, actor: User, review_id: int, response: str) -> Optional[StudyHallReview]:
        """Merchant's public reply to a review of their hall"""
        review = self.get_review(review_id)
        if not review:
            return None
        if actor.role != ADMIN and review.merchant_id != actor.id:
            raise PermissionError("You can only respond to reviews of your own study halls")
        review.merchant_response = response
        review.responded_at = datetime.now()
        NotificationService(self.db).notify(
            review.user_id, "The study hall replied to your review", response, commit=False
        )
        self.db.commit()
        self.db.refresh(review)
        return review
    
    def set_status(self, admin: User, review_id: int, status: str) -> Optional[StudyHallReview]:
        """Moderate a review; only approved reviews count towards the rating"""
        review = self.get_review(review_id)
        if not review:
            return None
        review.status = status
        self.db.flush()
        self.refresh_rating(review.study_hall_id)
        AuditService.log(self.db, admin.id, "review_moderated", "review", review.id, {"status": status}, commit=False)
        self.db.commit()
        self.db.refresh(review)
        return review
