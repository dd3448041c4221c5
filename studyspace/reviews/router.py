from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_roles, require_admin
from studyspace.auth.permissions import STUDENT, MERCHANT, ADMIN
from studyspace.models import User
from studyspace.reviews.schemas import (
    ReviewCreate, ReviewUpdate, MerchantResponse, ReviewStatusUpdate, Review, ReviewableBooking
)
from studyspace.reviews.review_service import ReviewService

router = APIRouter()

require_student = require_roles(STUDENT)

@router.get("/study-halls/{hall_id}/reviews", response_model=List[Review])
def list_hall_reviews(hall_id: int, db: Session = Depends(get_db)):
    """Approved reviews of a study hall"""
    return ReviewService(db).hall_reviews(hall_id)

@router.post("/reviews", response_model=Review, status_code=status.HTTP_201_CREATED)
def create_review(review_data: ReviewCreate, student: User = Depends(require_student), db: Session = Depends(get_db)):
    """Review the study hall of one of your bookings"""
    try:
        return ReviewService(db).create_review(student, review_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/reviews", response_model=List[Review])
def list_reviews(
    review_status: Optional[str] = Query(None, alias="status"),
    study_hall_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Students see their reviews, merchants reviews of their halls, admins all"""
    return ReviewService(db).list_reviews(current_user, review_status, study_hall_id)

@router.get("/reviews/reviewable-bookings", response_model=List[ReviewableBooking])
def list_reviewable_bookings(student: User = Depends(require_student), db: Session = Depends(get_db)):
    return ReviewService(db).reviewable_bookings(student)

@router.put("/reviews/{review_id}", response_model=Review)
def update_review(
    review_id: int,
    review_data: ReviewUpdate,
    student: User = Depends(require_student),
    db: Session = Depends(get_db)
):
    try:
        review = ReviewService(db).update_review(student, review_id, review_data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review

@router.delete("/reviews/{review_id}")
def delete_review(
    review_id: int,
    current_user: User = Depends(require_roles(STUDENT, ADMIN)),
    db: Session = Depends(get_db)
):
    try:
        deleted = ReviewService(db).delete_review(current_user, review_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return {"message": "Review deleted"}

@router.post("/reviews/{review_id}/response", response_model=Review)
def respond_to_review(
    review_id: int,
    reply: MerchantResponse,
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Reply publicly to a review of your study hall"""
    try:
        review = ReviewService(db).respond(current_user, review_id, reply.response)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review

@router.patch("/reviews/{review_id}/status", response_model=Review)
def moderate_review(
    review_id: int,
    update: ReviewStatusUpdate,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Approve, hold or hide a review"""
    review = ReviewService(db).set_status(admin_user, review_id, update.status)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review
