from pydantic import BaseModel, validator
from typing import Optional
from datetime import date, datetime

REVIEW_STATUSES = ("approved", "pending", "hidden")

def rating_range(v):
    if v is not None and not 1 <= v <= 5:
        raise ValueError("Rating must be between 1 and 5")
    return v

class ReviewCreate(BaseModel):
    booking_id: int
    rating: int
    review_text: Optional[str] = None
    
    @validator("rating")
    def rating_in_range(cls, v):
        return rating_range(v)

class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    review_text: Optional[str] = None
    
    @validator("rating")
    def rating_in_range(cls, v):
        return rating_range(v)

class MerchantResponse(BaseModel):
    response: str
    
    @validator("response")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Response cannot be empty")
        return v.strip()

class ReviewStatusUpdate(BaseModel):
    status: str
    
    @validator("status")
    def known_status(cls, v):
        if v not in REVIEW_STATUSES:
            raise ValueError("Status must be approved, pending or hidden")
        return v

class Review(BaseModel):
    id: int
    user_id: int
    merchant_id: int
    study_hall_id: int
    booking_id: int
    rating: int
    review_text: Optional[str] = None
    status: str
    merchant_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class ReviewableBooking(BaseModel):
    booking_id: int
    booking_number: Optional[str] = None
    study_hall_id: int
    study_hall_name: str
    start_date: date
    end_date: date
