from pydantic import BaseModel, validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal

# Study halls
class StudyHallBase(BaseModel):
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    formatted_address: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    daily_price: Decimal = Decimal("0")
    weekly_price: Decimal = Decimal("0")
    monthly_price: Decimal = Decimal("0")
    amenities: Optional[List[str]] = None
    image_url: Optional[str] = None
    qr_booking_enabled: bool = True

class StudyHallCreate(StudyHallBase):
    rows: int
    seats_per_row: int
    custom_row_names: Optional[List[str]] = None
    
    @validator("rows", "seats_per_row")
    def positive_layout(cls, v):
        if v < 1 or v > 100:
            raise ValueError("Layout dimensions must be between 1 and 100")
        return v
    
    @validator("custom_row_names")
    def row_names_match(cls, v, values):
        if v is None:
            return v
        names = [name.strip() for name in v]
        if "rows" in values and len(names) != values["rows"]:
            raise ValueError("Provide one row name per row")
        if any(not name for name in names) or len(set(names)) != len(names):
            raise ValueError("Row names must be unique and non-empty")
        return names

class StudyHallUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    formatted_address: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    daily_price: Optional[Decimal] = None
    weekly_price: Optional[Decimal] = None
    monthly_price: Optional[Decimal] = None
    amenities: Optional[List[str]] = None
    image_url: Optional[str] = None
    qr_booking_enabled: Optional[bool] = None
    rows: Optional[int] = None
    seats_per_row: Optional[int] = None
    custom_row_names: Optional[List[str]] = None

class Seat(BaseModel):
    id: int
    seat_label: str
    row_name: str
    seat_number: int
    is_available: bool
    
    class Config:
        from_attributes = True

class StudyHall(StudyHallBase):
    id: int
    merchant_id: int
    hall_number: Optional[int] = None
    rows: int
    seats_per_row: int
    custom_row_names: Optional[List[str]] = None
    total_seats: int
    status: str
    average_rating: Optional[Decimal] = None
    total_reviews: int = 0
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class StudyHallDetail(StudyHall):
    seats: List[Seat] = []

class StatusUpdate(BaseModel):
    status: str

class SeatUpdate(BaseModel):
    is_available: bool

class SeatCheck(BaseModel):
    seat_id: int
    seat_label: str
    available: bool
    conflicting_bookings: List[str] = []

class DateAvailability(BaseModel):
    date: date
    total_seats: int
    occupied_seats: int
    available_seats: int

class DateAvailabilityRequest(BaseModel):
    dates: List[date]

# Private halls
class PrivateHallCreate(BaseModel):
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    cabin_count: int
    monthly_price: Decimal
    deposit: Decimal = Decimal("0")
    amenities: Optional[List[str]] = None
    
    @validator("cabin_count")
    def cabin_count_range(cls, v):
        if v < 1 or v > 500:
            raise ValueError("Cabin count must be between 1 and 500")
        return v
    
    @validator("monthly_price", "deposit")
    def not_negative(cls, v):
        if v < 0:
            raise ValueError("Amount cannot be negative")
        return v

class PrivateHallUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    monthly_price: Optional[Decimal] = None
    deposit: Optional[Decimal] = None
    amenities: Optional[List[str]] = None
    status: Optional[str] = None

class Cabin(BaseModel):
    id: int
    cabin_number: int
    cabin_name: Optional[str] = None
    monthly_price: Optional[Decimal] = None
    status: str
    
    class Config:
        from_attributes = True

class CabinUpdate(BaseModel):
    cabin_name: Optional[str] = None
    monthly_price: Optional[Decimal] = None
    status: Optional[str] = None

class PrivateHall(BaseModel):
    id: int
    merchant_id: int
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    cabin_count: int
    monthly_price: Decimal
    deposit: Decimal
    amenities: Optional[List[str]] = None
    status: str
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class PrivateHallDetail(PrivateHall):
    cabins: List[Cabin] = []

class CabinAvailability(BaseModel):
    cabin_id: int
    cabin_number: int
    cabin_name: Optional[str] = None
    status: str
    active_bookings: int
    booked_until: Optional[date] = None

class HallCabinStatus(BaseModel):
    private_hall_id: int
    status: str
    booked_until: Optional[date] = None
    days_remaining: int = 0
    occupied_cabins: int = 0
    total_cabins: int = 0
