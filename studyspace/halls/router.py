from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Dict, Optional
from datetime import date

from studyspace.database import get_db
from studyspace.auth.dependencies import require_roles
from studyspace.auth.permissions import MERCHANT, ADMIN
from studyspace.merchants.dependencies import require_verified_merchant
from studyspace.models import User
from studyspace.halls.schemas import (
    StudyHallCreate, StudyHallUpdate, StudyHall, StudyHallDetail, StatusUpdate, Seat, SeatUpdate,
    SeatCheck, DateAvailability, DateAvailabilityRequest,
    PrivateHallCreate, PrivateHallUpdate, PrivateHall, PrivateHallDetail, Cabin, CabinUpdate,
    CabinAvailability, HallCabinStatus
)
from studyspace.halls.service import StudyHallService
from studyspace.halls.cabin_service import PrivateHallService

router = APIRouter()

require_hall_manager = require_roles(MERCHANT, ADMIN)

def _not_found(detail: str):
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

# Study halls
@router.post("/study-halls", response_model=StudyHallDetail, status_code=status.HTTP_201_CREATED)
def create_study_hall(
    hall_data: StudyHallCreate,
    merchant: User = Depends(require_verified_merchant),
    db: Session = Depends(get_db)
):
    """Create a study hall with its seat grid"""
    try:
        return StudyHallService(db).create_study_hall(merchant, hall_data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/study-halls", response_model=List[StudyHall])
def list_study_halls(
    merchant_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query("active", alias="status"),
    search: Optional[str] = Query(None, description="Search by name or location"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Browse study halls"""
    return StudyHallService(db).list_study_halls(merchant_id, status_filter, search, limit, offset)

@router.get("/study-halls/mine", response_model=List[StudyHall])
def list_my_study_halls(merchant: User = Depends(require_roles(MERCHANT)), db: Session = Depends(get_db)):
    """Study halls owned by the current merchant"""
    return StudyHallService(db).list_study_halls(merchant_id=merchant.id)

@router.get("/study-halls/{hall_id}", response_model=StudyHallDetail)
def get_study_hall(hall_id: int, db: Session = Depends(get_db)):
    """Get a study hall with its seats"""
    hall = StudyHallService(db).get_study_hall(hall_id)
    if not hall:
        raise _not_found("Study hall not found")
    return hall

@router.put("/study-halls/{hall_id}", response_model=StudyHallDetail)
def update_study_hall(
    hall_id: int,
    hall_update: StudyHallUpdate,
    current_user: User = Depends(require_hall_manager),
    db: Session = Depends(get_db)
):
    """Update a study hall"""
    try:
        hall = StudyHallService(db).update_study_hall(current_user, hall_id, hall_update)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not hall:
        raise _not_found("Study hall not found")
    return hall

@router.patch("/study-halls/{hall_id}/status", response_model=StudyHall)
def set_study_hall_status(
    hall_id: int,
    status_update: StatusUpdate,
    current_user: User = Depends(require_hall_manager),
    db: Session = Depends(get_db)
):
    """Activate or deactivate a study hall"""
    try:
        hall = StudyHallService(db).set_status(current_user, hall_id, status_update.status)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not hall:
        raise _not_found("Study hall not found")
    return hall

@router.patch("/seats/{seat_id}", response_model=Seat)
def update_seat(
    seat_id: int,
    seat_update: SeatUpdate,
    current_user: User = Depends(require_hall_manager),
    db: Session = Depends(get_db)
):
    """Take a seat out of service or restore it"""
    try:
        seat = StudyHallService(db).set_seat_available(current_user, seat_id, seat_update.is_available)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not seat:
        raise _not_found("Seat not found")
    return seat

@router.get("/study-halls/{hall_id}/availability", response_model=Dict[str, bool])
def get_seat_availability(
    hall_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """Seat label to availability for a date range"""
    try:
        availability = StudyHallService(db).seat_availability(hall_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if availability is None:
        raise _not_found("Study hall not found")
    return availability

@router.get("/seats/{seat_id}/check", response_model=SeatCheck)
def check_seat(
    seat_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    """Check whether one seat is free"""
    result = StudyHallService(db).check_seat(seat_id, start_date, end_date)
    if not result:
        raise _not_found("Seat not found")
    return result

@router.post("/study-halls/{hall_id}/date-availability", response_model=List[DateAvailability])
def get_date_availability(hall_id: int, request: DateAvailabilityRequest, db: Session = Depends(get_db)):
    """Free and occupied seat counts per date"""
    results = StudyHallService(db).date_availability(hall_id, request.dates)
    if results is None:
        raise _not_found("Study hall not found")
    return results

@router.get("/study-halls/{hall_id}/qr")
def get_booking_qr(hall_id: int, size: int = Query(300, ge=100, le=1000), db: Session = Depends(get_db)):
    """QR code linking to the hall's booking page"""
    try:
        png = StudyHallService(db).booking_qr(hall_id, size)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if png is None:
        raise _not_found("Study hall not found")
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=studyhall_{hall_id}_qr.png"}
    )

# Private halls
@router.post("/private-halls", response_model=PrivateHallDetail, status_code=status.HTTP_201_CREATED)
def create_private_hall(
    hall_data: PrivateHallCreate,
    merchant: User = Depends(require_verified_merchant),
    db: Session = Depends(get_db)
):
    """Create a private hall with its cabins"""
    return PrivateHallService(db).create_private_hall(merchant, hall_data)

@router.get("/private-halls", response_model=List[PrivateHall])
def list_private_halls(
    merchant_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query("active", alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Browse private halls"""
    return PrivateHallService(db).list_private_halls(merchant_id, status_filter, limit, offset)

@router.get("/private-halls/{private_hall_id}", response_model=PrivateHallDetail)
def get_private_hall(private_hall_id: int, db: Session = Depends(get_db)):
    """Get a private hall with its cabins"""
    private_hall = PrivateHallService(db).get_private_hall(private_hall_id)
    if not private_hall:
        raise _not_found("Private hall not found")
    return private_hall

@router.put("/private-halls/{private_hall_id}", response_model=PrivateHall)
def update_private_hall(
    private_hall_id: int,
    hall_update: PrivateHallUpdate,
    current_user: User = Depends(require_hall_manager),
    db: Session = Depends(get_db)
):
    """Update a private hall"""
    try:
        private_hall = PrivateHallService(db).update_private_hall(current_user, private_hall_id, hall_update)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not private_hall:
        raise _not_found("Private hall not found")
    return private_hall

@router.patch("/cabins/{cabin_id}", response_model=Cabin)
def update_cabin(
    cabin_id: int,
    cabin_update: CabinUpdate,
    current_user: User = Depends(require_hall_manager),
    db: Session = Depends(get_db)
):
    """Rename, reprice or change the status of a cabin"""
    try:
        cabin = PrivateHallService(db).update_cabin(current_user, cabin_id, cabin_update)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not cabin:
        raise _not_found("Cabin not found")
    return cabin

@router.get("/private-halls/{private_hall_id}/cabins/availability", response_model=List[CabinAvailability])
def get_cabin_availability(private_hall_id: int, db: Session = Depends(get_db)):
    """Status of every cabin in a private hall"""
    results = PrivateHallService(db).cabin_availability(private_hall_id)
    if results is None:
        raise _not_found("Private hall not found")
    return results

@router.get("/private-halls/{private_hall_id}/booking-status", response_model=HallCabinStatus)
def get_hall_cabin_status(private_hall_id: int, db: Session = Depends(get_db)):
    """Whether a private hall is booked and until when"""
    result = PrivateHallService(db).hall_cabin_status(private_hall_id)
    if result is None:
        raise _not_found("Private hall not found")
    return result
