from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_roles, require_admin, require_operational_staff
from studyspace.auth.permissions import STUDENT, MERCHANT, ADMIN, INCHARGE
from studyspace.models import User
from studyspace.bookings.schemas import (
    BookingCreate, Booking, PaymentConfirmation, BookingCancel, CombinedBooking, LifecycleResult,
    BookingHealth, Ticket, TicketVerifyRequest, TicketVerifyResponse,
    CabinBookingCreate, CabinBooking, VacateRequest, CabinExpiryResult
)
from studyspace.bookings.booking_service import BookingService, can_view_booking
from studyspace.bookings.cabin_booking_service import CabinBookingService
from studyspace.bookings.ticket_service import TicketService

router = APIRouter()

require_student = require_roles(STUDENT)
require_merchant = require_roles(MERCHANT)

def _booking_not_found():
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

def _viewable_booking(db: Session, booking_id: int, current_user: User):
    booking = BookingService(db).get_booking(booking_id)
    if not booking:
        raise _booking_not_found()
    if not can_view_booking(current_user, booking):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    return booking

# Seat bookings
@router.post("/bookings", response_model=Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_data: BookingCreate,
    student: User = Depends(require_student),
    db: Session = Depends(get_db)
):
    """Book a seat; the booking stays pending until paid"""
    try:
        booking = BookingService(db).create_booking(student, booking_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Study hall not found")
    return booking

@router.get("/bookings/me", response_model=List[Booking])
def list_my_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Current user's seat bookings"""
    return BookingService(db).list_user_bookings(current_user.id, status_filter)

@router.get("/bookings/combined", response_model=List[CombinedBooking])
def list_combined_bookings(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user's seat and cabin bookings together"""
    return BookingService(db).combined_bookings(current_user.id)

@router.get("/bookings/merchant", response_model=List[Booking])
def list_merchant_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
    study_hall_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    merchant: User = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Bookings on the current merchant's study halls"""
    return BookingService(db).list_merchant_bookings(
        merchant.id, status_filter, payment_status, study_hall_id, date_from, date_to, limit, offset
    )

@router.get("/bookings/all", response_model=List[Booking])
def list_all_bookings(
    merchant_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
    study_hall_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    staff: User = Depends(require_operational_staff),
    db: Session = Depends(get_db)
):
    """All bookings, for operational staff"""
    return BookingService(db).list_merchant_bookings(
        merchant_id, status_filter, payment_status, study_hall_id, date_from, date_to, limit, offset
    )

@router.post("/bookings/lifecycle/run", response_model=LifecycleResult)
def run_booking_lifecycle(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Expire unpaid bookings and advance confirmed ones"""
    return BookingService(db).progress_booking_statuses()

@router.get("/bookings/health", response_model=BookingHealth)
def get_booking_health(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Booking lifecycle health counts"""
    return BookingService(db).health_metrics()

@router.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get a booking"""
    return _viewable_booking(db, booking_id, current_user)

@router.post("/bookings/{booking_id}/confirm-payment", response_model=Booking)
def confirm_booking_payment(
    booking_id: int,
    payment: PaymentConfirmation,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Confirm a booking after successful payment"""
    try:
        booking = BookingService(db).confirm_payment(
            current_user, booking_id, payment.payment_method, payment.payment_id
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise _booking_not_found()
    return booking

@router.post("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(
    booking_id: int,
    cancel_data: BookingCancel,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel a booking"""
    try:
        booking = BookingService(db).cancel_booking(current_user, booking_id, cancel_data.reason)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise _booking_not_found()
    return booking

# Tickets
@router.get("/bookings/{booking_id}/ticket", response_model=Ticket)
def get_ticket(booking_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Ticket details with the signed QR payload"""
    booking = _viewable_booking(db, booking_id, current_user)
    try:
        return TicketService(db).ticket_for(booking)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/bookings/{booking_id}/ticket/qr")
def get_ticket_qr(
    booking_id: int,
    size: int = Query(300, ge=100, le=1000),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Ticket QR code image"""
    booking = _viewable_booking(db, booking_id, current_user)
    try:
        png = TicketService(db).qr_png(booking, size)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return Response(content=png, media_type="image/png")

@router.get("/bookings/{booking_id}/ticket/pdf")
def download_ticket_pdf(booking_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Printable PDF ticket"""
    booking = _viewable_booking(db, booking_id, current_user)
    try:
        pdf = TicketService(db).pdf_ticket(booking)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate PDF ticket: {str(e)}"
        )
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=ticket_{booking.booking_number}.pdf"}
    )

@router.post("/tickets/verify", response_model=TicketVerifyResponse)
def verify_ticket(
    request: TicketVerifyRequest,
    staff: User = Depends(require_roles(MERCHANT, INCHARGE, ADMIN)),
    db: Session = Depends(get_db)
):
    """Verify a scanned ticket and check the student in"""
    try:
        return TicketService(db).verify_ticket(staff, request.payload, request.study_hall_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

# Cabin bookings
@router.post("/cabin-bookings", response_model=CabinBooking, status_code=status.HTTP_201_CREATED)
def create_cabin_booking(
    booking_data: CabinBookingCreate,
    student: User = Depends(require_student),
    db: Session = Depends(get_db)
):
    """Book a cabin"""
    try:
        booking = CabinBookingService(db).create_cabin_booking(student, booking_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cabin not found")
    return booking

@router.get("/cabin-bookings/me", response_model=List[CabinBooking])
def list_my_cabin_bookings(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user's cabin bookings"""
    return CabinBookingService(db).list_cabin_bookings(user_id=current_user.id)

@router.get("/cabin-bookings/merchant", response_model=List[CabinBooking])
def list_merchant_cabin_bookings(
    private_hall_id: Optional[int] = Query(None),
    include_vacated: bool = Query(True),
    merchant: User = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Cabin bookings in the current merchant's private halls"""
    return CabinBookingService(db).list_cabin_bookings(
        merchant_id=merchant.id, private_hall_id=private_hall_id, include_vacated=include_vacated
    )

@router.post("/cabin-bookings/auto-expire", response_model=CabinExpiryResult)
def auto_expire_cabin_bookings(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Vacate cabin bookings that have ended"""
    return CabinExpiryResult(vacated=CabinBookingService(db).auto_expire_cabin_bookings())

@router.get("/cabin-bookings/{booking_id}", response_model=CabinBooking)
def get_cabin_booking(booking_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get a cabin booking"""
    service = CabinBookingService(db)
    booking = service.get_cabin_booking(booking_id)
    if not booking:
        raise _booking_not_found()
    if not service.can_view(current_user, booking):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    return booking

@router.post("/cabin-bookings/{booking_id}/confirm-payment", response_model=CabinBooking)
def confirm_cabin_payment(
    booking_id: int,
    payment: PaymentConfirmation,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Confirm a cabin booking after successful payment"""
    try:
        booking = CabinBookingService(db).confirm_cabin_payment(
            current_user, booking_id, payment.payment_method, payment.payment_id
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise _booking_not_found()
    return booking

@router.post("/cabin-bookings/{booking_id}/vacate", response_model=CabinBooking)
def vacate_cabin_booking(
    booking_id: int,
    vacate_data: VacateRequest,
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Vacate a cabin booking"""
    try:
        booking = CabinBookingService(db).vacate_cabin_booking(current_user, booking_id, vacate_data.reason)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not booking:
        raise _booking_not_found()
    return booking
