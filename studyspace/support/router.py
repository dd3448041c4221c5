from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_roles
from studyspace.auth.permissions import (
    ADMIN, TELEMARKETING_EXECUTIVE, PENDING_PAYMENTS_CALLER, CUSTOMER_CARE_EXECUTIVE
)
from studyspace.models import User
from studyspace.support.schemas import (
    CallLogCreate, CallLogUpdate, CallLog, PendingPayment,
    SupportTicketCreate, SupportTicketAssign, SupportTicketStatusUpdate, SupportTicket
)
from studyspace.support.call_log_service import CallLogService
from studyspace.support.support_ticket_service import SupportTicketService

router = APIRouter()

require_caller = require_roles(TELEMARKETING_EXECUTIVE, PENDING_PAYMENTS_CALLER, ADMIN)
require_support = require_roles(CUSTOMER_CARE_EXECUTIVE, ADMIN)

# Call logs
@router.post("/call-logs", response_model=CallLog, status_code=status.HTTP_201_CREATED)
def create_call_log(call_data: CallLogCreate, caller: User = Depends(require_caller), db: Session = Depends(get_db)):
    """Record a call to a student or merchant"""
    try:
        return CallLogService(db).create_call_log(caller, call_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/call-logs", response_model=List[CallLog])
def list_call_logs(
    contact_id: Optional[int] = Query(None),
    call_purpose: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    caller: User = Depends(require_caller),
    db: Session = Depends(get_db)
):
    return CallLogService(db).list_call_logs(caller, contact_id, call_purpose, limit)

@router.get("/call-logs/follow-ups", response_model=List[CallLog])
def list_follow_ups(
    on_date: Optional[date] = Query(None),
    caller: User = Depends(require_caller),
    db: Session = Depends(get_db)
):
    """Calls due for a follow-up"""
    return CallLogService(db).follow_ups(caller, on_date)

@router.get("/call-logs/pending-payments", response_model=List[PendingPayment])
def list_pending_payments(caller: User = Depends(require_caller), db: Session = Depends(get_db)):
    """Unpaid bookings waiting for a payment follow-up call"""
    return CallLogService(db).pending_payments()

@router.put("/call-logs/{call_log_id}", response_model=CallLog)
def update_call_log(
    call_log_id: int,
    call_data: CallLogUpdate,
    caller: User = Depends(require_caller),
    db: Session = Depends(get_db)
):
    try:
        call_log = CallLogService(db).update_call_log(caller, call_log_id, call_data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not call_log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call log not found")
    return call_log

# Support tickets
@router.post("/support-tickets", response_model=SupportTicket, status_code=status.HTTP_201_CREATED)
def create_support_ticket(
    ticket_data: SupportTicketCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Raise a support ticket"""
    return SupportTicketService(db).create_ticket(current_user, ticket_data)

@router.get("/support-tickets", response_model=List[SupportTicket])
def list_support_tickets(
    ticket_status: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned_to: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Own tickets, or every ticket for customer care and admins"""
    return SupportTicketService(db).list_tickets(current_user, ticket_status, category, priority, assigned_to)

@router.get("/support-tickets/{ticket_id}", response_model=SupportTicket)
def get_support_ticket(ticket_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        ticket = SupportTicketService(db).get_ticket(current_user, ticket_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Support ticket not found")
    return ticket

@router.post("/support-tickets/{ticket_id}/assign", response_model=SupportTicket)
def assign_support_ticket(
    ticket_id: int,
    assignment: SupportTicketAssign,
    staff: User = Depends(require_support),
    db: Session = Depends(get_db)
):
    """Assign a ticket and mark it in progress"""
    try:
        ticket = SupportTicketService(db).assign_ticket(staff, ticket_id, assignment.assigned_to)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Support ticket not found")
    return ticket

@router.patch("/support-tickets/{ticket_id}/status", response_model=SupportTicket)
def update_support_ticket_status(
    ticket_id: int,
    update: SupportTicketStatusUpdate,
    staff: User = Depends(require_support),
    db: Session = Depends(get_db)
):
    try:
        ticket = SupportTicketService(db).update_status(staff, ticket_id, update.status, update.resolution)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Support ticket not found")
    return ticket
