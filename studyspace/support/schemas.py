from pydantic import BaseModel, validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

CONTACT_TYPES = ("user", "merchant")
CALL_PURPOSES = ("onboarding", "payment_follow_up", "support", "general")
CALL_STATUSES = ("completed", "no_answer", "busy", "invalid_number", "callback_requested")
CALL_OUTCOMES = ("interested", "not_interested", "call_later", "payment_confirmed", "issue_resolved", "escalated")

TICKET_CATEGORIES = ("technical", "billing", "booking", "general", "complaint")
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")
TICKET_STATUSES = ("open", "in_progress", "resolved", "closed", "escalated")

def one_of(value, allowed, label):
    if value is not None and value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value

# Call logs
class CallLogCreate(BaseModel):
    contact_type: str
    contact_id: int
    booking_id: Optional[int] = None
    call_purpose: str
    call_status: str
    call_outcome: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    call_duration: Optional[int] = None
    
    @validator("contact_type")
    def known_contact_type(cls, v):
        return one_of(v, CONTACT_TYPES, "Contact type")
    
    @validator("call_purpose")
    def known_purpose(cls, v):
        return one_of(v, CALL_PURPOSES, "Call purpose")
    
    @validator("call_status")
    def known_status(cls, v):
        return one_of(v, CALL_STATUSES, "Call status")
    
    @validator("call_outcome")
    def known_outcome(cls, v):
        return one_of(v, CALL_OUTCOMES, "Call outcome")
    
    @validator("call_duration")
    def duration_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Call duration cannot be negative")
        return v

class CallLogUpdate(BaseModel):
    call_status: Optional[str] = None
    call_outcome: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    call_duration: Optional[int] = None
    
    @validator("call_status")
    def known_status(cls, v):
        return one_of(v, CALL_STATUSES, "Call status")
    
    @validator("call_outcome")
    def known_outcome(cls, v):
        return one_of(v, CALL_OUTCOMES, "Call outcome")

class CallLog(BaseModel):
    id: int
    caller_id: int
    contact_type: str
    contact_id: int
    booking_id: Optional[int] = None
    call_purpose: str
    call_status: str
    call_outcome: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    call_duration: Optional[int] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class PendingPayment(BaseModel):
    """A pending unpaid seat or cabin booking in the callers' queue"""
    booking_type: str
    booking_id: int
    booking_number: Optional[str] = None
    user_id: int
    full_name: str
    phone: Optional[str] = None
    email: str
    unit_label: str
    total_amount: Decimal
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_called_at: Optional[datetime] = None

# Support tickets
class SupportTicketCreate(BaseModel):
    title: str
    description: str
    category: str = "general"
    priority: str = "medium"
    
    @validator("title", "description")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Title and description are required")
        return v.strip()
    
    @validator("category")
    def known_category(cls, v):
        return one_of(v, TICKET_CATEGORIES, "Category")
    
    @validator("priority")
    def known_priority(cls, v):
        return one_of(v, TICKET_PRIORITIES, "Priority")

class SupportTicketAssign(BaseModel):
    assigned_to: int

class SupportTicketStatusUpdate(BaseModel):
    status: str
    resolution: Optional[str] = None
    
    @validator("status")
    def known_status(cls, v):
        return one_of(v, TICKET_STATUSES, "Status")

class SupportTicket(BaseModel):
    id: int
    ticket_number: int
    user_id: Optional[int] = None
    merchant_id: Optional[int] = None
    assigned_to: Optional[int] = None
    title: str
    description: str
    category: str
    priority: str
    status: str
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
