from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

class Transaction(BaseModel):
    id: int
    transaction_number: str
    user_id: int
    merchant_id: Optional[int] = None
    booking_id: Optional[int] = None
    cabin_booking_id: Optional[int] = None
    subscription_id: Optional[int] = None
    transaction_type: str
    amount: Decimal
    payment_method: Optional[str] = None
    payment_id: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

# Settlements
class EligibleTransaction(BaseModel):
    id: int
    transaction_number: str
    amount: Decimal
    created_at: Optional[datetime] = None
    transaction_type: str
    booking_number: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    student_email: Optional[str] = None
    hall_name: Optional[str] = None

class UnsettledSummary(BaseModel):
    total_transactions: int
    total_amount: Decimal
    oldest_transaction_date: Optional[datetime] = None

class SettlementCreate(BaseModel):
    merchant_id: int
    transaction_ids: List[int]
    platform_fee_percentage: Optional[Decimal] = None
    notes: Optional[str] = None

class SettlementStatusUpdate(BaseModel):
    status: str
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

class Settlement(BaseModel):
    id: int
    settlement_number: str
    merchant_id: int
    total_amount: Decimal
    platform_fee_percentage: Decimal
    platform_fee_amount: Decimal
    net_amount: Decimal
    transaction_count: int
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    status: str
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

# Withdrawals
class MerchantBalance(BaseModel):
    total_earnings: Decimal
    platform_fees: Decimal
    net_earnings: Decimal
    pending_withdrawals: Decimal
    withdrawn_amount: Decimal
    settled_amount: Decimal
    available_balance: Decimal

class WithdrawalCreate(BaseModel):
    amount: Decimal
    withdrawal_method: str = "bank_transfer"
    
    @validator("withdrawal_method")
    def known_method(cls, v):
        if v not in ("bank_transfer", "upi"):
            raise ValueError("Withdrawal method must be bank_transfer or upi")
        return v

class WithdrawalValidation(BaseModel):
    is_valid: bool
    error_message: Optional[str] = None
    available_balance: Decimal

class WithdrawalStatusUpdate(BaseModel):
    status: str
    admin_notes: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None

class WithdrawalRequest(BaseModel):
    id: int
    merchant_id: int
    requested_amount: Decimal
    withdrawal_method: str
    status: str
    admin_notes: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
