from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_roles
from studyspace.auth.permissions import ADMIN, MERCHANT, SETTLEMENT_MANAGER, is_operational
from studyspace.models import User
from studyspace.merchants.dependencies import require_verified_merchant
from studyspace.finances.schemas import (
    Transaction, EligibleTransaction, UnsettledSummary, SettlementCreate, SettlementStatusUpdate, Settlement,
    MerchantBalance, WithdrawalCreate, WithdrawalValidation, WithdrawalStatusUpdate, WithdrawalRequest
)
from studyspace.finances.transaction_service import TransactionService
from studyspace.finances.settlement_service import SettlementService
from studyspace.finances.withdrawal_service import WithdrawalService

router = APIRouter()

require_settlement_staff = require_roles(ADMIN, SETTLEMENT_MANAGER)
require_merchant = require_roles(MERCHANT)

def _merchant_scope(current_user: User, merchant_id: Optional[int]) -> Optional[int]:
    """Merchants only ever see their own records; staff may filter by merchant"""
    if current_user.role == MERCHANT:
        return current_user.id
    if is_operational(current_user.role):
        return merchant_id
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")

# Transactions
@router.get("/transactions", response_model=List[Transaction])
def list_transactions(
    status_filter: Optional[str] = Query(None, alias="status"),
    transaction_type: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Transactions visible to the current user"""
    return TransactionService(db).list_transactions(
        current_user, status_filter, transaction_type, date_from, date_to, limit, offset
    )

@router.get("/transactions/{transaction_id}", response_model=Transaction)
def get_transaction(transaction_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get a transaction"""
    transaction = TransactionService(db).get_transaction(current_user, transaction_id)
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction

# Settlements
@router.get("/settlements/eligible/{merchant_id}", response_model=List[EligibleTransaction])
def list_eligible_transactions(
    merchant_id: int,
    staff: User = Depends(require_settlement_staff),
    db: Session = Depends(get_db)
):
    """A merchant's payments not yet in any settlement"""
    return SettlementService(db).eligible_transactions(merchant_id)

@router.get("/settlements/unsettled-summary", response_model=UnsettledSummary)
def get_unsettled_summary(
    merchant_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Count and total of unsettled payments"""
    scoped = _merchant_scope(current_user, merchant_id)
    if scoped is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="merchant_id is required")
    return SettlementService(db).unsettled_summary(scoped)

@router.post("/settlements", response_model=Settlement, status_code=status.HTTP_201_CREATED)
def create_settlement(
    settlement_data: SettlementCreate,
    staff: User = Depends(require_settlement_staff),
    db: Session = Depends(get_db)
):
    """Create a settlement from selected payments"""
    try:
        return SettlementService(db).create_settlement(
            staff,
            settlement_data.merchant_id,
            settlement_data.transaction_ids,
            settlement_data.platform_fee_percentage,
            settlement_data.notes
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/settlements", response_model=List[Settlement])
def list_settlements(
    merchant_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Settlements: own for merchants, all for staff"""
    return SettlementService(db).list_settlements(
        _merchant_scope(current_user, merchant_id), status_filter, limit, offset
    )

@router.get("/settlements/{settlement_id}", response_model=Settlement)
def get_settlement(settlement_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get a settlement"""
    settlement = SettlementService(db).get_settlement(settlement_id)
    if not settlement or _merchant_scope(current_user, settlement.merchant_id) != settlement.merchant_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Settlement not found")
    return settlement

@router.patch("/settlements/{settlement_id}/status", response_model=Settlement)
def update_settlement_status(
    settlement_id: int,
    status_update: SettlementStatusUpdate,
    staff: User = Depends(require_settlement_staff),
    db: Session = Depends(get_db)
):
    """Move a settlement to processing, paid or cancelled"""
    try:
        settlement = SettlementService(db).update_status(
            staff, settlement_id, status_update.status,
            status_update.payment_reference, status_update.payment_method, status_update.notes
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not settlement:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Settlement not found")
    return settlement

# Withdrawals
@router.get("/withdrawals/balance", response_model=MerchantBalance)
def get_balance(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Current merchant's earnings and available balance"""
    return WithdrawalService(db).merchant_balance(merchant.id)

@router.get("/withdrawals/balance/{merchant_id}", response_model=MerchantBalance)
def get_merchant_balance(merchant_id: int, staff: User = Depends(require_settlement_staff), db: Session = Depends(get_db)):
    """A merchant's earnings and available balance"""
    return WithdrawalService(db).merchant_balance(merchant_id)

@router.get("/withdrawals/validate", response_model=WithdrawalValidation)
def validate_withdrawal(
    amount: Decimal = Query(...),
    merchant: User = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Check a withdrawal amount before requesting it"""
    is_valid, error_message, available = WithdrawalService(db).validate_withdrawal(merchant.id, amount)
    return WithdrawalValidation(is_valid=is_valid, error_message=error_message, available_balance=available)

@router.post("/withdrawals", response_model=WithdrawalRequest, status_code=status.HTTP_201_CREATED)
def create_withdrawal(
    withdrawal_data: WithdrawalCreate,
    merchant: User = Depends(require_verified_merchant),
    db: Session = Depends(get_db)
):
    """Request a payout"""
    try:
        return WithdrawalService(db).create_withdrawal(
            merchant.id, withdrawal_data.amount, withdrawal_data.withdrawal_method
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/withdrawals", response_model=List[WithdrawalRequest])
def list_withdrawals(
    merchant_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Withdrawal requests: own for merchants, all for staff"""
    return WithdrawalService(db).list_withdrawals(
        _merchant_scope(current_user, merchant_id), status_filter, limit, offset
    )

@router.patch("/withdrawals/{withdrawal_id}/status", response_model=WithdrawalRequest)
def update_withdrawal_status(
    withdrawal_id: int,
    status_update: WithdrawalStatusUpdate,
    staff: User = Depends(require_settlement_staff),
    db: Session = Depends(get_db)
):
    """Approve, reject or complete a withdrawal request"""
    try:
        withdrawal = WithdrawalService(db).update_status(
            staff, withdrawal_id, status_update.status, status_update.admin_notes,
            status_update.payment_reference, status_update.payment_method
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not withdrawal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Withdrawal request not found")
    return withdrawal
