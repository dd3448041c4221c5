import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyspace.models import Transaction, WithdrawalRequest, Settlement, User
from studyspace.pricing.calculations import round_money, to_decimal
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.admin.audit_service import AuditService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.change_feed import change_feed
from studyspace.finances.settlement_service import EARNING_TYPES

logger = logging.getLogger(__name__)

WITHDRAWAL_TRANSITIONS = {
    "pending": ("approved", "rejected"),
    "approved": ("completed", "rejected"),
    "completed": (),
    "rejected": (),
}

class WithdrawalService:
    """Merchant balances and payout requests"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _sum(self, column, *criteria) -> Decimal:
        return to_decimal(self.db.query(func.sum(column)).filter(*criteria).scalar())
    
    def merchant_balance(self, merchant_id: int) -> Dict[str, Decimal]:
        """Earnings net of the platform fee, less what is paid out or on its way.
        
        available_balance = net_earnings - pending_withdrawals - withdrawn_amount
        - settled_amount, floored at zero. Pending withdrawals include approved
        requests that have not been paid yet.
        """
        total_earnings = self._sum(
            Transaction.amount,
            Transaction.merchant_id == merchant_id,
            Transaction.status == "completed",
            Transaction.transaction_type.in_(EARNING_TYPES)
        )
        percentage = to_decimal(BusinessSettingsService.get(self.db).platform_fee_percentage)
        platform_fees = round_money(total_earnings * percentage / Decimal("100"))
        net_earnings = round_money(total_earnings - platform_fees)
        
        pending_withdrawals = self._sum(
            WithdrawalRequest.requested_amount,
            WithdrawalRequest.merchant_id == merchant_id,
            WithdrawalRequest.status.in_(("pending", "approved"))
        )
        withdrawn_amount = self._sum(
            WithdrawalRequest.requested_amount,
            WithdrawalRequest.merchant_id == merchant_id,
            WithdrawalRequest.status == "completed"
        )
        settled_amount = self._sum(
            Settlement.net_amount,
            Settlement.merchant_id == merchant_id,
            Settlement.status == "paid"
        )
        
        available = net_earnings - pending_withdrawals - withdrawn_amount - settled_amount
        return {
            "total_earnings": round_money(total_earnings),
            "platform_fees": platform_fees,
            "net_earnings": net_earnings,
            "pending_withdrawals": round_money(pending_withdrawals),
            "withdrawn_amount": round_money(withdrawn_amount),
            "settled_amount": round_money(settled_amount),
            "available_balance": round_money(max(available, Decimal("0"))),
        }
    
    def validate_withdrawal(self, merchant_id: int, amount) -> Tuple[bool, Optional[str], Decimal]:
        """Check a withdrawal amount: (is_valid, error_message, available_balance)"""
        amount = to_decimal(amount)
        available = self.merchant_balance(merchant_id)["available_balance"]
        minimum = to_decimal(BusinessSettingsService.get(self.db).minimum_withdrawal_amount)
        
        if amount <= 0:
            return False, "Withdrawal amount must be greater than zero", available
        if amount < minimum:
            return False, f"Minimum withdrawal amount is ₹{minimum}", available
        if amount > available:
            return False, f"Insufficient balance. Available balance is ₹{available}", available
        return True, None, available
    
    def create_withdrawal(self, merchant_id: int, amount, withdrawal_method: str = "bank_transfer") -> WithdrawalRequest:
        """Request a payout from the available balance"""
        is_valid, error, _ = self.validate_withdrawal(merchant_id, amount)
        if not is_valid:
            raise ValueError(error)
        
        withdrawal = WithdrawalRequest(
            merchant_id=merchant_id,
            requested_amount=round_money(amount),
            withdrawal_method=withdrawal_method,
            status="pending"
        )
        self.db.add(withdrawal)
        self.db.commit()
        self.db.refresh(withdrawal)
        
        change_feed.publish_many(
            [f"merchant:{merchant_id}", "staff"], "created", "withdrawal_request", withdrawal.id,
            {"status": "pending", "amount": str(withdrawal.requested_amount)}
        )
        logger.info(f"Withdrawal request {withdrawal.id} for ₹{withdrawal.requested_amount} by merchant {merchant_id}")
        return withdrawal
    
    def get_withdrawal(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:
        return self.db.query(WithdrawalRequest).filter(WithdrawalRequest.id == withdrawal_id).first()
    
    def list_withdrawals(
        self,
        merchant_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[WithdrawalRequest]:
        query = self.db.query(WithdrawalRequest)
        if merchant_id:
            query = query.filter(WithdrawalRequest.merchant_id == merchant_id)
        if status:
            query = query.filter(WithdrawalRequest.status == status)
        return query.order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc()).offset(offset).limit(limit).all()
    
    def update_status(
        self,
        actor: User,
        withdrawal_id: int,
        status: str,
        admin_notes: Optional[str] = None,
        payment_reference: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> Optional[WithdrawalRequest]:
        """Approve, reject or complete a withdrawal request"""
        withdrawal = self.get_withdrawal(withdrawal_id)
        if not withdrawal:
            return None
        if status not in WITHDRAWAL_TRANSITIONS:
            raise ValueError(f"Unknown withdrawal status: {status}")
        if status not in WITHDRAWAL_TRANSITIONS[withdrawal.status]:
            raise ValueError(f"Cannot change withdrawal from {withdrawal.status} to {status}")
        
        previous = withdrawal.status
        withdrawal.status = status
        withdrawal.admin_notes = admin_notes or withdrawal.admin_notes
        withdrawal.processed_by = actor.id
        withdrawal.processed_at = datetime.now()
        if status == "completed":
            withdrawal.payment_reference = payment_reference
            withdrawal.payment_method = payment_method or withdrawal.withdrawal_method
        
        AuditService.log(
            self.db, actor.id, "withdrawal_status_changed", "withdrawal_request", withdrawal.id,
            {"from": previous, "to": status, "notes": admin_notes}, commit=False
        )
        self.db.commit()
        self.db.refresh(withdrawal)
        
        messages = {
            "approved": ("Withdrawal Approved", "info"),
            "rejected": ("Withdrawal Rejected", "warning"),
            "completed": ("Withdrawal Completed", "success"),
        }
        title, kind = messages[status]
        NotificationService(self.db).notify(
            withdrawal.merchant_id, title,
            f"Your withdrawal request of ₹{withdrawal.requested_amount} is {status}."
            + (f" {admin_notes}" if admin_notes else ""),
            type=kind, action_url="/merchant/withdrawals"
        )
        change_feed.publish_many(
            [f"merchant:{withdrawal.merchant_id}", "staff"], "updated", "withdrawal_request", withdrawal.id,
            {"status": status}
        )
        logger.info(f"Withdrawal {withdrawal.id}: {previous} -> {status} by user {actor.id}")
        return withdrawal
