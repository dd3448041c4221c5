import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyspace.models import (
    Transaction, Settlement, SettlementTransaction, User, Booking, CabinBooking
)
from studyspace.auth.permissions import MERCHANT
from studyspace.pricing.calculations import round_money, to_decimal
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.admin.audit_service import AuditService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.change_feed import change_feed
from studyspace.finances.numbering import next_number

logger = logging.getLogger(__name__)

EARNING_TYPES = ("booking", "cabin_booking")

SETTLEMENT_TRANSITIONS = {
    "pending": ("processing", "cancelled"),
    "processing": ("paid", "cancelled"),
    "paid": (),
    "cancelled": (),
}

class SettlementService:
    """Batch payouts of completed booking payments to merchants"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _eligible_query(self, merchant_id: int):
        return self.db.query(Transaction).outerjoin(
            SettlementTransaction, SettlementTransaction.transaction_id == Transaction.id
        ).filter(
            Transaction.merchant_id == merchant_id,
            Transaction.status == "completed",
            Transaction.transaction_type.in_(EARNING_TYPES),
            SettlementTransaction.id == None  # noqa: E711
        )
    
    def eligible_transactions(self, merchant_id: int) -> List[Dict[str, Any]]:
        """Completed payments not yet included in any settlement, oldest first"""
        transactions = self._eligible_query(merchant_id).order_by(
            Transaction.created_at.asc(), Transaction.id.asc()
        ).all()
        return [self._describe(transaction) for transaction in transactions]
    
    def _describe(self, transaction: Transaction) -> Dict[str, Any]:
        booking_number = start_date = end_date = hall_name = None
        if transaction.booking_id:
            booking = self.db.query(Booking).filter(Booking.id == transaction.booking_id).first()
            if booking:
                booking_number = booking.booking_number
                start_date, end_date = booking.start_date, booking.end_date
                hall_name = booking.study_hall.name
        elif transaction.cabin_booking_id:
            booking = self.db.query(CabinBooking).filter(CabinBooking.id == transaction.cabin_booking_id).first()
            if booking:
                booking_number = booking.booking_number
                start_date, end_date = booking.start_date, booking.end_date
                hall_name = booking.private_hall.name
        
        return {
            "id": transaction.id,
            "transaction_number": transaction.transaction_number,
            "amount": transaction.amount,
            "created_at": transaction.created_at,
            "transaction_type": transaction.transaction_type,
            "booking_number": booking_number,
            "start_date": start_date,
            "end_date": end_date,
            "student_email": transaction.user.email if transaction.user else None,
            "hall_name": hall_name,
        }
    
    def unsettled_summary(self, merchant_id: int) -> Dict[str, Any]:
        """Count, total and oldest date of unsettled payments"""
        count, total, oldest = self._eligible_query(merchant_id).with_entities(
            func.count(Transaction.id), func.sum(Transaction.amount), func.min(Transaction.created_at)
        ).one()
        return {
            "total_transactions": count or 0,
            "total_amount": to_decimal(total),
            "oldest_transaction_date": oldest,
        }
    
    def create_settlement(
        self,
        actor: User,
        merchant_id: int,
        transaction_ids: List[int],
        fee_percentage: Optional[Decimal] = None,
        notes: Optional[str] = None
    ) -> Settlement:
        """Settle a selection of a merchant's unsettled payments"""
        merchant = self.db.query(User).filter(User.id == merchant_id, User.role == MERCHANT).first()
        if not merchant:
            raise ValueError("Merchant not found")
        
        selected = self._eligible_query(merchant_id).filter(
            Transaction.id.in_(transaction_ids or [])
        ).order_by(Transaction.created_at.asc(), Transaction.id.asc()).all()
        if not selected:
            raise ValueError("No valid transactions selected")
        
        business_settings = BusinessSettingsService.get(self.db)
        percentage = to_decimal(fee_percentage if fee_percentage is not None else business_settings.platform_fee_percentage)
        if percentage < 0 or percentage > 100:
            raise ValueError("Platform fee percentage must be between 0 and 100")
        
        total = sum((to_decimal(t.amount) for t in selected), Decimal("0"))
        minimum = to_decimal(business_settings.minimum_settlement_amount)
        if total < minimum:
            raise ValueError(f"Settlement total must be at least ₹{minimum}")
        
        fee = round_money(total * percentage / Decimal("100"))
        net = round_money(total - fee)
        
        created_dates = [t.created_at.date() for t in selected if t.created_at]
        settlement = Settlement(
            settlement_number=next_number(self.db, Settlement, Settlement.settlement_number, "STL"),
            merchant_id=merchant_id,
            total_amount=round_money(total),
            platform_fee_percentage=percentage,
            platform_fee_amount=fee,
            net_amount=net,
            transaction_count=len(selected),
            period_start=min(created_dates) if created_dates else None,
            period_end=max(created_dates) if created_dates else None,
            status="pending",
            notes=notes,
            created_by=actor.id
        )
        self.db.add(settlement)
        self.db.flush()
        
        for transaction in selected:
            self.db.add(SettlementTransaction(
                settlement_id=settlement.id,
                transaction_id=transaction.id,
                amount=transaction.amount
            ))
        
        AuditService.log(
            self.db, actor.id, "settlement_created", "settlement", settlement.id,
            {"merchant_id": merchant_id, "total": str(total), "transactions": len(selected)},
            commit=False
        )
        self.db.commit()
        self.db.refresh(settlement)
        
        NotificationService(self.db).notify(
            merchant_id, "Settlement Created",
            f"Settlement {settlement.settlement_number} of ₹{net} has been created for {len(selected)} payment(s).",
            type="info", action_url="/merchant/settlements"
        )
        change_feed.publish_many(
            [f"merchant:{merchant_id}", "staff"], "created", "settlement", settlement.id,
            {"status": settlement.status}
        )
        logger.info(f"Settlement {settlement.settlement_number} created for merchant {merchant_id}: total={total} net={net}")
        return settlement
    
    def get_settlement(self, settlement_id: int) -> Optional[Settlement]:
        return self.db.query(Settlement).filter(Settlement.id == settlement_id).first()
    
    def list_settlements(
        self,
        merchant_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Settlement]:
        query = self.db.query(Settlement)
        if merchant_id:
            query = query.filter(Settlement.merchant_id == merchant_id)
        if status:
            query = query.filter(Settlement.status == status)
        return query.order_by(Settlement.created_at.desc(), Settlement.id.desc()).offset(offset).limit(limit).all()
    
    def update_status(
        self,
        actor: User,
        settlement_id: int,
        status: str,
        payment_reference: Optional[str] = None,
        payment_method: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[Settlement]:
        """Move a settlement through pending, processing and paid, or cancel it"""
        settlement = self.get_settlement(settlement_id)
        if not settlement:
            return None
        
        if status not in SETTLEMENT_TRANSITIONS:
            raise ValueError(f"Unknown settlement status: {status}")
        if status not in SETTLEMENT_TRANSITIONS[settlement.status]:
            raise ValueError(f"Cannot change settlement from {settlement.status} to {status}")
        if status == "paid" and not payment_reference:
            raise ValueError("Payment reference is required to mark a settlement as paid")
        
        previous = settlement.status
        settlement.status = status
        if notes:
            settlement.notes = notes
        if status == "paid":
            settlement.payment_reference = payment_reference
            settlement.payment_method = payment_method or "bank_transfer"
            settlement.payment_date = datetime.now()
        elif status == "cancelled":
            # Cancelled settlements release their payments for a future settlement
            for link in list(settlement.transactions):
                self.db.delete(link)
        
        AuditService.log(
            self.db, actor.id, "settlement_status_changed", "settlement", settlement.id,
            {"from": previous, "to": status, "payment_reference": payment_reference},
            commit=False
        )
        self.db.commit()
        self.db.refresh(settlement)
        
        if status == "paid":
            NotificationService(self.db).notify(
                settlement.merchant_id, "Settlement Paid",
                f"Settlement {settlement.settlement_number} of ₹{settlement.net_amount} has been paid. "
                f"Reference: {payment_reference}",
                type="success", action_url="/merchant/settlements"
            )
        change_feed.publish_many(
            [f"merchant:{settlement.merchant_id}", "staff"], "updated", "settlement", settlement.id,
            {"status": status}
        )
        logger.info(f"Settlement {settlement.settlement_number}: {previous} -> {status}")
        return settlement
