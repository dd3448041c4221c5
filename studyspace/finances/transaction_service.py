from datetime import date, datetime, time
from typing import Optional, List

from sqlalchemy.orm import Session

from studyspace.models import Transaction, User
from studyspace.auth.permissions import STUDENT, MERCHANT, INSTITUTION

class TransactionService:
    
    def __init__(self, db: Session):
        self.db = db
    
    def list_transactions(
        self,
        user: User,
        status: Optional[str] = None,
        transaction_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Transaction]:
        """Transactions visible to a user: own payments, own earnings, or all for staff"""
        query = self.db.query(Transaction)
        if user.role in (STUDENT, INSTITUTION):
            query = query.filter(Transaction.user_id == user.id)
        elif user.role == MERCHANT:
            query = query.filter(
                (Transaction.merchant_id == user.id) | (Transaction.user_id == user.id)
            )
        
        if status:
            query = query.filter(Transaction.status == status)
        if transaction_type:
            query = query.filter(Transaction.transaction_type == transaction_type)
        if date_from:
            query = query.filter(Transaction.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Transaction.created_at <= datetime.combine(date_to, time.max))
        
        return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset(offset).limit(limit).all()
    
    def get_transaction(self, user: User, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction the user is allowed to see"""
        transaction = self.db.query(Transaction).filter(Transaction.id == transaction_id).first()
        if not transaction:
            return None
        if user.role in (STUDENT, INSTITUTION) and transaction.user_id != user.id:
            return None
        if user.role == MERCHANT and user.id not in (transaction.merchant_id, transaction.user_id):
            return None
        return transaction
