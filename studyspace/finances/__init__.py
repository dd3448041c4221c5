"""
Finances Module

Money owed to merchants and how it reaches them:

- transaction_service.py: payment records, scoped by role
- settlement_service.py: batch payouts of unsettled payments, net of the platform fee
- withdrawal_service.py: merchant balances and payout requests
- numbering.py: sequential references such as TXN000001
- router.py: transaction, settlement and withdrawal endpoints
"""

from .schemas import Transaction, Settlement, WithdrawalRequest, MerchantBalance

__all__ = [
    "Transaction",
    "Settlement",
    "WithdrawalRequest",
    "MerchantBalance",
]
