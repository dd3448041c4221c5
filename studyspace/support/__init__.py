"""
Support Module

- call_log_service.py: telemarketing and pending-payment call logs, follow-ups and the payment queue
- support_ticket_service.py: customer care tickets
- router.py: call log and support ticket endpoints
"""

from .schemas import CallLog, PendingPayment, SupportTicket

__all__ = [
    "CallLog",
    "PendingPayment",
    "SupportTicket",
]
