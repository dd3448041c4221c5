import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyspace.models import SupportTicket, User
from studyspace.auth.permissions import ADMIN, MERCHANT, CUSTOMER_CARE_EXECUTIVE
from studyspace.admin.audit_service import AuditService
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.change_feed import change_feed
from studyspace.support.schemas import SupportTicketCreate

logger = logging.getLogger(__name__)

SUPPORT_ROLES = (CUSTOMER_CARE_EXECUTIVE, ADMIN)
CLOSED_STATUSES = ("resolved", "closed")

class SupportTicketService:
    
    def __init__(self, db: Session):
        self.db = db
    
    def create_ticket(self, user: User, data: SupportTicketCreate) -> SupportTicket:
        """Raise a ticket; merchants' tickets are also filed under their merchant id"""
        number = (self.db.query(func.max(SupportTicket.ticket_number)).scalar() or 0) + 1
        ticket = SupportTicket(
            ticket_number=number,
            user_id=user.id,
            merchant_id=user.id if user.role == MERCHANT else None,
            status="open",
            **data.dict()
        )
        self.db.add(ticket)
        self.db.commit()
        self.db.refresh(ticket)
        
        change_feed.publish("staff", "created", "support_ticket", ticket.id, {"priority": ticket.priority})
        logger.info(f"Support ticket #{ticket.ticket_number} opened by user {user.id} ({ticket.category})")
        return ticket
    
    def get_ticket(self, actor: User, ticket_id: int) -> Optional[SupportTicket]:
        ticket = self.db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
        if ticket and actor.role not in SUPPORT_ROLES and actor.id not in (ticket.user_id, ticket.merchant_id):
            raise PermissionError("You can only view your own support tickets")
        return ticket
    
    def list_tickets(
        self,
        actor: User,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[int] = None
    ) -> List[SupportTicket]:
        query = self.db.query(SupportTicket)
        if actor.role == MERCHANT:
            query = query.filter(SupportTicket.merchant_id == actor.id)
        elif actor.role not in SUPPORT_ROLES:
            query = query.filter(SupportTicket.user_id == actor.id)
        if status:
            query = query.filter(SupportTicket.status == status)
        if category:
            query = query.filter(SupportTicket.category == category)
        if priority:
            query = query.filter(SupportTicket.priority == priority)
        if assigned_to:
            query = query.filter(SupportTicket.assigned_to == assigned_to)
        return query.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).all()
    
    def assign_ticket(self, actor: User, ticket_id: int, assignee_id: int) -> Optional[SupportTicket]:
        """Hand a ticket to a customer care executive and start work on it"""
        ticket = self.get_ticket(actor, ticket_id)
        if not ticket:
            return None
        if ticket.status in CLOSED_STATUSES:
            raise ValueError(f"Ticket is already {ticket.status}")
        assignee = self.db.query(User).filter(User.id == assignee_id).first()
        if not assignee or assignee.role not in SUPPORT_ROLES or not assignee.is_active:
            raise ValueError("Tickets can only be assigned to customer care executives or admins")
        
        ticket.assigned_to = assignee.id
        ticket.status = "in_progress"
        AuditService.log(
            self.db, actor.id, "support_ticket_assigned", "support_ticket", ticket.id,
            {"assigned_to": assignee.id}, commit=False
        )
        NotificationService(self.db).notify(
            assignee.id, "Support ticket assigned",
            f"Ticket #{ticket.ticket_number}: {ticket.title}", commit=False
        )
        self.db.commit()
        self.db.refresh(ticket)
        change_feed.publish("staff", "updated", "support_ticket", ticket.id, {"status": ticket.status})
        return ticket
    
    def update_status(
        self,
        actor: User,
        ticket_id: int,
        status: str,
        resolution: Optional[str] = None
    ) -> Optional[SupportTicket]:
        """Move a ticket through its lifecycle; resolving needs a resolution"""
        ticket = self.get_ticket(actor, ticket_id)
        if not ticket:
            return None
        if status == "resolved" and not (resolution or "").strip():
            raise ValueError("A resolution is required to resolve a ticket")
        if ticket.status == "closed" and status != "closed":
            raise ValueError("Closed tickets cannot be reopened")
        
        ticket.status = status
        if resolution:
            ticket.resolution = resolution.strip()
        if status in CLOSED_STATUSES:
            ticket.resolved_at = ticket.resolved_at or datetime.now()
        else:
            ticket.resolved_at = None
        
        if status in CLOSED_STATUSES and ticket.user_id:
            NotificationService(self.db).notify(
                ticket.user_id, f"Support ticket {status}",
                ticket.resolution or f"Ticket #{ticket.ticket_number} was {status}",
                type="success", commit=False
            )
        self.db.commit()
        self.db.refresh(ticket)
        
        channels = ["staff"] + ([f"user:{ticket.user_id}"] if ticket.user_id else [])
        change_feed.publish_many(channels, "updated", "support_ticket", ticket.id, {"status": ticket.status})
        logger.info(f"Support ticket #{ticket.ticket_number} set to {status} by user {actor.id}")
        return ticket
