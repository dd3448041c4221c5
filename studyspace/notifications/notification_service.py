import logging
from typing import Optional, List

from sqlalchemy.orm import Session

from studyspace.models import Notification
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

class NotificationService:
    """In-app notifications"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        action_url: Optional[str] = None,
        commit: bool = True
    ) -> Notification:
        """Create a notification for a user"""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            action_url=action_url
        )
        self.db.add(notification)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        
        change_feed.publish(
            f"user:{user_id}", "created", "notification", notification.id,
            {"title": title, "type": type}
        )
        return notification
    
    def list_notifications(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        """List a user's notifications, newest first"""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    
    def unread_count(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).count()
    
    def mark_read(self, user_id: int, notification_id: int) -> Optional[Notification]:
        """Mark one notification as read"""
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            return None
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
    
    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread notification as read"""
        updated = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()
        return updated
