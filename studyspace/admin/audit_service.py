import logging
from typing import Optional, List

from sqlalchemy.orm import Session

from studyspace.models import AuditLog

logger = logging.getLogger(__name__)

class AuditService:
    
    @staticmethod
    def log(
        db: Session,
        actor_id: Optional[int],
        action: str,
        resource_type: Optional[str] = None,
        resource_id=None,
        details: Optional[dict] = None,
        commit: bool = True
    ) -> AuditLog:
        """Record a staff action"""
        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details or {}
        )
        db.add(entry)
        if commit:
            db.commit()
        logger.info(f"Audit: user={actor_id} action={action} {resource_type}={resource_id}")
        return entry
    
    @staticmethod
    def list(
        db: Session,
        action: Optional[str] = None,
        actor_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLog]:
        """List audit log entries, newest first"""
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
