import logging
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import Incharge, InchargeStudyHall, StudyHall, User
from studyspace.auth.permissions import ADMIN, INCHARGE
from studyspace.auth.service import UserService
from studyspace.admin.audit_service import AuditService
from studyspace.merchants.schemas import InchargeCreate
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

def describe(incharge: Incharge) -> Dict[str, Any]:
    return {
        "id": incharge.id,
        "merchant_id": incharge.merchant_id,
        "user_id": incharge.user_id,
        "full_name": incharge.user.full_name,
        "email": incharge.user.email,
        "phone": incharge.user.phone,
        "is_active": bool(incharge.is_active),
        "study_hall_ids": sorted(a.study_hall_id for a in incharge.assignments),
        "created_at": incharge.created_at,
    }

class InchargeService:
    """Hall staff that merchants create and assign to their study halls"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _owned_hall_ids(self, merchant_id: int, study_hall_ids: List[int]) -> List[int]:
        hall_ids = sorted(set(study_hall_ids))
        if not hall_ids:
            raise ValueError("Assign at least one study hall")
        owned = {
            row.id for row in self.db.query(StudyHall.id).filter(
                StudyHall.id.in_(hall_ids), StudyHall.merchant_id == merchant_id
            )
        }
        missing = [hall_id for hall_id in hall_ids if hall_id not in owned]
        if missing:
            raise ValueError(f"Study halls not found: {', '.join(str(h) for h in missing)}")
        return hall_ids
    
    def create_incharge(self, merchant: User, data: InchargeCreate) -> Incharge:
        """Create an incharge login and assign it to some of the merchant's halls"""
        hall_ids = self._owned_hall_ids(merchant.id, data.study_hall_ids)
        user = UserService._create(self.db, data.full_name, data.email, data.phone, data.password, INCHARGE)
        
        incharge = Incharge(merchant_id=merchant.id, user_id=user.id, is_active=True)
        incharge.assignments = [InchargeStudyHall(study_hall_id=hall_id) for hall_id in hall_ids]
        self.db.add(incharge)
        self.db.flush()
        AuditService.log(
            self.db, merchant.id, "incharge_created", "incharge", incharge.id,
            {"user_id": user.id, "study_hall_ids": hall_ids}, commit=False
        )
        self.db.commit()
        self.db.refresh(incharge)
        
        change_feed.publish(f"merchant:{merchant.id}", "created", "incharge", incharge.id)
        logger.info(f"Merchant {merchant.id} created incharge {incharge.id} for halls {hall_ids}")
        return incharge
    
    def get_incharge(self, incharge_id: int) -> Optional[Incharge]:
        return self.db.query(Incharge).filter(Incharge.id == incharge_id).first()
    
    def get_for_user(self, user_id: int) -> Optional[Incharge]:
        return self.db.query(Incharge).filter(Incharge.user_id == user_id).first()
    
    def _managed(self, actor: User, incharge_id: int) -> Optional[Incharge]:
        incharge = self.get_incharge(incharge_id)
        if not incharge:
            return None
        if actor.role != ADMIN and incharge.merchant_id != actor.id:
            raise PermissionError("You can only manage your own incharges")
        return incharge
    
    def list_incharges(self, merchant_id: Optional[int] = None) -> List[Incharge]:
        """Incharges of one merchant, or all of them, newest first"""
        query = self.db.query(Incharge)
        if merchant_id:
            query = query.filter(Incharge.merchant_id == merchant_id)
        return query.order_by(Incharge.created_at.desc(), Incharge.id.desc()).all()
    
    def update_assignments(self, actor: User, incharge_id: int, study_hall_ids: List[int]) -> Optional[Incharge]:
        """Replace the halls an incharge works at"""
        incharge = self._managed(actor, incharge_id)
        if not incharge:
            return None
        hall_ids = self._owned_hall_ids(incharge.merchant_id, study_hall_ids)
        current = {a.study_hall_id for a in incharge.assignments}
        for assignment in list(incharge.assignments):
            if assignment.study_hall_id not in hall_ids:
                incharge.assignments.remove(assignment)
        for hall_id in hall_ids:
            if hall_id not in current:
                incharge.assignments.append(InchargeStudyHall(study_hall_id=hall_id))
        self.db.commit()
        self.db.refresh(incharge)
        change_feed.publish(f"merchant:{incharge.merchant_id}", "updated", "incharge", incharge.id)
        return incharge
    
    def set_active(self, actor: User, incharge_id: int, is_active: bool) -> Optional[Incharge]:
        """Activate or deactivate an incharge together with their login"""
        incharge = self._managed(actor, incharge_id)
        if not incharge:
            return None
        incharge.is_active = is_active
        incharge.user.is_active = is_active
        AuditService.log(
            self.db, actor.id, "incharge_activated" if is_active else "incharge_deactivated",
            "incharge", incharge.id, commit=False
        )
        self.db.commit()
        self.db.refresh(incharge)
        change_feed.publish(f"merchant:{incharge.merchant_id}", "updated", "incharge", incharge.id,
                            {"is_active": incharge.is_active})
        return incharge
    
    def assigned_halls(self, user_id: int) -> List[StudyHall]:
        """Study halls an active incharge may work at"""
        return self.db.query(StudyHall).join(
            InchargeStudyHall, InchargeStudyHall.study_hall_id == StudyHall.id
        ).join(Incharge, Incharge.id == InchargeStudyHall.incharge_id).filter(
            Incharge.user_id == user_id,
            Incharge.is_active == True  # noqa: E712
        ).order_by(StudyHall.id).all()
    
    def is_assigned(self, user_id: int, study_hall_id: int) -> bool:
        return self.db.query(InchargeStudyHall.id).join(Incharge).filter(
            Incharge.user_id == user_id,
            Incharge.is_active == True,  # noqa: E712
            InchargeStudyHall.study_hall_id == study_hall_id
        ).first() is not None
