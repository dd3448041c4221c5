import logging
import secrets
import string
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import ReferralCode, ReferralReward, User
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.notifications.notification_service import NotificationService
from studyspace.promotions.reward_service import RewardService

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8

class ReferralService:
    """Referral codes and the points they earn"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _generate_code(self) -> str:
        while True:
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not self.db.query(ReferralCode.id).filter(ReferralCode.code == code).first():
                return code
    
    def get_or_create_code(self, user_id: int) -> ReferralCode:
        """A user's referral code, generated on first request"""
        referral_code = self.db.query(ReferralCode).filter(ReferralCode.user_id == user_id).first()
        if referral_code is None:
            referral_code = ReferralCode(
                user_id=user_id, code=self._generate_code(), status="active",
                total_referrals=0, successful_referrals=0, total_earnings=0
            )
            self.db.add(referral_code)
            self.db.commit()
            self.db.refresh(referral_code)
        return referral_code
    
    def get_active_code(self, code: str) -> Optional[ReferralCode]:
        return self.db.query(ReferralCode).filter(
            ReferralCode.code == (code or "").strip().upper(),
            ReferralCode.status == "active"
        ).first()
    
    def _completed_this_month(self, referrer_id: int, now: datetime) -> int:
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return self.db.query(ReferralReward).filter(
            ReferralReward.referrer_id == referrer_id,
            ReferralReward.status == "completed",
            ReferralReward.completed_at >= month_start
        ).count()
    
    def process_referral(
        self,
        referee: User,
        code: str,
        booking_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> ReferralReward:
        """Apply a referral code for a referee.
        
        With a booking the referral completes immediately; otherwise it stays
        pending until the referee's first paid booking.
        """
        now = now or datetime.now()
        referral_code = self.get_active_code(code)
        if not referral_code:
            raise ValueError("Invalid referral code")
        if referral_code.user_id == referee.id:
            raise ValueError("You cannot use your own referral code")
        
        existing = self.db.query(ReferralReward).filter(
            ReferralReward.referral_code_id == referral_code.id,
            ReferralReward.referee_id == referee.id
        ).first()
        if existing:
            raise ValueError("You have already used this referral code")
        
        business_settings = BusinessSettingsService.get(self.db)
        if self._completed_this_month(referral_code.user_id, now) >= business_settings.monthly_referral_limit:
            raise ValueError("Referral limit reached for this month")
        
        reward = ReferralReward(
            referral_code_id=referral_code.id,
            referrer_id=referral_code.user_id,
            referee_id=referee.id,
            referrer_points=business_settings.referrer_points,
            referee_points=business_settings.referee_points,
            status="pending"
        )
        self.db.add(reward)
        referral_code.total_referrals = (referral_code.total_referrals or 0) + 1
        self.db.flush()
        
        if booking_id:
            self._complete(reward, referral_code, booking_id, now)
        
        self.db.commit()
        self.db.refresh(reward)
        logger.info(f"Referral {reward.id} ({reward.status}): user {referee.id} referred by {reward.referrer_id}")
        return reward
    
    def complete_pending_referral(self, referee_id: int, booking_id: Optional[int], now: Optional[datetime] = None) -> Optional[ReferralReward]:
        """Complete the referee's pending referral on a paid booking (caller commits)"""
        reward = self.db.query(ReferralReward).filter(
            ReferralReward.referee_id == referee_id,
            ReferralReward.status == "pending"
        ).order_by(ReferralReward.id.asc()).first()
        if not reward:
            return None
        referral_code = self.db.query(ReferralCode).filter(ReferralCode.id == reward.referral_code_id).first()
        self._complete(reward, referral_code, booking_id, now or datetime.now())
        return reward
    
    def _complete(self, reward: ReferralReward, referral_code: ReferralCode, booking_id: Optional[int], now: datetime):
        rewards = RewardService(self.db)
        reward.status = "completed"
        reward.booking_id = booking_id
        reward.completed_at = now
        
        rewards.earn_points(reward.referrer_id, reward.referrer_points, "Referral bonus",
                            booking_id=booking_id, referral_id=reward.id, commit=False)
        rewards.earn_points(reward.referee_id, reward.referee_points, "Welcome referral bonus",
                            booking_id=booking_id, referral_id=reward.id, commit=False)
        
        referral_code.successful_referrals = (referral_code.successful_referrals or 0) + 1
        referral_code.total_earnings = (referral_code.total_earnings or 0) + reward.referrer_points
        
        notifications = NotificationService(self.db)
        notifications.notify(
            reward.referrer_id, "Referral Reward Earned!",
            f"Your friend completed their first booking. You earned {reward.referrer_points} points.",
            type="success", commit=False
        )
        notifications.notify(
            reward.referee_id, "Welcome Bonus!",
            f"You earned {reward.referee_points} points for joining with a referral code.",
            type="success", commit=False
        )
    
    def referral_stats(self, user_id: int) -> Dict[str, Any]:
        """A user's code and how their referrals are doing"""
        referral_code = self.get_or_create_code(user_id)
        referrals = self.db.query(ReferralReward).filter(
            ReferralReward.referrer_id == user_id
        ).order_by(ReferralReward.created_at.desc(), ReferralReward.id.desc()).all()
        return {
            "code": referral_code.code,
            "status": referral_code.status,
            "total_referrals": referral_code.total_referrals or 0,
            "successful_referrals": referral_code.successful_referrals or 0,
            "pending_referrals": sum(1 for r in referrals if r.status == "pending"),
            "total_earnings": referral_code.total_earnings or 0,
            "referrals": referrals,
        }
