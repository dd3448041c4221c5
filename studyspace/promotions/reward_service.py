import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import Reward, RewardTransaction
from studyspace.pricing.calculations import round_money, to_decimal
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.notifications.notification_service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_CONVERSION_RATE = Decimal("0.10")
DEFAULT_MIN_REDEMPTION_POINTS = 10

class RewardService:
    """Reward points: earning, redemption and history"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def rewards_config(self) -> Dict[str, Any]:
        business_settings = BusinessSettingsService.get(self.db)
        enabled = business_settings.rewards_enabled
        rate = business_settings.points_conversion_rate
        minimum = business_settings.min_redemption_points
        return {
            "enabled": True if enabled is None else bool(enabled),
            "conversion_rate": DEFAULT_CONVERSION_RATE if rate is None else to_decimal(rate),
            "min_redemption_points": DEFAULT_MIN_REDEMPTION_POINTS if minimum is None else minimum,
        }
    
    def get_account(self, user_id: int) -> Reward:
        """Get a user's reward account, opening it on first use"""
        account = self.db.query(Reward).filter(Reward.user_id == user_id).first()
        if account is None:
            account = Reward(user_id=user_id, total_points=0, available_points=0, lifetime_earned=0, lifetime_redeemed=0)
            self.db.add(account)
            self.db.flush()
        return account
    
    def earn_points(
        self,
        user_id: int,
        points: int,
        reason: str,
        booking_id: Optional[int] = None,
        referral_id: Optional[int] = None,
        commit: bool = True
    ) -> Reward:
        """Credit points to a user"""
        if points <= 0:
            raise ValueError("Invalid points amount")
        account = self.get_account(user_id)
        account.total_points += points
        account.available_points += points
        account.lifetime_earned += points
        self.db.add(RewardTransaction(
            user_id=user_id, type="earned", points=points, reason=reason,
            booking_id=booking_id, referral_id=referral_id
        ))
        if commit:
            self.db.commit()
        logger.info(f"User {user_id} earned {points} points: {reason}")
        return account
    
    def redeem_points(
        self,
        user_id: int,
        points: int,
        booking_id: Optional[int] = None,
        validate_only: bool = False,
        commit: bool = True
    ) -> Dict[str, Any]:
        """Convert points into a booking discount.
        
        With ``validate_only`` the quote is returned without touching the balance.
        """
        config = self.rewards_config()
        if not config["enabled"]:
            raise ValueError("Rewards system is currently disabled")
        if not points or points <= 0:
            raise ValueError("Invalid points amount")
        
        minimum = config["min_redemption_points"]
        rate = config["conversion_rate"]
        if points < minimum:
            raise ValueError(f"Minimum redemption is {minimum} points (₹{round_money(minimum * rate)})")
        
        account = self.get_account(user_id)
        if account.available_points < points:
            raise ValueError(f"Insufficient points. You have {account.available_points} points available.")
        
        discount = round_money(points * rate)
        if validate_only:
            return {
                "success": True,
                "discount_amount": discount,
                "points_redeemed": points,
                "remaining_points": account.available_points - points,
            }
        
        account.available_points -= points
        account.lifetime_redeemed += points
        self.db.add(RewardTransaction(
            user_id=user_id, type="redeemed", points=points,
            reason=f"Redeemed for ₹{discount} discount", booking_id=booking_id
        ))
        NotificationService(self.db).notify(
            user_id, "Rewards Redeemed!",
            f"You redeemed {points} points for a ₹{discount} discount.",
            type="success", commit=False
        )
        if commit:
            self.db.commit()
        logger.info(f"User {user_id} redeemed {points} points for {discount}")
        return {
            "success": True,
            "discount_amount": discount,
            "points_redeemed": points,
            "remaining_points": account.available_points,
        }
    
    def history(self, user_id: int, limit: int = 100) -> List[RewardTransaction]:
        return self.db.query(RewardTransaction).filter(
            RewardTransaction.user_id == user_id
        ).order_by(RewardTransaction.created_at.desc(), RewardTransaction.id.desc()).limit(limit).all()
