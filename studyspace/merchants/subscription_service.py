import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import SubscriptionPlan, MerchantSubscription, StudyHall, Transaction
from studyspace.merchants.schemas import SubscriptionPlanCreate, SubscriptionPlanUpdate
from studyspace.pricing.calculations import add_months
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.notifications.notification_service import NotificationService
from studyspace.finances.numbering import next_number

logger = logging.getLogger(__name__)

DURATION_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}

USABLE_STATUSES = ("active", "trial")

class SubscriptionService:
    """Merchant subscription plans, trials and study hall limits"""
    
    def __init__(self, db: Session):
        self.db = db
    
    # Plans
    def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        query = self.db.query(SubscriptionPlan)
        if active_only:
            query = query.filter(SubscriptionPlan.status == "active")
        return query.order_by(SubscriptionPlan.price.asc()).all()
    
    def create_plan(self, plan_data: SubscriptionPlanCreate) -> SubscriptionPlan:
        plan = SubscriptionPlan(**plan_data.dict())
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"Created subscription plan {plan.name}")
        return plan
    
    def update_plan(self, plan_id: int, plan_data: SubscriptionPlanUpdate) -> Optional[SubscriptionPlan]:
        plan = self.db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
        if not plan:
            return None
        update_data = plan_data.dict(exclude_unset=True)
        if update_data.get("status") not in (None, "active", "inactive"):
            raise ValueError("Status must be active or inactive")
        for field, value in update_data.items():
            setattr(plan, field, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan
    
    # Merchant subscriptions
    def get_current_subscription(self, merchant_id: int) -> Optional[MerchantSubscription]:
        """Latest active or trial subscription"""
        return self.db.query(MerchantSubscription).filter(
            MerchantSubscription.merchant_id == merchant_id,
            MerchantSubscription.status.in_(USABLE_STATUSES)
        ).order_by(MerchantSubscription.start_date.desc(), MerchantSubscription.id.desc()).first()
    
    def history(self, merchant_id: int) -> List[MerchantSubscription]:
        return self.db.query(MerchantSubscription).filter(
            MerchantSubscription.merchant_id == merchant_id
        ).order_by(MerchantSubscription.start_date.desc(), MerchantSubscription.id.desc()).all()
    
    def start_trial(self, merchant_id: int) -> MerchantSubscription:
        """Start the one free trial a merchant gets"""
        business_settings = BusinessSettingsService.get(self.db)
        if not business_settings.trial_enabled:
            raise ValueError("Free trials are not available")
        
        used = self.db.query(MerchantSubscription).filter(
            MerchantSubscription.merchant_id == merchant_id,
            MerchantSubscription.is_trial == True  # noqa: E712
        ).first()
        if used:
            raise ValueError("Free trial has already been used")
        if self.get_current_subscription(merchant_id):
            raise ValueError("You already have an active subscription")
        
        now = datetime.now()
        expires_at = now + timedelta(days=business_settings.trial_days)
        subscription = MerchantSubscription(
            merchant_id=merchant_id,
            status="trial",
            is_trial=True,
            max_study_halls=business_settings.trial_max_study_halls,
            start_date=now,
            end_date=expires_at,
            trial_expires_at=expires_at,
            payment_amount=0
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Merchant {merchant_id} started a {business_settings.trial_days}-day trial")
        return subscription
    
    def subscribe(
        self,
        merchant_id: int,
        plan_id: int,
        payment_method: str = "online",
        payment_id: Optional[str] = None
    ) -> MerchantSubscription:
        """Pay for a plan; the previous subscription is superseded"""
        plan = self.db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
        if not plan or plan.status != "active":
            raise ValueError("Subscription plan not found or inactive")
        
        current = self.get_current_subscription(merchant_id)
        if current:
            current.status = "superseded"
        
        now = datetime.now()
        end_date = datetime.combine(add_months(now.date(), DURATION_MONTHS[plan.duration]), now.time())
        subscription = MerchantSubscription(
            merchant_id=merchant_id,
            plan_id=plan.id,
            status="active",
            is_trial=False,
            max_study_halls=plan.max_study_halls,
            start_date=now,
            end_date=end_date,
            payment_amount=plan.price
        )
        self.db.add(subscription)
        self.db.flush()
        
        self.db.add(Transaction(
            transaction_number=next_number(self.db, Transaction, Transaction.transaction_number, "TXN"),
            user_id=merchant_id,
            subscription_id=subscription.id,
            transaction_type="subscription",
            amount=plan.price,
            payment_method=payment_method,
            payment_id=payment_id,
            status="completed"
        ))
        self.db.commit()
        self.db.refresh(subscription)
        
        NotificationService(self.db).notify(
            merchant_id, "Subscription Activated",
            f"Your {plan.name} plan is active until {end_date.date().isoformat()}.",
            type="success"
        )
        logger.info(f"Merchant {merchant_id} subscribed to plan {plan.name}")
        return subscription
    
    def expire_subscriptions(self, now: Optional[datetime] = None) -> int:
        """Mark lapsed subscriptions and trials as expired"""
        now = now or datetime.now()
        lapsed = self.db.query(MerchantSubscription).filter(
            MerchantSubscription.status.in_(USABLE_STATUSES),
            MerchantSubscription.end_date != None,  # noqa: E711
            MerchantSubscription.end_date < now
        ).all()
        for subscription in lapsed:
            subscription.status = "expired"
        self.db.commit()
        if lapsed:
            logger.info(f"Expired {len(lapsed)} merchant subscriptions")
        return len(lapsed)
    
    def subscription_limits(self, merchant_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """How many study halls a merchant may have and whether another can be created"""
        now = now or datetime.now()
        current_halls = self.db.query(StudyHall).filter(StudyHall.merchant_id == merchant_id).count()
        subscription = self.get_current_subscription(merchant_id)
        
        if subscription is None:
            limits = {
                "max_study_halls": 1,
                "current_study_halls": current_halls,
                "is_trial": False,
                "trial_expires_at": None,
                "plan_name": "No Subscription",
                "status": "inactive",
                "can_create_study_hall": False,
            }
            limits["message"] = self.limit_message(limits)
            return limits
        
        status = subscription.status
        if subscription.end_date and subscription.end_date < now:
            status = "expired"
        
        if subscription.is_trial:
            plan_name = "Free Trial"
        else:
            plan_name = subscription.plan.name if subscription.plan else "Subscription"
        
        max_halls = subscription.max_study_halls
        limits = {
            "max_study_halls": max_halls,
            "current_study_halls": current_halls,
            "is_trial": bool(subscription.is_trial),
            "trial_expires_at": subscription.trial_expires_at,
            "plan_name": plan_name,
            "status": status,
            "can_create_study_hall": status in USABLE_STATUSES and (max_halls is None or current_halls < max_halls),
        }
        limits["message"] = self.limit_message(limits)
        return limits
    
    @staticmethod
    def limit_message(limits: Dict[str, Any]) -> Optional[str]:
        """Why a merchant cannot create another study hall, or None"""
        if limits["can_create_study_hall"]:
            return None
        if limits["status"] == "inactive":
            return "Subscribe to a plan or start a free trial to create study halls"
        if limits["status"] == "expired":
            if limits["is_trial"]:
                return "Your free trial has expired. Subscribe to a plan to continue"
            return "Your subscription has expired. Renew to create study halls"
        return (
            f"Your {limits['plan_name']} plan allows {limits['max_study_halls']} study hall(s). "
            f"Upgrade to add more"
        )
