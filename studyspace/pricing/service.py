import logging
from datetime import date
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import MonthlyPricingPlan, StudyHall, PrivateHall, Cabin
from studyspace.pricing.schemas import PricingPlanCreate
from studyspace.pricing import calculations
from studyspace.admin.settings_service import BusinessSettingsService

logger = logging.getLogger(__name__)

class PricingService:
    """Monthly pricing plans and booking quotes"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def save_pricing_plan(self, merchant_id: int, plan_data: PricingPlanCreate) -> MonthlyPricingPlan:
        """Create or replace the pricing plan of a merchant's study hall"""
        calculations.validate_pricing_plan(plan_data.dict())
        
        hall = self.db.query(StudyHall).filter(StudyHall.id == plan_data.study_hall_id).first()
        if not hall:
            raise ValueError("Study hall not found")
        if hall.merchant_id != merchant_id:
            raise PermissionError("You can only price your own study halls")
        
        plan = self.db.query(MonthlyPricingPlan).filter(
            MonthlyPricingPlan.merchant_id == merchant_id,
            MonthlyPricingPlan.study_hall_id == plan_data.study_hall_id
        ).first()
        if not plan:
            plan = MonthlyPricingPlan(merchant_id=merchant_id, study_hall_id=plan_data.study_hall_id)
            self.db.add(plan)
        
        for field, value in plan_data.dict(exclude={"study_hall_id"}).items():
            setattr(plan, field, value)
        
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"Saved pricing plan for study hall {hall.id} (merchant {merchant_id})")
        return plan
    
    def get_pricing_plan(self, study_hall_id: int) -> Optional[MonthlyPricingPlan]:
        """Get pricing plan for a study hall"""
        return self.db.query(MonthlyPricingPlan).filter(
            MonthlyPricingPlan.study_hall_id == study_hall_id
        ).first()
    
    def list_merchant_pricing_plans(self, merchant_id: int) -> List[MonthlyPricingPlan]:
        """List a merchant's pricing plans, newest first"""
        return self.db.query(MonthlyPricingPlan).filter(
            MonthlyPricingPlan.merchant_id == merchant_id
        ).order_by(MonthlyPricingPlan.created_at.desc(), MonthlyPricingPlan.id.desc()).all()
    
    def base_amount_for_hall(self, hall: StudyHall, start_date: date, end_date: date) -> Dict[str, Any]:
        """Seat rent before discounts and fees.
        
        Uses the hall's monthly pricing plan when it has one, otherwise bills
        whole 30-day months at the hall's monthly price.
        """
        plan = self.get_pricing_plan(hall.id)
        if plan:
            return calculations.calculate_monthly_booking_amount(start_date, end_date, plan)
        
        monthly_price = calculations.to_decimal(hall.monthly_price)
        if monthly_price <= 0:
            raise ValueError("This study hall has no monthly pricing configured")
        days = calculations.inclusive_days(start_date, end_date)
        months = calculations.months_for_days(days)
        amount = months * monthly_price
        return {
            "amount": amount,
            "months": months,
            "days": days,
            "period_type": calculations.PERIOD_TYPES[1],
            "available_periods": [calculations.PERIOD_TYPES[1]],
            "breakdown": {calculations.PERIOD_TYPES[1]: amount},
        }
    
    def quote_study_hall(self, study_hall_id: int, start_date: date, end_date: date) -> Optional[Dict[str, Any]]:
        """Price a seat booking including the platform fee"""
        hall = self.db.query(StudyHall).filter(StudyHall.id == study_hall_id).first()
        if not hall:
            return None
        
        calculations.validate_booking_dates(start_date, end_date)
        result = self.base_amount_for_hall(hall, start_date, end_date)
        platform_fee = calculations.platform_fee_from_settings(result["amount"], BusinessSettingsService.get(self.db))
        
        return {
            "study_hall_id": hall.id,
            "start_date": start_date,
            "end_date": end_date,
            "months": result["months"],
            "period_type": result["period_type"],
            "base_amount": result["amount"],
            "platform_fee": platform_fee,
            "total_amount": result["amount"] + platform_fee,
            "breakdown": result["breakdown"],
            "available_periods": result["available_periods"],
        }
    
    def quote_cabin(
        self,
        private_hall_id: int,
        cabin_id: int,
        start_date: date,
        end_date: Optional[date] = None
    ) -> Optional[Dict[str, Any]]:
        """Price a cabin booking; without an end date it is one calendar month"""
        hall = self.db.query(PrivateHall).filter(PrivateHall.id == private_hall_id).first()
        cabin = self.db.query(Cabin).filter(Cabin.id == cabin_id, Cabin.private_hall_id == private_hall_id).first()
        if not hall or not cabin:
            return None
        
        calculations.validate_cabin_start(start_date)
        if end_date is None:
            return calculations.calculate_simple_cabin_booking(
                start_date, cabin.monthly_price, hall.monthly_price, hall.deposit
            )
        
        calculations.validate_booking_dates(start_date, end_date)
        result = calculations.calculate_cabin_booking(
            start_date, end_date, cabin.monthly_price, hall.monthly_price, hall.deposit
        )
        result.update({"start_date": start_date, "end_date": end_date})
        return result
