import logging
from typing import Optional

from sqlalchemy.orm import Session

from studyspace.models import BusinessSettings

logger = logging.getLogger(__name__)

SMS_PURPOSES = [
    "merchant_created",
    "user_created",
    "booking_confirmation",
    "otp_verification",
    "password_reset",
    "merchant_approved",
    "booking_alert_merchant",
]

class BusinessSettingsService:
    """Tenant-wide settings stored as a single row"""
    
    @staticmethod
    def get(db: Session) -> BusinessSettings:
        """Get business settings, creating the defaults on first use"""
        business_settings = db.query(BusinessSettings).order_by(BusinessSettings.id).first()
        if business_settings is None:
            business_settings = BusinessSettings()
            db.add(business_settings)
            db.commit()
            db.refresh(business_settings)
            logger.info("Created default business settings")
        return business_settings
    
    @staticmethod
    def update(db: Session, update_data: dict, updated_by: Optional[int] = None) -> BusinessSettings:
        """Update business settings"""
        business_settings = BusinessSettingsService.get(db)
        
        if update_data.get("platform_fee_type") not in (None, "flat", "percentage"):
            raise ValueError("Platform fee type must be 'flat' or 'percentage'")
        for field in ("platform_fee_value", "platform_fee_percentage", "minimum_settlement_amount",
                      "minimum_withdrawal_amount", "points_conversion_rate"):
            if update_data.get(field) is not None and update_data[field] < 0:
                raise ValueError(f"{field} cannot be negative")
        if update_data.get("platform_fee_percentage") is not None and update_data["platform_fee_percentage"] > 100:
            raise ValueError("platform_fee_percentage cannot exceed 100")
        
        for field, value in update_data.items():
            setattr(business_settings, field, value)
        business_settings.updated_by = updated_by
        
        db.commit()
        db.refresh(business_settings)
        logger.info(f"Business settings updated by user {updated_by}: {sorted(update_data)}")
        return business_settings
    
    @staticmethod
    def sms_purpose_enabled(business_settings: BusinessSettings, purpose: str) -> bool:
        """Whether SMS is switched on for a purpose"""
        if not business_settings.sms_enabled:
            return False
        if purpose not in SMS_PURPOSES:
            return True
        return bool(getattr(business_settings, f"sms_{purpose}"))
