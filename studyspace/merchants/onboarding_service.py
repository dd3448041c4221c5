import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from studyspace.models import MerchantProfile, User
from studyspace.merchants.schemas import BusinessInfoStep, KYCStep, BankDetailsStep
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.sms_service import SMSService
from studyspace.notifications.change_feed import change_feed
from studyspace.admin.audit_service import AuditService

logger = logging.getLogger(__name__)

STEP_FIELDS = {
    1: ("business_name", "business_address", "business_email", "phone"),
    2: ("trade_license_number", "gstin_pan"),
    3: ("account_holder_name", "account_number", "bank_name", "ifsc_code"),
}

LAST_STEP = 3

class OnboardingService:
    """Three-step merchant onboarding and verification"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_profile(self, merchant_id: int) -> MerchantProfile:
        """Get a merchant's profile, creating an empty one when missing"""
        profile = self.db.query(MerchantProfile).filter(MerchantProfile.merchant_id == merchant_id).first()
        if profile is None:
            profile = MerchantProfile(merchant_id=merchant_id, onboarding_step=1)
            self.db.add(profile)
            self.db.commit()
            self.db.refresh(profile)
        return profile
    
    @staticmethod
    def step_complete(profile: MerchantProfile, step: int) -> bool:
        return all(getattr(profile, field) for field in STEP_FIELDS[step])
    
    def _save_step(self, merchant_id: int, step: int, data: Dict[str, Any]) -> MerchantProfile:
        profile = self.get_profile(merchant_id)
        if profile.verification_status == "pending":
            raise ValueError("Your profile is under review and cannot be edited")
        if profile.verification_status == "approved":
            raise ValueError("Approved profiles cannot be edited. Contact support to update details")
        
        for field, value in data.items():
            setattr(profile, field, value)
        profile.onboarding_step = max(profile.onboarding_step or 1, min(step + 1, LAST_STEP))
        
        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"Merchant {merchant_id} saved onboarding step {step}")
        return profile
    
    def save_business_info(self, merchant_id: int, step: BusinessInfoStep) -> MerchantProfile:
        """Step 1: business information"""
        return self._save_step(merchant_id, 1, step.dict())
    
    def save_kyc(self, merchant_id: int, step: KYCStep) -> MerchantProfile:
        """Step 2: KYC documents"""
        return self._save_step(merchant_id, 2, step.dict())
    
    def save_bank_details(self, merchant_id: int, step: BankDetailsStep) -> MerchantProfile:
        """Step 3: bank details"""
        return self._save_step(merchant_id, 3, step.dict())
    
    def submit(self, merchant_id: int) -> MerchantProfile:
        """Submit completed onboarding for verification"""
        profile = self.get_profile(merchant_id)
        if profile.verification_status == "pending":
            raise ValueError("Onboarding has already been submitted")
        if profile.verification_status == "approved":
            raise ValueError("Merchant is already verified")
        
        incomplete = [step for step in STEP_FIELDS if not self.step_complete(profile, step)]
        if incomplete:
            raise ValueError(f"Complete onboarding step {incomplete[0]} before submitting")
        
        profile.is_onboarding_complete = True
        profile.verification_status = "pending"
        profile.verification_notes = None
        profile.submitted_at = datetime.now()
        self.db.commit()
        self.db.refresh(profile)
        
        change_feed.publish("staff", "submitted", "merchant_profile", profile.id, {"merchant_id": merchant_id})
        logger.info(f"Merchant {merchant_id} submitted onboarding for verification")
        return profile
    
    def verify(self, staff: User, merchant_id: int, approve: bool, notes: Optional[str] = None) -> MerchantProfile:
        """Approve or reject a submitted merchant"""
        profile = self.db.query(MerchantProfile).filter(MerchantProfile.merchant_id == merchant_id).first()
        if not profile:
            raise ValueError("Merchant profile not found")
        if profile.verification_status != "pending":
            raise ValueError("Merchant is not awaiting verification")
        
        profile.verification_status = "approved" if approve else "rejected"
        profile.verification_notes = notes
        profile.verified_by = staff.id
        profile.verified_at = datetime.now()
        if not approve:
            profile.is_onboarding_complete = False
        
        AuditService.log(
            self.db, staff.id, "merchant_verified" if approve else "merchant_rejected",
            "merchant", merchant_id, {"notes": notes}, commit=False
        )
        self.db.commit()
        self.db.refresh(profile)
        
        notifications = NotificationService(self.db)
        if approve:
            notifications.notify(
                merchant_id, "Account Approved",
                "Your merchant account has been verified. You can now list study halls.",
                type="success", action_url="/merchant"
            )
            SMSService(self.db).send(
                "merchant_approved", profile.phone or profile.merchant.phone,
                {"name": profile.merchant.full_name}, user_id=merchant_id
            )
        else:
            notifications.notify(
                merchant_id, "Verification Rejected",
                f"Your merchant verification was rejected. {notes or ''}".strip(),
                type="warning", action_url="/merchant/onboarding"
            )
        
        change_feed.publish(f"merchant:{merchant_id}", "updated", "merchant_profile", profile.id,
                            {"verification_status": profile.verification_status})
        logger.info(f"Merchant {merchant_id} {profile.verification_status} by user {staff.id}")
        return profile
    
    def onboarding_status(self, merchant_id: int) -> Dict[str, Any]:
        """Progress through onboarding and whether the dashboard is open"""
        profile = self.get_profile(merchant_id)
        completed = [step for step in STEP_FIELDS if self.step_complete(profile, step)]
        return {
            "onboarding_step": profile.onboarding_step,
            "steps_completed": completed,
            "is_onboarding_complete": bool(profile.is_onboarding_complete),
            "verification_status": profile.verification_status,
            "can_access_dashboard": profile.verification_status == "approved",
            "message": self.status_message(profile),
        }
    
    @staticmethod
    def status_message(profile: MerchantProfile) -> str:
        status = profile.verification_status
        if status == "approved":
            return "Your account is verified"
        if status == "pending":
            return "Your profile is under review"
        if status == "rejected":
            return "Your verification was rejected. Update your details and submit again"
        return "Complete onboarding to access the merchant dashboard"
    
    def list_profiles(self, verification_status: Optional[str] = None) -> List[MerchantProfile]:
        """List merchant profiles, oldest submission first"""
        query = self.db.query(MerchantProfile)
        if verification_status:
            query = query.filter(MerchantProfile.verification_status == verification_status)
        return query.order_by(MerchantProfile.submitted_at.asc(), MerchantProfile.id.asc()).all()
