from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from studyspace.database import get_db
from studyspace.auth.dependencies import require_roles, require_admin
from studyspace.auth.permissions import ADMIN, MERCHANT, INCHARGE, TELEMARKETING_EXECUTIVE
from studyspace.models import User
from studyspace.merchants.dependencies import require_merchant, require_verified_merchant
from studyspace.merchants.schemas import (
    BusinessInfoStep, KYCStep, BankDetailsStep, MerchantProfile, OnboardingStatus, VerificationDecision,
    SubscriptionPlanCreate, SubscriptionPlanUpdate, SubscriptionPlan, SubscribeRequest,
    MerchantSubscription, SubscriptionLimits, InchargeCreate, InchargeAssignment, InchargeActiveUpdate, Incharge
)
from studyspace.halls.schemas import StudyHall
from studyspace.merchants.onboarding_service import OnboardingService
from studyspace.merchants.subscription_service import SubscriptionService
from studyspace.merchants.incharge_service import InchargeService, describe

router = APIRouter()

require_verifier = require_roles(ADMIN, TELEMARKETING_EXECUTIVE)

# Onboarding
@router.get("/merchants/onboarding", response_model=OnboardingStatus)
def get_onboarding_status(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Onboarding progress and whether the dashboard is unlocked"""
    return OnboardingService(db).onboarding_status(merchant.id)

@router.get("/merchants/profile", response_model=MerchantProfile)
def get_merchant_profile(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Current merchant's profile"""
    return OnboardingService(db).get_profile(merchant.id)

@router.put("/merchants/onboarding/business-info", response_model=MerchantProfile)
def save_business_info(
    step: BusinessInfoStep,
    merchant: User = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Onboarding step 1"""
    try:
        return OnboardingService(db).save_business_info(merchant.id, step)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.put("/merchants/onboarding/kyc", response_model=MerchantProfile)
def save_kyc(step: KYCStep, merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Onboarding step 2"""
    try:
        return OnboardingService(db).save_kyc(merchant.id, step)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.put("/merchants/onboarding/bank-details", response_model=MerchantProfile)
def save_bank_details(
    step: BankDetailsStep,
    merchant: User = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Onboarding step 3"""
    try:
        return OnboardingService(db).save_bank_details(merchant.id, step)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/merchants/onboarding/submit", response_model=MerchantProfile)
def submit_onboarding(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Submit onboarding for verification"""
    try:
        return OnboardingService(db).submit(merchant.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/merchants/profiles", response_model=List[MerchantProfile])
def list_merchant_profiles(
    verification_status: Optional[str] = Query(None),
    staff: User = Depends(require_verifier),
    db: Session = Depends(get_db)
):
    """Merchant profiles, e.g. those awaiting verification"""
    return OnboardingService(db).list_profiles(verification_status)

@router.post("/merchants/{merchant_id}/verify", response_model=MerchantProfile)
def verify_merchant(
    merchant_id: int,
    decision: VerificationDecision,
    staff: User = Depends(require_verifier),
    db: Session = Depends(get_db)
):
    """Approve or reject a merchant"""
    try:
        return OnboardingService(db).verify(staff, merchant_id, decision.approve, decision.notes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

# Subscription plans
@router.get("/subscription-plans", response_model=List[SubscriptionPlan])
def list_subscription_plans(db: Session = Depends(get_db)):
    """Active subscription plans"""
    return SubscriptionService(db).list_plans()

@router.get("/subscription-plans/all", response_model=List[SubscriptionPlan])
def list_all_subscription_plans(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """All subscription plans including inactive ones"""
    return SubscriptionService(db).list_plans(active_only=False)

@router.post("/subscription-plans", response_model=SubscriptionPlan, status_code=status.HTTP_201_CREATED)
def create_subscription_plan(
    plan_data: SubscriptionPlanCreate,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a subscription plan"""
    return SubscriptionService(db).create_plan(plan_data)

@router.put("/subscription-plans/{plan_id}", response_model=SubscriptionPlan)
def update_subscription_plan(
    plan_id: int,
    plan_data: SubscriptionPlanUpdate,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update a subscription plan"""
    try:
        plan = SubscriptionService(db).update_plan(plan_id, plan_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription plan not found")
    return plan

# Merchant subscriptions
@router.post("/subscriptions/trial", response_model=MerchantSubscription, status_code=status.HTTP_201_CREATED)
def start_trial(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Start the free trial"""
    try:
        return SubscriptionService(db).start_trial(merchant.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("/subscriptions", response_model=MerchantSubscription, status_code=status.HTTP_201_CREATED)
def subscribe(request: SubscribeRequest, merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Subscribe to a plan"""
    try:
        return SubscriptionService(db).subscribe(merchant.id, request.plan_id, request.payment_method, request.payment_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/subscriptions/current", response_model=Optional[MerchantSubscription])
def get_current_subscription(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Current active or trial subscription, if any"""
    return SubscriptionService(db).get_current_subscription(merchant.id)

@router.get("/subscriptions/history", response_model=List[MerchantSubscription])
def get_subscription_history(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """All of the merchant's subscriptions"""
    return SubscriptionService(db).history(merchant.id)

@router.get("/subscriptions/limits", response_model=SubscriptionLimits)
def get_subscription_limits(merchant: User = Depends(require_merchant), db: Session = Depends(get_db)):
    """Study hall allowance under the current subscription"""
    return SubscriptionService(db).subscription_limits(merchant.id)

@router.post("/subscriptions/expire")
def expire_subscriptions(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Expire lapsed subscriptions and trials"""
    return {"expired": SubscriptionService(db).expire_subscriptions()}

# Incharges
@router.post("/merchants/incharges", response_model=Incharge, status_code=status.HTTP_201_CREATED)
def create_incharge(
    incharge_data: InchargeCreate,
    merchant: User = Depends(require_verified_merchant),
    db: Session = Depends(get_db)
):
    """Create an incharge login for some of the merchant's study halls"""
    try:
        return describe(InchargeService(db).create_incharge(merchant, incharge_data))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/merchants/incharges", response_model=List[Incharge])
def list_incharges(
    merchant_id: Optional[int] = Query(None),
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Merchants see their own incharges, admins see everyone's"""
    if current_user.role == MERCHANT:
        merchant_id = current_user.id
    return [describe(i) for i in InchargeService(db).list_incharges(merchant_id)]

@router.put("/merchants/incharges/{incharge_id}/halls", response_model=Incharge)
def update_incharge_halls(
    incharge_id: int,
    assignment: InchargeAssignment,
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    try:
        incharge = InchargeService(db).update_assignments(current_user, incharge_id, assignment.study_hall_ids)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not incharge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incharge not found")
    return describe(incharge)

@router.patch("/merchants/incharges/{incharge_id}/active", response_model=Incharge)
def set_incharge_active(
    incharge_id: int,
    update: InchargeActiveUpdate,
    current_user: User = Depends(require_roles(MERCHANT, ADMIN)),
    db: Session = Depends(get_db)
):
    """Deactivate or reactivate an incharge"""
    try:
        incharge = InchargeService(db).set_active(current_user, incharge_id, update.is_active)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not incharge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incharge not found")
    return describe(incharge)

@router.get("/incharge/study-halls", response_model=List[StudyHall])
def get_assigned_study_halls(
    incharge: User = Depends(require_roles(INCHARGE)),
    db: Session = Depends(get_db)
):
    """Study halls the current incharge works at"""
    return InchargeService(db).assigned_halls(incharge.id)
