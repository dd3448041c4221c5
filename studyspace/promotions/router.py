from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user
from studyspace.auth.permissions import ADMIN, MERCHANT
from studyspace.models import User
from studyspace.merchants.dependencies import require_verified_merchant
from studyspace.promotions.schemas import (
    CouponCreate, CouponUpdate, CouponStatusUpdate, Coupon, CouponValidateRequest, CouponValidation, CouponUsage,
    RewardAccount, RewardTransaction, RewardsConfig, RedeemRequest, RedeemResult,
    ReferralApply, ReferralReward, ReferralStats
)
from studyspace.promotions.coupon_service import CouponService
from studyspace.promotions.reward_service import RewardService
from studyspace.promotions.referral_service import ReferralService

router = APIRouter()

def require_coupon_manager(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Admins, or merchants whose onboarding is approved"""
    if current_user.role == ADMIN:
        return current_user
    if current_user.role == MERCHANT:
        return require_verified_merchant(current_user, db)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")

# Coupons
@router.post("/coupons", response_model=Coupon, status_code=status.HTTP_201_CREATED)
def create_coupon(
    coupon_data: CouponCreate,
    current_user: User = Depends(require_coupon_manager),
    db: Session = Depends(get_db)
):
    """Create a coupon"""
    try:
        return CouponService(db).create_coupon(current_user, coupon_data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/coupons", response_model=List[Coupon])
def list_coupons(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Coupons visible to the current user"""
    return CouponService(db).list_coupons(current_user)

@router.post("/coupons/validate", response_model=CouponValidation)
def validate_coupon(
    request: CouponValidateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Check a coupon against a booking amount"""
    return CouponService(db).validate_coupon(
        current_user.id, request.code, request.booking_amount, request.study_hall_id, request.private_hall_id
    )

@router.put("/coupons/{coupon_id}", response_model=Coupon)
def update_coupon(
    coupon_id: int,
    coupon_update: CouponUpdate,
    current_user: User = Depends(require_coupon_manager),
    db: Session = Depends(get_db)
):
    """Update a coupon"""
    try:
        coupon = CouponService(db).update_coupon(current_user, coupon_id, coupon_update)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon

@router.patch("/coupons/{coupon_id}/status", response_model=Coupon)
def set_coupon_status(
    coupon_id: int,
    status_update: CouponStatusUpdate,
    current_user: User = Depends(require_coupon_manager),
    db: Session = Depends(get_db)
):
    """Activate or deactivate a coupon"""
    try:
        coupon = CouponService(db).set_status(current_user, coupon_id, status_update.status)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon

@router.get("/coupons/{coupon_id}/usage", response_model=List[CouponUsage])
def get_coupon_usage(
    coupon_id: int,
    current_user: User = Depends(require_coupon_manager),
    db: Session = Depends(get_db)
):
    """Who used a coupon and for how much"""
    try:
        usage = CouponService(db).usage_history(current_user, coupon_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if usage is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return usage

# Rewards
@router.get("/rewards/config", response_model=RewardsConfig)
def get_rewards_config(db: Session = Depends(get_db)):
    """Whether rewards are on and what a point is worth"""
    return RewardService(db).rewards_config()

@router.get("/rewards/me", response_model=RewardAccount)
def get_my_rewards(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user's points balance"""
    service = RewardService(db)
    account = service.get_account(current_user.id)
    db.commit()
    return account

@router.get("/rewards/history", response_model=List[RewardTransaction])
def get_reward_history(
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Points earned and redeemed"""
    return RewardService(db).history(current_user.id, limit)

@router.post("/rewards/redeem", response_model=RedeemResult)
def redeem_points(
    request: RedeemRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Quote or redeem points for a discount"""
    try:
        return RewardService(db).redeem_points(
            current_user.id, request.points, request.booking_id, validate_only=request.validate_only
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

# Referrals
@router.get("/referrals/me", response_model=ReferralStats)
def get_my_referrals(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user's referral code and referrals"""
    return ReferralService(db).referral_stats(current_user.id)

@router.post("/referrals/apply", response_model=ReferralReward, status_code=status.HTTP_201_CREATED)
def apply_referral_code(
    request: ReferralApply,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Apply someone's referral code; it pays out on the first paid booking"""
    try:
        return ReferralService(db).process_referral(current_user, request.code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
