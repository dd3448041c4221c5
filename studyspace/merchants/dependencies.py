from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from studyspace.database import get_db
from studyspace.auth.dependencies import require_roles
from studyspace.auth.permissions import MERCHANT
from studyspace.merchants.onboarding_service import OnboardingService

require_merchant = require_roles(MERCHANT)

def require_verified_merchant(current_user = Depends(require_merchant), db: Session = Depends(get_db)):
    """Allow only merchants whose onboarding has been approved"""
    profile = OnboardingService(db).get_profile(current_user.id)
    if profile.verification_status != "approved":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=OnboardingService.status_message(profile)
        )
    return current_user
