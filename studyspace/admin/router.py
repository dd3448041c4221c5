from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from studyspace.database import get_db
from studyspace.auth.dependencies import require_admin
from studyspace.auth.schemas import User, StaffUserCreate
from studyspace.auth.service import UserService
from studyspace.models import User as UserModel
from studyspace.admin.schemas import (
    BusinessSettings, BusinessSettingsUpdate, UserActiveUpdate, AuditLog, DashboardStats, SystemHealth
)
from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.admin.audit_service import AuditService
from studyspace.admin.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["admin"])

# Business settings
@router.get("/settings", response_model=BusinessSettings)
def get_business_settings(admin_user: UserModel = Depends(require_admin), db: Session = Depends(get_db)):
    """Get business settings"""
    return BusinessSettingsService.get(db)

@router.put("/settings", response_model=BusinessSettings)
def update_business_settings(
    settings_update: BusinessSettingsUpdate,
    admin_user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update business settings"""
    update_data = settings_update.dict(exclude_unset=True)
    try:
        business_settings = BusinessSettingsService.update(db, update_data, updated_by=admin_user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    AuditService.log(
        db, admin_user.id, "settings.update", "business_settings", business_settings.id,
        {"fields": sorted(update_data)}
    )
    return business_settings

# Operational users
@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(
    user: StaffUserCreate,
    admin_user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a user of any role"""
    try:
        db_user = UserService.create_staff_user(db, user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    AuditService.log(db, admin_user.id, "user.create", "user", db_user.id, {"role": db_user.role})
    return db_user

@router.get("/users", response_model=List[User])
def list_users(
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin_user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List users with role and search filters"""
    return UserService.list_users(db, role=role, search=search, limit=limit, offset=offset)

@router.patch("/users/{user_id}/active", response_model=User)
def set_user_active(
    user_id: int,
    update: UserActiveUpdate,
    admin_user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Activate or deactivate a user"""
    if user_id == admin_user.id and not update.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    db_user = UserService.set_active(db, user_id, update.is_active)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    action = "user.activate" if update.is_active else "user.deactivate"
    AuditService.log(db, admin_user.id, action, "user", db_user.id)
    return db_user

# Audit log
@router.get("/audit-logs", response_model=List[AuditLog])
def list_audit_logs(
    action: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin_user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List recorded staff actions, newest first"""
    return AuditService.list(db, action=action, actor_id=actor_id, limit=limit, offset=offset)

# Dashboard & health
@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(admin_user: UserModel = Depends(require_admin), db: Session = Depends(get_db)):
    """Get platform dashboard statistics"""
    return AdminService(db).dashboard_stats()

@router.get("/health", response_model=SystemHealth)
def get_system_health(admin_user: UserModel = Depends(require_admin), db: Session = Depends(get_db)):
    """Get system health status"""
    try:
        return AdminService(db).system_health()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to collect system health: {str(e)}"
        )
