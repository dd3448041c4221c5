from fastapi import APIRouter, Depends, HTTPException, status, Query, WebSocket
from sqlalchemy.orm import Session
from typing import List

from studyspace.database import get_db
from studyspace.auth.dependencies import get_current_user, require_admin
from studyspace.auth.service import UserService
from studyspace.auth.utils import decode_access_token
from studyspace.models import User, SMSTemplate as SMSTemplateModel, SMSLog as SMSLogModel
from studyspace.admin.settings_service import SMS_PURPOSES
from studyspace.notifications.schemas import (
    Notification, UnreadCount, SMSTemplate, SMSTemplateUpdate, SMSLog, SMSSendRequest, SMSSendResult
)
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.sms_service import SMSService, DEFAULT_TEMPLATES
from studyspace.notifications.websocket import websocket_endpoint

router = APIRouter()

# In-app notifications
@router.get("/notifications", response_model=List[Notification])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List current user's notifications"""
    return NotificationService(db).list_notifications(current_user.id, unread_only, limit)

@router.get("/notifications/unread-count", response_model=UnreadCount)
def unread_count(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Count unread notifications"""
    return UnreadCount(unread_count=NotificationService(db).unread_count(current_user.id))

@router.post("/notifications/{notification_id}/read", response_model=Notification)
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark a notification as read"""
    notification = NotificationService(db).mark_read(current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification

@router.post("/notifications/read-all")
def mark_all_notifications_read(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Mark all notifications as read"""
    updated = NotificationService(db).mark_all_read(current_user.id)
    return {"updated": updated}

# SMS administration
@router.get("/sms/templates", response_model=List[SMSTemplate])
def list_sms_templates(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """List SMS templates"""
    return db.query(SMSTemplateModel).order_by(SMSTemplateModel.purpose).all()

@router.put("/sms/templates/{purpose}", response_model=SMSTemplate)
def upsert_sms_template(
    purpose: str,
    template_data: SMSTemplateUpdate,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create or replace the SMS template for a purpose"""
    if purpose not in SMS_PURPOSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown SMS purpose: {purpose}")
    
    template = db.query(SMSTemplateModel).filter(SMSTemplateModel.purpose == purpose).first()
    if not template:
        template = SMSTemplateModel(purpose=purpose)
        db.add(template)
    for field, value in template_data.dict().items():
        setattr(template, field, value)
    db.commit()
    db.refresh(template)
    return template

@router.get("/sms/default-templates")
def default_sms_templates(admin_user: User = Depends(require_admin)):
    """Built-in templates used when no custom template is stored"""
    return DEFAULT_TEMPLATES

@router.get("/sms/logs", response_model=List[SMSLog])
def list_sms_logs(
    sms_status: str = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List SMS delivery attempts"""
    query = db.query(SMSLogModel)
    if sms_status:
        query = query.filter(SMSLogModel.status == sms_status)
    return query.order_by(SMSLogModel.id.desc()).limit(limit).all()

@router.post("/sms/send", response_model=SMSSendResult)
def send_sms(
    request: SMSSendRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Send an SMS for a purpose (used to test templates)"""
    success, error = SMSService(db).send(request.purpose, request.phone, request.variables)
    return SMSSendResult(success=success, message="SMS sent successfully" if success else error)

# Real-time change feed
@router.websocket("/ws/changes")
async def changes_websocket(websocket: WebSocket, token: str = Query(...), db: Session = Depends(get_db)):
    """WebSocket for data change events"""
    token_data = decode_access_token(token)
    user = UserService.get_user_by_id(db, token_data["user_id"]) if token_data else None
    if user is None or not user.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket_endpoint(websocket, user)
