from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

class Notification(BaseModel):
    id: int
    title: str
    message: str
    type: str
    action_url: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class UnreadCount(BaseModel):
    unread_count: int

class SMSTemplateUpdate(BaseModel):
    template: str
    dlt_template_id: Optional[str] = None
    is_active: bool = True

class SMSTemplate(BaseModel):
    id: int
    purpose: str
    template: str
    dlt_template_id: Optional[str] = None
    is_active: bool
    
    class Config:
        from_attributes = True

class SMSLog(BaseModel):
    id: int
    user_id: Optional[int] = None
    purpose: str
    phone: str
    message: str
    status: str
    request_url: Optional[str] = None
    response_text: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class SMSSendRequest(BaseModel):
    purpose: str
    phone: str
    variables: Dict[str, Any] = {}

class SMSSendResult(BaseModel):
    success: bool
    message: str
