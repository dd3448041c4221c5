import logging
from typing import Dict, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.config import settings
from studyspace.models import SMSTemplate, SMSLog

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = {
    "user_created": "Welcome to {brand}, {name}! Your account has been created. Login with {email}.",
    "merchant_created": "Welcome to {brand}, {name}! Your merchant account is ready. Complete onboarding to list your study halls.",
    "booking_confirmation": "Booking {booking_number} confirmed at {hall_name}, seat {seat} from {start_date} to {end_date}. Amount paid Rs.{amount}.",
    "otp_verification": "Your {brand} verification code is {otp}. It is valid for 5 minutes.",
    "password_reset": "Your {brand} password has been reset. New password: {password}",
    "merchant_approved": "Congratulations {name}! Your {brand} merchant account has been approved.",
    "booking_alert_merchant": "New booking {booking_number} at {hall_name}, seat {seat} by {student_name}. Amount Rs.{amount}.",
}

SUCCESS_MARKERS = ("Messages has been sent", "Ack:")

def render_template(template: str, variables: Dict[str, object]) -> str:
    """Substitute {key} placeholders with variable values"""
    message = template
    for key, value in variables.items():
        message = message.replace(f"{{{key}}}", str(value))
    return message

def is_success_response(response_text: str) -> bool:
    """Whether the gateway reported the message as sent"""
    lowered = response_text.lower()
    return any(marker in response_text for marker in SUCCESS_MARKERS) or "ok" in lowered or "success" in lowered

class SMSService:
    """Outbound SMS through the HTTP gateway"""
    
    def __init__(self, db: Session, client: Optional[httpx.Client] = None):
        self.db = db
        self.client = client
    
    def send(
        self,
        purpose: str,
        phone: Optional[str],
        variables: Optional[Dict[str, object]] = None,
        user_id: Optional[int] = None
    ) -> Tuple[bool, Optional[str]]:
        """
        Send an SMS for a purpose.
        
        Returns:
            Tuple of (success, error_message)
        """
        business_settings = BusinessSettingsService.get(self.db)
        if not business_settings.sms_enabled:
            logger.debug(f"SMS disabled, skipping {purpose}")
            return False, "SMS is disabled"
        
        if not BusinessSettingsService.sms_purpose_enabled(business_settings, purpose):
            logger.debug(f"SMS type {purpose} disabled")
            return False, f"SMS type {purpose} is disabled"
        
        if not phone:
            logger.debug(f"No phone number for {purpose} SMS to user {user_id}")
            return False, "No phone number provided"
        
        template = self.db.query(SMSTemplate).filter(
            SMSTemplate.purpose == purpose,
            SMSTemplate.is_active == True  # noqa: E712
        ).first()
        if template:
            template_text, dlt_template_id = template.template, template.dlt_template_id
        elif purpose in DEFAULT_TEMPLATES:
            template_text, dlt_template_id = DEFAULT_TEMPLATES[purpose], None
        else:
            logger.warning(f"SMS template not found for purpose: {purpose}")
            return False, f"SMS template not found for purpose: {purpose}"
        
        context = {"brand": business_settings.brand_name}
        context.update(variables or {})
        message = render_template(template_text, context)
        
        params = {
            "username": settings.SMS_USERNAME,
            "password": settings.SMS_PASSWORD,
            "from": settings.SMS_SENDER_ID,
            "to": phone,
            "msg": message,
            "type": "1",
        }
        if dlt_template_id:
            params["template_id"] = dlt_template_id
        
        logger.info(f"Sending SMS: type={purpose}, to={phone}")
        request_url = None
        try:
            client = self.client or httpx.Client(timeout=settings.SMS_TIMEOUT_SECONDS)
            try:
                response = client.get(settings.SMS_GATEWAY_URL, params=params)
            finally:
                if self.client is None:
                    client.close()
            request_url = self._masked_url(str(response.request.url))
            response_text = response.text
        except httpx.HTTPError as e:
            logger.error(f"SMS gateway error: {str(e)}")
            self._log(purpose, phone, message, user_id, "failed", request_url, None, str(e))
            return False, str(e)
        
        success = is_success_response(response_text)
        self._log(
            purpose, phone, message, user_id, "sent" if success else "failed",
            request_url, response_text, None if success else response_text
        )
        if success:
            logger.info(f"SMS sent successfully: {purpose} to {phone}")
            return True, None
        
        logger.error(f"SMS failed: {purpose} to {phone}: {response_text}")
        return False, "SMS failed to send"
    
    def _masked_url(self, url: str) -> str:
        if settings.SMS_PASSWORD:
            return url.replace(settings.SMS_PASSWORD, "***")
        return url
    
    def _log(self, purpose, phone, message, user_id, status, request_url, response_text, error_message):
        sms_log = SMSLog(
            user_id=user_id,
            purpose=purpose,
            phone=phone,
            message=message,
            request_url=request_url,
            response_text=response_text,
            status=status,
            error_message=error_message
        )
        self.db.add(sms_log)
        self.db.commit()
