"""
Notifications Module

Everything that tells a user something happened:

- notification_service.py: in-app notifications with read tracking
- sms_service.py: templated SMS through the HTTP gateway, with a delivery log
- change_feed.py: in-process feed of data change events
- websocket.py: WebSocket delivery of change events to subscribed clients
- router.py: notification, SMS administration and /ws/changes endpoints
"""

from .schemas import Notification, SMSTemplate, SMSLog, SMSSendRequest, SMSSendResult

__all__ = [
    "Notification",
    "SMSTemplate",
    "SMSLog",
    "SMSSendRequest",
    "SMSSendResult",
]
