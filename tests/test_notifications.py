import httpx
import pytest
from fastapi.websockets import WebSocketDisconnect

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.config import settings
from studyspace.models import SMSLog, SMSTemplate
from studyspace.notifications.change_feed import ChangeFeed, change_feed
from studyspace.notifications.notification_service import NotificationService
from studyspace.notifications.sms_service import SMSService, render_template
from studyspace.notifications.websocket import allowed_channels, ws_manager

@pytest.fixture
def sms_enabled(db):
    BusinessSettingsService.update(db, {"sms_enabled": True})

def gateway(captured, text="Messages has been sent. Ack: 1234"):
    def handler(request):
        captured.append(request)
        return httpx.Response(200, text=text)

    return httpx.Client(transport=httpx.MockTransport(handler))

# SMS
def test_render_template():
    message = render_template("Hi {name}, booking {ref} on {name}'s account", {"name": "Asha", "ref": "BK1"})
    assert message == "Hi Asha, booking BK1 on Asha's account"

def test_sms_skipped_when_disabled(db, student):
    captured = []
    success, error = SMSService(db, client=gateway(captured)).send("user_created", student.phone, {"name": "A"})

    assert success is False
    assert error == "SMS is disabled"
    assert captured == []

def test_sms_purpose_switch(db, student, sms_enabled):
    BusinessSettingsService.update(db, {"sms_user_created": False})
    captured = []

    success, error = SMSService(db, client=gateway(captured)).send("user_created", student.phone, {"name": "A"})

    assert success is False
    assert "disabled" in error
    assert captured == []

def test_sms_sent_with_default_template(db, student, sms_enabled):
    captured = []

    success, error = SMSService(db, client=gateway(captured)).send(
        "user_created", student.phone, {"name": "Asha", "email": student.email}, user_id=student.id
    )

    assert success is True and error is None
    params = captured[0].url.params
    assert params["to"] == student.phone
    assert params["msg"].startswith("Welcome to StudySpace, Asha!")
    log = db.query(SMSLog).one()
    assert log.status == "sent"
    assert log.user_id == student.id

def test_sms_uses_stored_template_and_dlt_id(db, student, sms_enabled):
    db.add(SMSTemplate(purpose="otp_verification", template="Code {otp}", dlt_template_id="1107", is_active=True))
    db.commit()
    captured = []

    SMSService(db, client=gateway(captured)).send("otp_verification", student.phone, {"otp": "123456"})

    params = captured[0].url.params
    assert params["msg"] == "Code 123456"
    assert params["template_id"] == "1107"

def test_sms_gateway_failure_is_logged(db, student, sms_enabled):
    captured = []

    success, error = SMSService(db, client=gateway(captured, text="ERROR: invalid sender")).send(
        "user_created", student.phone, {"name": "A"}
    )

    assert success is False
    log = db.query(SMSLog).one()
    assert log.status == "failed"
    assert "invalid sender" in log.error_message

def test_sms_network_error(db, student, sms_enabled):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    success, error = SMSService(db, client=client).send("user_created", student.phone, {"name": "A"})

    assert success is False
    assert "connection refused" in error
    assert db.query(SMSLog).one().status == "failed"

def test_sms_without_phone(db, sms_enabled):
    assert SMSService(db).send("user_created", None) == (False, "No phone number provided")

# In-app notifications
def test_notifications_read_tracking(db, student):
    service = NotificationService(db)
    first = service.notify(student.id, "Booking Confirmed", "Seat A1 is yours")
    service.notify(student.id, "Rewards", "You earned 50 points")

    assert service.unread_count(student.id) == 2
    service.mark_read(student.id, first.id)
    assert service.unread_count(student.id) == 1
    assert service.mark_all_read(student.id) == 1
    assert service.list_notifications(student.id, unread_only=True) == []

# Change feed
def test_change_feed_sequence_and_channels():
    feed = ChangeFeed(buffer_size=3)
    feed.publish("user:1", "created", "booking", 1)
    feed.publish_many(["merchant:2", "staff"], "updated", "booking", 1, {"status": "confirmed"})
    feed.publish("user:1", "updated", "booking", 1)

    assert feed.latest_sequence == 4
    assert [e["sequence"] for e in feed.events_since(0)] == [2, 3, 4]
    assert [e["channel"] for e in feed.events_since(2, ["staff", "user:1"])] == ["staff", "user:1"]

def test_allowed_channels(student, merchant, admin):
    assert allowed_channels(student) == {f"user:{student.id}"}
    assert allowed_channels(merchant) == {f"user:{merchant.id}", f"merchant:{merchant.id}"}
    assert "staff" in allowed_channels(admin)

def test_websocket_delivers_change_events(client, student, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "REALTIME_POLL_SECONDS", 0.01)
    token = auth_headers(student)["Authorization"].split()[1]

    with client.websocket_connect(f"/api/v1/ws/changes?token={token}") as websocket:
        websocket.send_json({"type": "subscribe", "channel": "staff"})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "subscribe", "channel": f"user:{student.id}"})
        assert websocket.receive_json()["type"] == "subscription_confirmed"

        change_feed.publish("user:999", "created", "booking", 5)
        change_feed.publish(f"user:{student.id}", "updated", "booking", 7, {"status": "confirmed"})

        message = websocket.receive_json()
        assert message["type"] == "change"
        assert message["resource_id"] == 7
        assert message["payload"] == {"status": "confirmed"}

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"

def test_websocket_survives_non_object_messages(client, student, auth_headers):
    token = auth_headers(student)["Authorization"].split()[1]
    connections = len(ws_manager.active_connections)

    with client.websocket_connect(f"/api/v1/ws/changes?token={token}") as websocket:
        for frame in ("[1, 2]", "1", "\"x\""):
            websocket.send_text(frame)
            assert websocket.receive_json() == {"type": "error", "message": "Invalid message"}

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"

    assert len(ws_manager.active_connections) == connections

def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/ws/changes?token=not-a-token") as websocket:
            websocket.receive_json()
