from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.cabin_booking_service import CabinBookingService
from studyspace.bookings.schemas import BookingCreate, CabinBookingCreate
from studyspace.models import AuditLog, Notification
from studyspace.support.call_log_service import CallLogService
from studyspace.support.schemas import CallLogCreate, CallLogUpdate, SupportTicketCreate
from studyspace.support.support_ticket_service import SupportTicketService

@pytest.fixture
def caller(make_user):
    return make_user("pending_payments_caller")

@pytest.fixture
def care(make_user):
    return make_user("customer_care_executive")

def test_call_log_validation(db, caller, student, merchant):
    with pytest.raises(ValidationError):
        CallLogCreate(contact_type="user", contact_id=1, call_purpose="sales", call_status="completed")
    with pytest.raises(ValidationError):
        CallLogCreate(contact_type="user", contact_id=1, call_purpose="general", call_status="completed",
                      call_duration=-5)

    service = CallLogService(db)
    with pytest.raises(ValueError, match="Contact not found"):
        service.create_call_log(caller, CallLogCreate(
            contact_type="user", contact_id=999, call_purpose="general", call_status="busy"
        ))
    with pytest.raises(ValueError, match="Contact is not a merchant"):
        service.create_call_log(caller, CallLogCreate(
            contact_type="merchant", contact_id=student.id, call_purpose="onboarding", call_status="completed"
        ))
    log = service.create_call_log(caller, CallLogCreate(
        contact_type="merchant", contact_id=merchant.id, call_purpose="onboarding", call_status="completed",
        call_outcome="interested", call_duration=120
    ))
    assert log.caller_id == caller.id

def test_callers_see_their_own_logs(db, caller, make_user, admin, student):
    service = CallLogService(db)
    other_caller = make_user("telemarketing_executive")
    mine = service.create_call_log(caller, CallLogCreate(
        contact_type="user", contact_id=student.id, call_purpose="payment_follow_up",
        call_status="callback_requested", follow_up_date=date.today()
    ))
    service.create_call_log(other_caller, CallLogCreate(
        contact_type="user", contact_id=student.id, call_purpose="general", call_status="no_answer",
        follow_up_date=date.today() + timedelta(days=3)
    ))

    assert [log.id for log in service.list_call_logs(caller)] == [mine.id]
    assert len(service.list_call_logs(admin)) == 2
    assert [log.id for log in service.follow_ups(caller)] == [mine.id]
    assert len(service.follow_ups(admin, date.today() + timedelta(days=3))) == 2

    with pytest.raises(PermissionError):
        service.update_call_log(other_caller, mine.id, CallLogUpdate(call_status="completed"))
    updated = service.update_call_log(caller, mine.id, CallLogUpdate(
        call_status="completed", call_outcome="payment_confirmed"
    ))
    assert updated.call_outcome == "payment_confirmed"
    assert updated.call_purpose == "payment_follow_up"

def test_pending_payment_queue(db, caller, student, other_student, study_hall, private_hall, tomorrow):
    bookings = BookingService(db)
    paid = bookings.create_booking(student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[0].id,
        start_date=tomorrow, end_date=tomorrow + timedelta(days=29)
    ))
    bookings.confirm_payment(student, paid.id, "online")
    unpaid = bookings.create_booking(other_student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[1].id,
        start_date=tomorrow, end_date=tomorrow + timedelta(days=29)
    ))
    cabin = CabinBookingService(db).create_cabin_booking(student, CabinBookingCreate(
        private_hall_id=private_hall.id, cabin_id=private_hall.cabins[0].id, start_date=tomorrow
    ))

    service = CallLogService(db)
    service.create_call_log(caller, CallLogCreate(
        contact_type="user", contact_id=other_student.id, booking_id=unpaid.id,
        call_purpose="payment_follow_up", call_status="no_answer"
    ))
    queue = {(item["booking_type"], item["booking_id"]): item for item in service.pending_payments()}

    assert set(queue) == {("study_hall", unpaid.id), ("cabin", cabin.id)}
    assert queue[("study_hall", unpaid.id)]["unit_label"] == "A2"
    assert queue[("study_hall", unpaid.id)]["last_called_at"] is not None
    assert queue[("cabin", cabin.id)]["phone"] == "9123456780"
    assert queue[("cabin", cabin.id)]["last_called_at"] is None

    with pytest.raises(ValueError, match="Booking not found for this contact"):
        service.create_call_log(caller, CallLogCreate(
            contact_type="user", contact_id=student.id, booking_id=unpaid.id,
            call_purpose="payment_follow_up", call_status="busy"
        ))

def test_ticket_lifecycle(db, student, care, admin):
    service = SupportTicketService(db)
    first = service.create_ticket(student, SupportTicketCreate(
        title="Seat light broken", description="Lamp at A1 flickers", category="complaint"
    ))
    second = service.create_ticket(student, SupportTicketCreate(title="Refund", description="Where is it?"))
    assert (first.ticket_number, second.ticket_number) == (1, 2)
    assert first.status == "open" and first.merchant_id is None

    with pytest.raises(ValueError, match="customer care"):
        service.assign_ticket(admin, first.id, student.id)
    assigned = service.assign_ticket(admin, first.id, care.id)
    assert assigned.status == "in_progress"
    assert assigned.assigned_to == care.id
    assert db.query(AuditLog).filter(AuditLog.action == "support_ticket_assigned").count() == 1

    with pytest.raises(ValueError, match="resolution is required"):
        service.update_status(care, first.id, "resolved")
    resolved = service.update_status(care, first.id, "resolved", "Replaced the lamp")
    assert resolved.resolved_at is not None
    assert resolved.resolution == "Replaced the lamp"
    notification = db.query(Notification).filter(Notification.user_id == student.id).one()
    assert notification.message == "Replaced the lamp"

    closed = service.update_status(care, first.id, "closed")
    assert closed.status == "closed"
    with pytest.raises(ValueError, match="cannot be reopened"):
        service.update_status(care, first.id, "open")
    with pytest.raises(ValueError, match="already closed"):
        service.assign_ticket(care, first.id, care.id)

def test_ticket_visibility(db, student, other_student, merchant, care):
    service = SupportTicketService(db)
    own = service.create_ticket(student, SupportTicketCreate(title="Help", description="Booking stuck"))
    merchant_ticket = service.create_ticket(merchant, SupportTicketCreate(
        title="Payout", description="Settlement missing", category="billing", priority="high"
    ))

    assert merchant_ticket.merchant_id == merchant.id
    assert [t.id for t in service.list_tickets(student)] == [own.id]
    assert [t.id for t in service.list_tickets(merchant)] == [merchant_ticket.id]
    assert len(service.list_tickets(care)) == 2
    assert [t.id for t in service.list_tickets(care, priority="high")] == [merchant_ticket.id]
    with pytest.raises(PermissionError):
        service.get_ticket(other_student, own.id)

def test_support_endpoints(client, auth_headers, student, other_student, care, caller, merchant):
    response = client.post("/api/v1/support-tickets", json={
        "title": "App crash", "description": "Crashes on payment", "category": "technical"
    }, headers=auth_headers(student))
    assert response.status_code == 201
    ticket = response.json()

    bad = client.post("/api/v1/support-tickets", json={
        "title": "x", "description": "y", "category": "other"
    }, headers=auth_headers(student))
    assert bad.status_code == 422

    url = f"/api/v1/support-tickets/{ticket['id']}"
    assert client.get(url, headers=auth_headers(other_student)).status_code == 403
    assert client.get("/api/v1/support-tickets/999", headers=auth_headers(care)).status_code == 404

    response = client.post(f"{url}/assign", json={"assigned_to": care.id}, headers=auth_headers(student))
    assert response.status_code == 403
    response = client.post(f"{url}/assign", json={"assigned_to": care.id}, headers=auth_headers(care))
    assert response.json()["status"] == "in_progress"

    response = client.patch(f"{url}/status", json={"status": "resolved"}, headers=auth_headers(care))
    assert response.status_code == 400
    listing = client.get("/api/v1/support-tickets", params={"status": "in_progress"}, headers=auth_headers(care))
    assert [t["id"] for t in listing.json()] == [ticket["id"]]

    response = client.post("/api/v1/call-logs", json={
        "contact_type": "merchant", "contact_id": merchant.id,
        "call_purpose": "onboarding", "call_status": "completed"
    }, headers=auth_headers(caller))
    assert response.status_code == 201
    assert client.get("/api/v1/call-logs", headers=auth_headers(student)).status_code == 403
    assert len(client.get("/api/v1/call-logs", headers=auth_headers(caller)).json()) == 1
    assert client.get("/api/v1/call-logs/pending-payments", headers=auth_headers(caller)).json() == []
