import base64
import json
from datetime import date, timedelta

import pytest

from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.schemas import BookingCreate
from studyspace.bookings.ticket_service import TicketService, decode_payload, encode_payload
from studyspace.halls.schemas import StudyHallCreate
from studyspace.halls.service import StudyHallService
from studyspace.merchants.incharge_service import InchargeService
from studyspace.merchants.schemas import InchargeCreate

@pytest.fixture
def paid_booking(db, student, study_hall):
    start = date.today()
    service = BookingService(db)
    booking = service.create_booking(student, BookingCreate(
        study_hall_id=study_hall.id,
        seat_id=study_hall.seats[0].id,
        start_date=start,
        end_date=start + timedelta(days=29),
    ))
    return service.confirm_payment(student, booking.id, "online")

def test_payload_signature_detects_tampering():
    payload = encode_payload({"bid": 1, "ref": "BK000001"})
    assert decode_payload(payload) == {"bid": 1, "ref": "BK000001"}

    data = json.loads(base64.b64decode(payload))
    data["bid"] = 2
    forged = base64.b64encode(json.dumps(data).encode()).decode()
    assert decode_payload(forged) is None
    assert decode_payload("not base64!") is None

def test_ticket_requires_paid_booking(db, student, study_hall):
    start = date.today() + timedelta(days=1)
    booking = BookingService(db).create_booking(student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[1].id,
        start_date=start, end_date=start + timedelta(days=29),
    ))

    with pytest.raises(ValueError, match="confirmed, paid"):
        TicketService(db).ticket_for(booking)

def test_ticket_details(db, paid_booking, study_hall):
    ticket = TicketService(db).ticket_for(paid_booking)

    assert ticket["hall_name"] == study_hall.name
    assert ticket["seat_label"] == "A1"
    fields = decode_payload(ticket["payload"])
    assert fields["bid"] == paid_booking.id
    assert fields["code"] == paid_booking.ticket_code

def test_ticket_images(db, paid_booking):
    service = TicketService(db)

    assert service.qr_png(paid_booking, size=200).startswith(b"\x89PNG")
    assert service.pdf_ticket(paid_booking).startswith(b"%PDF")

def test_verify_ticket_checks_in(db, merchant, paid_booking, study_hall):
    payload = TicketService(db).ticket_for(paid_booking)["payload"]

    result = TicketService(db).verify_ticket(merchant, payload, study_hall.id)

    assert result["valid"] is True
    assert result["seat_label"] == "A1"
    assert paid_booking.checked_in_at is not None

def test_verify_ticket_rejections(db, admin, merchant, paid_booking, study_hall):
    service = TicketService(db)
    payload = service.ticket_for(paid_booking)["payload"]

    assert service.verify_ticket(merchant, "garbage", study_hall.id)["message"] == "Invalid or tampered ticket"
    assert service.verify_ticket(admin, payload, study_hall.id + 100)["message"] == "Study hall not found"
    after = paid_booking.end_date + timedelta(days=1)
    assert service.verify_ticket(merchant, payload, study_hall.id, today=after)["message"] == "Ticket is not valid today"

def test_verify_ticket_for_other_hall(db, merchant, make_user, paid_booking, study_hall):
    second_hall = StudyHallService(db).create_study_hall(merchant, StudyHallCreate(
        name="Annex", rows=1, seats_per_row=2, monthly_price=2000
    ))
    payload = TicketService(db).ticket_for(paid_booking)["payload"]

    result = TicketService(db).verify_ticket(merchant, payload, second_hall.id)
    assert result["message"] == "Ticket is for a different study hall"

    with pytest.raises(PermissionError):
        TicketService(db).verify_ticket(make_user("merchant"), payload, study_hall.id)

def test_incharge_verifies_only_assigned_halls(db, merchant, make_user, paid_booking, study_hall):
    incharges = InchargeService(db)
    annex = StudyHallService(db).create_study_hall(merchant, StudyHallCreate(
        name="Annex", rows=1, seats_per_row=2, monthly_price=2000
    ))
    front_desk = incharges.create_incharge(merchant, InchargeCreate(
        full_name="Front Desk", email="desk@example.com", password="secret12", study_hall_ids=[study_hall.id]
    ))
    annex_desk = incharges.create_incharge(merchant, InchargeCreate(
        full_name="Annex Desk", email="annex@example.com", password="secret12", study_hall_ids=[annex.id]
    ))
    service = TicketService(db)
    payload = service.ticket_for(paid_booking)["payload"]

    for staff in (annex_desk.user, make_user("incharge")):
        with pytest.raises(PermissionError):
            service.verify_ticket(staff, payload, study_hall.id)

    assert service.verify_ticket(front_desk.user, payload, study_hall.id)["valid"] is True

    incharges.set_active(merchant, front_desk.id, False)
    with pytest.raises(PermissionError):
        service.verify_ticket(front_desk.user, payload, study_hall.id)

def test_ticket_endpoints(client, auth_headers, student, other_student, merchant, paid_booking, study_hall):
    url = f"/api/v1/bookings/{paid_booking.id}/ticket"

    response = client.get(url, headers=auth_headers(student))
    assert response.status_code == 200
    payload = response.json()["payload"]

    assert client.get(url, headers=auth_headers(other_student)).status_code == 403

    qr = client.get(f"{url}/qr", headers=auth_headers(student))
    assert qr.headers["content-type"] == "image/png"

    pdf = client.get(f"{url}/pdf", headers=auth_headers(student))
    assert pdf.headers["content-type"] == "application/pdf"

    verify = client.post(
        "/api/v1/tickets/verify",
        json={"payload": payload, "study_hall_id": study_hall.id},
        headers=auth_headers(merchant),
    )
    assert verify.status_code == 200
    assert verify.json()["valid"] is True
    assert client.post(
        "/api/v1/tickets/verify",
        json={"payload": payload, "study_hall_id": study_hall.id},
        headers=auth_headers(student),
    ).status_code == 403
