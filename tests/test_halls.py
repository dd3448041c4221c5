from datetime import timedelta
from decimal import Decimal

import pytest

from studyspace.bookings.booking_service import BookingService
from studyspace.bookings.schemas import BookingCreate
from studyspace.halls.cabin_service import PrivateHallService
from studyspace.halls.schemas import StudyHallCreate, StudyHallUpdate, PrivateHallCreate, CabinUpdate
from studyspace.halls.service import StudyHallService

def test_create_study_hall_numbers_halls_and_seats(db, merchant, study_hall):
    assert study_hall.hall_number == 1
    assert study_hall.total_seats == 6
    assert [seat.seat_label for seat in study_hall.seats] == ["A1", "A2", "A3", "B1", "B2", "B3"]

    second = StudyHallService(db).create_study_hall(merchant, StudyHallCreate(
        name="Annex", rows=1, seats_per_row=2, custom_row_names=["Window"]
    ))
    assert second.hall_number == 2
    assert [seat.seat_label for seat in second.seats] == ["Window1", "Window2"]

def test_study_hall_limit_follows_subscription(db, merchant, study_hall):
    service = StudyHallService(db)
    for name in ("Second", "Third"):
        service.create_study_hall(merchant, StudyHallCreate(name=name, rows=1, seats_per_row=1))

    with pytest.raises(PermissionError):
        service.create_study_hall(merchant, StudyHallCreate(name="Fourth", rows=1, seats_per_row=1))

def test_layout_update_adds_seats(db, merchant, study_hall):
    hall = StudyHallService(db).update_study_hall(merchant, study_hall.id, StudyHallUpdate(rows=3, name="Bigger"))

    assert hall.name == "Bigger"
    assert hall.total_seats == 9
    assert {seat.seat_label for seat in hall.seats} >= {"C1", "C2", "C3"}

def test_layout_update_keeps_booked_seats(db, merchant, student, study_hall, tomorrow):
    BookingService(db).create_booking(student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[5].id,
        start_date=tomorrow, end_date=tomorrow + timedelta(days=29),
    ))

    with pytest.raises(ValueError, match="B3 has bookings"):
        StudyHallService(db).update_study_hall(merchant, study_hall.id, StudyHallUpdate(seats_per_row=2))
    db.rollback()

    hall = StudyHallService(db).update_study_hall(merchant, study_hall.id, StudyHallUpdate(rows=2))
    assert hall.total_seats == 6

def test_only_owner_manages_hall(db, make_user, study_hall):
    stranger = make_user("merchant")

    with pytest.raises(PermissionError):
        StudyHallService(db).set_status(stranger, study_hall.id, "inactive")
    with pytest.raises(ValueError):
        StudyHallService(db).set_status(make_user("admin"), study_hall.id, "closed")

def test_check_seat_and_date_availability(db, student, study_hall, tomorrow):
    booking = BookingService(db).create_booking(student, BookingCreate(
        study_hall_id=study_hall.id, seat_id=study_hall.seats[0].id,
        start_date=tomorrow, end_date=tomorrow + timedelta(days=9),
    ))
    service = StudyHallService(db)

    check = service.check_seat(study_hall.seats[0].id, tomorrow, tomorrow + timedelta(days=2))
    assert check["available"] is False
    assert check["conflicting_bookings"] == [booking.booking_number]
    assert service.check_seat(study_hall.seats[1].id, tomorrow, tomorrow)["available"] is True
    assert service.check_seat(9999, tomorrow, tomorrow) is None

    days = service.date_availability(study_hall.id, [tomorrow + timedelta(days=10), tomorrow, tomorrow])
    assert [day["date"] for day in days] == [tomorrow, tomorrow + timedelta(days=10)]
    assert days[0]["occupied_seats"] == 1
    assert days[0]["available_seats"] == 5
    assert days[1]["occupied_seats"] == 0

    with pytest.raises(ValueError):
        service.seat_availability(study_hall.id, tomorrow, tomorrow - timedelta(days=1))

def test_booking_qr(db, merchant, study_hall):
    service = StudyHallService(db)

    assert service.booking_url(study_hall).endswith(f"/studyhall/{study_hall.id}/booking")
    assert service.booking_qr(study_hall.id, size=150).startswith(b"\x89PNG")

    service.update_study_hall(merchant, study_hall.id, StudyHallUpdate(qr_booking_enabled=False))
    with pytest.raises(ValueError, match="disabled"):
        service.booking_qr(study_hall.id)

def test_private_hall_cabins(db, merchant):
    service = PrivateHallService(db)
    hall = service.create_private_hall(merchant, PrivateHallCreate(
        name="Silent Rooms", cabin_count=3, monthly_price=Decimal("2500")
    ))

    assert [cabin.cabin_name for cabin in hall.cabins] == ["Cabin 1", "Cabin 2", "Cabin 3"]

    with pytest.raises(ValueError):
        service.update_cabin(merchant, hall.cabins[0].id, CabinUpdate(monthly_price=Decimal("0")))
    with pytest.raises(ValueError):
        service.set_cabin_status(merchant, hall.cabins[0].id, "closed")

    cabin = service.update_cabin(merchant, hall.cabins[0].id, CabinUpdate(cabin_name="Corner", status="maintenance"))
    statuses = [c["status"] for c in service.cabin_availability(hall.id)]
    assert cabin.cabin_name == "Corner"
    assert statuses == ["maintenance", "available", "available"]

# API
def test_hall_endpoints(client, auth_headers, merchant, student, study_hall, tomorrow):
    created = client.post("/api/v1/study-halls", headers=auth_headers(merchant), json={
        "name": "Reading Room", "location": "Mumbai", "rows": 1, "seats_per_row": 4, "monthly_price": "1800",
    })
    assert created.status_code == 201
    assert len(created.json()["seats"]) == 4

    assert client.post("/api/v1/study-halls", headers=auth_headers(student), json={
        "name": "Nope", "rows": 1, "seats_per_row": 1,
    }).status_code == 403

    listed = client.get("/api/v1/study-halls", params={"search": "reading"})
    assert [hall["name"] for hall in listed.json()] == ["Reading Room"]

    availability = client.get(
        f"/api/v1/study-halls/{study_hall.id}/availability",
        params={"start_date": tomorrow.isoformat(), "end_date": tomorrow.isoformat()},
    )
    assert availability.json() == {label: True for label in ["A1", "A2", "A3", "B1", "B2", "B3"]}

    seat_id = study_hall.seats[0].id
    response = client.patch(f"/api/v1/seats/{seat_id}", headers=auth_headers(merchant), json={"is_available": False})
    assert response.status_code == 200
    assert seat_available(client, seat_id, tomorrow) is False

    assert client.get("/api/v1/study-halls/9999").status_code == 404

def seat_available(client, seat_id, day):
    response = client.get(
        f"/api/v1/seats/{seat_id}/check", params={"start_date": day.isoformat(), "end_date": day.isoformat()}
    )
    return response.json()["available"]