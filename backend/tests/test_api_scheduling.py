import datetime as dt

from timetabling.models import BookingKind, RoomKind


def create_booking(client, **fields):
    payload = {
        "unit_id": "U1",
        "class_id": "C1",
        "day": "Monday",
        "start_time": "09:00",
        "end_time": "11:00",
        "venue": "Room 1",
        "lecturer": "L1",
        "headcount": 10,
    }
    payload.update(fields)
    return client.post("/api/bookings/", json=payload)


def test_manual_booking_then_lecturer_clash(client, factory, db_session):
    factory.room("Room 1", 30)
    db_session.commit()

    created = create_booking(client)
    assert created.status_code == 201
    body = created.json()
    assert body["teaching_mode"] == "physical"
    assert body["location"] == "Main Campus"

    check = client.post(
        "/api/scheduling/conflicts/check",
        json={"day": "Monday", "start_time": "10:00", "end_time": "12:00", "lecturer": "L1"},
    )
    assert check.status_code == 200
    assert check.json()["ok"] is False
    assert check.json()["conflicts"][0]["rule"] == "lecturer_conflict"
    assert check.json()["conflicts"][0]["booking_id"] == body["id"]

    clash = create_booking(client, class_id="C2", start_time="10:00", end_time="12:00")
    assert clash.status_code == 409
    assert clash.json()["message"] == "Booking conflicts with existing bookings"
    assert clash.json()["details"]["reasons"]


def test_invalid_window_is_rejected(client):
    response = create_booking(client, start_time="11:00", end_time="09:00")
    assert response.status_code == 422


def test_booking_over_room_capacity_is_rejected(client, factory, db_session):
    factory.room("Room 1", 30)
    db_session.commit()

    too_big = create_booking(client, headcount=50)
    assert too_big.status_code == 409
    assert too_big.json()["details"]["conflicts"][0]["rule"] == "venue_capacity"

    booking_id = create_booking(client).json()["id"]
    grown = client.patch(f"/api/bookings/{booking_id}", json={"headcount": 90})
    assert grown.status_code == 409
    assert client.get("/api/bookings/").json()[0]["headcount"] == 10


def test_exam_conflict_check_requires_date(client, factory, db_session):
    factory.room("Exam Hall", 100, kind=RoomKind.examroom)
    factory.booking(
        kind=BookingKind.exam_sitting,
        date=dt.date(2026, 11, 2),
        day="Monday",
        start_time="09:00",
        end_time="11:00",
        venue="Exam Hall",
        headcount=40,
        lecturer="L1",
        teaching_mode=None,
    )
    db_session.commit()
    window = {"kind": "exam_sitting", "start_time": "10:00", "end_time": "12:00", "lecturer": "L1"}

    by_day = client.post("/api/scheduling/conflicts/check", json={**window, "day": "Monday"})
    assert by_day.status_code == 422

    by_date = client.post("/api/scheduling/conflicts/check", json={**window, "date": "2026-11-02"})
    assert by_date.status_code == 200
    assert by_date.json()["ok"] is False
    assert by_date.json()["conflicts"][0]["rule"] == "lecturer_conflict"


def test_update_and_delete_booking(client, factory, db_session):
    factory.room("Room 1", 30)
    db_session.commit()
    booking_id = create_booking(client).json()["id"]

    moved = client.patch(f"/api/bookings/{booking_id}", json={"day": "Tuesday"})
    assert moved.status_code == 200
    assert moved.json()["day"] == "Tuesday"

    bad = client.patch(f"/api/bookings/{booking_id}", json={"start_time": "12:00"})
    assert bad.status_code == 422

    assert client.delete(f"/api/bookings/{booking_id}").status_code == 204
    assert client.delete(f"/api/bookings/{booking_id}").status_code == 404
    assert client.get("/api/bookings/").json() == []


def test_allocate_venue_endpoint(client, factory, db_session):
    factory.room("Small", 20)
    factory.room("Large", 80)
    db_session.commit()

    physical = client.post(
        "/api/scheduling/venues",
        json={"headcount": 25, "day": "Monday", "start_time": "09:00", "end_time": "11:00"},
    )
    assert physical.json() == {
        "ok": True,
        "venue": "Large",
        "location": "Main Campus",
        "remaining_capacity": 55,
        "reason": None,
    }

    online = client.post(
        "/api/scheduling/venues",
        json={"headcount": 500, "day": "Monday", "start_time": "09:00", "end_time": "10:00", "teaching_mode": "online"},
    )
    assert online.json()["venue"] == "Remote"

    too_big = client.post(
        "/api/scheduling/venues",
        json={"headcount": 500, "day": "Monday", "start_time": "09:00", "end_time": "11:00"},
    )
    assert too_big.json()["ok"] is False
    assert too_big.json()["reason"] == "insufficient capacity"


def test_find_assignment_endpoint(client, factory, db_session):
    factory.slot("Thursday", "14:00", "16:00")
    db_session.commit()

    response = client.post("/api/scheduling/assignments", json={"lecturer": "L1", "duration_hours": 2})

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.json()["day"] == "Thursday"
    assert response.json()["teaching_mode"] == "physical"


def test_class_session_endpoint_reports_exhaustion(client, factory, db_session):
    db_session.commit()

    response = client.post(
        "/api/bookings/class-sessions",
        json={"unit_id": "U1", "class_id": "C1", "lecturer": "L1", "duration_hours": 2},
    )

    assert response.status_code == 409
    assert response.json()["details"]["search"]["lecturer"] == "L1"


def test_credit_sessions_endpoint(client, factory, db_session):
    unit = factory.unit("CS101", credit_hours=3)
    factory.room("Room 1", 30)
    factory.slot("Monday", "09:00", "11:00")
    factory.slot("Tuesday", "09:00", "10:00")
    db_session.commit()

    response = client.post(
        "/api/bookings/credit-sessions",
        json={"unit_id": unit.id, "class_id": "C1", "lecturer": "L1", "headcount": 10},
    )

    assert response.status_code == 201
    assert sorted(b["teaching_mode"] for b in response.json()["created"]) == ["online", "physical"]
    assert response.json()["errors"] == []


def test_bulk_run_commits_and_logs_failures(client, factory, db_session):
    factory.room("Hall A", 50, kind=RoomKind.examroom)
    fits = factory.unit("MAT101")
    too_big = factory.unit("BIG101")
    empty = factory.unit("EMPTY101")
    factory.enroll(fits.id, "C1", ["s1", "s2"])
    factory.enroll(too_big.id, "C2", [f"x{n}" for n in range(60)])
    fits_id, too_big_id, empty_id = fits.id, too_big.id, empty.id
    db_session.commit()

    response = client.post(
        "/api/scheduling/bulk",
        json={
            "semester_id": "S1",
            "items": [
                {"unit_id": fits_id, "class_id": "C1", "start_time": "08:00", "end_time": "10:00"},
                {"unit_id": too_big_id, "class_id": "C2", "start_time": "08:00", "end_time": "10:00"},
                {"unit_id": empty_id, "class_id": "C3", "start_time": "08:00", "end_time": "10:00"},
            ],
            "start_date": "2026-01-05",
            "end_date": "2026-01-09",
        },
    )

    assert response.status_code == 200
    result = response.json()
    assert [s["unit_code"] for s in result["scheduled"]] == ["MAT101"]
    assert result["scheduled"][0]["date"] == "2026-01-05"
    assert [c["category"] for c in result["conflicts"]] == ["capacity"]
    assert [w["unit_code"] for w in result["warnings"]] == ["EMPTY101"]

    exams = client.get("/api/bookings/", params={"kind": BookingKind.exam_sitting.value})
    assert [b["date"] for b in exams.json()] == ["2026-01-05"]

    failures = client.get("/api/scheduling-failures/", params={"batch_id": result["batch_id"]})
    assert failures.status_code == 200
    assert [f["unit_code"] for f in failures.json()] == ["BIG101"]
    assert failures.json()[0]["status"] == "pending"

    resolved = client.post(
        f"/api/scheduling-failures/{failures.json()[0]['id']}/resolve",
        json={"note": "Booked the sports hall"},
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["resolution_note"] == "Booked the sports hall"

    pending = client.get("/api/scheduling-failures/", params={"status": "pending"})
    assert pending.json() == []


def test_bulk_rejects_reversed_range(client):
    response = client.post(
        "/api/scheduling/bulk",
        json={
            "semester_id": "S1",
            "items": [{"unit_id": "U1", "class_id": "C1"}],
            "start_date": "2026-01-09",
            "end_date": "2026-01-05",
        },
    )
    assert response.status_code == 422


def test_bulk_with_every_weekday_excluded(client):
    response = client.post(
        "/api/scheduling/bulk",
        json={
            "semester_id": "S1",
            "items": [{"unit_id": "U1", "class_id": "C1"}],
            "start_date": "2026-01-05",
            "end_date": "2026-01-09",
            "excluded_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
        },
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Every weekday is excluded from the bulk run"


def test_conflict_scan_endpoint(client, factory, db_session):
    factory.room("Room 1", 30)
    factory.booking(day="Monday", start_time="09:00", end_time="11:00", venue="Room 1", headcount=20, lecturer="L1")
    factory.booking(day="Monday", start_time="10:00", end_time="12:00", venue="Room 1", headcount=20, lecturer="L1")
    factory.booking(
        kind=BookingKind.exam_sitting,
        date=dt.date(2026, 1, 5),
        day="Monday",
        start_time="09:00",
        end_time="11:00",
        venue="Room 1",
        headcount=5,
        lecturer="L1",
        teaching_mode=None,
    )
    db_session.commit()

    response = client.get("/api/conflicts/", params={"kind": "class_session"})

    assert response.status_code == 200
    report = response.json()
    assert sorted(c["conflict_type"] for c in report["conflicts"]) == ["lecturer_conflict", "venue_capacity"]
    assert {r["action_type"] for r in report["suggested_resolutions"]} == {"change_room", "move_slot"}


def test_resolving_unknown_failure(client):
    response = client.post("/api/scheduling-failures/missing/resolve", json={})
    assert response.status_code == 404
    assert response.json()["message"] == "Scheduling failure with id missing not found"
