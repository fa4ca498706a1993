from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.services.constraints import ConstraintChecker
from timetabling.services.occupancy import BookingCandidate, LedgerEntry, OccupancyLedger
from timetabling.services.policy import SchedulingPolicy


def session(day="Monday", start="09:00", end="11:00", **fields):
    return BookingCandidate(kind=BookingKind.class_session, day=day, start_time=start, end_time=end, **fields)


def ledger_with(*entries):
    ledger = OccupancyLedger()
    for booking_id, candidate in entries:
        ledger.add(LedgerEntry(booking_id=booking_id, candidate=candidate))
    return ledger


def checker_for(ledger, capacities=None, policy=None):
    return ConstraintChecker(ledger, capacities or {"Room 1": 30}, policy or SchedulingPolicy())


def test_lecturer_overlap_is_reported():
    ledger = ledger_with(("b1", session(lecturer="L1", venue="Room 1", teaching_mode=TeachingMode.physical)))
    checker = checker_for(ledger)

    result = checker.check(session(start="10:00", end="12:00", lecturer="L1", venue="Remote", teaching_mode=TeachingMode.online))

    assert not result.ok
    assert result.conflicts[0]["rule"] == "lecturer_conflict"
    assert result.conflicts[0]["booking_id"] == "b1"
    assert "L1" in result.reasons[0]


def test_back_to_back_sessions_do_not_overlap():
    ledger = ledger_with(("b1", session(lecturer="L1")))
    checker = checker_for(ledger)

    assert checker.check(session(start="11:00", end="13:00", lecturer="L1")).ok
    assert checker.check(session(day="Tuesday", start="10:00", end="12:00", lecturer="L1")).ok


def test_shared_room_rejects_headcount_above_capacity():
    ledger = ledger_with(
        ("b1", session(venue="Room 1", teaching_mode=TeachingMode.physical, headcount=20, lecturer="L1"))
    )
    checker = checker_for(ledger)

    over = checker.check(session(venue="Room 1", teaching_mode=TeachingMode.physical, headcount=15, lecturer="L2"))
    fits = checker.check(session(venue="Room 1", teaching_mode=TeachingMode.physical, headcount=10, lecturer="L2"))

    assert not over.ok
    assert [c["rule"] for c in over.conflicts] == ["venue_capacity"]
    assert fits.ok


def test_single_booking_larger_than_room_is_rejected():
    checker = checker_for(OccupancyLedger())

    result = checker.check(session(venue="Room 1", teaching_mode=TeachingMode.physical, headcount=50))

    assert [c["rule"] for c in result.conflicts] == ["venue_capacity"]
    assert result.conflicts[0]["booking_id"] is None
    assert checker.check(session(venue="Room 1", teaching_mode=TeachingMode.physical, headcount=30)).ok


def test_remote_and_online_bookings_skip_capacity():
    ledger = ledger_with(
        ("b1", session(venue="Remote", teaching_mode=TeachingMode.online, headcount=500, lecturer="L1"))
    )
    checker = checker_for(ledger)

    assert checker.check(session(venue="Remote", teaching_mode=TeachingMode.online, headcount=500, lecturer="L2")).ok


def test_venue_outside_catalog_is_exclusive():
    ledger = ledger_with(("b1", session(venue="Lab X", teaching_mode=TeachingMode.physical, headcount=1)))
    checker = checker_for(ledger)

    result = checker.check(session(venue="Lab X", teaching_mode=TeachingMode.physical, headcount=1))

    assert not result.ok
    assert result.conflicts[0]["rule"] == "venue_capacity"


def test_group_physical_cap_still_allows_online():
    ledger = ledger_with(
        ("b1", session(day="Tuesday", start="08:00", end="10:00", group_id="G1", teaching_mode=TeachingMode.physical)),
        ("b2", session(day="Tuesday", start="10:00", end="12:00", group_id="G1", teaching_mode=TeachingMode.physical)),
    )
    checker = checker_for(ledger)

    third_physical = checker.check(
        session(day="Tuesday", start="14:00", end="16:00", group_id="G1", teaching_mode=TeachingMode.physical)
    )
    online = checker.check(
        session(day="Tuesday", start="13:00", end="14:00", group_id="G1", teaching_mode=TeachingMode.online, venue="Remote")
    )

    assert not third_physical.ok
    assert any(c["rule"] == "group_daily_cap" for c in third_physical.conflicts)
    assert online.ok


def test_group_total_hours_cap():
    ledger = ledger_with(
        ("b1", session(day="Tuesday", start="08:00", end="10:00", group_id="G1", teaching_mode=TeachingMode.physical)),
        ("b2", session(day="Tuesday", start="10:00", end="12:00", group_id="G1", teaching_mode=TeachingMode.physical)),
    )
    checker = checker_for(ledger)

    result = checker.check(
        session(day="Tuesday", start="14:00", end="16:00", group_id="G1", teaching_mode=TeachingMode.online, venue="Remote")
    )

    assert not result.ok
    assert "5 hours" in result.reasons[0]


def test_parallel_groups_of_one_class_are_allowed():
    ledger = ledger_with(("b1", session(group_id="G1", class_ids=("C1",))))
    checker = checker_for(ledger)

    assert checker.check(session(group_id="G2", class_ids=("C1",))).ok
    clash = checker.check(session(group_id="G1", class_ids=("C1",)))
    assert [c["rule"] for c in clash.conflicts] == ["class_conflict"]


def test_exclude_booking_ignores_itself():
    ledger = ledger_with(("b1", session(lecturer="L1", venue="Room 1", headcount=30)))
    checker = checker_for(ledger)
    moved = session(start="09:30", end="11:30", lecturer="L1", venue="Room 1", headcount=30)

    assert not checker.check(moved).ok
    assert checker.check(moved, exclude_booking_id="b1").ok


def test_check_is_repeatable():
    ledger = ledger_with(("b1", session(lecturer="L1", venue="Room 1", headcount=25)))
    checker = checker_for(ledger)
    candidate = session(start="10:00", end="12:00", lecturer="L1", venue="Room 1", headcount=10)

    first = checker.check(candidate)
    second = checker.check(candidate)

    assert first.ok == second.ok
    assert first.reasons == second.reasons
    assert first.conflicts == second.conflicts


def test_exam_sittings_compare_by_date():
    import datetime as dt

    sitting = BookingCandidate(
        kind=BookingKind.exam_sitting,
        day="Monday",
        date=dt.date(2026, 1, 5),
        start_time="08:00",
        end_time="10:00",
        lecturer="L1",
        class_ids=("C1",),
    )
    ledger = ledger_with(("e1", sitting))
    checker = checker_for(ledger)

    next_week = BookingCandidate(
        kind=BookingKind.exam_sitting,
        day="Monday",
        date=dt.date(2026, 1, 12),
        start_time="08:00",
        end_time="10:00",
        lecturer="L1",
        class_ids=("C1",),
    )
    same_day = BookingCandidate(
        kind=BookingKind.exam_sitting,
        day="Monday",
        date=dt.date(2026, 1, 5),
        start_time="09:00",
        end_time="11:00",
        lecturer="L2",
        class_ids=("C1",),
    )

    assert checker.check(next_week).ok
    assert [c["rule"] for c in checker.check(same_day).conflicts] == ["class_conflict"]
