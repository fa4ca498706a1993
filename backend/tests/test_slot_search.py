import random

import pytest

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.models.time_slot import TimeSlot
from timetabling.services.constraints import ConstraintChecker
from timetabling.services.occupancy import BookingCandidate, LedgerEntry, OccupancyLedger
from timetabling.services.policy import SchedulingPolicy
from timetabling.services.slot_search import SlotSearch


def slot(day, start, end):
    return TimeSlot(day=day, start_time=start, end_time=end)


def existing(booking_id, day, start, end, **fields):
    return LedgerEntry(
        booking_id=booking_id,
        candidate=BookingCandidate(kind=BookingKind.class_session, day=day, start_time=start, end_time=end, **fields),
    )


def build_search(slots, entries=(), policy=None, seed=7):
    policy = policy or SchedulingPolicy()
    ledger = OccupancyLedger()
    for entry in entries:
        ledger.add(entry)
    checker = ConstraintChecker(ledger, {}, policy)
    return SlotSearch(slots, ledger, checker, policy, random.Random(seed))


def test_single_feasible_slot_is_deterministic():
    search = build_search(
        [slot("Monday", "09:00", "11:00"), slot("Monday", "11:00", "13:00")],
        [existing("b1", "Monday", "09:00", "11:00", lecturer="L1", venue="Remote", teaching_mode=TeachingMode.online)],
    )

    result = search.find_assignment("L1", 2, TeachingMode.physical)

    assert result.ok
    assert (result.day, result.start_time, result.end_time) == ("Monday", "11:00", "13:00")
    assert result.teaching_mode == TeachingMode.physical


@pytest.mark.parametrize("seed", [1, 2, 3, 42])
def test_pick_is_one_of_the_feasible_slots(seed):
    slots = [slot("Monday", "09:00", "11:00"), slot("Tuesday", "09:00", "11:00"), slot("Wednesday", "14:00", "16:00")]
    search = build_search(
        slots,
        [existing("b1", "Tuesday", "10:00", "12:00", lecturer="L1", venue="Remote", teaching_mode=TeachingMode.online)],
        seed=seed,
    )

    result = search.find_assignment("L1", 2)

    assert result.ok
    assert (result.day, result.start_time) in {("Monday", "09:00"), ("Wednesday", "14:00")}


def test_duration_mismatch_falls_back_to_all_slots():
    search = build_search([slot("Monday", "09:00", "10:00")])

    result = search.find_assignment("L1", 2, TeachingMode.physical)

    assert result.ok
    assert result.duration_hours == 1
    assert result.teaching_mode == TeachingMode.online


def test_failure_reason_names_lecturer_duration_and_day():
    search = build_search(
        [slot("Monday", "09:00", "11:00")],
        [existing("b1", "Monday", "09:00", "11:00", lecturer="L9", venue="Remote", teaching_mode=TeachingMode.online)],
    )

    result = search.find_assignment("L9", 2, day="Monday")

    assert not result.ok
    assert "L9" in result.reason
    assert "2h" in result.reason
    assert "Monday" in result.reason


def test_day_filter_and_excluded_slots():
    search = build_search([slot("Monday", "09:00", "11:00"), slot("Friday", "09:00", "11:00"), slot("Friday", "13:00", "15:00")])

    on_friday = search.find_assignment("L1", 2, day="Friday", exclude_slots={("Friday", "09:00", "11:00")})

    assert (on_friday.day, on_friday.start_time) == ("Friday", "13:00")


def test_rest_gap_is_preferred_when_available():
    search = build_search(
        [slot("Monday", "11:00", "13:00"), slot("Monday", "14:00", "16:00")],
        [existing("b1", "Monday", "09:00", "11:00", lecturer="L1", venue="Remote", teaching_mode=TeachingMode.online)],
    )

    result = search.find_assignment("L1", 2)

    assert result.start_time == "14:00"


def test_rest_gap_preference_can_be_disabled():
    policy = SchedulingPolicy(avoid_consecutive_slots=False)
    slots = [slot("Monday", "11:00", "13:00"), slot("Monday", "14:00", "16:00")]
    entries = [existing("b1", "Monday", "09:00", "11:00", lecturer="L1", venue="Remote", teaching_mode=TeachingMode.online)]
    picks = {build_search(slots, entries, policy=policy, seed=seed).find_assignment("L1", 2).start_time for seed in range(20)}

    assert picks <= {"11:00", "14:00"}
    assert "11:00" in picks


def test_group_cap_filters_slots():
    entries = [
        existing("b1", "Monday", "08:00", "10:00", group_id="G1", teaching_mode=TeachingMode.physical),
        existing("b2", "Monday", "10:00", "12:00", group_id="G1", teaching_mode=TeachingMode.physical),
    ]
    search = build_search([slot("Monday", "14:00", "16:00"), slot("Tuesday", "14:00", "16:00")], entries)

    result = search.find_assignment("L1", 2, TeachingMode.physical, group_id="G1")

    assert result.day == "Tuesday"


def test_balancing_prefers_day_missing_a_mode():
    entries = [existing("b1", "Wednesday", "08:00", "10:00", group_id="G1", teaching_mode=TeachingMode.physical)]
    search = build_search([], entries)

    choice = search.balanced_mode("G1", TeachingMode.physical, 1)

    assert choice.teaching_mode == TeachingMode.online
    assert choice.day == "Wednesday"


def test_balancing_without_mixed_mode_keeps_preference():
    entries = [existing("b1", "Wednesday", "08:00", "10:00", group_id="G1", teaching_mode=TeachingMode.physical)]
    search = build_search([], entries, policy=SchedulingPolicy(require_mixed_mode=False))

    choice = search.balanced_mode("G1", TeachingMode.physical, 2)

    assert choice.teaching_mode == TeachingMode.physical
    assert choice.day == "Monday"


def test_balancing_falls_back_to_online_when_physical_is_full():
    entries = [
        existing(f"b{day}{n}", day, start, end, group_id="G1", teaching_mode=TeachingMode.physical)
        for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
        for n, (start, end) in enumerate((("08:00", "09:00"), ("09:00", "10:00")))
    ]
    search = build_search([], entries, policy=SchedulingPolicy(require_mixed_mode=False))

    choice = search.balanced_mode("G1", TeachingMode.physical, 1)

    assert choice.teaching_mode == TeachingMode.online
    assert choice.day == "Monday"
