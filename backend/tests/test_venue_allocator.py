import datetime as dt

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.models.room import Room, RoomKind
from timetabling.services.occupancy import BookingCandidate, LedgerEntry, OccupancyLedger
from timetabling.services.venue_allocator import INSUFFICIENT_CAPACITY, NO_TIME_COMPATIBLE_VENUE, VenueAllocator

EXAM_DATE = dt.date(2026, 1, 5)


def room(name, capacity, kind=RoomKind.examroom, location="Main Campus"):
    return Room(name=name, capacity=capacity, kind=kind, location=location, is_active=True)


def sitting(booking_id, venue, headcount, start="08:00", end="10:00"):
    return LedgerEntry(
        booking_id=booking_id,
        candidate=BookingCandidate(
            kind=BookingKind.exam_sitting,
            day="Monday",
            date=EXAM_DATE,
            start_time=start,
            end_time=end,
            venue=venue,
            headcount=headcount,
        ),
    )


def allocate(allocator, headcount, start="08:00", end="10:00", **kwargs):
    return allocator.allocate(headcount, BookingKind.exam_sitting, EXAM_DATE.isoformat(), start, end, **kwargs)


def test_smallest_sufficient_room_wins():
    allocator = VenueAllocator([room("Hall C", 100), room("Hall A", 50), room("Hall B", 30)], OccupancyLedger())

    result = allocate(allocator, 25)

    assert result.ok
    assert result.venue == "Hall B"
    assert result.remaining_capacity == 5


def test_equal_capacity_breaks_ties_by_name():
    allocator = VenueAllocator([room("Zeta", 40), room("Alpha", 40)], OccupancyLedger())

    assert allocate(allocator, 10).venue == "Alpha"


def test_shared_room_keeps_total_within_capacity():
    ledger = OccupancyLedger()
    ledger.add(sitting("e1", "Hall B", 20))
    allocator = VenueAllocator([room("Hall B", 30), room("Hall A", 50)], ledger)

    second = allocate(allocator, 15)
    small = allocate(allocator, 10)

    assert second.venue == "Hall A"
    assert small.venue == "Hall B"
    assert small.remaining_capacity == 0


def test_non_overlapping_window_frees_capacity():
    ledger = OccupancyLedger()
    ledger.add(sitting("e1", "Hall B", 30, start="08:00", end="10:00"))
    allocator = VenueAllocator([room("Hall B", 30)], ledger)

    assert allocate(allocator, 30, start="10:00", end="12:00").venue == "Hall B"


def test_insufficient_capacity_when_no_room_is_big_enough():
    allocator = VenueAllocator([room("Hall B", 30), room("Hall A", 50)], OccupancyLedger())

    result = allocate(allocator, 200)

    assert not result.ok
    assert result.reason == INSUFFICIENT_CAPACITY


def test_no_time_compatible_venue_when_rooms_are_occupied():
    ledger = OccupancyLedger()
    ledger.add(sitting("e1", "Hall B", 25))
    ledger.add(sitting("e2", "Hall A", 45))
    allocator = VenueAllocator([room("Hall B", 30), room("Hall A", 50)], ledger)

    result = allocate(allocator, 10)

    assert not result.ok
    assert result.reason == NO_TIME_COMPATIBLE_VENUE


def test_excluded_booking_does_not_count():
    ledger = OccupancyLedger()
    ledger.add(sitting("e1", "Hall B", 30))
    allocator = VenueAllocator([room("Hall B", 30)], ledger)

    assert not allocate(allocator, 30).ok
    assert allocate(allocator, 30, exclude_booking_id="e1").venue == "Hall B"


def test_online_goes_remote_without_rooms():
    allocator = VenueAllocator([], OccupancyLedger())

    result = allocate(allocator, 500, preferred_mode=TeachingMode.online)

    assert result.ok
    assert (result.venue, result.location) == ("Remote", "Online")


def test_physical_preference_skips_remote_room():
    allocator = VenueAllocator([room("Remote", 10, location="Online"), room("Hall B", 30)], OccupancyLedger())

    assert allocate(allocator, 5).venue == "Remote"
    assert allocate(allocator, 5, preferred_mode=TeachingMode.physical).venue == "Hall B"


def test_mode_preference_falls_back_to_any_room():
    allocator = VenueAllocator([room("Remote", 1000, location="Online")], OccupancyLedger())

    result = allocate(allocator, 40, preferred_mode=TeachingMode.physical)

    assert result.ok
    assert result.venue == "Remote"


def test_inactive_rooms_are_ignored():
    closed = room("Hall B", 30)
    closed.is_active = False
    allocator = VenueAllocator([closed], OccupancyLedger())

    assert allocate(allocator, 10).reason == INSUFFICIENT_CAPACITY
