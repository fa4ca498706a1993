from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from timetabling.models.booking import Booking, BookingKind, TeachingMode
from timetabling.schemas.common import parse_time_to_minutes
from timetabling.services.policy import derive_venue_mode, is_remote_venue


@dataclass(frozen=True)
class BookingCandidate:
    """A proposed class session or exam sitting, not yet persisted."""

    kind: BookingKind
    day: str
    start_time: str
    end_time: str
    date: dt.date | None = None
    lecturer: str | None = None
    venue: str | None = None
    teaching_mode: TeachingMode | None = None
    headcount: int = 1
    group_id: str | None = None
    class_ids: tuple[str, ...] = ()
    unit_id: str | None = None

    @property
    def slot_key(self) -> str:
        if self.kind == BookingKind.exam_sitting and self.date is not None:
            return self.date.isoformat()
        return self.day

    @property
    def start_minutes(self) -> int:
        return parse_time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_time_to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def effective_mode(self) -> TeachingMode:
        return self.teaching_mode or derive_venue_mode(self.venue)


@dataclass(frozen=True)
class LedgerEntry:
    booking_id: str
    candidate: BookingCandidate

    @classmethod
    def from_booking(cls, booking: Booking) -> "LedgerEntry":
        class_ids = tuple(booking.cohort_class_ids or ([booking.class_id] if booking.class_id else []))
        return cls(
            booking_id=booking.id,
            candidate=BookingCandidate(
                kind=booking.kind,
                day=booking.day,
                date=booking.date,
                start_time=booking.start_time,
                end_time=booking.end_time,
                lecturer=booking.lecturer,
                venue=booking.venue,
                teaching_mode=booking.teaching_mode,
                headcount=booking.headcount,
                group_id=booking.group_id,
                class_ids=class_ids,
                unit_id=booking.unit_id,
            ),
        )

    def overlaps(self, start_minutes: int, end_minutes: int) -> bool:
        return self.candidate.start_minutes < end_minutes and self.candidate.end_minutes > start_minutes


@dataclass
class DayLoad:
    physical_count: int = 0
    online_count: int = 0
    total_minutes: int = 0

    @property
    def total_hours(self) -> float:
        return self.total_minutes / 60

    @property
    def session_count(self) -> int:
        return self.physical_count + self.online_count


@dataclass
class OccupancyLedger:
    """Bookings already committed plus those placed earlier in the same run.

    Entries are bucketed by (kind, day name) for class sessions and
    (kind, ISO date) for exam sittings.
    """

    _buckets: dict[tuple[BookingKind, str], dict[str, LedgerEntry]] = field(
        default_factory=lambda: defaultdict(dict)
    )

    @classmethod
    def from_bookings(cls, bookings: Iterable[Booking]) -> "OccupancyLedger":
        ledger = cls()
        for booking in bookings:
            ledger.add(LedgerEntry.from_booking(booking))
        return ledger

    def add(self, entry: LedgerEntry) -> None:
        candidate = entry.candidate
        self._remove_id(entry.booking_id)
        self._buckets[(candidate.kind, candidate.slot_key)][entry.booking_id] = entry

    def add_booking(self, booking: Booking) -> LedgerEntry:
        entry = LedgerEntry.from_booking(booking)
        self.add(entry)
        return entry

    def remove(self, booking_id: str) -> None:
        self._remove_id(booking_id)

    def _remove_id(self, booking_id: str) -> None:
        for bucket in self._buckets.values():
            bucket.pop(booking_id, None)

    def entries_on(
        self,
        kind: BookingKind,
        slot_key: str,
        *,
        exclude_booking_id: str | None = None,
    ) -> list[LedgerEntry]:
        bucket = self._buckets.get((kind, slot_key), {})
        return [entry for booking_id, entry in bucket.items() if booking_id != exclude_booking_id]

    def overlapping(
        self,
        kind: BookingKind,
        slot_key: str,
        start_time: str,
        end_time: str,
        *,
        exclude_booking_id: str | None = None,
    ) -> list[LedgerEntry]:
        start, end = parse_time_to_minutes(start_time), parse_time_to_minutes(end_time)
        return [
            entry
            for entry in self.entries_on(kind, slot_key, exclude_booking_id=exclude_booking_id)
            if entry.overlaps(start, end)
        ]

    def venue_occupancy(
        self,
        kind: BookingKind,
        slot_key: str,
        venue: str,
        start_time: str,
        end_time: str,
        *,
        exclude_booking_id: str | None = None,
    ) -> int:
        """Summed headcount of physical bookings sharing the venue in the window."""
        if is_remote_venue(venue):
            return 0
        return sum(
            entry.candidate.headcount
            for entry in self.overlapping(kind, slot_key, start_time, end_time, exclude_booking_id=exclude_booking_id)
            if entry.candidate.venue == venue and entry.candidate.effective_mode == TeachingMode.physical
        )

    def group_day_load(self, group_id: str, day: str, *, exclude_booking_id: str | None = None) -> DayLoad:
        load = DayLoad()
        for entry in self.entries_on(BookingKind.class_session, day, exclude_booking_id=exclude_booking_id):
            candidate = entry.candidate
            if candidate.group_id != group_id:
                continue
            if candidate.effective_mode == TeachingMode.physical:
                load.physical_count += 1
            else:
                load.online_count += 1
            load.total_minutes += candidate.duration_minutes
        return load

    def sittings_on(self, date: dt.date) -> int:
        return len(self.entries_on(BookingKind.exam_sitting, date.isoformat()))

    def all_entries(self) -> list[LedgerEntry]:
        return [entry for bucket in self._buckets.values() for entry in bucket.values()]
