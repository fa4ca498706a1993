from __future__ import annotations

import datetime as dt
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetabling.models.academic import Enrollment, Lecturer, Unit, UnitAssignment
from timetabling.models.booking import Booking, BookingKind
from timetabling.models.room import Room, RoomKind
from timetabling.models.time_slot import TimeSlot
from timetabling.schemas.common import DAY_VALUES, parse_time_to_minutes

ACTIVE_ENROLLMENT_STATUS = "enrolled"


class SchedulingCatalog:
    """Read and write access to rooms, slots, enrollments and bookings."""

    def __init__(self, db: Session):
        self.db = db

    def list_active_rooms(
        self,
        *,
        min_capacity: int | None = None,
        kind: RoomKind | None = None,
        names: Iterable[str] | None = None,
    ) -> list[Room]:
        query = select(Room).where(Room.is_active.is_(True))
        if min_capacity is not None:
            query = query.where(Room.capacity >= min_capacity)
        if kind is not None:
            query = query.where(Room.kind == kind)
        if names is not None:
            query = query.where(Room.name.in_(list(names)))
        return list(self.db.execute(query.order_by(Room.capacity.asc(), Room.name.asc())).scalars().all())

    def get_room(self, name: str) -> Room | None:
        return self.db.execute(select(Room).where(Room.name == name)).scalar_one_or_none()

    def list_time_slots(self, *, day: str | None = None, duration_hours: int | None = None) -> list[TimeSlot]:
        query = select(TimeSlot)
        if day is not None:
            query = query.where(TimeSlot.day == day)
        slots = list(self.db.execute(query).scalars().all())
        if duration_hours is not None:
            slots = [slot for slot in slots if slot.duration_hours == duration_hours]
        return sorted(
            slots,
            key=lambda slot: (
                DAY_VALUES.index(slot.day) if slot.day in DAY_VALUES else len(DAY_VALUES),
                parse_time_to_minutes(slot.start_time),
                parse_time_to_minutes(slot.end_time),
            ),
        )

    def list_bookings(
        self,
        *,
        kind: BookingKind | None = None,
        day: str | None = None,
        date_from: dt.date | None = None,
        date_to: dt.date | None = None,
        venue: str | None = None,
        lecturer: str | None = None,
        class_id: str | None = None,
    ) -> list[Booking]:
        query = select(Booking)
        if kind is not None:
            query = query.where(Booking.kind == kind)
        if day is not None:
            query = query.where(Booking.day == day)
        if date_from is not None:
            query = query.where(Booking.date >= date_from)
        if date_to is not None:
            query = query.where(Booking.date <= date_to)
        if venue is not None:
            query = query.where(Booking.venue == venue)
        if lecturer is not None:
            query = query.where(Booking.lecturer == lecturer)
        bookings = list(self.db.execute(query.order_by(Booking.day, Booking.start_time, Booking.id)).scalars().all())
        if class_id is not None:
            # Combined sittings keep their classes in a JSON list.
            bookings = [
                booking
                for booking in bookings
                if booking.class_id == class_id or class_id in (booking.cohort_class_ids or [])
            ]
        return bookings

    def get_booking(self, booking_id: str) -> Booking | None:
        return self.db.get(Booking, booking_id)

    def create_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def update_booking(self, booking: Booking, fields: dict) -> Booking:
        for key, value in fields.items():
            setattr(booking, key, value)
        self.db.flush()
        return booking

    def delete_booking(self, booking: Booking) -> None:
        self.db.delete(booking)
        self.db.flush()

    def get_unit(self, unit_id: str) -> Unit | None:
        return self.db.get(Unit, unit_id)

    def unit_headcount(self, unit_id: str, semester_id: str | None = None) -> int:
        """Unique students registered for the unit across every class."""
        query = select(func.count(func.distinct(Enrollment.student_code))).where(
            Enrollment.unit_id == unit_id,
            Enrollment.status == ACTIVE_ENROLLMENT_STATUS,
        )
        if semester_id is not None:
            query = query.where(Enrollment.semester_id == semester_id)
        return int(self.db.execute(query).scalar_one() or 0)

    def unit_lecturer_codes(self, unit_id: str, semester_id: str | None = None) -> list[str]:
        query = select(UnitAssignment.lecturer_code).where(UnitAssignment.unit_id == unit_id)
        if semester_id is not None:
            query = query.where(UnitAssignment.semester_id == semester_id)
        query = query.order_by(UnitAssignment.created_at.asc(), UnitAssignment.class_id.asc(), UnitAssignment.id.asc())
        return [code for code in self.db.execute(query).scalars().all() if code]

    def lock_rooms(self, names: Iterable[str] | None = None) -> list[Room]:
        query = select(Room).where(Room.is_active.is_(True))
        if names is not None:
            query = query.where(Room.name.in_(list(names)))
        return list(self.db.execute(query.order_by(Room.name).with_for_update()).scalars().all())

    def lock_lecturers(self, codes: Iterable[str | None]) -> list[Lecturer]:
        wanted = sorted({code for code in codes if code})
        if not wanted:
            return []
        query = select(Lecturer).where(Lecturer.code.in_(wanted)).order_by(Lecturer.code).with_for_update()
        return list(self.db.execute(query).scalars().all())
