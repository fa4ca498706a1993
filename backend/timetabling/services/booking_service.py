from __future__ import annotations

import logging
import random

from sqlalchemy.orm import Session

from timetabling.core.exceptions import (
    CapacityExhaustedError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from timetabling.models.booking import Booking, BookingKind, TeachingMode
from timetabling.models.room import ONLINE_LOCATION, REMOTE_VENUE
from timetabling.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    ClassSessionRequest,
    CreditSessionRequest,
)
from timetabling.schemas.common import DAY_VALUES, parse_time_to_minutes
from timetabling.services.catalog import SchedulingCatalog
from timetabling.services.engine import SchedulingEngine
from timetabling.services.occupancy import BookingCandidate
from timetabling.services.policy import (
    SchedulingPolicy,
    derive_venue_mode,
    resolve_teaching_mode,
    sessions_for_credits,
)
from timetabling.services.slot_search import SlotKey

logger = logging.getLogger(__name__)


def weekday_name(value) -> str:
    return DAY_VALUES[value.weekday()]


def _duration_hours(start_time: str, end_time: str) -> float:
    return (parse_time_to_minutes(end_time) - parse_time_to_minutes(start_time)) / 60


class BookingService:
    """Creates, moves and removes bookings inside the caller's transaction."""

    def __init__(self, db: Session, policy: SchedulingPolicy, rng: random.Random):
        self.db = db
        self.policy = policy
        self.rng = rng
        self.catalog = SchedulingCatalog(db)

    def _load_engine(self, kind: BookingKind, lecturers: list[str | None]) -> SchedulingEngine:
        self.catalog.lock_lecturers(lecturers)
        return SchedulingEngine.load(self.db, self.policy, self.rng, kind, lock_rooms=True)

    def schedule_class_session(self, request: ClassSessionRequest, engine: SchedulingEngine | None = None) -> Booking:
        engine = engine or self._load_engine(BookingKind.class_session, [request.lecturer])
        tried: set[SlotKey] = set()
        last_reason = "no candidate slot"
        attempts = 0

        while attempts < self.policy.max_assignment_attempts:
            assignment = engine.search.find_assignment(
                request.lecturer,
                request.duration_hours,
                request.teaching_mode,
                request.group_id,
                request.day,
                class_ids=[request.class_id],
                headcount=request.headcount,
                exclude_slots=tried,
            )
            if not assignment.ok:
                # Keep the reason the last tried slot was rejected for.
                if not tried:
                    last_reason = assignment.reason
                break
            attempts += 1
            tried.add(assignment.slot_key)

            mode = resolve_teaching_mode(assignment.duration_hours, assignment.teaching_mode, self.policy)
            venue = engine.allocator.allocate(
                request.headcount,
                BookingKind.class_session,
                assignment.day,
                assignment.start_time,
                assignment.end_time,
                preferred_mode=mode,
            )
            if not venue.ok:
                last_reason = f"{venue.reason} on {assignment.day} {assignment.start_time}-{assignment.end_time}"
                logger.info("Attempt %s for unit %s: %s", attempts, request.unit_id, last_reason)
                continue

            candidate = BookingCandidate(
                kind=BookingKind.class_session,
                day=assignment.day,
                start_time=assignment.start_time,
                end_time=assignment.end_time,
                lecturer=request.lecturer,
                venue=venue.venue,
                teaching_mode=mode,
                headcount=request.headcount,
                group_id=request.group_id,
                class_ids=(request.class_id,),
                unit_id=request.unit_id,
            )
            check = engine.checker.check(candidate)
            if not check.ok:
                last_reason = check.reasons[0]
                logger.info("Attempt %s for unit %s: %s", attempts, request.unit_id, last_reason)
                continue

            booking = engine.catalog.create_booking(
                Booking(
                    kind=BookingKind.class_session,
                    unit_id=request.unit_id,
                    class_id=request.class_id,
                    cohort_class_ids=[request.class_id],
                    group_id=request.group_id,
                    semester_id=request.semester_id,
                    program_id=request.program_id,
                    school_id=request.school_id,
                    day=assignment.day,
                    start_time=assignment.start_time,
                    end_time=assignment.end_time,
                    venue=venue.venue,
                    location=venue.location,
                    teaching_mode=mode,
                    headcount=request.headcount,
                    lecturer=request.lecturer,
                )
            )
            engine.ledger.add_booking(booking)
            logger.info(
                "Scheduled unit %s class %s on %s %s-%s in %s after %s attempt(s)",
                request.unit_id,
                request.class_id,
                booking.day,
                booking.start_time,
                booking.end_time,
                booking.venue,
                attempts,
            )
            return booking

        logger.warning("Unable to schedule unit %s class %s: %s", request.unit_id, request.class_id, last_reason)
        raise CapacityExhaustedError(
            f"Unable to schedule session: {last_reason}",
            search={
                "lecturer": request.lecturer,
                "duration_hours": request.duration_hours,
                "day": request.day,
                "group_id": request.group_id,
                "headcount": request.headcount,
                "attempts": attempts,
            },
        )

    def schedule_credit_sessions(self, request: CreditSessionRequest) -> tuple[list[Booking], list[dict]]:
        credit_hours = request.credit_hours
        if credit_hours is None:
            unit = self.catalog.get_unit(request.unit_id)
            if unit is None:
                raise ResourceNotFoundError("Unit", request.unit_id)
            credit_hours = unit.credit_hours

        plan = sessions_for_credits(credit_hours)
        engine = self._load_engine(BookingKind.class_session, [request.lecturer])
        created: list[Booking] = []
        errors: list[dict] = []
        for session in plan:
            session_request = ClassSessionRequest(
                unit_id=request.unit_id,
                class_id=request.class_id,
                group_id=request.group_id,
                semester_id=request.semester_id,
                program_id=request.program_id,
                school_id=request.school_id,
                lecturer=request.lecturer,
                duration_hours=session.duration_hours,
                teaching_mode=session.teaching_mode,
                headcount=request.headcount,
            )
            try:
                created.append(self.schedule_class_session(session_request, engine))
            except CapacityExhaustedError as exc:
                errors.append(
                    {
                        "duration_hours": session.duration_hours,
                        "teaching_mode": session.teaching_mode,
                        "message": exc.message,
                    }
                )

        if not created:
            raise CapacityExhaustedError(
                f"No sessions could be scheduled for unit {request.unit_id}",
                search={
                    "credit_hours": credit_hours,
                    "lecturer": request.lecturer,
                    "errors": [error["message"] for error in errors],
                },
            )
        return created, errors

    def create_booking(self, payload: BookingCreate) -> Booking:
        day, date = self._resolve_day(payload.kind, payload.day, payload.date)
        engine = self._load_engine(payload.kind, [payload.lecturer])
        class_ids = list(payload.cohort_class_ids or ([payload.class_id] if payload.class_id else []))

        mode = None
        if payload.kind == BookingKind.class_session:
            mode = resolve_teaching_mode(
                _duration_hours(payload.start_time, payload.end_time),
                payload.teaching_mode,
                self.policy,
            )

        venue, location = payload.venue, payload.location
        if not venue:
            if mode == TeachingMode.online:
                venue, location = REMOTE_VENUE, ONLINE_LOCATION
            else:
                slot_key = date.isoformat() if date else day
                result = engine.allocator.allocate(
                    payload.headcount,
                    payload.kind,
                    slot_key,
                    payload.start_time,
                    payload.end_time,
                    preferred_mode=TeachingMode.physical,
                )
                if not result.ok:
                    raise CapacityExhaustedError(
                        f"No venue available: {result.reason}",
                        search={
                            "headcount": payload.headcount,
                            "day": day,
                            "date": date.isoformat() if date else None,
                            "start_time": payload.start_time,
                            "end_time": payload.end_time,
                        },
                    )
                venue, location = result.venue, result.location
        elif location is None:
            location = self._venue_location(venue)

        candidate = BookingCandidate(
            kind=payload.kind,
            day=day,
            date=date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            lecturer=payload.lecturer,
            venue=venue,
            teaching_mode=mode,
            headcount=payload.headcount,
            group_id=payload.group_id,
            class_ids=tuple(class_ids),
            unit_id=payload.unit_id,
        )
        check = engine.checker.check(candidate)
        if not check.ok:
            raise ConflictError("Booking conflicts with existing bookings", check.reasons, check.conflicts)

        booking = engine.catalog.create_booking(
            Booking(
                kind=payload.kind,
                unit_id=payload.unit_id,
                class_id=payload.class_id or (class_ids[0] if class_ids else None),
                cohort_class_ids=class_ids,
                group_id=payload.group_id,
                semester_id=payload.semester_id,
                program_id=payload.program_id,
                school_id=payload.school_id,
                day=day,
                date=date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                venue=venue,
                location=location,
                teaching_mode=mode,
                headcount=payload.headcount,
                lecturer=payload.lecturer,
            )
        )
        logger.info("Created %s booking %s on %s in %s", booking.kind.value, booking.id, booking.slot_key, booking.venue)
        return booking

    def update_booking(self, booking_id: str, payload: BookingUpdate) -> Booking:
        booking = self.catalog.get_booking(booking_id)
        if booking is None:
            raise ResourceNotFoundError("Booking", booking_id)

        fields = payload.model_dump(exclude_unset=True)
        merged = {
            "day": booking.day,
            "date": booking.date,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
            "venue": booking.venue,
            "location": booking.location,
            "teaching_mode": booking.teaching_mode,
            "headcount": booking.headcount,
            "lecturer": booking.lecturer,
            "group_id": booking.group_id,
        }
        merged.update(fields)

        if merged["start_time"] is None or merged["end_time"] is None:
            raise ValidationError("start_time and end_time are required")
        if parse_time_to_minutes(merged["end_time"]) <= parse_time_to_minutes(merged["start_time"]):
            raise ValidationError(
                "end_time must be after start_time",
                details={"start_time": merged["start_time"], "end_time": merged["end_time"]},
            )
        if merged["headcount"] is None or not merged["venue"]:
            raise ValidationError("headcount and venue cannot be cleared")
        day, date = self._resolve_day(booking.kind, merged["day"], merged["date"])

        mode = None
        if booking.kind == BookingKind.class_session:
            mode = resolve_teaching_mode(
                _duration_hours(merged["start_time"], merged["end_time"]),
                merged["teaching_mode"],
                self.policy,
            )
        if "venue" in fields and "location" not in fields:
            merged["location"] = self._venue_location(merged["venue"])

        engine = self._load_engine(booking.kind, [merged["lecturer"]])
        candidate = BookingCandidate(
            kind=booking.kind,
            day=day,
            date=date,
            start_time=merged["start_time"],
            end_time=merged["end_time"],
            lecturer=merged["lecturer"],
            venue=merged["venue"],
            teaching_mode=mode,
            headcount=merged["headcount"],
            group_id=merged["group_id"],
            class_ids=tuple(booking.cohort_class_ids or ([booking.class_id] if booking.class_id else [])),
            unit_id=booking.unit_id,
        )
        check = engine.checker.check(candidate, exclude_booking_id=booking.id)
        if not check.ok:
            raise ConflictError("Updated booking conflicts with existing bookings", check.reasons, check.conflicts)

        merged.update({"day": day, "date": date, "teaching_mode": mode})
        engine.catalog.update_booking(booking, merged)
        logger.info("Updated booking %s", booking.id)
        return booking

    def delete_booking(self, booking_id: str) -> None:
        booking = self.catalog.get_booking(booking_id)
        if booking is None:
            raise ResourceNotFoundError("Booking", booking_id)
        self.catalog.delete_booking(booking)
        logger.info("Deleted booking %s", booking_id)

    def _resolve_day(self, kind: BookingKind, day, date):
        if kind == BookingKind.exam_sitting:
            if date is None:
                raise ValidationError("Exam sittings require a date")
            return weekday_name(date), date
        if not day:
            raise ValidationError("Class sessions require a day")
        return day, None

    def _venue_location(self, venue: str) -> str | None:
        if derive_venue_mode(venue) == TeachingMode.online:
            return ONLINE_LOCATION
        room = self.catalog.get_room(venue)
        return room.location if room else None
