from __future__ import annotations

import logging
import random
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy.orm import Session

from timetabling.core.exceptions import SchedulerError, ValidationError
from timetabling.models.booking import Booking, BookingKind, TeachingMode
from timetabling.models.scheduling_failure import FailureCategory
from timetabling.schemas.common import DAY_VALUES, minutes_to_time, parse_time_to_minutes
from timetabling.schemas.scheduling import (
    BulkConflict,
    BulkScheduleConfig,
    BulkScheduleItem,
    BulkScheduleResult,
    BulkWarning,
    ScheduledSitting,
)
from timetabling.services.booking_service import weekday_name
from timetabling.services.catalog import SchedulingCatalog
from timetabling.services.engine import SchedulingEngine
from timetabling.services.failure_log import record_failure
from timetabling.services.occupancy import BookingCandidate
from timetabling.services.policy import SchedulingPolicy

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_COUNT = 4
DAY_MINUTES = 24 * 60


def generate_exam_windows(
    start_time: str,
    duration_hours: int,
    break_minutes: int,
    count: int = DEFAULT_WINDOW_COUNT,
) -> list[tuple[str, str]]:
    """Consecutive sitting windows separated by a break, within one day."""
    windows: list[tuple[str, str]] = []
    cursor = parse_time_to_minutes(start_time)
    length = duration_hours * 60
    for _ in range(count):
        end = cursor + length
        if end >= DAY_MINUTES:
            break
        windows.append((minutes_to_time(cursor), minutes_to_time(end)))
        cursor = end + break_minutes
    return windows


def majority_lecturer(codes: list[str]) -> str | None:
    """Most frequent code; ties go to the code seen first."""
    if not codes:
        return None
    # Counter preserves insertion order, and most_common is stable for ties.
    return Counter(codes).most_common(1)[0][0]


@dataclass
class UnitBatch:
    unit_id: str
    items: list[BulkScheduleItem] = field(default_factory=list)
    lecturer: str | None = None

    @property
    def class_ids(self) -> list[str]:
        return list(dict.fromkeys(item.class_id for item in self.items))

    def explicit_window(self) -> tuple[str, str] | None:
        for item in self.items:
            if item.start_time and item.end_time:
                return item.start_time, item.end_time
        return None


@dataclass
class DayWalk:
    attempted_dates: list[date] = field(default_factory=list)
    venue_reason: str | None = None
    other_reason: str | None = None
    capped_dates: int = 0
    searched_until: date | None = None
    day_limit_hit: bool = False
    remaining_capacity: int | None = None


class BulkScheduler:
    """Places one combined exam sitting per unit across a date range.

    Works on the caller's session and only flushes; the caller commits the
    whole run or rolls it back.
    """

    def __init__(self, db: Session, policy: SchedulingPolicy, rng: random.Random):
        self.db = db
        self.policy = policy
        self.rng = rng

    def run(self, config: BulkScheduleConfig) -> BulkScheduleResult:
        if config.end_date < config.start_date:
            raise ValidationError("end_date must not be before start_date")
        if set(DAY_VALUES) <= set(config.excluded_days):
            raise SchedulerError(
                message="Every weekday is excluded from the bulk run",
                details={"excluded_days": config.excluded_days},
            )
        windows = generate_exam_windows(config.start_time, config.exam_duration_hours, config.break_minutes)
        if not windows:
            raise ValidationError(
                "No exam window fits in the day",
                details={"start_time": config.start_time, "exam_duration_hours": config.exam_duration_hours},
            )

        batches: dict[str, UnitBatch] = {}
        for item in config.items:
            batches.setdefault(item.unit_id, UnitBatch(unit_id=item.unit_id)).items.append(item)

        # Lecturers before rooms, the same lock order as single bookings.
        catalog = SchedulingCatalog(self.db)
        for batch in batches.values():
            batch.lecturer = majority_lecturer(catalog.unit_lecturer_codes(batch.unit_id, config.semester_id))
        catalog.lock_lecturers(batch.lecturer for batch in batches.values())
        engine = SchedulingEngine.load(
            self.db,
            self.policy,
            self.rng,
            BookingKind.exam_sitting,
            room_names=config.room_names,
            lock_rooms=True,
        )
        result = BulkScheduleResult(batch_id=str(uuid.uuid4()))
        last_dates: dict[str, date] = {}

        logger.info(
            "Bulk run %s: %s units, %s to %s, gap %s day(s)",
            result.batch_id,
            len(batches),
            config.start_date,
            config.end_date,
            config.gap_days,
        )

        for batch in batches.values():
            self._schedule_unit(engine, config, batch, windows, last_dates, result)

        logger.info(
            "Bulk run %s finished: %s scheduled, %s conflicts, %s warnings",
            result.batch_id,
            len(result.scheduled),
            len(result.conflicts),
            len(result.warnings),
        )
        return result

    def _schedule_unit(
        self,
        engine: SchedulingEngine,
        config: BulkScheduleConfig,
        batch: UnitBatch,
        windows: list[tuple[str, str]],
        last_dates: dict[str, date],
        result: BulkScheduleResult,
    ) -> None:
        catalog = engine.catalog
        unit = catalog.get_unit(batch.unit_id)
        unit_code = unit.code if unit else batch.unit_id
        class_ids = batch.class_ids

        headcount = catalog.unit_headcount(batch.unit_id, config.semester_id)
        if headcount == 0:
            logger.info("Unit %s has no enrolled students, skipping", unit_code)
            result.warnings.append(
                BulkWarning(
                    unit_id=batch.unit_id,
                    unit_code=unit_code,
                    class_ids=class_ids,
                    message=f"No students enrolled in {unit_code}",
                )
            )
            return

        lecturer = batch.lecturer
        start_time, end_time = batch.explicit_window() or self.rng.choice(windows)

        earliest = config.start_date
        for class_id in class_ids:
            if class_id in last_dates:
                earliest = max(earliest, last_dates[class_id] + timedelta(days=config.gap_days + 1))

        walk = DayWalk()
        current = earliest
        days_walked = 0
        while current <= config.end_date and days_walked < self.policy.max_bulk_days_per_unit:
            day = current
            current = current + timedelta(days=1)
            days_walked += 1
            walk.searched_until = day

            day_name = weekday_name(day)
            if day_name in config.excluded_days:
                continue
            if config.max_sessions_per_day is not None and engine.ledger.sittings_on(day) >= config.max_sessions_per_day:
                walk.capped_dates += 1
                continue
            walk.attempted_dates.append(day)

            booking = self._try_date(engine, batch, day, start_time, end_time, headcount, lecturer, walk, config)
            if booking is None:
                continue

            for class_id in class_ids:
                last_dates[class_id] = day
            result.scheduled.append(
                ScheduledSitting(
                    booking_id=booking.id,
                    unit_id=batch.unit_id,
                    unit_code=unit_code,
                    class_ids=class_ids,
                    date=day,
                    day=day_name,
                    start_time=start_time,
                    end_time=end_time,
                    venue=booking.venue,
                    location=booking.location,
                    lecturer=lecturer,
                    headcount=headcount,
                    remaining_capacity=walk.remaining_capacity,
                )
            )
            logger.info("Unit %s scheduled on %s %s-%s in %s", unit_code, day, start_time, end_time, booking.venue)
            return

        walk.day_limit_hit = current <= config.end_date
        category, reason = self._failure_reason(walk, earliest, config, headcount)
        logger.warning("Unit %s not scheduled: %s", unit_code, reason)
        result.conflicts.append(
            BulkConflict(
                unit_id=batch.unit_id,
                unit_code=unit_code,
                class_ids=class_ids,
                headcount=headcount,
                category=category.value,
                reason=reason,
                attempted_dates=walk.attempted_dates,
            )
        )
        record_failure(
            self.db,
            batch_id=result.batch_id,
            semester_id=config.semester_id,
            program_id=config.program_id,
            unit_id=batch.unit_id,
            unit_code=unit_code,
            class_ids=class_ids,
            headcount=headcount,
            lecturer=lecturer,
            attempted_dates=[value.isoformat() for value in walk.attempted_dates],
            category=category,
            reason=reason,
        )

    def _try_date(
        self,
        engine: SchedulingEngine,
        batch: UnitBatch,
        day: date,
        start_time: str,
        end_time: str,
        headcount: int,
        lecturer: str | None,
        walk: DayWalk,
        config: BulkScheduleConfig,
    ) -> Booking | None:
        candidate = BookingCandidate(
            kind=BookingKind.exam_sitting,
            day=weekday_name(day),
            date=day,
            start_time=start_time,
            end_time=end_time,
            lecturer=lecturer,
            teaching_mode=TeachingMode.physical,
            headcount=headcount,
            class_ids=tuple(batch.class_ids),
            unit_id=batch.unit_id,
        )
        clash = engine.checker.check(candidate)
        if not clash.ok:
            walk.other_reason = clash.reasons[0]
            return None

        venue = engine.allocator.allocate(
            headcount,
            BookingKind.exam_sitting,
            day.isoformat(),
            start_time,
            end_time,
            preferred_mode=TeachingMode.physical,
        )
        if not venue.ok:
            walk.venue_reason = venue.reason
            return None

        placed = BookingCandidate(
            kind=candidate.kind,
            day=candidate.day,
            date=day,
            start_time=start_time,
            end_time=end_time,
            lecturer=lecturer,
            venue=venue.venue,
            headcount=headcount,
            class_ids=candidate.class_ids,
            unit_id=batch.unit_id,
        )
        recheck = engine.checker.check(placed)
        if not recheck.ok:
            walk.other_reason = recheck.reasons[0]
            return None

        booking = engine.catalog.create_booking(
            Booking(
                kind=BookingKind.exam_sitting,
                unit_id=batch.unit_id,
                class_id=batch.class_ids[0],
                cohort_class_ids=batch.class_ids,
                semester_id=config.semester_id,
                program_id=config.program_id,
                school_id=config.school_id,
                day=placed.day,
                date=day,
                start_time=start_time,
                end_time=end_time,
                venue=venue.venue,
                location=venue.location,
                headcount=headcount,
                lecturer=lecturer,
            )
        )
        engine.ledger.add_booking(booking)
        walk.remaining_capacity = venue.remaining_capacity
        return booking

    def _failure_reason(
        self,
        walk: DayWalk,
        earliest: date,
        config: BulkScheduleConfig,
        headcount: int,
    ) -> tuple[FailureCategory, str]:
        limit = ""
        if walk.day_limit_hit:
            limit = (
                f"; search stopped at {walk.searched_until.isoformat()} after "
                f"{self.policy.max_bulk_days_per_unit} day(s), before {config.end_date.isoformat()}"
            )
        if walk.venue_reason:
            return (
                FailureCategory.capacity,
                f"Insufficient venue capacity for {headcount} students ({walk.venue_reason}){limit}",
            )
        if not walk.attempted_dates:
            last = walk.searched_until if walk.day_limit_hit else config.end_date
            detail = " (daily sitting cap reached)" if walk.capped_dates else ""
            return (
                FailureCategory.no_date,
                f"No eligible date between {earliest.isoformat()} and {last.isoformat()}{detail}{limit}",
            )
        return FailureCategory.conflict, f"No slot found: {walk.other_reason or 'all dates conflicted'}{limit}"
