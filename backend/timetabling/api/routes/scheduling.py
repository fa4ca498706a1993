import logging
import random

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timetabling.api.deps import get_db, get_policy, get_rng
from timetabling.core.exceptions import AppError
from timetabling.models.booking import BookingKind
from timetabling.schemas.scheduling import (
    AssignmentOut,
    AssignmentRequest,
    BulkScheduleConfig,
    BulkScheduleResult,
    ConflictCheckOut,
    ConflictCheckRequest,
    VenueOut,
    VenueRequest,
)
from timetabling.services.booking_service import weekday_name
from timetabling.services.bulk_scheduler import BulkScheduler
from timetabling.services.engine import SchedulingEngine
from timetabling.services.occupancy import BookingCandidate
from timetabling.services.policy import SchedulingPolicy

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/assignments", response_model=AssignmentOut)
def find_class_assignment(
    payload: AssignmentRequest,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> AssignmentOut:
    engine = SchedulingEngine.load(db, policy, rng, BookingKind.class_session)
    result = engine.search.find_assignment(
        payload.lecturer,
        payload.duration_hours,
        payload.teaching_mode,
        payload.group_id,
        payload.day,
    )
    return AssignmentOut(
        ok=result.ok,
        day=result.day,
        start_time=result.start_time,
        end_time=result.end_time,
        duration_hours=result.duration_hours,
        teaching_mode=result.teaching_mode,
        reason=result.reason,
    )


@router.post("/venues", response_model=VenueOut)
def allocate_venue(
    payload: VenueRequest,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> VenueOut:
    engine = SchedulingEngine.load(db, policy, rng, payload.kind)
    slot_key = payload.date.isoformat() if payload.kind == BookingKind.exam_sitting else payload.day
    result = engine.allocator.allocate(
        payload.headcount,
        payload.kind,
        slot_key,
        payload.start_time,
        payload.end_time,
        preferred_mode=payload.teaching_mode,
        exclude_booking_id=payload.exclude_booking_id,
    )
    return VenueOut(
        ok=result.ok,
        venue=result.venue,
        location=result.location,
        remaining_capacity=result.remaining_capacity,
        reason=result.reason,
    )


@router.post("/conflicts/check", response_model=ConflictCheckOut)
def check_conflicts(
    payload: ConflictCheckRequest,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> ConflictCheckOut:
    engine = SchedulingEngine.load(db, policy, rng, payload.kind)
    day = payload.day
    if payload.date is not None and (payload.kind == BookingKind.exam_sitting or day is None):
        day = weekday_name(payload.date)
    candidate = BookingCandidate(
        kind=payload.kind,
        day=day,
        date=payload.date if payload.kind == BookingKind.exam_sitting else None,
        start_time=payload.start_time,
        end_time=payload.end_time,
        lecturer=payload.lecturer,
        venue=payload.venue,
        teaching_mode=payload.teaching_mode,
        headcount=payload.headcount,
        group_id=payload.group_id,
        class_ids=tuple(payload.class_ids),
    )
    result = engine.checker.check(candidate, exclude_booking_id=payload.exclude_booking_id)
    return ConflictCheckOut(ok=result.ok, reasons=result.reasons, conflicts=result.conflicts)


@router.post("/bulk", response_model=BulkScheduleResult)
def bulk_schedule(
    payload: BulkScheduleConfig,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> BulkScheduleResult:
    scheduler = BulkScheduler(db, policy, rng)
    try:
        result = scheduler.run(payload)
        db.commit()
    except AppError:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("Bulk scheduling failed, rolled back")
        raise
    return result
