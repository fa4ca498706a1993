from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from timetabling.core.exceptions import ResourceNotFoundError
from timetabling.models.scheduling_failure import FailureCategory, FailureStatus, SchedulingFailure

logger = logging.getLogger(__name__)


def record_failure(
    db: Session,
    *,
    batch_id: str,
    unit_id: str,
    unit_code: str,
    class_ids: list[str],
    headcount: int,
    lecturer: str | None,
    attempted_dates: list[str],
    category: FailureCategory,
    reason: str,
    semester_id: str | None = None,
    program_id: str | None = None,
) -> SchedulingFailure:
    failure = SchedulingFailure(
        batch_id=batch_id,
        semester_id=semester_id,
        program_id=program_id,
        unit_id=unit_id,
        unit_code=unit_code,
        class_ids=list(class_ids),
        headcount=headcount,
        lecturer=lecturer,
        attempted_dates=list(attempted_dates),
        category=category,
        reason=reason[:500],
        status=FailureStatus.pending,
    )
    db.add(failure)
    db.flush()
    return failure


def list_failures(
    db: Session,
    *,
    batch_id: str | None = None,
    status: FailureStatus | None = None,
    limit: int = 200,
) -> list[SchedulingFailure]:
    query = select(SchedulingFailure)
    if batch_id is not None:
        query = query.where(SchedulingFailure.batch_id == batch_id)
    if status is not None:
        query = query.where(SchedulingFailure.status == status)
    query = query.order_by(SchedulingFailure.created_at.desc(), SchedulingFailure.id).limit(limit)
    return list(db.execute(query).scalars().all())


def resolve_failure(db: Session, failure_id: str, note: str | None = None) -> SchedulingFailure:
    failure = db.get(SchedulingFailure, failure_id)
    if failure is None:
        raise ResourceNotFoundError("Scheduling failure", failure_id)
    failure.status = FailureStatus.resolved
    failure.resolution_note = note
    failure.resolved_at = datetime.now(timezone.utc)
    db.flush()
    logger.info("Resolved scheduling failure %s for unit %s", failure.id, failure.unit_code)
    return failure
