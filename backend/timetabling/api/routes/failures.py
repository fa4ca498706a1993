from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetabling.api.deps import get_db
from timetabling.models.scheduling_failure import FailureStatus, SchedulingFailure
from timetabling.schemas.failure import FailureResolveRequest, SchedulingFailureOut
from timetabling.services.failure_log import list_failures, resolve_failure

router = APIRouter()


@router.get("/", response_model=list[SchedulingFailureOut])
def get_failures(
    batch_id: str | None = None,
    status: FailureStatus | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[SchedulingFailure]:
    return list_failures(db, batch_id=batch_id, status=status, limit=limit)


@router.post("/{failure_id}/resolve", response_model=SchedulingFailureOut)
def resolve(
    failure_id: str,
    payload: FailureResolveRequest,
    db: Session = Depends(get_db),
) -> SchedulingFailure:
    failure = resolve_failure(db, failure_id, payload.note)
    db.commit()
    db.refresh(failure)
    return failure
