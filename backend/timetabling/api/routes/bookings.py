import datetime as dt
import logging
import random

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from timetabling.api.deps import get_db, get_policy, get_rng
from timetabling.core.exceptions import AppError
from timetabling.models.booking import Booking, BookingKind
from timetabling.schemas.booking import (
    BookingCreate,
    BookingOut,
    BookingUpdate,
    ClassSessionRequest,
    CreditSessionRequest,
    CreditSessionResult,
    SessionError,
)
from timetabling.services.booking_service import BookingService
from timetabling.services.catalog import SchedulingCatalog
from timetabling.services.policy import SchedulingPolicy

logger = logging.getLogger(__name__)

router = APIRouter()


def _service(db: Session, policy: SchedulingPolicy, rng: random.Random) -> BookingService:
    return BookingService(db, policy, rng)


def _commit(db: Session, operation, *args):
    try:
        result = operation(*args)
        db.commit()
    except AppError:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("Booking operation failed, rolled back")
        raise
    return result


@router.get("/", response_model=list[BookingOut])
def list_bookings(
    kind: BookingKind | None = None,
    day: str | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    lecturer: str | None = None,
    class_id: str | None = None,
    venue: str | None = None,
    db: Session = Depends(get_db),
) -> list[BookingOut]:
    return SchedulingCatalog(db).list_bookings(
        kind=kind,
        day=day,
        date_from=date_from,
        date_to=date_to,
        venue=venue,
        lecturer=lecturer,
        class_id=class_id,
    )


@router.post("/", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> Booking:
    booking = _commit(db, _service(db, policy, rng).create_booking, payload)
    db.refresh(booking)
    return booking


@router.post("/class-sessions", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def schedule_class_session(
    payload: ClassSessionRequest,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> Booking:
    booking = _commit(db, _service(db, policy, rng).schedule_class_session, payload)
    db.refresh(booking)
    return booking


@router.post("/credit-sessions", response_model=CreditSessionResult, status_code=status.HTTP_201_CREATED)
def schedule_credit_sessions(
    payload: CreditSessionRequest,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> CreditSessionResult:
    created, errors = _commit(db, _service(db, policy, rng).schedule_credit_sessions, payload)
    for booking in created:
        db.refresh(booking)
    return CreditSessionResult(
        created=[BookingOut.model_validate(booking) for booking in created],
        errors=[SessionError(**error) for error in errors],
    )


@router.patch("/{booking_id}", response_model=BookingOut)
def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> Booking:
    booking = _commit(db, _service(db, policy, rng).update_booking, booking_id, payload)
    db.refresh(booking)
    return booking


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
    rng: random.Random = Depends(get_rng),
) -> None:
    _commit(db, _service(db, policy, rng).delete_booking, booking_id)
