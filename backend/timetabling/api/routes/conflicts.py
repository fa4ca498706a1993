from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timetabling.api.deps import get_db, get_policy
from timetabling.models.booking import BookingKind
from timetabling.schemas.conflict import ConflictReport
from timetabling.services.catalog import SchedulingCatalog
from timetabling.services.conflict_service import ConflictService
from timetabling.services.policy import SchedulingPolicy

router = APIRouter()


@router.get("/", response_model=ConflictReport)
def detect_conflicts(
    kind: BookingKind | None = None,
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
):
    catalog = SchedulingCatalog(db)
    room_capacities = {room.name: room.capacity for room in catalog.list_active_rooms()}

    service = ConflictService(catalog.list_bookings(kind=kind), room_capacities, policy)
    report = service.detect_conflicts()

    for conflict in report.conflicts:
        resolutions = service.generate_resolutions(conflict)
        report.suggested_resolutions.extend(resolutions)

    return report
