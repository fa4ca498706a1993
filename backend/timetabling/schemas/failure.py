import datetime as dt

from pydantic import BaseModel, Field

from timetabling.models.scheduling_failure import FailureCategory, FailureStatus


class SchedulingFailureOut(BaseModel):
    id: str
    batch_id: str
    semester_id: str | None
    program_id: str | None
    unit_id: str
    unit_code: str
    class_ids: list[str]
    headcount: int
    lecturer: str | None
    attempted_dates: list[str]
    category: FailureCategory
    reason: str
    status: FailureStatus
    resolution_note: str | None
    created_at: dt.datetime | None = None
    resolved_at: dt.datetime | None = None

    model_config = {"from_attributes": True}


class FailureResolveRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)
