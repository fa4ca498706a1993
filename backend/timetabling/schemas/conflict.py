from typing import Literal

from pydantic import BaseModel


class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "lecturer_conflict",
        "venue_capacity",
        "class_conflict",
        "group_daily_cap",
        "group_min_hours",
    ]
    description: str
    severity: Literal["hard", "soft"]
    affected_bookings: list[str]


class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_room"]
    description: str
    target_booking_id: str
    parameters: dict


class ConflictReport(BaseModel):
    conflicts: list[ConflictDetail]
    suggested_resolutions: list[ResolutionAction]
