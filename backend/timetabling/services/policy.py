from __future__ import annotations

from dataclasses import dataclass

from timetabling.core.config import Settings
from timetabling.core.exceptions import ConfigurationError
from timetabling.models.booking import TeachingMode
from timetabling.models.room import REMOTE_VENUE


@dataclass(frozen=True)
class SchedulingPolicy:
    max_physical_sessions_per_group_per_day: int = 2
    max_total_hours_per_group_per_day: int = 5
    min_hours_per_day: int = 2
    require_mixed_mode: bool = True
    avoid_consecutive_slots: bool = True
    min_rest_minutes: int = 15
    physical_min_duration_hours: int = 2
    max_assignment_attempts: int = 5
    max_bulk_days_per_unit: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulingPolicy":
        if settings.min_hours_per_day > settings.max_total_hours_per_group_per_day:
            raise ConfigurationError(
                f"min_hours_per_day ({settings.min_hours_per_day}) exceeds "
                f"max_total_hours_per_group_per_day ({settings.max_total_hours_per_group_per_day})"
            )
        if settings.physical_min_duration_hours < 1:
            raise ConfigurationError("physical_min_duration_hours must be at least 1")
        return cls(
            max_physical_sessions_per_group_per_day=settings.max_physical_sessions_per_group_per_day,
            max_total_hours_per_group_per_day=settings.max_total_hours_per_group_per_day,
            min_hours_per_day=settings.min_hours_per_day,
            require_mixed_mode=settings.require_mixed_mode,
            avoid_consecutive_slots=settings.avoid_consecutive_slots,
            min_rest_minutes=settings.min_rest_minutes,
            physical_min_duration_hours=settings.physical_min_duration_hours,
            max_assignment_attempts=settings.max_assignment_attempts,
            max_bulk_days_per_unit=settings.max_bulk_days_per_unit,
        )


@dataclass(frozen=True)
class PlannedSession:
    duration_hours: int
    teaching_mode: TeachingMode


def resolve_teaching_mode(
    duration_hours: float | None,
    requested: TeachingMode | None,
    policy: SchedulingPolicy,
) -> TeachingMode:
    """Single source of the teaching mode of a class session.

    A known duration decides: long sessions are physical, short ones online.
    Without a duration the explicit request applies, physical by default.
    """
    if duration_hours is not None:
        if duration_hours >= policy.physical_min_duration_hours:
            return TeachingMode.physical
        return TeachingMode.online
    return requested or TeachingMode.physical


def sessions_for_credits(credit_hours: int) -> list[PlannedSession]:
    if credit_hours <= 0:
        return []
    if credit_hours == 1:
        return [PlannedSession(duration_hours=1, teaching_mode=TeachingMode.online)]
    plan = [PlannedSession(duration_hours=2, teaching_mode=TeachingMode.physical)]
    plan.extend(
        PlannedSession(duration_hours=1, teaching_mode=TeachingMode.online) for _ in range(credit_hours - 2)
    )
    return plan


def derive_venue_mode(venue: str | None) -> TeachingMode:
    if venue and venue.strip().lower() == REMOTE_VENUE.lower():
        return TeachingMode.online
    return TeachingMode.physical


def is_remote_venue(venue: str | None) -> bool:
    return derive_venue_mode(venue) == TeachingMode.online
