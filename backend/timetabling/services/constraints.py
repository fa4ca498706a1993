from __future__ import annotations

import logging
from dataclasses import dataclass, field

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.services.occupancy import BookingCandidate, LedgerEntry, OccupancyLedger
from timetabling.services.policy import SchedulingPolicy, is_remote_venue

logger = logging.getLogger(__name__)

LECTURER_RULE = "lecturer_conflict"
VENUE_RULE = "venue_capacity"
CLASS_RULE = "class_conflict"
GROUP_CAP_RULE = "group_daily_cap"


@dataclass(frozen=True)
class Violation:
    rule: str
    description: str
    booking_id: str | None = None

    def as_dict(self) -> dict:
        return {"rule": self.rule, "booking_id": self.booking_id, "description": self.description}


@dataclass
class ConflictResult:
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def reasons(self) -> list[str]:
        # One reason per rule/entity pair, in detection order.
        seen: list[str] = []
        for violation in self.violations:
            if violation.description not in seen:
                seen.append(violation.description)
        return seen

    @property
    def conflicts(self) -> list[dict]:
        return [violation.as_dict() for violation in self.violations]


def cohorts_clash(first: BookingCandidate, second: BookingCandidate) -> bool:
    """Two bookings seat overlapping students.

    Distinct groups of the same class may meet in parallel; a booking
    without a group occupies its whole class.
    """
    if first.group_id and second.group_id:
        return first.group_id == second.group_id
    return bool(set(first.class_ids) & set(second.class_ids))


class ConstraintChecker:
    def __init__(self, ledger: OccupancyLedger, room_capacities: dict[str, int], policy: SchedulingPolicy):
        self.ledger = ledger
        self.room_capacities = room_capacities
        self.policy = policy

    def check(self, candidate: BookingCandidate, exclude_booking_id: str | None = None) -> ConflictResult:
        result = ConflictResult()
        overlapping = self.ledger.overlapping(
            candidate.kind,
            candidate.slot_key,
            candidate.start_time,
            candidate.end_time,
            exclude_booking_id=exclude_booking_id,
        )
        result.violations.extend(self._lecturer_violations(candidate, overlapping))
        result.violations.extend(self._venue_violations(candidate, overlapping))
        result.violations.extend(self._cohort_violations(candidate, overlapping))
        result.violations.extend(self._group_cap_violations(candidate, exclude_booking_id))
        if not result.ok:
            logger.debug(
                "Candidate %s %s-%s rejected: %s",
                candidate.slot_key,
                candidate.start_time,
                candidate.end_time,
                "; ".join(result.reasons),
            )
        return result

    def _lecturer_violations(self, candidate: BookingCandidate, overlapping: list[LedgerEntry]) -> list[Violation]:
        if not candidate.lecturer:
            return []
        return [
            Violation(
                rule=LECTURER_RULE,
                booking_id=entry.booking_id,
                description=(
                    f"Lecturer {candidate.lecturer} is already booked on {candidate.slot_key} "
                    f"{entry.candidate.start_time}-{entry.candidate.end_time}"
                ),
            )
            for entry in overlapping
            if entry.candidate.lecturer == candidate.lecturer
        ]

    def _venue_violations(self, candidate: BookingCandidate, overlapping: list[LedgerEntry]) -> list[Violation]:
        venue = candidate.venue
        if not venue or is_remote_venue(venue) or candidate.effective_mode != TeachingMode.physical:
            return []
        sharing = [
            entry
            for entry in overlapping
            if entry.candidate.venue == venue and entry.candidate.effective_mode == TeachingMode.physical
        ]
        capacity = self.room_capacities.get(venue)
        if capacity is None:
            if not sharing:
                return []
            # Venues outside the room catalog are held exclusively.
            return [
                Violation(
                    rule=VENUE_RULE,
                    booking_id=entry.booking_id,
                    description=f"Venue {venue} is already in use on {candidate.slot_key} "
                    f"{entry.candidate.start_time}-{entry.candidate.end_time}",
                )
                for entry in sharing
            ]
        occupied = sum(entry.candidate.headcount for entry in sharing)
        if occupied + candidate.headcount <= capacity:
            return []
        return [
            Violation(
                rule=VENUE_RULE,
                booking_id=sharing[0].booking_id if sharing else None,
                description=(
                    f"Venue {venue} capacity {capacity} exceeded on {candidate.slot_key}: "
                    f"{occupied} seated + {candidate.headcount} requested"
                ),
            )
        ]

    def _cohort_violations(self, candidate: BookingCandidate, overlapping: list[LedgerEntry]) -> list[Violation]:
        if not candidate.group_id and not candidate.class_ids:
            return []
        return [
            Violation(
                rule=CLASS_RULE,
                booking_id=entry.booking_id,
                description=(
                    f"Class already has a booking on {candidate.slot_key} "
                    f"{entry.candidate.start_time}-{entry.candidate.end_time}"
                ),
            )
            for entry in overlapping
            if cohorts_clash(candidate, entry.candidate)
        ]

    def _group_cap_violations(self, candidate: BookingCandidate, exclude_booking_id: str | None) -> list[Violation]:
        if candidate.kind != BookingKind.class_session or not candidate.group_id:
            return []
        load = self.ledger.group_day_load(candidate.group_id, candidate.day, exclude_booking_id=exclude_booking_id)
        violations: list[Violation] = []
        max_minutes = self.policy.max_total_hours_per_group_per_day * 60
        if load.total_minutes + candidate.duration_minutes > max_minutes:
            violations.append(
                Violation(
                    rule=GROUP_CAP_RULE,
                    description=(
                        f"Group {candidate.group_id} would exceed "
                        f"{self.policy.max_total_hours_per_group_per_day} hours on {candidate.day}"
                    ),
                )
            )
        if (
            candidate.effective_mode == TeachingMode.physical
            and load.physical_count >= self.policy.max_physical_sessions_per_group_per_day
        ):
            violations.append(
                Violation(
                    rule=GROUP_CAP_RULE,
                    description=(
                        f"Group {candidate.group_id} already has "
                        f"{self.policy.max_physical_sessions_per_group_per_day} physical sessions on {candidate.day}"
                    ),
                )
            )
        return violations

    def can_add_to_day(self, group_id: str, day: str, mode: TeachingMode, duration_hours: float) -> bool:
        load = self.ledger.group_day_load(group_id, day)
        if load.total_minutes + duration_hours * 60 > self.policy.max_total_hours_per_group_per_day * 60:
            return False
        if mode == TeachingMode.physical and load.physical_count >= self.policy.max_physical_sessions_per_group_per_day:
            return False
        return True
