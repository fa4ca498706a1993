from __future__ import annotations

import logging
import random
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.models.time_slot import TimeSlot
from timetabling.schemas.common import DAY_VALUES, parse_time_to_minutes
from timetabling.services.constraints import ConstraintChecker
from timetabling.services.occupancy import BookingCandidate, OccupancyLedger
from timetabling.services.policy import SchedulingPolicy, resolve_teaching_mode

logger = logging.getLogger(__name__)

SlotKey = tuple[str, str, str]


@dataclass(frozen=True)
class ModeChoice:
    teaching_mode: TeachingMode
    day: str | None
    reason: str


@dataclass(frozen=True)
class AssignmentResult:
    ok: bool
    day: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration_hours: int | None = None
    teaching_mode: TeachingMode | None = None
    reason: str | None = None

    @property
    def slot_key(self) -> SlotKey | None:
        if not self.ok:
            return None
        return (self.day, self.start_time, self.end_time)


def _slot_sort_key(slot: TimeSlot) -> tuple[int, int, int]:
    day_index = DAY_VALUES.index(slot.day) if slot.day in DAY_VALUES else len(DAY_VALUES)
    return (day_index, parse_time_to_minutes(slot.start_time), parse_time_to_minutes(slot.end_time))


def _opposite(mode: TeachingMode) -> TeachingMode:
    return TeachingMode.online if mode == TeachingMode.physical else TeachingMode.physical


class SlotSearch:
    def __init__(
        self,
        slots: Sequence[TimeSlot],
        ledger: OccupancyLedger,
        checker: ConstraintChecker,
        policy: SchedulingPolicy,
        rng: random.Random,
    ):
        self.slots = sorted(slots, key=_slot_sort_key)
        self.ledger = ledger
        self.checker = checker
        self.policy = policy
        self.rng = rng

    def balanced_mode(
        self,
        group_id: str,
        preferred_mode: TeachingMode,
        duration_hours: int,
        day: str | None = None,
    ) -> ModeChoice:
        """Pick the teaching mode and day that keep the group's week mixed.

        Order of preference: a day holding only one mode that can take the
        other, a day that fits the preferred mode, then any day with room
        left, physical before online.
        """
        days = [day] if day else list(DAY_VALUES)

        if self.policy.require_mixed_mode:
            for candidate_day in days:
                load = self.ledger.group_day_load(group_id, candidate_day)
                if load.session_count == 0 or (load.physical_count and load.online_count):
                    continue
                missing = TeachingMode.online if load.physical_count else TeachingMode.physical
                if self.checker.can_add_to_day(group_id, candidate_day, missing, duration_hours):
                    return ModeChoice(missing, candidate_day, f"balancing {candidate_day} toward {missing.value}")

        for candidate_day in days:
            if self.checker.can_add_to_day(group_id, candidate_day, preferred_mode, duration_hours):
                return ModeChoice(preferred_mode, candidate_day, f"{candidate_day} fits preferred mode")

        for mode in (TeachingMode.physical, TeachingMode.online):
            for candidate_day in days:
                if self.checker.can_add_to_day(group_id, candidate_day, mode, duration_hours):
                    return ModeChoice(mode, candidate_day, f"{candidate_day} has remaining capacity")

        return ModeChoice(preferred_mode, None, "no day has remaining capacity")

    def find_assignment(
        self,
        lecturer: str,
        duration_hours: int,
        teaching_mode: TeachingMode | None = None,
        group_id: str | None = None,
        day: str | None = None,
        *,
        class_ids: Sequence[str] = (),
        venue: str | None = None,
        headcount: int = 1,
        exclude_slots: Collection[SlotKey] = (),
    ) -> AssignmentResult:
        pool = [slot for slot in self.slots if slot.duration_hours == duration_hours]
        if not pool:
            pool = list(self.slots)
        if day:
            pool = [slot for slot in pool if slot.day == day]
        pool = [slot for slot in pool if (slot.day, slot.start_time, slot.end_time) not in exclude_slots]

        requested_mode = teaching_mode
        preferred_day = None
        if group_id:
            choice = self.balanced_mode(group_id, teaching_mode or TeachingMode.physical, duration_hours, day)
            requested_mode = choice.teaching_mode
            preferred_day = choice.day
            logger.info("Group %s: %s (%s)", group_id, choice.teaching_mode.value, choice.reason)

        feasible: list[tuple[TimeSlot, TeachingMode]] = []
        for slot in pool:
            mode = resolve_teaching_mode(slot.duration_hours, requested_mode, self.policy)
            candidate = BookingCandidate(
                kind=BookingKind.class_session,
                day=slot.day,
                start_time=slot.start_time,
                end_time=slot.end_time,
                lecturer=lecturer,
                venue=venue,
                teaching_mode=mode,
                headcount=headcount,
                group_id=group_id,
                class_ids=tuple(class_ids),
            )
            if self.checker.check(candidate).ok:
                feasible.append((slot, mode))

        if not feasible:
            reason = (
                f"No available {duration_hours}h slot for lecturer {lecturer} "
                f"(day filter: {day or 'any'})"
            )
            logger.warning(reason)
            return AssignmentResult(ok=False, reason=reason)

        if preferred_day:
            on_day = [item for item in feasible if item[0].day == preferred_day]
            if on_day:
                feasible = on_day
        if self.policy.avoid_consecutive_slots:
            rested = [item for item in feasible if self._leaves_rest(item[0], lecturer, group_id)]
            if rested:
                feasible = rested

        slot, mode = self.rng.choice(sorted(feasible, key=lambda item: _slot_sort_key(item[0])))
        logger.info("Assigned %s %s-%s to lecturer %s (%s)", slot.day, slot.start_time, slot.end_time, lecturer, mode.value)
        return AssignmentResult(
            ok=True,
            day=slot.day,
            start_time=slot.start_time,
            end_time=slot.end_time,
            duration_hours=slot.duration_hours,
            teaching_mode=mode,
        )

    def _leaves_rest(self, slot: TimeSlot, lecturer: str, group_id: str | None) -> bool:
        start = parse_time_to_minutes(slot.start_time)
        end = parse_time_to_minutes(slot.end_time)
        rest = self.policy.min_rest_minutes
        for entry in self.ledger.entries_on(BookingKind.class_session, slot.day):
            other = entry.candidate
            if other.lecturer != lecturer and not (group_id and other.group_id == group_id):
                continue
            if other.end_minutes <= start and start - other.end_minutes < rest:
                return False
            if other.start_minutes >= end and other.start_minutes - end < rest:
                return False
        return True
