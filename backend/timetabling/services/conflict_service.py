from collections import defaultdict
from typing import Dict, List

from timetabling.models.booking import Booking, BookingKind, TeachingMode
from timetabling.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from timetabling.services.constraints import cohorts_clash
from timetabling.services.occupancy import LedgerEntry
from timetabling.services.policy import SchedulingPolicy, is_remote_venue


class ConflictService:
    def __init__(self, bookings: List[Booking], room_capacities: Dict[str, int], policy: SchedulingPolicy):
        self.bookings = bookings
        self.room_capacities = room_capacities
        self.policy = policy

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []

        # Bucket by kind and day/date, then check pairwise within a bucket.
        buckets = defaultdict(list)
        for booking in self.bookings:
            buckets[(booking.kind, booking.slot_key)].append(LedgerEntry.from_booking(booking))

        for (kind, key), entries in buckets.items():
            n = len(entries)
            for i in range(n):
                b1 = entries[i].candidate
                id1 = entries[i].booking_id
                for j in range(i + 1, n):
                    b2 = entries[j].candidate
                    id2 = entries[j].booking_id
                    if not (b1.start_minutes < b2.end_minutes and b2.start_minutes < b1.end_minutes):
                        continue
                    if b1.lecturer and b1.lecturer == b2.lecturer:
                        conflicts.append(ConflictDetail(
                            id=f"lec-{id1}-{id2}",
                            conflict_type="lecturer_conflict",
                            description=f"Lecturer {b1.lecturer} double-booked on {key} {b1.start_time}-{b1.end_time}",
                            severity="hard",
                            affected_bookings=[id1, id2],
                        ))
                    if cohorts_clash(b1, b2):
                        conflicts.append(ConflictDetail(
                            id=f"cls-{id1}-{id2}",
                            conflict_type="class_conflict",
                            description=f"Class overlap on {key}: units {b1.unit_id} and {b2.unit_id}",
                            severity="hard",
                            affected_bookings=[id1, id2],
                        ))

            conflicts.extend(self._venue_capacity(key, entries))
            if kind == BookingKind.class_session:
                conflicts.extend(self._group_loads(key, entries))

        return ConflictReport(conflicts=conflicts, suggested_resolutions=[])

    def _venue_capacity(self, key: str, entries: List[LedgerEntry]) -> List[ConflictDetail]:
        findings: List[ConflictDetail] = []
        by_venue = defaultdict(list)
        for entry in entries:
            candidate = entry.candidate
            if candidate.venue and not is_remote_venue(candidate.venue) and candidate.effective_mode == TeachingMode.physical:
                by_venue[candidate.venue].append(entry)

        for venue, venue_entries in by_venue.items():
            capacity = self.room_capacities.get(venue)
            if capacity is None:
                continue
            # Peak occupancy happens at some booking's start.
            reported = set()
            for entry in sorted(venue_entries, key=lambda e: e.candidate.start_minutes):
                at = entry.candidate.start_minutes
                active = [e for e in venue_entries if e.candidate.start_minutes <= at < e.candidate.end_minutes]
                seated = sum(e.candidate.headcount for e in active)
                ids = tuple(sorted(e.booking_id for e in active))
                if seated > capacity and ids not in reported:
                    reported.add(ids)
                    findings.append(ConflictDetail(
                        id=f"cap-{venue}-{key}-{entry.candidate.start_time}",
                        conflict_type="venue_capacity",
                        description=f"Venue {venue} holds {seated} students at {entry.candidate.start_time} on {key}, capacity {capacity}",
                        severity="hard",
                        affected_bookings=list(ids),
                    ))
        return findings

    def _group_loads(self, day: str, entries: List[LedgerEntry]) -> List[ConflictDetail]:
        findings: List[ConflictDetail] = []
        by_group = defaultdict(list)
        for entry in entries:
            if entry.candidate.group_id:
                by_group[entry.candidate.group_id].append(entry)

        for group_id, group_entries in by_group.items():
            ids = [e.booking_id for e in group_entries]
            minutes = sum(e.candidate.duration_minutes for e in group_entries)
            physical = sum(1 for e in group_entries if e.candidate.effective_mode == TeachingMode.physical)
            if physical > self.policy.max_physical_sessions_per_group_per_day:
                findings.append(ConflictDetail(
                    id=f"gphys-{group_id}-{day}",
                    conflict_type="group_daily_cap",
                    description=f"Group {group_id} has {physical} physical sessions on {day}",
                    severity="hard",
                    affected_bookings=ids,
                ))
            if minutes > self.policy.max_total_hours_per_group_per_day * 60:
                findings.append(ConflictDetail(
                    id=f"ghours-{group_id}-{day}",
                    conflict_type="group_daily_cap",
                    description=f"Group {group_id} has {minutes / 60:g} hours on {day}",
                    severity="hard",
                    affected_bookings=ids,
                ))
            if minutes < self.policy.min_hours_per_day * 60:
                findings.append(ConflictDetail(
                    id=f"gmin-{group_id}-{day}",
                    conflict_type="group_min_hours",
                    description=f"Group {group_id} has only {minutes / 60:g} hours on {day}",
                    severity="soft",
                    affected_bookings=ids,
                ))
        return findings

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        if conflict.conflict_type == "venue_capacity":
            resolutions.append(ResolutionAction(
                action_type="change_room",
                description="Move to a larger room or one free in this window",
                target_booking_id=conflict.affected_bookings[-1],
                parameters={},
            ))

        if conflict.conflict_type in ("lecturer_conflict", "class_conflict", "group_daily_cap"):
            resolutions.append(ResolutionAction(
                action_type="move_slot",
                description="Move to a different time slot",
                target_booking_id=conflict.affected_bookings[-1],
                parameters={},
            ))

        return resolutions
